"""
CSV rendering for exports.

Every cell is quoted and embedded quotes are doubled, so commas, quotes and
newlines inside values survive a round trip through any standard CSV reader.
"""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable, Iterator, Mapping, Sequence
from datetime import datetime


def _cell(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return " ".join(_cell(v) for v in value)
    return str(value)


def iter_csv(rows: Iterable[Mapping[str, object]], fields: Sequence[str]) -> Iterator[str]:
    """Yield the header line, then one line per row, CRLF-terminated."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\r\n")

    def _flush() -> str:
        text = buffer.getvalue()
        buffer.seek(0)
        buffer.truncate(0)
        return text

    # Header cells are the literal field names, unquoted.
    yield ",".join(fields) + "\r\n"
    for row in rows:
        writer.writerow([_cell(row.get(field)) for field in fields])
        yield _flush()


def to_csv(rows: Iterable[Mapping[str, object]], fields: Sequence[str]) -> str:
    return "".join(iter_csv(rows, fields))
