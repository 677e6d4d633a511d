"""
Password policy checks and temporary-password generation.

The policy is enforced on both sides: the client layer checks it before any
request is made, and the auth endpoints check it again.
"""

from __future__ import annotations

import re
import secrets
from dataclasses import dataclass

MIN_LENGTH = 8

_RULES: list[tuple[str, re.Pattern[str]]] = [
    ("min_length", re.compile(r".{%d,}" % MIN_LENGTH, re.DOTALL)),
    ("uppercase", re.compile(r"[A-Z]")),
    ("lowercase", re.compile(r"[a-z]")),
    ("digit", re.compile(r"\d")),
]
_SYMBOL_RULE = ("symbol", re.compile(r"[^A-Za-z0-9]"))


def validate_password(password: str, *, require_symbol: bool = False) -> list[str]:
    """Return the names of the rules *password* fails (empty list = valid)."""
    rules = _RULES + [_SYMBOL_RULE] if require_symbol else _RULES
    return [name for name, pattern in rules if not pattern.search(password)]


def is_valid_password(password: str, *, require_symbol: bool = False) -> bool:
    return not validate_password(password, require_symbol=require_symbol)


# ── Temporary passwords ─────────────────────────────────────────────
@dataclass(frozen=True)
class Charsets:
    uppercase: str
    lowercase: str
    digits: str
    symbols: str

    @property
    def classes(self) -> tuple[str, str, str, str]:
        return (self.uppercase, self.lowercase, self.digits, self.symbols)

    @property
    def alphabet(self) -> str:
        return "".join(self.classes)


SYMBOLS = "!@#$%^&*()_+-=[]{}|;:,.<>?"

FULL_CHARSETS = Charsets(
    uppercase="ABCDEFGHIJKLMNOPQRSTUVWXYZ",
    lowercase="abcdefghijklmnopqrstuvwxyz",
    digits="0123456789",
    symbols=SYMBOLS,
)

# Drops I/O/l/o/0/1 so passwords read back over the phone survive.
UNAMBIGUOUS_CHARSETS = Charsets(
    uppercase="ABCDEFGHJKLMNPQRSTUVWXYZ",
    lowercase="abcdefghijkmnpqrstuvwxyz",
    digits="23456789",
    symbols=SYMBOLS,
)


def generate_temporary_password(
    length: int = 14, charsets: Charsets = UNAMBIGUOUS_CHARSETS
) -> str:
    """Generate a random password of exactly *length* characters.

    One character is drawn from each class, the remainder uniformly from the
    union of all classes, and the result is shuffled so the guaranteed
    characters do not sit at fixed positions.
    """
    if length < len(charsets.classes):
        raise ValueError(f"Password length must be at least {len(charsets.classes)}")

    chars = [secrets.choice(cls) for cls in charsets.classes]
    alphabet = charsets.alphabet
    chars.extend(secrets.choice(alphabet) for _ in range(length - len(chars)))
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)
