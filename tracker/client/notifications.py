"""Transient toast notifications. Nothing here is persisted."""

from __future__ import annotations

import itertools
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

Severity = Literal["success", "error", "info"]

DEFAULT_TTL = 5.0


@dataclass(frozen=True)
class Toast:
    id: int
    message: str
    severity: Severity
    created_at: float


class NotificationCenter:
    def __init__(self, ttl: float = DEFAULT_TTL, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl = ttl
        self._clock = clock
        self._ids = itertools.count(1)
        self._toasts: list[Toast] = []

    def add(self, message: str, severity: Severity = "info") -> Toast:
        toast = Toast(next(self._ids), message, severity, self._clock())
        self._toasts.append(toast)
        return toast

    def success(self, message: str) -> Toast:
        return self.add(message, "success")

    def error(self, message: str) -> Toast:
        return self.add(message, "error")

    def remove(self, toast_id: int) -> None:
        self._toasts = [t for t in self._toasts if t.id != toast_id]

    def active(self) -> list[Toast]:
        """Drop expired toasts and return the rest, oldest first."""
        now = self._clock()
        self._toasts = [t for t in self._toasts if now - t.created_at < self.ttl]
        return list(self._toasts)
