"""Utility package for timing and cooperative cancellation helpers."""

from __future__ import annotations

from .cancellation import CancellationToken, raise_if_cancelled
from .time import Timer, now_unix_s

__all__ = [
    "CancellationToken",
    "raise_if_cancelled",
    "now_unix_s",
    "Timer",
]
