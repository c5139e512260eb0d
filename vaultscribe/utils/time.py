from __future__ import annotations

import time
from dataclasses import dataclass


def now_unix_s() -> float:
    return time.time()


@dataclass(slots=True)
class Timer:
    """Monotonic stopwatch for progress logging."""

    start_s: float

    @classmethod
    def start(cls) -> "Timer":
        return cls(start_s=time.monotonic())

    def elapsed_s(self) -> float:
        return max(0.0, time.monotonic() - self.start_s)
