from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from vaultscribe.utils.time import now_unix_s

StepStatus = Literal["pending", "skipped", "success", "failed"]


@dataclass(slots=True)
class StepRecord:
    name: str
    status: StepStatus = "pending"
    started_at_s: float | None = None
    ended_at_s: float | None = None
    duration_ms: int | None = None
    meta: dict[str, Any] = field(default_factory=dict)
    error: dict[str, Any] | None = None
    error_type: str | None = None

    def start(self, *, at_s: float | None = None) -> None:
        self.started_at_s = now_unix_s() if at_s is None else at_s
        self.status = "pending"

    def finish(
        self,
        *,
        status: StepStatus,
        at_s: float | None = None,
        error: dict[str, Any] | None = None,
        error_type: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> None:
        self.ended_at_s = now_unix_s() if at_s is None else at_s
        self.status = status
        self.error = error
        self.error_type = error_type
        if meta:
            self.meta.update(meta)
        self.duration_ms = self.compute_duration_ms()

    def skip(self, reason: str) -> None:
        self.status = "skipped"
        self.meta["reason"] = reason

    def compute_duration_ms(self) -> int | None:
        if self.started_at_s is None or self.ended_at_s is None:
            return None
        return max(0, int(round((self.ended_at_s - self.started_at_s) * 1000)))


@dataclass(slots=True)
class RunRecord:
    """
    In-memory record of one pipeline invocation.
    Holds step timings and error payloads only, never transcript text or secrets.
    """

    run_id: str
    input_path: str
    steps: dict[str, StepRecord] = field(default_factory=dict)

    def ensure_step(self, name: str) -> StepRecord:
        if name not in self.steps:
            self.steps[name] = StepRecord(name=name)
        return self.steps[name]


__all__ = ["RunRecord", "StepRecord", "StepStatus"]
