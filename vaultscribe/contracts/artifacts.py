from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal


FileKind = Literal["audio", "video", "text", "unknown"]


@dataclass(frozen=True, slots=True)
class Segment:
    start_s: float
    end_s: float
    text: str


@dataclass(frozen=True, slots=True)
class TranscriptionResult:
    text: str
    segments: list[Segment] = field(default_factory=list)
    language: str | None = None
    duration_s: float = 0.0
    provider: str | None = None
    model: str | None = None


@dataclass(frozen=True, slots=True)
class SummarizationResult:
    summary: str
    key_points: list[str] = field(default_factory=list)
    provider: str | None = None
    model: str | None = None


@dataclass(frozen=True, slots=True)
class Chunk:
    """One split piece of a source file; offsets are seconds on the source timeline."""

    index: int
    path: Path
    start_s: float
    end_s: float

    @property
    def duration_s(self) -> float:
        return max(0.0, self.end_s - self.start_s)


@dataclass(frozen=True, slots=True)
class PipelineOptions:
    transcribe: bool = False
    summarize: bool = False


@dataclass(frozen=True, slots=True)
class ProcessResult:
    transcript_path: Path | None = None
    summary_path: Path | None = None
    transcript: TranscriptionResult | None = None
    summary: SummarizationResult | None = None
    chunk_count: int = 0
    steps: dict[str, Any] = field(default_factory=dict)
