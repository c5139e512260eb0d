from __future__ import annotations

from pathlib import Path
from typing import Protocol

from vaultscribe.contracts.artifacts import TranscriptionResult
from vaultscribe.utils.cancellation import CancellationToken


class Transcriber(Protocol):
    """Provider adapter boundary for speech-to-text."""

    def name(self) -> str:
        """Return the provider name."""

    def max_file_size(self) -> int:
        """Return the largest accepted file in bytes, or 0 when there is no limit."""

    def transcribe(self, path: Path, *, cancel: CancellationToken | None = None) -> TranscriptionResult:
        """Return a normalized transcription of the audio/video file at path."""


__all__ = ["Transcriber"]
