from __future__ import annotations

from typing import Protocol

from vaultscribe.contracts.artifacts import SummarizationResult
from vaultscribe.utils.cancellation import CancellationToken


class Summarizer(Protocol):
    """Provider adapter boundary for text summarization."""

    def name(self) -> str:
        """Return the provider name."""

    def summarize(self, text: str, *, cancel: CancellationToken | None = None) -> SummarizationResult:
        """Return summary prose and key points for the given text."""


__all__ = ["Summarizer"]
