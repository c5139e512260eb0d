from __future__ import annotations

from vaultscribe.adapters.summarization import Summarizer
from vaultscribe.contracts.artifacts import SummarizationResult
from vaultscribe.contracts.errors import (
    ComponentError,
    InputValidationError,
    ProviderResponseError,
    SummarizationError,
)
from vaultscribe.utils.cancellation import CancellationToken, raise_if_cancelled


def summarize_text(
    text: str,
    *,
    summarizer: Summarizer,
    cancel: CancellationToken | None = None,
) -> SummarizationResult:
    """Single summarizer call; text is assumed to fit the provider's budget."""
    if not text.strip():
        raise InputValidationError("nothing to summarize: text is empty")
    raise_if_cancelled(cancel, "summarization")

    try:
        result = summarizer.summarize(text, cancel=cancel)
    except ComponentError:
        raise
    except Exception as exc:  # adapter boundary
        raise SummarizationError(f"{summarizer.name()} summarization failed: {exc}") from exc

    if not isinstance(result, SummarizationResult):
        raise ProviderResponseError(f"{summarizer.name()} summarizer must return SummarizationResult")
    if not result.summary.strip() and not result.key_points:
        raise ProviderResponseError(f"{summarizer.name()} summarizer returned an empty summary")
    return result


__all__ = ["summarize_text"]
