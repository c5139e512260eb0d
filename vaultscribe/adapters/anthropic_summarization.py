from __future__ import annotations

from typing import Any

from vaultscribe.adapters._fields import field_value
from vaultscribe.adapters.summary_format import load_summary_prompt, parse_summary_response, truncate_for_budget
from vaultscribe.contracts.artifacts import SummarizationResult
from vaultscribe.contracts.errors import ProviderResponseError, SummarizationError
from vaultscribe.utils.cancellation import CancellationToken, raise_if_cancelled


DEFAULT_ANTHROPIC_SUMMARY_MODEL = "claude-sonnet-4-20250514"
ANTHROPIC_MAX_INPUT_CHARS = 150_000


class AnthropicSummarizer:
    def __init__(
        self,
        client: Any,
        *,
        model: str = DEFAULT_ANTHROPIC_SUMMARY_MODEL,
        prompt: str | None = None,
        max_input_chars: int = ANTHROPIC_MAX_INPUT_CHARS,
        max_tokens: int = 8000,
    ) -> None:
        if not model:
            raise ValueError("summary model is required")
        self._client = client
        self._model = model
        self._prompt = prompt if prompt is not None else load_summary_prompt()
        self._max_input_chars = max_input_chars
        self._max_tokens = max_tokens

    def name(self) -> str:
        return "anthropic"

    def summarize(self, text: str, *, cancel: CancellationToken | None = None) -> SummarizationResult:
        raise_if_cancelled(cancel, "summarization")
        message = self._prompt + truncate_for_budget(text, self._max_input_chars)

        try:
            response = self._client.messages.create(
                model=self._model,
                max_tokens=self._max_tokens,
                messages=[{"role": "user", "content": message}],
            )
        except Exception as exc:  # provider SDK exceptions vary
            raise SummarizationError(f"summarization API error (anthropic): {exc}") from exc
        raise_if_cancelled(cancel, "summarization")

        blocks = field_value(response, "content") or []
        content = "".join(
            str(field_value(block, "text") or "") for block in blocks if field_value(block, "type") == "text"
        ).strip()
        if not content:
            raise ProviderResponseError("no summary returned by anthropic")
        return parse_summary_response(content, provider="anthropic", model=self._model)


__all__ = ["AnthropicSummarizer", "DEFAULT_ANTHROPIC_SUMMARY_MODEL"]
