from __future__ import annotations

from typing import Any

from vaultscribe.adapters._fields import field_value
from vaultscribe.adapters.summary_format import load_summary_prompt, parse_summary_response, truncate_for_budget
from vaultscribe.contracts.artifacts import SummarizationResult
from vaultscribe.contracts.errors import ProviderResponseError, SummarizationError
from vaultscribe.utils.cancellation import CancellationToken, raise_if_cancelled


DEFAULT_OPENAI_SUMMARY_MODEL = "gpt-4o"
DEFAULT_QWEN_SUMMARY_MODEL = "qwen-plus"
QWEN_DEFAULT_BASE_URL = "https://dashscope.aliyuncs.com/compatible-mode/v1"

OPENAI_MAX_INPUT_CHARS = 100_000


def _extract_chat_completion_text(response: Any) -> str:
    choices = field_value(response, "choices")
    if not isinstance(choices, list) or not choices:
        return ""
    message = field_value(choices[0], "message")
    content = field_value(message, "content")
    if isinstance(content, str):
        return content.strip()
    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            text = field_value(item, "text")
            if text:
                parts.append(str(text))
        return "\n".join(parts).strip()
    return ""


class OpenAICompatibleSummarizer:
    """Chat-completions summarizer for OpenAI and OpenAI-compatible endpoints (Qwen)."""

    def __init__(
        self,
        client: Any,
        *,
        model: str,
        provider: str = "openai",
        prompt: str | None = None,
        max_input_chars: int = OPENAI_MAX_INPUT_CHARS,
        max_tokens: int = 8000,
        temperature: float = 0.3,
    ) -> None:
        if not model:
            raise ValueError("summary model is required")
        self._client = client
        self._model = model
        self._provider = provider
        self._prompt = prompt if prompt is not None else load_summary_prompt()
        self._max_input_chars = max_input_chars
        self._max_tokens = max_tokens
        self._temperature = temperature

    def name(self) -> str:
        return self._provider

    def summarize(self, text: str, *, cancel: CancellationToken | None = None) -> SummarizationResult:
        raise_if_cancelled(cancel, "summarization")
        message = self._prompt + truncate_for_budget(text, self._max_input_chars)

        try:
            response = self._client.chat.completions.create(
                model=self._model,
                messages=[{"role": "user", "content": message}],
                max_tokens=self._max_tokens,
                temperature=self._temperature,
            )
        except Exception as exc:  # provider SDK exceptions vary
            raise SummarizationError(f"summarization API error ({self._provider}): {exc}") from exc
        raise_if_cancelled(cancel, "summarization")

        content = _extract_chat_completion_text(response)
        if not content:
            raise ProviderResponseError(f"no summary returned by {self._provider}")
        return parse_summary_response(content, provider=self._provider, model=self._model)


__all__ = [
    "DEFAULT_OPENAI_SUMMARY_MODEL",
    "DEFAULT_QWEN_SUMMARY_MODEL",
    "OpenAICompatibleSummarizer",
    "QWEN_DEFAULT_BASE_URL",
]
