from __future__ import annotations

from typing import Any

from vaultscribe.adapters.anthropic_summarization import DEFAULT_ANTHROPIC_SUMMARY_MODEL, AnthropicSummarizer
from vaultscribe.adapters.ffmpeg import FfmpegAdapter
from vaultscribe.adapters.openai_summarization import (
    DEFAULT_OPENAI_SUMMARY_MODEL,
    DEFAULT_QWEN_SUMMARY_MODEL,
    QWEN_DEFAULT_BASE_URL,
    OpenAICompatibleSummarizer,
)
from vaultscribe.adapters.openai_transcription import DEFAULT_TRANSCRIPTION_MODEL, OpenAITranscriber
from vaultscribe.adapters.summarization import Summarizer
from vaultscribe.adapters.transcription import Transcriber
from vaultscribe.contracts.errors import ConfigurationError, UnsupportedProviderError


TRANSCRIPTION_PROVIDERS = frozenset({"openai"})
SUMMARIZATION_PROVIDERS = frozenset({"openai", "anthropic", "qwen"})


def _load_openai_client(api_key: str, base_url: str | None) -> Any:
    try:
        from openai import OpenAI
    except ImportError as exc:  # pragma: no cover - depends on local runtime
        raise ConfigurationError("The 'openai' package is required for this provider (pip install openai).") from exc
    # Retry policy belongs to the caller.
    return OpenAI(api_key=api_key, base_url=base_url, max_retries=0)


def _load_anthropic_client(api_key: str, base_url: str | None) -> Any:
    try:
        from anthropic import Anthropic
    except ImportError as exc:  # pragma: no cover - depends on local runtime
        raise ConfigurationError("The 'anthropic' package is required for this provider (pip install anthropic).") from exc
    return Anthropic(api_key=api_key, base_url=base_url, max_retries=0)


def _require_api_key(provider: str, api_key: str) -> None:
    if not api_key:
        raise ConfigurationError(f"{provider} API key not provided")


class ProviderFactory:
    """
    Builds provider capabilities from a provider identifier and a plaintext key.
    The key is handed to the SDK client and not retained by the factory.
    """

    def __init__(self, *, ffmpeg: FfmpegAdapter | None = None) -> None:
        self._ffmpeg = ffmpeg

    def supports_transcription(self, provider: str) -> bool:
        return provider in TRANSCRIPTION_PROVIDERS

    def supports_summarization(self, provider: str) -> bool:
        return provider in SUMMARIZATION_PROVIDERS

    def create_transcriber(
        self,
        provider: str,
        api_key: str,
        *,
        model: str | None = None,
        base_url: str | None = None,
        language: str | None = None,
    ) -> Transcriber:
        if provider == "openai":
            _require_api_key("OpenAI", api_key)
            return OpenAITranscriber(
                self.openai_client(api_key, base_url),
                model=model or DEFAULT_TRANSCRIPTION_MODEL,
                language=language,
                ffmpeg=self._ffmpeg,
            )
        raise UnsupportedProviderError(f"unsupported transcription provider: {provider}")

    def create_summarizer(
        self,
        provider: str,
        api_key: str,
        *,
        model: str | None = None,
        base_url: str | None = None,
    ) -> Summarizer:
        if provider == "openai":
            _require_api_key("OpenAI", api_key)
            return OpenAICompatibleSummarizer(
                self.openai_client(api_key, base_url),
                model=model or DEFAULT_OPENAI_SUMMARY_MODEL,
                provider="openai",
            )
        if provider == "qwen":
            _require_api_key("Qwen", api_key)
            return OpenAICompatibleSummarizer(
                self.openai_client(api_key, base_url or QWEN_DEFAULT_BASE_URL),
                model=model or DEFAULT_QWEN_SUMMARY_MODEL,
                provider="qwen",
            )
        if provider == "anthropic":
            _require_api_key("Anthropic", api_key)
            return AnthropicSummarizer(
                self.anthropic_client(api_key, base_url),
                model=model or DEFAULT_ANTHROPIC_SUMMARY_MODEL,
            )
        raise UnsupportedProviderError(f"unsupported summarization provider: {provider}")

    def openai_client(self, api_key: str, base_url: str | None) -> Any:
        return _load_openai_client(api_key, base_url)

    def anthropic_client(self, api_key: str, base_url: str | None) -> Any:
        return _load_anthropic_client(api_key, base_url)


__all__ = [
    "ProviderFactory",
    "SUMMARIZATION_PROVIDERS",
    "TRANSCRIPTION_PROVIDERS",
]
