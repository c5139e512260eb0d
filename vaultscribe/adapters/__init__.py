from __future__ import annotations

from .anthropic_summarization import AnthropicSummarizer
from .factory import SUMMARIZATION_PROVIDERS, TRANSCRIPTION_PROVIDERS, ProviderFactory
from .ffmpeg import (
    FfmpegAdapter,
    SubprocessFfmpeg,
    build_ffmpeg_compact_cmd,
    build_ffmpeg_extract_cmd,
    build_ffprobe_duration_cmd,
)
from .openai_summarization import OpenAICompatibleSummarizer
from .openai_transcription import OpenAITranscriber
from .summarization import Summarizer
from .transcription import Transcriber

__all__ = [
    "AnthropicSummarizer",
    "FfmpegAdapter",
    "OpenAICompatibleSummarizer",
    "OpenAITranscriber",
    "ProviderFactory",
    "SUMMARIZATION_PROVIDERS",
    "SubprocessFfmpeg",
    "Summarizer",
    "TRANSCRIPTION_PROVIDERS",
    "Transcriber",
    "build_ffmpeg_compact_cmd",
    "build_ffmpeg_extract_cmd",
    "build_ffprobe_duration_cmd",
]
