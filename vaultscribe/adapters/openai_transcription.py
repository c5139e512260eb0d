from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path
from typing import Any, Protocol

from vaultscribe.adapters._fields import coerce_text, field_value, float_or_none
from vaultscribe.adapters.ffmpeg import FfmpegAdapter, SubprocessFfmpeg
from vaultscribe.contracts.artifacts import Segment, TranscriptionResult
from vaultscribe.contracts.errors import (
    ExternalToolUnavailableError,
    ProviderResponseError,
    TranscriptionError,
)
from vaultscribe.utils.cancellation import CancellationToken, raise_if_cancelled

logger = logging.getLogger(__name__)

DEFAULT_TRANSCRIPTION_MODEL = "whisper-1"

# Whisper API upload limit.
OPENAI_MAX_FILE_SIZE = 25 * 1024 * 1024

OPENAI_NATIVE_EXTENSIONS = frozenset({".flac", ".m4a", ".mp3", ".mp4", ".mpeg", ".mpga", ".oga", ".ogg", ".wav", ".webm"})


class _OpenAITranscriptionsAPI(Protocol):
    def create(self, **kwargs: Any) -> Any: ...


class _OpenAIAudioAPI(Protocol):
    transcriptions: _OpenAITranscriptionsAPI


class OpenAIClientLike(Protocol):
    audio: _OpenAIAudioAPI


def _normalize_segments(raw_segments: Any) -> list[Segment]:
    if raw_segments in (None, ""):
        return []
    if not isinstance(raw_segments, list):
        raise ProviderResponseError("OpenAI transcription 'segments' must be a list when provided")

    segments: list[Segment] = []
    for raw in raw_segments:
        text = coerce_text(field_value(raw, "text"))
        start_s = float_or_none(field_value(raw, "start"))
        end_s = float_or_none(field_value(raw, "end"))
        if start_s is None:
            continue
        segments.append(Segment(start_s=start_s, end_s=end_s if end_s is not None else start_s, text=text))
    segments.sort(key=lambda seg: seg.start_s)
    return segments


class OpenAITranscriber:
    """
    Whisper adapter that normalizes verbose_json responses into TranscriptionResult.
    Formats outside native_extensions are re-encoded to mono MP3 before upload.
    """

    native_extensions = OPENAI_NATIVE_EXTENSIONS

    def __init__(
        self,
        client: OpenAIClientLike,
        *,
        model: str = DEFAULT_TRANSCRIPTION_MODEL,
        language: str | None = None,
        ffmpeg: FfmpegAdapter | None = None,
        max_file_size: int = OPENAI_MAX_FILE_SIZE,
    ) -> None:
        if not model:
            raise ValueError("model is required")
        if max_file_size <= 0:
            raise ValueError("max_file_size must be > 0")
        self._client = client
        self._model = model
        self._language = language
        self._ffmpeg = ffmpeg if ffmpeg is not None else SubprocessFfmpeg()
        self._max_file_size = max_file_size

    def name(self) -> str:
        return "openai"

    def max_file_size(self) -> int:
        return self._max_file_size

    def transcribe(self, path: Path, *, cancel: CancellationToken | None = None) -> TranscriptionResult:
        path = Path(path)
        raise_if_cancelled(cancel, "transcription")

        if path.suffix.lower() in self.native_extensions:
            return self._transcribe_file(path, cancel=cancel)

        if not self._ffmpeg.is_available():
            raise ExternalToolUnavailableError(
                f"{path.suffix or 'extensionless'} input must be converted to MP3 before transcription, "
                "but ffmpeg is not installed"
            )
        convert_dir = Path(tempfile.mkdtemp(prefix=f"{path.stem}.convert-"))
        try:
            mp3_path = convert_dir / f"{path.stem}.mp3"
            logger.info("Converting %s to mono MP3", path.name)
            self._ffmpeg.compact_audio(path, mp3_path, cancel=cancel)
            try:
                size = mp3_path.stat().st_size
            except OSError as exc:
                raise TranscriptionError(f"ffmpeg did not produce converted audio for {path.name}: {exc}") from exc
            if size > self._max_file_size:
                raise TranscriptionError(
                    f"converted audio for {path.name} is {size} bytes, over the {self._max_file_size} byte "
                    "upload limit; lower chunk_seconds"
                )
            return self._transcribe_file(mp3_path, cancel=cancel)
        finally:
            shutil.rmtree(convert_dir, ignore_errors=True)

    def _transcribe_file(self, path: Path, *, cancel: CancellationToken | None) -> TranscriptionResult:
        request_kwargs: dict[str, Any] = {
            "model": self._model,
            "response_format": "verbose_json",
            "timestamp_granularities": ["segment"],
        }
        if self._language:
            request_kwargs["language"] = self._language

        try:
            with path.open("rb") as fh:
                response = self._client.audio.transcriptions.create(file=fh, **request_kwargs)
        except OSError as exc:
            raise TranscriptionError(f"failed to open {path}: {exc}") from exc
        except Exception as exc:  # provider SDK exceptions vary
            raise TranscriptionError(f"transcription API error for {path.name}: {exc}") from exc
        raise_if_cancelled(cancel, "transcription")

        segments = _normalize_segments(field_value(response, "segments"))
        raw_text = field_value(response, "text")
        if raw_text is None and not segments:
            raise ProviderResponseError(f"OpenAI transcription response for {path.name} is missing text")
        # Silence legitimately transcribes to empty text.
        text = coerce_text(raw_text)
        if not text and segments:
            text = " ".join(seg.text for seg in segments if seg.text).strip()

        duration_s = float_or_none(field_value(response, "duration"))
        if duration_s is None:
            duration_s = segments[-1].end_s if segments else 0.0

        return TranscriptionResult(
            text=text,
            segments=segments,
            language=coerce_text(field_value(response, "language")) or self._language,
            duration_s=duration_s,
            provider="openai",
            model=self._model,
        )


__all__ = ["OPENAI_MAX_FILE_SIZE", "OPENAI_NATIVE_EXTENSIONS", "OpenAIClientLike", "OpenAITranscriber"]
