from __future__ import annotations

import logging
import traceback as tb
from dataclasses import dataclass
from pathlib import Path
from typing import Any, NoReturn
from uuid import uuid4

from vaultscribe.adapters.factory import ProviderFactory
from vaultscribe.adapters.ffmpeg import INSTALL_HINT, FfmpegAdapter, SubprocessFfmpeg
from vaultscribe.adapters.summarization import Summarizer
from vaultscribe.adapters.transcription import Transcriber
from vaultscribe.components.chunking import DEFAULT_CHUNK_SECONDS, Chunker, merge_transcripts
from vaultscribe.components.markdown import render_summary, render_transcript
from vaultscribe.components.summarization import summarize_text
from vaultscribe.components.transcription import transcribe_chunks, transcribe_file
from vaultscribe.components.vault import resolve_secret
from vaultscribe.contracts.artifacts import (
    Chunk,
    FileKind,
    PipelineOptions,
    ProcessResult,
    SummarizationResult,
    TranscriptionResult,
)
from vaultscribe.contracts.errors import (
    ComponentError,
    ExternalToolUnavailableError,
    InputTypeMismatchError,
    InputValidationError,
    IOFailureError,
    MissingCapabilityError,
    PipelineError,
)
from vaultscribe.contracts.run_record import RunRecord, StepRecord
from vaultscribe.pipeline.io import (
    SUMMARY_SUFFIX,
    TRANSCRIPT_SUFFIX,
    read_text_file,
    sibling_artifact_path,
    write_text_file,
)
from vaultscribe.utils.cancellation import CancellationToken, raise_if_cancelled

logger = logging.getLogger(__name__)

AUDIO_EXTENSIONS = frozenset({".mp3", ".m4a", ".wav", ".ogg", ".flac", ".aac"})
VIDEO_EXTENSIONS = frozenset({".mp4", ".mkv", ".webm", ".avi", ".mov"})
TEXT_EXTENSIONS = frozenset({".md", ".txt", ".srt"})

CONFIGURE_HINT = "Configure an AI account for this operation"


@dataclass(frozen=True, slots=True)
class Account:
    """A configured provider account. api_key holds an encrypted secret or a `plain:` value."""

    name: str
    provider: str
    api_key: str
    model: str | None = None
    transcription_model: str | None = None
    base_url: str | None = None
    language: str | None = None


def classify_input(path: Path) -> FileKind:
    ext = Path(path).suffix.lower()
    if ext in AUDIO_EXTENSIONS:
        return "audio"
    if ext in VIDEO_EXTENSIONS:
        return "video"
    if ext in TEXT_EXTENSIONS:
        return "text"
    return "unknown"


def build_chunker(
    transcriber: Transcriber,
    *,
    ffmpeg: FfmpegAdapter | None = None,
    chunk_seconds: int = DEFAULT_CHUNK_SECONDS,
    max_duration_s: float | None = None,
    work_dir: Path | None = None,
) -> Chunker:
    """Chunker sized for transcriber's upload limit and the formats it uploads unconverted."""
    return Chunker(
        ffmpeg=ffmpeg if ffmpeg is not None else SubprocessFfmpeg(),
        max_file_size=transcriber.max_file_size(),
        chunk_seconds=chunk_seconds,
        max_duration_s=max_duration_s,
        work_dir=work_dir,
        native_extensions=getattr(transcriber, "native_extensions", None),
    )


def slice_media(input_path: Path, chunker: Chunker, *, cancel: CancellationToken | None = None) -> list[Chunk]:
    """
    Split an audio/video file into transcription-ready chunks without calling any provider.
    The chunks are the output: they are left on disk for the caller.
    """
    input_path = Path(input_path)
    kind = classify_input(input_path)
    if kind not in ("audio", "video"):
        raise InputTypeMismatchError(f"slicing requires audio/video input, got {kind} file: {input_path}", kind=kind)
    if not input_path.is_file():
        raise IOFailureError(f"input not found: {input_path}", path=input_path)
    if not chunker.has_external_tool():
        raise ExternalToolUnavailableError(f"slicing requires ffmpeg\n{INSTALL_HINT}")

    if not chunker.needs_chunking(input_path):
        logger.info("%s fits in a single upload; slicing anyway", input_path.name)
    chunks = chunker.split(input_path, cancel=cancel)
    for chunk in chunks:
        logger.debug("chunk %d: %s (%.1fs - %.1fs)", chunk.index, chunk.path.name, chunk.start_s, chunk.end_s)
    return chunks


class Pipeline:
    """Validates requested operations, sequences provider calls, and writes sibling artifacts."""

    def __init__(
        self,
        *,
        transcriber: Transcriber | None = None,
        summarizer: Summarizer | None = None,
        chunker: Chunker | None = None,
        ffmpeg: FfmpegAdapter | None = None,
        chunk_seconds: int = DEFAULT_CHUNK_SECONDS,
    ) -> None:
        self._transcriber = transcriber
        self._summarizer = summarizer
        if chunker is None and transcriber is not None:
            chunker = build_chunker(transcriber, ffmpeg=ffmpeg, chunk_seconds=chunk_seconds)
        self._chunker = chunker

    @classmethod
    def from_account(
        cls,
        account: Account,
        pin: str | None,
        *,
        factory: ProviderFactory | None = None,
        chunker: Chunker | None = None,
        ffmpeg: FfmpegAdapter | None = None,
        chunk_seconds: int = DEFAULT_CHUNK_SECONDS,
        max_duration_s: float | None = None,
        work_dir: Path | None = None,
    ) -> "Pipeline":
        factory = factory if factory is not None else ProviderFactory(ffmpeg=ffmpeg)
        api_key = resolve_secret(account.api_key, pin)

        transcriber: Transcriber | None = None
        if factory.supports_transcription(account.provider):
            transcriber = factory.create_transcriber(
                account.provider,
                api_key,
                model=account.transcription_model,
                base_url=account.base_url,
                language=account.language,
            )
        summarizer = factory.create_summarizer(
            account.provider,
            api_key,
            model=account.model,
            base_url=account.base_url,
        )

        if chunker is None and transcriber is not None:
            chunker = build_chunker(
                transcriber,
                ffmpeg=ffmpeg,
                chunk_seconds=chunk_seconds,
                max_duration_s=max_duration_s,
                work_dir=work_dir,
            )
        logger.debug("pipeline ready for account %r (provider=%s)", account.name, account.provider)
        return cls(transcriber=transcriber, summarizer=summarizer, chunker=chunker)

    @property
    def can_transcribe(self) -> bool:
        return self._transcriber is not None

    @property
    def can_summarize(self) -> bool:
        return self._summarizer is not None

    def validate(self, input_path: Path, options: PipelineOptions) -> FileKind:
        """Check operations against the input type and configured capabilities; no side effects."""
        if not options.transcribe and not options.summarize:
            raise InputValidationError("nothing to do: request transcription and/or summarization")

        kind = classify_input(input_path)
        if options.transcribe and kind not in ("audio", "video"):
            raise InputTypeMismatchError(f"transcription requires audio/video input, got {kind} file: {input_path}", kind=kind)
        if options.summarize and not options.transcribe and kind != "text":
            raise InputTypeMismatchError(
                f"summarization requires text input or transcription, got {kind} file: {input_path}\n"
                "Hint: add transcription first, or provide a text file",
                kind=kind,
            )
        if options.transcribe and self._transcriber is None:
            raise MissingCapabilityError(f"transcription not configured\n{CONFIGURE_HINT}")
        if options.summarize and self._summarizer is None:
            raise MissingCapabilityError(f"summarization not configured\n{CONFIGURE_HINT}")

        if not input_path.exists():
            raise IOFailureError(f"input not found: {input_path}", path=input_path)
        if not input_path.is_file():
            raise IOFailureError(f"input is not a file: {input_path}", path=input_path)
        return kind

    def process(
        self,
        input_path: Path,
        options: PipelineOptions,
        *,
        cancel: CancellationToken | None = None,
    ) -> ProcessResult:
        input_path = Path(input_path)
        record = RunRecord(run_id=uuid4().hex, input_path=str(input_path))
        logger.debug("run %s started for %s", record.run_id, input_path)

        transcript: TranscriptionResult | None = None
        summary: SummarizationResult | None = None
        transcript_path: Path | None = None
        summary_path: Path | None = None
        chunk_count = 0

        def fail_step(step: StepRecord, exc: BaseException, *, step_context: dict[str, Any] | None = None) -> NoReturn:
            error_payload: dict[str, Any] = {
                "type": type(exc).__name__,
                "message": str(exc),
                "context": {
                    "step": step.name,
                    "input_path": str(input_path),
                    "step_context": _json_safe(step_context or {}),
                },
            }
            if not isinstance(exc, ComponentError):
                error_payload["traceback"] = "".join(tb.format_exception(type(exc), exc, exc.__traceback__))
            step.finish(status="failed", error=error_payload, error_type=type(exc).__name__)
            logger.error("%s failed for %s: %s", step.name, input_path.name, exc)

            if isinstance(exc, (ComponentError, PipelineError)):
                exc.steps = dict(record.steps)
                raise exc
            wrapped = PipelineError(f"pipeline failed at step '{step.name}' for {input_path}: {exc}")
            wrapped.steps = dict(record.steps)
            raise wrapped from exc

        def start_step(name: str, *, step_context: dict[str, Any] | None = None) -> StepRecord:
            step = record.ensure_step(name)
            step.start()
            if step_context:
                step.meta["context"] = _json_safe(step_context)
            return step

        def complete_step(step: StepRecord, *, artifacts: dict[str, Any] | None = None) -> None:
            step.finish(status="success", meta={"artifacts": _json_safe(artifacts)} if artifacts else None)

        # 1. validate
        step = start_step("validate", step_context={"transcribe": options.transcribe, "summarize": options.summarize})
        try:
            kind = self.validate(input_path, options)
            complete_step(step, artifacts={"kind": kind})
        except Exception as exc:
            fail_step(step, exc)

        # 2. transcribe
        if options.transcribe:
            transcriber, chunker = self._transcriber, self._chunker
            if transcriber is None or chunker is None:
                fail_step(start_step("transcribe"), MissingCapabilityError(f"transcription not configured\n{CONFIGURE_HINT}"))
            context = {"transcriber": transcriber.name(), "max_file_size": chunker.max_file_size}
            step = start_step("transcribe", step_context=context)
            try:
                logger.info("Transcribing %s...", input_path.name)
                transcribed, chunk_count = _transcribe(input_path, transcriber, chunker, cancel=cancel)
                complete_step(step, artifacts={"chunk_count": chunk_count, "duration_s": transcribed.duration_s})
            except Exception as exc:
                fail_step(step, exc, step_context=context)
            transcript = transcribed

            transcript_path = sibling_artifact_path(input_path, TRANSCRIPT_SUFFIX)
            step = start_step("write_transcript", step_context={"path": transcript_path})
            try:
                write_text_file(transcript_path, render_transcript(input_path, transcribed))
                complete_step(step, artifacts={"transcript_path": transcript_path})
                logger.info("Written: %s", transcript_path)
            except Exception as exc:
                fail_step(step, exc)
        else:
            record.ensure_step("transcribe").skip("not requested")

        # 3. summarize
        if options.summarize:
            summarizer = self._summarizer
            if summarizer is None:
                fail_step(start_step("summarize"), MissingCapabilityError(f"summarization not configured\n{CONFIGURE_HINT}"))
            context = {"summarizer": summarizer.name()}
            step = start_step("summarize", step_context=context)
            try:
                raise_if_cancelled(cancel, "summarization")
                if transcript is not None:
                    text, source_path = transcript.text, transcript_path or input_path
                else:
                    text, source_path = read_text_file(input_path), input_path
                logger.info("Summarizing...")
                summarized = summarize_text(text, summarizer=summarizer, cancel=cancel)
                complete_step(step, artifacts={"key_points": len(summarized.key_points)})
            except Exception as exc:
                fail_step(step, exc, step_context=context)
            summary = summarized

            summary_path = sibling_artifact_path(input_path, SUMMARY_SUFFIX)
            step = start_step("write_summary", step_context={"path": summary_path})
            try:
                write_text_file(summary_path, render_summary(source_path, summarized))
                complete_step(step, artifacts={"summary_path": summary_path})
                logger.info("Written: %s", summary_path)
            except Exception as exc:
                fail_step(step, exc)
        else:
            record.ensure_step("summarize").skip("not requested")

        return ProcessResult(
            transcript_path=transcript_path,
            summary_path=summary_path,
            transcript=transcript,
            summary=summary,
            chunk_count=chunk_count,
            steps=dict(record.steps),
        )


def _transcribe(
    input_path: Path,
    transcriber: Transcriber,
    chunker: Chunker,
    *,
    cancel: CancellationToken | None,
) -> tuple[TranscriptionResult, int]:
    raise_if_cancelled(cancel, "transcription")

    if not chunker.needs_chunking(input_path):
        return transcribe_file(input_path, transcriber, cancel=cancel), 1

    if not chunker.has_external_tool():
        raise ExternalToolUnavailableError(f"large files require ffmpeg for chunking\n{INSTALL_HINT}")

    logger.info("File exceeds upload limits, splitting into chunks...")
    chunks: list[Chunk] = []
    try:
        chunks = chunker.split(input_path, cancel=cancel)
        results = transcribe_chunks(chunks, transcriber, cancel=cancel)
        logger.info("Merging transcripts...")
        return merge_transcripts(results, chunks), len(chunks)
    finally:
        chunker.cleanup(chunks)


def _json_safe(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_json_safe(v) for v in value]
    return repr(value)


__all__ = [
    "AUDIO_EXTENSIONS",
    "Account",
    "Pipeline",
    "TEXT_EXTENSIONS",
    "VIDEO_EXTENSIONS",
    "build_chunker",
    "classify_input",
    "slice_media",
]
