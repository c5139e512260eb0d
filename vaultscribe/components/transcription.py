from __future__ import annotations

import logging
from pathlib import Path

from vaultscribe.adapters.transcription import Transcriber
from vaultscribe.contracts.artifacts import Chunk, TranscriptionResult
from vaultscribe.contracts.errors import (
    ChunkOperationFailedError,
    ComponentError,
    InputValidationError,
    OperationCancelledError,
    ProviderResponseError,
    TranscriptionError,
)
from vaultscribe.utils.cancellation import CancellationToken, raise_if_cancelled
from vaultscribe.utils.time import Timer

logger = logging.getLogger(__name__)


def _check_result(result: object, transcriber: Transcriber) -> TranscriptionResult:
    if not isinstance(result, TranscriptionResult):
        raise ProviderResponseError(f"{transcriber.name()} transcriber must return TranscriptionResult")
    return result


def transcribe_file(
    path: Path,
    transcriber: Transcriber,
    *,
    cancel: CancellationToken | None = None,
) -> TranscriptionResult:
    """Provider-agnostic single-call transcription."""
    raise_if_cancelled(cancel, "transcription")
    try:
        result = transcriber.transcribe(Path(path), cancel=cancel)
    except ComponentError:
        raise
    except Exception as exc:  # adapter boundary
        raise TranscriptionError(f"{transcriber.name()} transcription failed for {path}: {exc}") from exc
    return _check_result(result, transcriber)


def transcribe_chunks(
    chunks: list[Chunk],
    transcriber: Transcriber,
    *,
    cancel: CancellationToken | None = None,
) -> list[TranscriptionResult]:
    """
    Transcribe chunks strictly in order; chunk i+1 starts only after chunk i returns.
    The first failure aborts the loop.
    """
    if not chunks:
        raise InputValidationError("at least one chunk is required for transcription")

    results: list[TranscriptionResult] = []
    total = len(chunks)
    for position, chunk in enumerate(chunks, start=1):
        raise_if_cancelled(cancel, "transcription")
        logger.info("[%d/%d] Transcribing %s", position, total, chunk.path.name)
        timer = Timer.start()
        try:
            results.append(transcribe_file(chunk.path, transcriber, cancel=cancel))
        except OperationCancelledError:
            raise
        except Exception as exc:
            raise ChunkOperationFailedError(
                f"failed to transcribe chunk {position}/{total} ({chunk.path.name}): {exc}",
                chunk_index=chunk.index,
                chunk_path=chunk.path,
            ) from exc
        logger.debug("chunk %d transcribed in %.1fs", position, timer.elapsed_s())
    return results


__all__ = ["transcribe_chunks", "transcribe_file"]
