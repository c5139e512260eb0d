from __future__ import annotations

import logging
import math
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path

from vaultscribe.adapters.ffmpeg import COMPACT_BITRATE_KBPS, INSTALL_HINT, FfmpegAdapter
from vaultscribe.contracts.artifacts import Chunk, Segment, TranscriptionResult
from vaultscribe.contracts.errors import (
    ChunkingError,
    ExternalToolUnavailableError,
    FfmpegError,
    IOFailureError,
)
from vaultscribe.utils.cancellation import CancellationToken, raise_if_cancelled

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SECONDS = 10 * 60

# Tails shorter than this are folded into the previous window.
MIN_TAIL_SECONDS = 1.0

# Headroom under max_file_size for MP3 frame and container overhead.
_COMPACT_SIZE_MARGIN = 0.9


def plan_windows(duration_s: float, chunk_seconds: float) -> list[tuple[float, float]]:
    """
    Contiguous [start, end) windows covering [0, duration_s).
    The last window may be shorter, but never under MIN_TAIL_SECONDS unless it is the only one.
    """
    if chunk_seconds <= 0:
        raise ValueError("chunk_seconds must be > 0")
    if duration_s <= 0:
        return []
    count = math.ceil(duration_s / chunk_seconds)
    windows = [(i * chunk_seconds, min((i + 1) * chunk_seconds, duration_s)) for i in range(count)]
    if len(windows) > 1 and windows[-1][1] - windows[-1][0] < MIN_TAIL_SECONDS:
        windows.pop()
        windows[-1] = (windows[-1][0], duration_s)
    return windows


@dataclass(frozen=True, slots=True)
class Chunker:
    """
    Keeps each unit handed to a transcriber under its size limit.
    max_file_size of 0 disables the size check. When native_extensions is set, other
    formats are assumed to be re-encoded to compact MP3 before upload and are split by
    duration so that the re-encode also fits.
    """

    ffmpeg: FfmpegAdapter
    max_file_size: int = 0
    chunk_seconds: int = DEFAULT_CHUNK_SECONDS
    max_duration_s: float | None = None
    work_dir: Path | None = None
    native_extensions: frozenset[str] | None = None
    compact_bitrate_kbps: int = COMPACT_BITRATE_KBPS

    def __post_init__(self) -> None:
        if self.chunk_seconds <= 0:
            raise ValueError("chunk_seconds must be > 0")
        if self.max_file_size < 0:
            raise ValueError("max_file_size must be >= 0")
        if self.compact_bitrate_kbps <= 0:
            raise ValueError("compact_bitrate_kbps must be > 0")

    def has_external_tool(self) -> bool:
        return self.ffmpeg.is_available()

    def converts(self, path: Path) -> bool:
        """Whether the transcriber re-encodes this input before uploading it."""
        return self.native_extensions is not None and Path(path).suffix.lower() not in self.native_extensions

    def compact_duration_limit_s(self) -> float | None:
        """Longest span whose compact MP3 re-encode stays under max_file_size."""
        if not self.max_file_size:
            return None
        bytes_per_s = self.compact_bitrate_kbps * 1000 / 8
        return self.max_file_size / bytes_per_s * _COMPACT_SIZE_MARGIN

    def _duration_limit_s(self, path: Path) -> float | None:
        limit_s = self.max_duration_s
        compact_limit_s = self.compact_duration_limit_s() if self.converts(path) else None
        if compact_limit_s is not None:
            limit_s = compact_limit_s if limit_s is None else min(limit_s, compact_limit_s)
        return limit_s

    def needs_chunking(self, path: Path) -> bool:
        path = Path(path)
        try:
            size = path.stat().st_size
        except OSError as exc:
            raise IOFailureError(f"failed to stat {path}: {exc}", path=path) from exc

        if self.max_file_size and size > self.max_file_size:
            return True
        limit_s = self._duration_limit_s(path)
        if limit_s is not None and self.has_external_tool():
            return self.ffmpeg.probe_duration(path) > limit_s
        return False

    def window_seconds(self, path: Path) -> float:
        """Chunk length used when splitting path."""
        compact_limit_s = self.compact_duration_limit_s() if self.converts(path) else None
        if compact_limit_s is not None and compact_limit_s < self.chunk_seconds:
            return compact_limit_s
        return float(self.chunk_seconds)

    def split(self, path: Path, *, cancel: CancellationToken | None = None) -> list[Chunk]:
        path = Path(path)
        if not self.has_external_tool():
            raise ExternalToolUnavailableError(f"large files require ffmpeg for chunking\n{INSTALL_HINT}")
        if not path.is_file():
            raise IOFailureError(f"source not readable: {path}", path=path)

        raise_if_cancelled(cancel, "chunking")
        duration_s = self.ffmpeg.probe_duration(path, cancel=cancel)
        window_s = self.window_seconds(path)
        windows = plan_windows(duration_s, window_s)
        if not windows:
            raise ChunkingError(f"nothing to split in {path}")

        chunk_dir = self._make_chunk_dir(path)
        chunks: list[Chunk] = []
        try:
            for index, (start_s, end_s) in enumerate(windows):
                raise_if_cancelled(cancel, "chunking")
                chunk_path = chunk_dir / f"chunk_{index:04d}{path.suffix.lower()}"
                self.ffmpeg.extract_segment(path, chunk_path, start_s, end_s - start_s, cancel=cancel)
                if not chunk_path.is_file():
                    raise FfmpegError(f"ffmpeg did not produce chunk {index + 1}: {chunk_path}")
                chunk_path = self._shrink_if_oversized(chunk_path, cancel=cancel)
                chunks.append(Chunk(index=index, path=chunk_path, start_s=start_s, end_s=end_s))
        except BaseException:
            shutil.rmtree(chunk_dir, ignore_errors=True)
            raise

        _check_contiguous(chunks)
        logger.info("Split %s into %d chunks of up to %.0fs in %s", path.name, len(chunks), window_s, chunk_dir)
        return chunks

    def cleanup(self, chunks: list[Chunk]) -> None:
        """Best-effort removal of chunk files and their directories. Never raises."""
        dirs: set[Path] = set()
        for chunk in chunks:
            dirs.add(chunk.path.parent)
            try:
                chunk.path.unlink(missing_ok=True)
            except OSError as exc:
                logger.warning("failed to remove chunk %s: %s", chunk.path, exc)
        for chunk_dir in dirs:
            try:
                shutil.rmtree(chunk_dir)
            except FileNotFoundError:
                pass
            except OSError as exc:
                logger.warning("failed to remove chunk directory %s: %s", chunk_dir, exc)

    def _make_chunk_dir(self, path: Path) -> Path:
        parent = self.work_dir
        if parent is not None:
            parent.mkdir(parents=True, exist_ok=True)
        try:
            return Path(tempfile.mkdtemp(prefix=f"{path.stem}.chunks-", dir=parent))
        except OSError as exc:
            raise IOFailureError(f"failed to create chunk directory: {exc}", path=parent) from exc

    def _shrink_if_oversized(self, chunk_path: Path, *, cancel: CancellationToken | None) -> Path:
        if not self.max_file_size or chunk_path.stat().st_size <= self.max_file_size:
            return chunk_path

        compact_path = chunk_path.with_suffix(".mp3") if chunk_path.suffix != ".mp3" else chunk_path.with_name(
            f"{chunk_path.stem}.compact.mp3"
        )
        logger.info("Chunk %s exceeds %d bytes, re-encoding", chunk_path.name, self.max_file_size)
        self.ffmpeg.compact_audio(chunk_path, compact_path, cancel=cancel)
        chunk_path.unlink(missing_ok=True)
        if not compact_path.is_file():
            raise FfmpegError(f"ffmpeg did not produce re-encoded chunk: {compact_path}")
        if compact_path.stat().st_size > self.max_file_size:
            raise ChunkingError(
                f"chunk {compact_path.name} is still larger than {self.max_file_size} bytes; lower chunk_seconds"
            )
        return compact_path


def _check_contiguous(chunks: list[Chunk]) -> None:
    for previous, current in zip(chunks, chunks[1:]):
        if not math.isclose(previous.end_s, current.start_s):
            raise ChunkingError(f"gap or overlap between chunk {previous.index} and {current.index}")


def merge_transcripts(results: list[TranscriptionResult], chunks: list[Chunk]) -> TranscriptionResult:
    """
    Stitch per-chunk results into one timeline.
    Each chunk's segments are shifted by the summed durations of the chunks before it.
    """
    if not results:
        raise ChunkingError("no results to merge")
    if len(results) != len(chunks):
        raise ChunkingError(f"got {len(results)} results for {len(chunks)} chunks")
    if len(results) == 1:
        return results[0]

    merged_segments: list[Segment] = []
    text_parts: list[str] = []
    language: str | None = None
    offset_s = 0.0

    for result, chunk in zip(results, chunks):
        span_s = result.duration_s if result.duration_s > 0 else chunk.duration_s
        boundary_s = offset_s + span_s
        for seg in result.segments:
            start_s = seg.start_s + offset_s
            # segments never run past their own chunk
            end_s = max(start_s, min(seg.end_s + offset_s, boundary_s))
            merged_segments.append(Segment(start_s=start_s, end_s=end_s, text=seg.text))

        text = result.text.strip()
        if text:
            text_parts.append(text)
        if not language and result.language:
            language = result.language

        offset_s = boundary_s

    return TranscriptionResult(
        text=" ".join(text_parts),
        segments=merged_segments,
        language=language,
        duration_s=offset_s,
        provider=results[0].provider,
        model=results[0].model,
    )


__all__ = ["Chunker", "DEFAULT_CHUNK_SECONDS", "MIN_TAIL_SECONDS", "merge_transcripts", "plan_windows"]
