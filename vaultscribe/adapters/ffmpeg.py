from __future__ import annotations

import logging
import os
import shutil
import subprocess
from dataclasses import dataclass
from os import PathLike
from pathlib import Path
from typing import Callable, Mapping, Protocol, Sequence, TypeAlias

from vaultscribe.contracts.errors import ExternalToolUnavailableError, FfmpegError, OperationCancelledError
from vaultscribe.utils.cancellation import CancellationToken

logger = logging.getLogger(__name__)

StrPath: TypeAlias = str | PathLike[str]

FFMPEG_PATH_ENV_VAR = "FFMPEG_PATH"
FFPROBE_PATH_ENV_VAR = "FFPROBE_PATH"

INSTALL_HINT = "Install: brew install ffmpeg (macOS) or apt install ffmpeg (Linux), or set FFMPEG_PATH/FFPROBE_PATH."

# Mono MP3 re-encode used for oversized chunks and for formats a provider cannot ingest.
COMPACT_BITRATE_KBPS = 64

_POLL_INTERVAL_S = 0.25


def _path_str(value: StrPath) -> str:
    return str(Path(value))


def _require_positive_int(name: str, value: int) -> None:
    if value <= 0:
        raise ValueError(f"{name} must be > 0")


def format_ffmpeg_timestamp(seconds: float) -> str:
    """Format seconds as HH:MM:SS.mmm for -ss/-t arguments."""
    if seconds < 0:
        raise ValueError("seconds must be >= 0")
    total_ms = int(round(seconds * 1000))
    hours, rem_ms = divmod(total_ms, 3_600_000)
    minutes, rem_ms = divmod(rem_ms, 60_000)
    return f"{hours:02d}:{minutes:02d}:{rem_ms / 1000:06.3f}"


def find_executable(
    name: str,
    env_var: str,
    *,
    env: Mapping[str, str] | None = None,
    which: Callable[[str], str | None] = shutil.which,
) -> Path | None:
    effective_env: Mapping[str, str] = dict(os.environ) if env is None else env

    env_override = effective_env.get(env_var)
    if env_override:
        override_path = Path(env_override)
        return override_path if override_path.is_file() else None

    from_path = which(name)
    return Path(from_path) if from_path else None


def resolve_executable(
    name: str,
    env_var: str,
    *,
    env: Mapping[str, str] | None = None,
    which: Callable[[str], str | None] = shutil.which,
) -> Path:
    found = find_executable(name, env_var, env=env, which=which)
    if found is None:
        raise ExternalToolUnavailableError(f"{name} not found. {INSTALL_HINT}")
    return found


def build_ffmpeg_extract_cmd(
    input_path: StrPath,
    output_path: StrPath,
    start_s: float,
    duration_s: float,
    *,
    ffmpeg_executable: StrPath = "ffmpeg",
) -> list[str]:
    """
    Build a stream-copy extraction of [start_s, start_s + duration_s) from the first audio stream.
    Input-side -ss makes ffmpeg cut on the nearest preceding keyframe.
    """
    if duration_s <= 0:
        raise ValueError("duration_s must be > 0")

    return [
        _path_str(ffmpeg_executable),
        "-y",
        "-v",
        "error",
        "-ss",
        format_ffmpeg_timestamp(start_s),
        "-i",
        _path_str(input_path),
        "-t",
        format_ffmpeg_timestamp(duration_s),
        "-map",
        "0:a:0",
        "-c",
        "copy",
        _path_str(output_path),
    ]


def build_ffmpeg_compact_cmd(
    input_path: StrPath,
    output_path: StrPath,
    *,
    sample_rate: int = 16000,
    bitrate_kbps: int = COMPACT_BITRATE_KBPS,
    ffmpeg_executable: StrPath = "ffmpeg",
) -> list[str]:
    """Build a re-encode to mono MP3 at a fixed bitrate, so output size is predictable from duration."""
    _require_positive_int("sample_rate", sample_rate)
    _require_positive_int("bitrate_kbps", bitrate_kbps)

    return [
        _path_str(ffmpeg_executable),
        "-y",
        "-v",
        "error",
        "-i",
        _path_str(input_path),
        "-vn",
        "-ac",
        "1",
        "-ar",
        str(sample_rate),
        "-b:a",
        f"{bitrate_kbps}k",
        _path_str(output_path),
    ]


def build_ffprobe_duration_cmd(input_path: StrPath, *, ffprobe_executable: StrPath = "ffprobe") -> list[str]:
    return [
        _path_str(ffprobe_executable),
        "-v",
        "error",
        "-show_entries",
        "format=duration",
        "-of",
        "default=noprint_wrappers=1:nokey=1",
        _path_str(input_path),
    ]


def run_tool(cmd: Sequence[str], fallback_message: str, *, cancel: CancellationToken | None = None) -> str:
    """Run an external tool, polling the cancellation token. Returns stdout."""
    logger.debug("running %s", " ".join(cmd))
    try:
        proc = subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True)
    except FileNotFoundError as exc:
        raise ExternalToolUnavailableError(f"{cmd[0]} not found. {INSTALL_HINT}") from exc

    while True:
        try:
            stdout, stderr = proc.communicate(timeout=_POLL_INTERVAL_S)
            break
        except subprocess.TimeoutExpired:
            if cancel is not None and cancel.cancelled:
                proc.terminate()
                try:
                    proc.wait(timeout=5)
                except subprocess.TimeoutExpired:
                    proc.kill()
                    proc.wait()
                raise OperationCancelledError(f"{Path(cmd[0]).name} cancelled")

    if proc.returncode != 0:
        message = stderr.strip() or stdout.strip() or fallback_message
        raise FfmpegError(message)
    return stdout


class FfmpegAdapter(Protocol):
    def is_available(self) -> bool:
        """Whether ffmpeg and ffprobe can be executed on this host."""

    def probe_duration(self, input_path: StrPath, *, cancel: CancellationToken | None = None) -> float:
        """Return the media duration in seconds."""

    def extract_segment(
        self,
        input_path: StrPath,
        output_path: StrPath,
        start_s: float,
        duration_s: float,
        *,
        cancel: CancellationToken | None = None,
    ) -> None:
        """Write the [start_s, start_s + duration_s) window of the input to output_path."""

    def compact_audio(self, input_path: StrPath, output_path: StrPath, *, cancel: CancellationToken | None = None) -> None:
        """Re-encode input to a small mono audio file at output_path."""


@dataclass(frozen=True, slots=True)
class SubprocessFfmpeg:
    ffmpeg_executable: Path | None = None
    ffprobe_executable: Path | None = None
    env: Mapping[str, str] | None = None

    def _ffmpeg(self) -> Path:
        return self.ffmpeg_executable or resolve_executable("ffmpeg", FFMPEG_PATH_ENV_VAR, env=self.env)

    def _ffprobe(self) -> Path:
        return self.ffprobe_executable or resolve_executable("ffprobe", FFPROBE_PATH_ENV_VAR, env=self.env)

    def is_available(self) -> bool:
        ffmpeg = self.ffmpeg_executable or find_executable("ffmpeg", FFMPEG_PATH_ENV_VAR, env=self.env)
        ffprobe = self.ffprobe_executable or find_executable("ffprobe", FFPROBE_PATH_ENV_VAR, env=self.env)
        return ffmpeg is not None and ffprobe is not None

    def probe_duration(self, input_path: StrPath, *, cancel: CancellationToken | None = None) -> float:
        cmd = build_ffprobe_duration_cmd(input_path, ffprobe_executable=self._ffprobe())
        output = run_tool(cmd, "ffprobe failed", cancel=cancel).strip()
        try:
            duration = float(output)
        except ValueError as exc:
            raise FfmpegError(f"failed to parse duration from ffprobe output: {output!r}") from exc
        if duration <= 0:
            raise FfmpegError(f"ffprobe reported non-positive duration for {input_path}")
        return duration

    def extract_segment(
        self,
        input_path: StrPath,
        output_path: StrPath,
        start_s: float,
        duration_s: float,
        *,
        cancel: CancellationToken | None = None,
    ) -> None:
        cmd = build_ffmpeg_extract_cmd(input_path, output_path, start_s, duration_s, ffmpeg_executable=self._ffmpeg())
        run_tool(cmd, "ffmpeg chunk extraction failed", cancel=cancel)

    def compact_audio(self, input_path: StrPath, output_path: StrPath, *, cancel: CancellationToken | None = None) -> None:
        cmd = build_ffmpeg_compact_cmd(input_path, output_path, ffmpeg_executable=self._ffmpeg())
        run_tool(cmd, "ffmpeg re-encoding failed", cancel=cancel)


__all__ = [
    "COMPACT_BITRATE_KBPS",
    "FFMPEG_PATH_ENV_VAR",
    "FFPROBE_PATH_ENV_VAR",
    "FfmpegAdapter",
    "SubprocessFfmpeg",
    "build_ffmpeg_compact_cmd",
    "build_ffmpeg_extract_cmd",
    "build_ffprobe_duration_cmd",
    "find_executable",
    "format_ffmpeg_timestamp",
    "resolve_executable",
    "run_tool",
]
