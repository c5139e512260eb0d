from __future__ import annotations

import sys
from pathlib import Path

import pytest

from vaultscribe.adapters.ffmpeg import (
    FFMPEG_PATH_ENV_VAR,
    SubprocessFfmpeg,
    build_ffmpeg_compact_cmd,
    build_ffmpeg_extract_cmd,
    build_ffprobe_duration_cmd,
    find_executable,
    format_ffmpeg_timestamp,
    resolve_executable,
    run_tool,
)
from vaultscribe.contracts.errors import ExternalToolUnavailableError, FfmpegError, OperationCancelledError
from vaultscribe.utils.cancellation import CancellationToken


def test_format_ffmpeg_timestamp() -> None:
    assert format_ffmpeg_timestamp(0) == "00:00:00.000"
    assert format_ffmpeg_timestamp(600) == "00:10:00.000"
    assert format_ffmpeg_timestamp(3725.5) == "01:02:05.500"


def test_extract_cmd_seeks_on_input_and_copies_audio() -> None:
    cmd = build_ffmpeg_extract_cmd("in.mp3", "out/chunk_0001.mp3", 600, 600, ffmpeg_executable="/opt/ffmpeg")

    assert cmd == [
        "/opt/ffmpeg",
        "-y",
        "-v",
        "error",
        "-ss",
        "00:10:00.000",
        "-i",
        "in.mp3",
        "-t",
        "00:10:00.000",
        "-map",
        "0:a:0",
        "-c",
        "copy",
        str(Path("out/chunk_0001.mp3")),
    ]
    assert cmd.index("-ss") < cmd.index("-i")


def test_extract_cmd_rejects_empty_window() -> None:
    with pytest.raises(ValueError):
        build_ffmpeg_extract_cmd("in.mp3", "out.mp3", 10, 0)


def test_compact_cmd_reencodes_to_low_bitrate_mono() -> None:
    cmd = build_ffmpeg_compact_cmd("chunk.wav", "chunk.mp3")

    assert "-vn" in cmd
    assert cmd[cmd.index("-ac") + 1] == "1"
    assert cmd[cmd.index("-ar") + 1] == "16000"
    assert cmd[cmd.index("-b:a") + 1] == "64k"
    assert cmd[-1] == "chunk.mp3"


def test_ffprobe_duration_cmd() -> None:
    cmd = build_ffprobe_duration_cmd("talk.mp3", ffprobe_executable="ffprobe")
    assert cmd == [
        "ffprobe",
        "-v",
        "error",
        "-show_entries",
        "format=duration",
        "-of",
        "default=noprint_wrappers=1:nokey=1",
        "talk.mp3",
    ]


def test_find_executable_prefers_env_override(tmp_path: Path) -> None:
    fake = tmp_path / "ffmpeg"
    fake.write_text("#!/bin/sh\n", encoding="utf-8")

    found = find_executable("ffmpeg", FFMPEG_PATH_ENV_VAR, env={FFMPEG_PATH_ENV_VAR: str(fake)}, which=lambda name: None)

    assert found == fake


def test_find_executable_falls_back_to_path_lookup() -> None:
    found = find_executable("ffmpeg", FFMPEG_PATH_ENV_VAR, env={}, which=lambda name: f"/usr/bin/{name}")
    assert found == Path("/usr/bin/ffmpeg")


def test_resolve_executable_missing_raises_with_install_hint(tmp_path: Path) -> None:
    with pytest.raises(ExternalToolUnavailableError, match="Install"):
        resolve_executable("ffmpeg", FFMPEG_PATH_ENV_VAR, env={FFMPEG_PATH_ENV_VAR: str(tmp_path / "nope")})


def test_subprocess_ffmpeg_unavailable_without_binaries(tmp_path: Path) -> None:
    ffmpeg = SubprocessFfmpeg(env={"FFMPEG_PATH": str(tmp_path / "x"), "FFPROBE_PATH": str(tmp_path / "y")})
    assert ffmpeg.is_available() is False


def test_run_tool_returns_stdout() -> None:
    assert run_tool([sys.executable, "-c", "print('12.5')"], "failed").strip() == "12.5"


def test_run_tool_nonzero_exit_raises_with_stderr() -> None:
    cmd = [sys.executable, "-c", "import sys; sys.stderr.write('bad input'); sys.exit(3)"]
    with pytest.raises(FfmpegError, match="bad input"):
        run_tool(cmd, "failed")


def test_run_tool_missing_binary(tmp_path: Path) -> None:
    with pytest.raises(ExternalToolUnavailableError):
        run_tool([str(tmp_path / "no-such-ffmpeg")], "failed")


def test_run_tool_terminates_on_cancel() -> None:
    token = CancellationToken()
    token.cancel()
    with pytest.raises(OperationCancelledError):
        run_tool([sys.executable, "-c", "import time; time.sleep(30)"], "failed", cancel=token)
