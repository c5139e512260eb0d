from __future__ import annotations

import os
import tempfile
from pathlib import Path

from vaultscribe.contracts.errors import IOFailureError


TRANSCRIPT_SUFFIX = ".transcript.md"
SUMMARY_SUFFIX = ".summary.md"


def sibling_artifact_path(input_path: Path, suffix: str) -> Path:
    """
    Replace the input's extension with suffix, in the same directory.
    A `.transcript` stem is dropped so `talk.transcript.md` maps to `talk.summary.md`.
    """
    input_path = Path(input_path)
    stem = input_path.stem
    if stem.endswith(".transcript"):
        stem = stem[: -len(".transcript")]
    return input_path.with_name(stem + suffix)


def read_text_file(path: Path, *, encoding: str = "utf-8") -> str:
    path = Path(path)
    try:
        return path.read_text(encoding=encoding)
    except (OSError, UnicodeDecodeError) as exc:
        raise IOFailureError(f"failed to read {path}: {exc}", path=path) from exc


def write_text_file(path: Path, text: str, *, encoding: str = "utf-8") -> None:
    try:
        _atomic_write_bytes(path, text.encode(encoding))
    except OSError as exc:
        raise IOFailureError(f"failed to write {path}: {exc}", path=Path(path)) from exc


def _atomic_write_bytes(path: Path, payload: bytes) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=f"{path.name}.", suffix=".tmp", dir=path.parent)
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as tmp_file:
            tmp_file.write(payload)
            tmp_file.flush()
            try:
                os.fsync(tmp_file.fileno())
            except OSError:
                # Best-effort durability; some filesystems do not support fsync.
                pass
        os.replace(tmp_path, path)
    finally:
        tmp_path.unlink(missing_ok=True)


__all__ = [
    "SUMMARY_SUFFIX",
    "TRANSCRIPT_SUFFIX",
    "read_text_file",
    "sibling_artifact_path",
    "write_text_file",
]
