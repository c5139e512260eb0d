from __future__ import annotations

from datetime import datetime
from pathlib import Path

from vaultscribe.contracts.artifacts import SummarizationResult, TranscriptionResult


def format_timestamp(seconds: float) -> str:
    """HH:MM:SS, truncating fractions."""
    total = max(0, int(seconds))
    hours, rem = divmod(total, 3600)
    minutes, secs = divmod(rem, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def format_duration(seconds: float) -> str:
    total = max(0, int(seconds))
    hours, rem = divmod(total, 3600)
    minutes, secs = divmod(rem, 60)
    if hours:
        return f"{hours}h {minutes}m {secs}s"
    if minutes:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def _stamp(now: datetime | None) -> str:
    return (now or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")


def render_transcript(source_path: Path, result: TranscriptionResult, *, now: datetime | None = None) -> str:
    lines = [f"# Transcript: {Path(source_path).name}", "", f"**Source:** {source_path}"]
    if result.duration_s > 0:
        lines.append(f"**Duration:** {format_duration(result.duration_s)}")
    if result.language:
        lines.append(f"**Language:** {result.language}")
    lines.extend([f"**Transcribed:** {_stamp(now)}", "", "---", ""])

    if result.segments:
        for seg in result.segments:
            text = seg.text.strip()
            if text:
                lines.append(f"[{format_timestamp(seg.start_s)}] {text}")
                lines.append("")
    else:
        lines.append(result.text.strip())
        lines.append("")

    return "\n".join(lines).rstrip() + "\n"


def render_summary(source_path: Path, result: SummarizationResult, *, now: datetime | None = None) -> str:
    lines = [
        f"# Summary: {Path(source_path).name}",
        "",
        f"**Source:** {source_path}",
        f"**Summarized:** {_stamp(now)}",
        "",
        "---",
        "",
    ]
    if result.key_points:
        lines.append("## Key Points")
        lines.append("")
        lines.extend(f"{i}. {point}" for i, point in enumerate(result.key_points, start=1))
        lines.append("")

    lines.extend(["## Summary", "", result.summary.strip()])
    return "\n".join(lines).rstrip() + "\n"


__all__ = ["format_duration", "format_timestamp", "render_summary", "render_transcript"]
