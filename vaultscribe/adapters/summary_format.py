from __future__ import annotations

from pathlib import Path

from vaultscribe.contracts.artifacts import SummarizationResult
from vaultscribe.contracts.errors import InputValidationError


DEFAULT_SUMMARY_PROMPT_PATH = Path(__file__).resolve().parents[1] / "prompts" / "summary_prompt.md"

TRUNCATION_MARKER = "\n\n[Text truncated due to length...]"


def load_summary_prompt(prompt_path: Path = DEFAULT_SUMMARY_PROMPT_PATH) -> str:
    path = Path(prompt_path)
    if not path.is_file():
        raise InputValidationError(f"summary prompt not found: {path}")
    prompt_text = path.read_text(encoding="utf-8")
    if not prompt_text.strip():
        raise InputValidationError(f"summary prompt is empty: {path}")
    return prompt_text


def truncate_for_budget(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + TRUNCATION_MARKER


def _is_heading(line: str, title: str) -> bool:
    return line.startswith(f"## {title}") or line.startswith(f"**{title}")


def parse_summary_response(content: str, *, provider: str | None = None, model: str | None = None) -> SummarizationResult:
    """
    Split an LLM response into summary prose and bullet key points.
    Bullets are collected only inside the "Key Points" section; other
    non-heading lines form the summary.
    """
    key_points: list[str] = []
    summary_lines: list[str] = []
    in_key_points = False

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if _is_heading(line, "Key Points"):
            in_key_points = True
            continue
        if _is_heading(line, "Summary") or line.startswith("## "):
            in_key_points = False
            continue

        if in_key_points:
            if line.startswith(("-", "*")):
                point = line.lstrip("-*").strip()
                if point:
                    key_points.append(point)
        elif line and not line.startswith("##"):
            summary_lines.append(line)

    summary = "\n".join(summary_lines).strip() or content.strip()
    return SummarizationResult(summary=summary, key_points=key_points, provider=provider, model=model)


__all__ = [
    "DEFAULT_SUMMARY_PROMPT_PATH",
    "load_summary_prompt",
    "parse_summary_response",
    "truncate_for_budget",
]
