from __future__ import annotations

from typing import Any


def field_value(obj: Any, name: str, default: Any = None) -> Any:
    """Read a field from an SDK model, a plain object, or a dict."""
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(name, default)
    if hasattr(obj, name):
        return getattr(obj, name)
    model_dump = getattr(obj, "model_dump", None)
    if callable(model_dump):
        dumped = model_dump()
        if isinstance(dumped, dict):
            return dumped.get(name, default)
    return default


def float_or_none(value: Any) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def coerce_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()
