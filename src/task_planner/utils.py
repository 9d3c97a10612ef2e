"""Small coercion helpers shared by the model."""

from __future__ import annotations

from typing import Any, Iterable


def _coerce_string_list(value: Any) -> list[str]:
    """Return *value* as a de-duplicated list of non-empty strings, order preserved."""
    if value is None:
        return []
    if isinstance(value, str):
        items: Iterable[Any] = [value]
    else:
        items = value
    out: list[str] = []
    seen: set[str] = set()
    for item in items:
        text = str(item).strip()
        if not text or text in seen:
            continue
        seen.add(text)
        out.append(text)
    return out
