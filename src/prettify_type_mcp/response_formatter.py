"""Markdown summaries and output size limits for tool responses."""

from __future__ import annotations

import copy
from typing import Any, Dict, List, Mapping, MutableMapping, NamedTuple, Optional, Sequence

CHARACTER_LIMIT = 25_000
DEFAULT_RESPONSE_FORMAT = "markdown"
JSON_RESPONSE_FORMAT = "json"
RESPONSE_FORMATS = frozenset({DEFAULT_RESPONSE_FORMAT, JSON_RESPONSE_FORMAT})

_TRUNCATION_NOTE = (
    "Output truncated to {limit:,} characters. Lower maxDepth or maxProperties, "
    "or reflow a smaller type string."
)


class LimitedContent(NamedTuple):
    items: List[Dict[str, Any]]
    truncated: bool
    sections: List[str]


def normalize_response_format(value: Optional[str]) -> str:
    """Return ``json`` or ``markdown``; anything unrecognised means Markdown."""

    normalized = (value or "").strip().lower()
    return normalized if normalized in RESPONSE_FORMATS else DEFAULT_RESPONSE_FORMAT


def build_markdown_summary(summary: str, details: Sequence[str] | None = None) -> str:
    headline = summary.strip() or "(no summary provided)"
    bullets = [f"- {detail.strip()}" for detail in details or () if detail and detail.strip()]
    return "\n".join([f"**Summary:** {headline}", *bullets])


def _limitable_fields(items: List[Dict[str, Any]]) -> List[tuple]:
    """Return ``(holder, label)`` pairs whose ``text`` counts toward the limit."""

    fields: List[tuple] = []
    for index, item in enumerate(items):
        if item.get("type") == "text" and isinstance(item.get("text"), str):
            fields.append((item, "summary" if not fields else f"text[{index}]"))
            continue
        resource = item.get("resource")
        if (
            item.get("type") == "resource"
            and isinstance(resource, MutableMapping)
            and isinstance(resource.get("text"), str)
            and resource.get("mimeType") != "application/json"
        ):
            fields.append((resource, str(resource.get("uri") or f"resource[{index}]")))
    return fields


def apply_character_limit(
    items: Sequence[Dict[str, Any]],
    *,
    limit: int = CHARACTER_LIMIT,
) -> LimitedContent:
    """Trim text from the last blocks first so the total stays under ``limit``.

    A trailing note block is appended when anything was cut.
    """

    processed = [copy.deepcopy(item) for item in items]
    fields = _limitable_fields(processed)
    total = sum(len(holder["text"]) for holder, _ in fields)
    if total <= limit:
        return LimitedContent(processed, False, [])

    note = f"_Note: {_TRUNCATION_NOTE.format(limit=limit)}_"
    excess = total - max(0, limit - len(note))
    sections: List[str] = []
    for holder, label in reversed(fields):
        if excess <= 0:
            break
        text = holder["text"]
        cut = min(len(text), excess)
        if cut == 0:
            continue
        holder["text"] = text[: len(text) - cut].rstrip()
        excess -= cut
        sections.insert(0, label)

    processed.append({"type": "text", "text": note})
    return LimitedContent(processed, True, sections)


def with_truncation_meta(
    structured: Optional[Mapping[str, Any]],
    limited: LimitedContent,
    *,
    limit: int = CHARACTER_LIMIT,
) -> Optional[Dict[str, Any]]:
    """Copy ``structured`` and record truncation details under ``_meta``."""

    if structured is None and not limited.truncated:
        return None
    payload: Dict[str, Any] = copy.deepcopy(dict(structured or {}))
    if limited.truncated:
        meta = payload.setdefault("_meta", {})
        meta.update(
            truncated=True,
            character_limit=limit,
            truncation_hint=_TRUNCATION_NOTE.format(limit=limit),
        )
        if limited.sections:
            meta["truncated_sections"] = list(limited.sections)
    return payload


__all__ = [
    "CHARACTER_LIMIT",
    "DEFAULT_RESPONSE_FORMAT",
    "JSON_RESPONSE_FORMAT",
    "LimitedContent",
    "apply_character_limit",
    "build_markdown_summary",
    "normalize_response_format",
    "with_truncation_meta",
]
