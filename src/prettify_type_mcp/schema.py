"""MCP content blocks and CallToolResult envelopes."""

from __future__ import annotations

import uuid
from typing import Any, Iterable, Mapping

import orjson

ContentItem = Mapping[str, Any]
StructuredContent = Mapping[str, Any]


def text_item(text: str) -> dict[str, str]:
    return {"type": "text", "text": text}


def resource_item(uri: str, text: str, mime_type: str = "text/plain") -> dict[str, Any]:
    return {
        "type": "resource",
        "resource": {"uri": uri, "mimeType": mime_type, "text": text},
    }


def json_item(structured: Mapping[str, Any]) -> dict[str, Any]:
    """Mirror ``structured`` as an ``application/json`` resource block."""

    json_text = orjson.dumps(dict(structured), option=orjson.OPT_NON_STR_KEYS).decode()
    return resource_item(
        f"file:///_prettify_structured_{uuid.uuid4().hex}.json",
        json_text,
        mime_type="application/json",
    )


def code_block(text: str, language: str = "ts") -> str:
    fence = "```"
    while fence in text:
        fence += "`"
    return f"{fence}{language}\n{text}\n{fence}"


def mcp_result(
    *,
    content: Iterable[ContentItem],
    structured: StructuredContent | None = None,
    is_error: bool = False,
) -> dict[str, Any]:
    """Return a CallToolResult-compatible payload.

    ``content`` must hold at least one block; when ``is_error`` is set the
    first block should be the human-readable message.
    """

    content_list = list(content)
    if not content_list:
        raise ValueError("mcp_result requires at least one content item")

    result: dict[str, Any] = {"content": content_list, "isError": bool(is_error)}
    if structured is not None:
        result["structuredContent"] = dict(structured)
    return result


__all__ = ["code_block", "json_item", "mcp_result", "resource_item", "text_item"]
