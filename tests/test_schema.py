from __future__ import annotations

import orjson
import pytest

from prettify_type_mcp import server
from prettify_type_mcp.response_formatter import (
    apply_character_limit,
    build_markdown_summary,
    normalize_response_format,
    with_truncation_meta,
)
from prettify_type_mcp.schema import code_block, json_item, mcp_result, text_item


def test_mcp_result_builds_structured_envelope():
    result = mcp_result(content=[text_item("hello")], structured={"value": 1})

    assert result["content"] == [{"type": "text", "text": "hello"}]
    assert result["structuredContent"]["value"] == 1
    assert result["isError"] is False


def test_mcp_result_requires_content():
    with pytest.raises(ValueError):
        mcp_result(content=[])


def test_json_item_mirrors_structured_payload():
    item = json_item({"a": 1})

    assert item["resource"]["mimeType"] == "application/json"
    assert item["resource"]["uri"].startswith("file:///_prettify_structured_")
    assert orjson.loads(item["resource"]["text"]) == {"a": 1}


def test_code_block_grows_fence_around_backticks():
    assert code_block("type A = 1;") == "```ts\ntype A = 1;\n```"
    assert code_block("a ``` b").startswith("````ts\n")


@pytest.mark.parametrize(
    "value,expected",
    [(None, "markdown"), ("JSON ", "json"), ("markdown", "markdown"), ("xml", "markdown")],
)
def test_normalize_response_format(value, expected):
    assert normalize_response_format(value) == expected


def test_build_markdown_summary_skips_blank_details():
    assert build_markdown_summary("Done", ["Code: `x`", "  "]) == "**Summary:** Done\n- Code: `x`"
    assert build_markdown_summary("  ") == "**Summary:** (no summary provided)"


def test_apply_character_limit_trims_last_blocks_first():
    items = [text_item("a" * 300), text_item("b" * 400)]

    limited = apply_character_limit(items, limit=500)

    assert limited.truncated is True
    assert limited.sections == ["text[1]"]
    assert limited.items[0]["text"] == "a" * 300
    assert limited.items[-1]["text"].startswith("_Note: Output truncated to 500 characters.")
    assert sum(len(item["text"]) for item in limited.items) <= 500
    assert items[1]["text"] == "b" * 400


def test_apply_character_limit_ignores_json_mirror():
    items = [text_item("short"), json_item({"blob": "x" * 1000})]

    limited = apply_character_limit(items, limit=100)

    assert limited.truncated is False
    assert limited.items == items


def test_with_truncation_meta_records_sections():
    limited = apply_character_limit([text_item("a" * 300), text_item("b" * 400)], limit=500)

    payload = with_truncation_meta({"value": 1}, limited, limit=500)

    assert payload["value"] == 1
    assert payload["_meta"]["truncated"] is True
    assert payload["_meta"]["character_limit"] == 500
    assert payload["_meta"]["truncated_sections"] == ["text[1]"]


def test_with_truncation_meta_passthrough():
    limited = apply_character_limit([text_item("ok")])

    assert with_truncation_meta(None, limited) is None
    assert with_truncation_meta({"v": 1}, limited) == {"v": 1}


def test_success_result_builds_payload_without_meta():
    result = server.success_result(summary="done", structured={"value": 42}, start_time=0.0, ctx=None)

    first = result["content"][0]
    assert first["type"] == "text"
    assert first["text"].splitlines()[0] == "**Summary:** done"
    assert result["structuredContent"] == {"value": 42}
    assert result["isError"] is False


def test_success_result_json_format_leads_with_resource():
    result = server.success_result(
        summary="done",
        structured={"value": 42},
        start_time=0.0,
        content=[text_item("body")],
        response_format="json",
    )

    assert result["content"][0]["type"] == "resource"
    assert result["content"][1] == text_item("body")
    assert result["structuredContent"]["_meta"]["summary"] == "done"


def test_error_result_sets_code_and_category():
    result = server.error_result(
        message="boom",
        code="sample",
        category="demo",
        details={"info": "extra"},
        start_time=0.0,
        ctx=None,
    )

    assert result["isError"] is True
    error_lines = result["content"][0]["text"].splitlines()
    assert error_lines[0] == "**Summary:** Error: boom"
    assert "- Code: `sample`" in error_lines
    assert "- Category: demo" in error_lines
    structured = result["structuredContent"]
    assert structured["code"] == "sample"
    assert structured["category"] == "demo"
    assert structured["details"] == {"info": "extra"}
    assert structured["hints"]
