from __future__ import annotations

import os
from urllib.parse import unquote, urlparse

import pytest
from pydantic import ValidationError

from prettify_type_mcp.tool_inputs import (
    PrettifyTypeInfoInput,
    PrettifyTypeStringInput,
    SessionStatusInput,
    file_uri_to_path,
)


def _expected_path_from_file_uri(uri: str) -> str:
    parsed = urlparse(uri)
    path = unquote(parsed.path or "")
    if os.name == "nt" and path.startswith("/"):
        path = path.lstrip("/")
    return path


def test_type_info_accepts_uri_alias():
    uri = "file:///tmp/My%20Project/index.ts"
    model = PrettifyTypeInfoInput.model_validate({"uri": uri, "line": 1, "column": 1})

    assert model.file_path == _expected_path_from_file_uri(uri)


def test_plain_paths_pass_through():
    assert file_uri_to_path("src/index.ts") == "src/index.ts"


def test_lsp_position_is_zero_based():
    model = PrettifyTypeInfoInput.model_validate(
        {"path": "src/index.ts", "position": {"line": 0, "character": 4}}
    )

    assert (model.line, model.column) == (1, 5)


def test_nested_position_with_column_is_one_based():
    model = PrettifyTypeInfoInput.model_validate(
        {"file_path": "src/index.ts", "position": {"line": 2, "column": 3}}
    )

    assert (model.line, model.column) == (2, 3)


def test_top_level_position_wins_over_nested():
    model = PrettifyTypeInfoInput.model_validate(
        {"file_path": "a.ts", "line": 9, "column": 9, "position": {"line": 0, "character": 0}}
    )

    assert (model.line, model.column) == (9, 9)


def test_character_alias_for_column():
    model = PrettifyTypeInfoInput.model_validate({"file_path": "a.ts", "line": 3, "character": 2})

    assert model.column == 2


def test_option_and_config_aliases():
    model = PrettifyTypeInfoInput.model_validate(
        {
            "file_path": "a.ts",
            "line": 1,
            "column": 1,
            "snapshot": "file:///repo/type-graph.json",
            "prettify_options": {"maxDepth": 5, "skippedTypeNames": ["Date"]},
            "_format": "json",
        }
    )

    assert model.config_path == _expected_path_from_file_uri("file:///repo/type-graph.json")
    assert model.options.max_depth == 5
    assert model.options.skipped_type_names == ["Date"]
    assert model.response_format == "json"
    assert model.full is False
    assert model.indentation == 2


@pytest.mark.parametrize(
    "payload",
    [
        {"file_path": "a.ts", "line": 0, "column": 1},
        {"file_path": "a.ts", "line": 1, "column": 0},
        {"file_path": "", "line": 1, "column": 1},
        {"file_path": "a.ts", "line": 1, "column": 1, "indentation": 9},
        {"file_path": "a.ts", "line": 1, "column": 1, "unexpected": True},
        {"line": 1, "column": 1},
    ],
)
def test_type_info_rejects_invalid_payloads(payload):
    with pytest.raises(ValidationError):
        PrettifyTypeInfoInput.model_validate(payload)


def test_type_string_aliases_and_whitespace():
    model = PrettifyTypeStringInput.model_validate(
        {"text": "  { a: string; }  ", "syntaxKind": "TypeAliasDeclaration", "name": "A"}
    )

    assert model.type_string == "{ a: string; }"
    assert model.syntax_kind == "TypeAliasDeclaration"


def test_type_string_requires_text():
    with pytest.raises(ValidationError):
        PrettifyTypeStringInput.model_validate({"type": ""})


def test_session_status_defaults():
    assert SessionStatusInput().clear is False
