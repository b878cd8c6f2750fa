from __future__ import annotations

import sys

import pytest

from conftest import make_oracle, object_type, prop, user_document
from prettify_type_mcp.graph_oracle import GraphLanguageService
from prettify_type_mcp.request import (
    PRETTIFY_RESPONSE_FIELD,
    CompletionProxy,
    PrettifyOptions,
    PrettifyRequest,
    empty_completion_info,
    is_prettify_request,
)


class RecordingService:
    def __init__(self) -> None:
        self.calls = []

    def get_completions_at_position(self, file_name, position, options=None):
        self.calls.append((file_name, position, options))
        return {"entries": [{"name": "toString"}]}

    def get_quick_info_at_position(self, file_name, position):
        return f"quick info for {file_name}@{position}"


def _user_service() -> GraphLanguageService:
    oracle = make_oracle(
        {"user": object_type("User", prop("name", "string"), prop("age", "number"))},
        {"u": {"name": "user", "type": "user", "declarationKind": "ConstKeyword"}},
        {"src/index.ts": user_document()},
    )
    return GraphLanguageService(oracle)


def test_options_use_camel_case_and_defaults():
    options = PrettifyOptions.model_validate({"maxDepth": 4, "unwrapArrays": False, "unknownKey": 1})

    assert options.max_depth == 4
    assert options.unwrap_arrays is False
    assert options.max_properties == 100
    assert options.max_sub_properties == 5
    assert options.max_union_members == 15
    assert options.max_function_signatures == 5
    assert options.hide_private_properties is True
    assert options.model_dump(by_alias=True)["maxDepth"] == 4


def test_full_options_lift_every_cap():
    options = PrettifyOptions.full(skipped_type_names=["Date"])

    assert options.max_depth == sys.maxsize
    assert options.max_union_members == sys.maxsize
    assert options.skipped_type_names == ["Date"]


@pytest.mark.parametrize(
    "trigger,expected",
    [
        (None, False),
        (".", False),
        ({"meta": "something-else"}, False),
        ({"meta": "prettify-type-info-request"}, True),
        (PrettifyRequest(), True),
    ],
)
def test_is_prettify_request(trigger, expected):
    assert is_prettify_request(trigger) is expected


def test_ordinary_completions_pass_through():
    service = RecordingService()
    proxy = CompletionProxy(service, lambda *_: pytest.fail("provider must not run"))

    result = proxy.get_completions_at_position("a.ts", 3, {"triggerCharacter": "."})

    assert result == {"entries": [{"name": "toString"}]}
    assert service.calls == [("a.ts", 3, {"triggerCharacter": "."})]


def test_other_service_methods_are_forwarded():
    proxy = CompletionProxy(RecordingService(), lambda *_: None)

    assert proxy.get_quick_info_at_position("a.ts", 1) == "quick info for a.ts@1"


def test_prettify_request_is_answered_out_of_band():
    service = _user_service()
    proxy = CompletionProxy(service, service.get_type_info)
    trigger = PrettifyRequest(options=PrettifyOptions(max_depth=3)).model_dump(by_alias=True)

    result = proxy.get_completions_at_position("src/index.ts", 7, {"triggerCharacter": trigger})

    assert result["entries"] == []
    payload = result[PRETTIFY_RESPONSE_FIELD]
    assert payload["name"] == "user"
    assert payload["declaration"] == "const user: "
    assert payload["typeTree"]["kind"] == "object"
    assert [p["name"] for p in payload["typeTree"]["properties"]] == ["name", "age"]


def test_prettify_request_without_type_returns_null_payload():
    service = _user_service()
    proxy = CompletionProxy(service, service.get_type_info)

    result = proxy.get_completions_at_position(
        "src/index.ts", 2, {"triggerCharacter": PrettifyRequest()}
    )

    assert result[PRETTIFY_RESPONSE_FIELD] is None
    assert {k: v for k, v in result.items() if k != PRETTIFY_RESPONSE_FIELD} == empty_completion_info()


def test_malformed_options_fall_back_to_defaults():
    seen = []

    def provider(file_name, position, options):
        seen.append(options)
        return None

    proxy = CompletionProxy(RecordingService(), provider)
    proxy.get_completions_at_position(
        "a.ts",
        0,
        {"triggerCharacter": {"meta": "prettify-type-info-request", "options": {"maxDepth": -1}}},
    )

    assert seen == [PrettifyOptions()]


def test_language_service_ignores_unknown_documents():
    service = _user_service()

    assert service.get_type_info("src/other.ts", 0, PrettifyOptions()) is None
    assert service.get_completions_at_position("src/index.ts", 0) == empty_completion_info()
