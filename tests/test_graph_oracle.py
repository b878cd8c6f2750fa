from __future__ import annotations

import os

import orjson
import pytest

from conftest import user_snapshot
from prettify_type_mcp.graph_oracle import (
    GraphSnapshotError,
    GraphTypeOracle,
    load_graph_session,
    parse_snapshot,
)


def test_parse_snapshot_accepts_camel_case_layout():
    snapshot = parse_snapshot(orjson.dumps(user_snapshot()))

    assert snapshot.types["user"].name == "User"
    assert snapshot.symbols["u"].declaration_kind == "ConstKeyword"
    assert "src/index.ts" in snapshot.documents


def test_parse_snapshot_rejects_invalid_json():
    with pytest.raises(GraphSnapshotError, match="not valid JSON"):
        parse_snapshot(b"{types:")


def test_parse_snapshot_rejects_unknown_type_references():
    data = user_snapshot()
    data["types"]["user"]["properties"].append({"name": "email", "type": "missing"})

    with pytest.raises(GraphSnapshotError, match="type user -> missing"):
        parse_snapshot(orjson.dumps(data))


def test_parse_snapshot_rejects_dangling_alias():
    data = user_snapshot()
    data["symbols"]["u"]["aliasOf"] = "ghost"

    with pytest.raises(GraphSnapshotError, match="symbol u -> ghost"):
        parse_snapshot(orjson.dumps(data))


def test_parse_snapshot_rejects_unknown_node_symbols():
    data = user_snapshot()
    identifier = data["documents"]["src/index.ts"]["root"]["children"][0]["children"][1]
    identifier["symbol"] = "missing"

    with pytest.raises(GraphSnapshotError, match="node src/index.ts@6 -> missing"):
        parse_snapshot(orjson.dumps(data))


def test_parse_snapshot_rejects_unknown_fields():
    data = user_snapshot()
    data["types"]["user"]["colour"] = "blue"

    with pytest.raises(GraphSnapshotError):
        parse_snapshot(orjson.dumps(data))


def test_parse_snapshot_rejects_negative_offsets():
    data = user_snapshot()
    data["documents"]["src/index.ts"]["root"]["start"] = -1

    with pytest.raises(GraphSnapshotError):
        parse_snapshot(orjson.dumps(data))


def test_syntax_tree_links_parents_and_text(write_snapshot):
    oracle = load_graph_session(str(write_snapshot()))
    root = oracle.syntax_root("src/index.ts")

    statement = root.children[0]
    identifier = statement.children[1]
    assert identifier.parent is statement
    assert identifier.text == "user"
    assert oracle.symbol_at(identifier) == "u"
    assert oracle.syntax_root("src/index.ts") is root


def test_document_key_resolves_absolute_paths(write_snapshot):
    path = write_snapshot()
    oracle = load_graph_session(str(path))
    absolute = os.path.join(os.path.dirname(path), "src", "index.ts")

    assert oracle.document_key(absolute) == "src/index.ts"
    assert oracle.document_key("src/index.ts") == "src/index.ts"
    assert oracle.document_key(os.path.join(os.path.dirname(path), "other.ts")) is None


def test_alias_cycles_terminate():
    data = user_snapshot()
    data["symbols"]["a"] = {"name": "a", "type": "user", "aliasOf": "b"}
    data["symbols"]["b"] = {"name": "b", "type": "user", "aliasOf": "a"}
    oracle = GraphTypeOracle(parse_snapshot(orjson.dumps(data)))

    assert oracle.aliased_symbol("a") in {"a", "b"}


def test_generic_targets_count_as_known_type_names():
    data = user_snapshot()
    data["types"]["map"] = {
        "name": "Map<string, number>",
        "category": "generic",
        "target": "Map",
        "typeArguments": ["string", "number"],
    }
    oracle = GraphTypeOracle(parse_snapshot(orjson.dumps(data)))

    assert oracle.has_type_named("Map")
    assert oracle.has_type_named("User")
    assert not oracle.has_type_named("RegExp")


def test_readonly_flag_becomes_modifier():
    data = user_snapshot()
    data["types"]["user"]["properties"][0]["readonly"] = True
    oracle = GraphTypeOracle(parse_snapshot(orjson.dumps(data)))

    name, age = oracle.apparent_properties("user")
    assert name.declarations[0].modifiers == ("readonly",)
    assert age.declarations[0].modifiers == ()
