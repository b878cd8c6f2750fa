from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace
from typing import Any, Callable, Dict, Optional

import orjson
import pytest

from prettify_type_mcp.graph_oracle import GraphTypeOracle, TypeGraphSnapshot, load_graph_session
from prettify_type_mcp.session_cache import SessionCache

PRIMITIVES = ("string", "number", "boolean", "bigint", "symbol", "null", "undefined", "true", "false")


def primitive_types(*names: str) -> Dict[str, Dict[str, Any]]:
    return {name: {"name": name, "category": "primitive"} for name in names or PRIMITIVES}


def prop(name: str, type_: str, **extra: Any) -> Dict[str, Any]:
    return {"name": name, "type": type_, **extra}


def object_type(name: str, *properties: Dict[str, Any], **extra: Any) -> Dict[str, Any]:
    return {"name": name, "category": "object", "properties": list(properties), **extra}


def make_oracle(
    types: Dict[str, Dict[str, Any]],
    symbols: Optional[Dict[str, Dict[str, Any]]] = None,
    documents: Optional[Dict[str, Dict[str, Any]]] = None,
    cancellation_check: Optional[Callable[[], bool]] = None,
) -> GraphTypeOracle:
    snapshot = TypeGraphSnapshot.model_validate(
        {
            "types": {**primitive_types(), **types},
            "symbols": symbols or {},
            "documents": documents or {},
        }
    )
    return GraphTypeOracle(snapshot, cancellation_check=cancellation_check)


def user_document() -> Dict[str, Any]:
    """``const user = makeUser();`` with ``user`` bound to symbol ``u``."""

    text = "const user = makeUser();\n"
    return {
        "text": text,
        "root": {
            "kind": "SourceFile",
            "start": 0,
            "end": len(text),
            "children": [
                {
                    "kind": "VariableStatement",
                    "start": 0,
                    "end": 24,
                    "children": [
                        {"kind": "ConstKeyword", "start": 0, "end": 5},
                        {"kind": "Identifier", "start": 6, "end": 10, "symbol": "u"},
                        {"kind": "CallExpression", "start": 13, "end": 23},
                    ],
                },
                {"kind": "EndOfFileToken", "start": len(text), "end": len(text)},
            ],
        },
    }


def user_snapshot() -> Dict[str, Any]:
    return {
        "types": {
            **primitive_types(),
            "user": object_type("User", prop("name", "string"), prop("age", "number")),
        },
        "symbols": {
            "u": {"name": "user", "type": "user", "declarationKind": "ConstKeyword"},
        },
        "documents": {"src/index.ts": user_document()},
    }


@pytest.fixture
def write_snapshot(tmp_path: Path) -> Callable[..., Path]:
    def _write(data: Optional[Dict[str, Any]] = None, name: str = "type-graph.json") -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(orjson.dumps(data if data is not None else user_snapshot()))
        return path

    return _write


def make_ctx(session_cache: Optional[SessionCache] = None, **lifespan: Any) -> SimpleNamespace:
    lifespan_context = SimpleNamespace(
        session_cache=session_cache or SessionCache(load_graph_session),
        config_name=lifespan.pop("config_name", "type-graph.json"),
        **lifespan,
    )
    request_context = SimpleNamespace(lifespan_context=lifespan_context)
    return SimpleNamespace(request_context=request_context)


__all__ = [
    "make_ctx",
    "make_oracle",
    "object_type",
    "primitive_types",
    "prop",
    "user_document",
    "user_snapshot",
]
