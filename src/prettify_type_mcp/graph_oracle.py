"""A :class:`TypeOracle` answered from a JSON type graph snapshot.

A snapshot is exported once by a host type checker and then queried without
it. Type and symbol handles are the snapshot's string ids.

Layout (camelCase keys)::

    {
      "types": {
        "user": {"name": "User", "category": "object",
                 "properties": [{"name": "id", "type": "num", "readonly": true}]},
        "num": {"name": "number", "category": "primitive"}
      },
      "symbols": {"u": {"name": "user", "type": "user", "declarationKind": "ConstKeyword"}},
      "documents": {
        "src/index.ts": {"text": "const user = ...",
                         "root": {"kind": "SourceFile", "start": 0, "end": 16,
                                  "children": [{"kind": "Identifier", "start": 6,
                                                "end": 10, "symbol": "u"}]}}
      }
    }
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Literal, Optional, Sequence, Tuple

import orjson
from mcp.server.fastmcp.utilities.logging import get_logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from prettify_type_mcp.oracle import (
    Declaration,
    IndexSignature,
    MemberSymbol,
    Parameter,
    Signature,
    SyntaxNode,
)
from prettify_type_mcp.request import PrettifyOptions, empty_completion_info
from prettify_type_mcp.type_tree.builder import get_type_info_at_position
from prettify_type_mcp.type_tree.models import TypeInfo

logger = get_logger(__name__)

TypeCategory = Literal[
    "primitive",
    "enumMember",
    "union",
    "intersection",
    "promise",
    "function",
    "array",
    "tuple",
    "object",
    "generic",
    "other",
]


class GraphSnapshotError(ValueError):
    """The snapshot file is unreadable or internally inconsistent."""


class _SnapshotModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        extra="forbid",
    )


class PropertyRecord(_SnapshotModel):
    name: str
    type: str
    optional: bool = False
    readonly: bool = False
    modifiers: Tuple[str, ...] = ()
    declaration_kind: str = "PropertySignature"
    synthetic: bool = False

    def to_member(self) -> MemberSymbol:
        if self.synthetic:
            return MemberSymbol(name=self.name, type=self.type)
        modifiers = self.modifiers
        if self.readonly and "readonly" not in modifiers:
            modifiers = modifiers + ("readonly",)
        declaration = Declaration(
            kind=self.declaration_kind,
            modifiers=modifiers,
            question_token=self.optional,
        )
        return MemberSymbol(name=self.name, type=self.type, declarations=(declaration,))


class IndexSignatureRecord(_SnapshotModel):
    key_name: str = "key"
    key_type: str = "string"
    type: str
    readonly: bool = False


class ParameterRecord(_SnapshotModel):
    name: str
    type: str
    optional: bool = False
    rest: bool = False

    def to_parameter(self) -> Parameter:
        declaration = Declaration(
            kind="Parameter", question_token=self.optional, dot_dot_dot_token=self.rest
        )
        return Parameter(name=self.name, type=self.type, declarations=(declaration,))


class SignatureRecord(_SnapshotModel):
    parameters: Tuple[ParameterRecord, ...] = ()
    return_type: Optional[str] = None

    def to_signature(self) -> Signature:
        return Signature(
            return_type=self.return_type,
            parameters=tuple(p.to_parameter() for p in self.parameters),
        )


class TypeRecord(_SnapshotModel):
    name: str
    category: TypeCategory = "other"
    members: Tuple[str, ...] = ()
    member: Optional[str] = None
    readonly: bool = False
    target: Optional[str] = None
    # ``None`` marks an argument the checker could not resolve.
    type_arguments: Tuple[Optional[str], ...] = ()
    properties: Tuple[PropertyRecord, ...] = ()
    index_signatures: Tuple[IndexSignatureRecord, ...] = ()
    call_signatures: Tuple[SignatureRecord, ...] = ()
    construct_signatures: Tuple[SignatureRecord, ...] = ()

    def referenced_types(self) -> Iterator[str]:
        yield from self.members
        yield from (argument for argument in self.type_arguments if argument is not None)
        yield from (prop.type for prop in self.properties)
        yield from (sig.type for sig in self.index_signatures)
        for signature in self.call_signatures + self.construct_signatures:
            if signature.return_type is not None:
                yield signature.return_type
            yield from (parameter.type for parameter in signature.parameters)


class SymbolRecord(_SnapshotModel):
    name: str
    type: str
    declared_type: Optional[str] = None
    declaration_kind: Optional[str] = None
    alias_of: Optional[str] = None


class SyntaxNodeRecord(_SnapshotModel):
    kind: str
    start: int = Field(ge=0)
    end: int = Field(ge=0)
    symbol: Optional[str] = None
    children: Tuple["SyntaxNodeRecord", ...] = ()

    def walk(self) -> Iterator["SyntaxNodeRecord"]:
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))


class DocumentRecord(_SnapshotModel):
    text: str
    root: SyntaxNodeRecord


class TypeGraphSnapshot(_SnapshotModel):
    version: int = 1
    types: Dict[str, TypeRecord] = Field(default_factory=dict)
    symbols: Dict[str, SymbolRecord] = Field(default_factory=dict)
    documents: Dict[str, DocumentRecord] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_references(self) -> "TypeGraphSnapshot":
        missing: List[str] = []
        for type_id, record in self.types.items():
            missing.extend(
                f"type {type_id} -> {ref}" for ref in record.referenced_types() if ref not in self.types
            )
        for symbol_id, symbol in self.symbols.items():
            for ref in (symbol.type, symbol.declared_type):
                if ref is not None and ref not in self.types:
                    missing.append(f"symbol {symbol_id} -> {ref}")
            if symbol.alias_of is not None and symbol.alias_of not in self.symbols:
                missing.append(f"symbol {symbol_id} -> {symbol.alias_of}")
        for path, document in self.documents.items():
            missing.extend(
                f"node {path}@{node.start} -> {node.symbol}"
                for node in document.root.walk()
                if node.symbol is not None and node.symbol not in self.symbols
            )
        if missing:
            raise ValueError("Unknown references: " + ", ".join(sorted(missing)[:10]))
        return self


SyntaxNodeRecord.model_rebuild()


@dataclass(eq=False)
class GraphSyntaxNode:
    """Syntax node backed by a snapshot document."""

    kind: str
    start: int
    end: int
    symbol: Optional[str] = None
    children: List["GraphSyntaxNode"] = field(default_factory=list)
    parent: Optional["GraphSyntaxNode"] = field(default=None, repr=False)
    source: str = field(default="", repr=False)

    @property
    def text(self) -> str:
        return self.source[self.start : self.end]

    @classmethod
    def from_record(
        cls,
        record: SyntaxNodeRecord,
        source: str,
        parent: Optional["GraphSyntaxNode"] = None,
    ) -> "GraphSyntaxNode":
        root = cls(record.kind, record.start, record.end, record.symbol, parent=parent, source=source)
        stack = [(root, record)]
        while stack:
            node, node_record = stack.pop()
            for child_record in node_record.children:
                child = cls(
                    child_record.kind,
                    child_record.start,
                    child_record.end,
                    child_record.symbol,
                    parent=node,
                    source=source,
                )
                node.children.append(child)
                stack.append((child, child_record))
        return root


class GraphTypeOracle:
    """Answer :class:`~prettify_type_mcp.oracle.TypeOracle` queries from a snapshot."""

    def __init__(
        self,
        snapshot: TypeGraphSnapshot,
        base_dir: str = ".",
        cancellation_check: Optional[Callable[[], bool]] = None,
    ) -> None:
        self.snapshot = snapshot
        self.base_dir = os.path.abspath(base_dir)
        self._cancellation_check = cancellation_check
        self._type_names = {record.name for record in snapshot.types.values()}
        self._type_names.update(
            record.target for record in snapshot.types.values() if record.target
        )
        self._roots: Dict[str, GraphSyntaxNode] = {}

    def _type(self, type_: str) -> TypeRecord:
        return self.snapshot.types[type_]

    def _symbol(self, symbol: str) -> SymbolRecord:
        return self.snapshot.symbols[symbol]

    def is_cancellation_requested(self) -> bool:
        return bool(self._cancellation_check and self._cancellation_check())

    # Types

    def type_to_string(self, type_: str) -> str:
        return self._type(type_).name

    def is_primitive(self, type_: str) -> bool:
        return self._type(type_).category == "primitive"

    def enum_member_name(self, type_: str) -> Optional[str]:
        record = self._type(type_)
        if record.category != "enumMember":
            return None
        return record.member or record.name

    def union_members(self, type_: str) -> Optional[Sequence[str]]:
        record = self._type(type_)
        return record.members if record.category == "union" else None

    def intersection_members(self, type_: str) -> Optional[Sequence[str]]:
        record = self._type(type_)
        return record.members if record.category == "intersection" else None

    def is_promise(self, type_: str) -> bool:
        return self._type(type_).category == "promise"

    def call_signatures(self, type_: str) -> Sequence[Signature]:
        return tuple(s.to_signature() for s in self._type(type_).call_signatures)

    def construct_signatures(self, type_: str) -> Sequence[Signature]:
        return tuple(s.to_signature() for s in self._type(type_).construct_signatures)

    def is_array(self, type_: str) -> bool:
        return self._type(type_).category == "array"

    def is_tuple(self, type_: str) -> bool:
        return self._type(type_).category == "tuple"

    def is_readonly(self, type_: str) -> bool:
        return self._type(type_).readonly

    def type_arguments(self, type_: str) -> Sequence[Optional[str]]:
        return self._type(type_).type_arguments

    def generic_target_name(self, type_: str) -> Optional[str]:
        return self._type(type_).target

    def is_object(self, type_: str) -> bool:
        return self._type(type_).category == "object"

    def apparent_properties(self, type_: str) -> Sequence[MemberSymbol]:
        return tuple(prop.to_member() for prop in self._type(type_).properties)

    def index_signatures(self, type_: str) -> Sequence[IndexSignature]:
        return tuple(
            IndexSignature(
                key_name=sig.key_name,
                key_type=sig.key_type,
                type=sig.type,
                readonly=sig.readonly,
            )
            for sig in self._type(type_).index_signatures
        )

    def has_type_named(self, name: str) -> bool:
        return name in self._type_names

    # Symbols

    def symbol_at(self, node: SyntaxNode) -> Optional[str]:
        return getattr(node, "symbol", None)

    def aliased_symbol(self, symbol: str) -> str:
        seen = {symbol}
        alias = self._symbol(symbol).alias_of
        while alias is not None and alias not in seen:
            seen.add(alias)
            symbol = alias
            alias = self._symbol(symbol).alias_of
        return symbol

    def symbol_name(self, symbol: str) -> str:
        return self._symbol(symbol).name

    def type_of_symbol(self, symbol: str, node: SyntaxNode) -> str:
        return self._symbol(symbol).type

    def declared_type_of_symbol(self, symbol: str) -> Optional[str]:
        return self._symbol(symbol).declared_type

    def declaration_kind(self, symbol: str, node: SyntaxNode) -> Optional[str]:
        return self._symbol(symbol).declaration_kind

    def is_instantiation_site(self, symbol: str, node: SyntaxNode) -> bool:
        parent = getattr(node, "parent", None)
        return parent is not None and parent.kind == "NewExpression"

    # Documents

    def document_key(self, file_path: str) -> Optional[str]:
        """Map an absolute or snapshot-relative path to its document key."""

        documents = self.snapshot.documents
        if file_path in documents:
            return file_path
        absolute = os.path.abspath(os.path.join(self.base_dir, file_path))
        for key in documents:
            if os.path.abspath(os.path.join(self.base_dir, key)) == absolute:
                return key
        return None

    def document_text(self, key: str) -> str:
        return self.snapshot.documents[key].text

    def syntax_root(self, key: str) -> GraphSyntaxNode:
        root = self._roots.get(key)
        if root is None:
            document = self.snapshot.documents[key]
            root = GraphSyntaxNode.from_record(document.root, document.text)
            self._roots[key] = root
        return root


class GraphLanguageService:
    """Completion-channel facade over a snapshot oracle.

    Snapshots carry no completion data, so ordinary completion queries get an
    empty list; prettify requests are answered by :meth:`get_type_info`.
    """

    def __init__(self, oracle: GraphTypeOracle) -> None:
        self.oracle = oracle

    def get_completions_at_position(self, file_name, position, options=None):
        return empty_completion_info()

    def get_type_info(
        self, file_name: str, position: int, options: PrettifyOptions
    ) -> Optional[TypeInfo]:
        key = self.oracle.document_key(file_name)
        if key is None:
            return None
        return get_type_info_at_position(
            self.oracle, self.oracle.syntax_root(key), position, options
        )


def parse_snapshot(data: bytes) -> TypeGraphSnapshot:
    try:
        return TypeGraphSnapshot.model_validate(orjson.loads(data))
    except orjson.JSONDecodeError as exc:
        raise GraphSnapshotError(f"Snapshot is not valid JSON: {exc}") from exc
    except ValidationError as exc:
        raise GraphSnapshotError(f"Snapshot does not match the type graph schema: {exc}") from exc


def load_graph_session(config_path: str) -> GraphTypeOracle:
    """Session factory for :class:`~prettify_type_mcp.session_cache.SessionCache`."""

    with open(config_path, "rb") as handle:
        snapshot = parse_snapshot(handle.read())
    logger.info(
        "Loaded type graph %s (%d types, %d documents)",
        config_path,
        len(snapshot.types),
        len(snapshot.documents),
    )
    return GraphTypeOracle(snapshot, base_dir=os.path.dirname(os.path.abspath(config_path)))


__all__ = [
    "GraphLanguageService",
    "GraphSnapshotError",
    "GraphSyntaxNode",
    "GraphTypeOracle",
    "TypeGraphSnapshot",
    "load_graph_session",
    "parse_snapshot",
]
