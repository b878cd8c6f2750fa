"""Capabilities consumed from the host type checker.

The type tree engine never inspects a checker directly; it asks a
:class:`TypeOracle` structural questions about opaque, hashable type handles
and walks syntax trees through :class:`SyntaxNode`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Hashable, Optional, Protocol, Sequence, Tuple, runtime_checkable


class OperationCancelled(Exception):
    """Raised when the host cancels an in-flight type lookup."""

    def __init__(self, message: str = "Type lookup was cancelled.") -> None:
        super().__init__(message)


@dataclass(frozen=True)
class Declaration:
    kind: str
    modifiers: Tuple[str, ...] = ()
    question_token: bool = False
    dot_dot_dot_token: bool = False


@dataclass(frozen=True)
class MemberSymbol:
    """A property or method symbol of an object-shaped type."""

    name: str
    type: Hashable
    declarations: Optional[Tuple[Declaration, ...]] = None


@dataclass(frozen=True)
class IndexSignature:
    key_name: str
    key_type: str
    type: Hashable
    readonly: bool = False


@dataclass(frozen=True)
class Parameter:
    name: str
    type: Hashable
    declarations: Optional[Tuple[Declaration, ...]] = None


@dataclass(frozen=True)
class Signature:
    return_type: Optional[Hashable]
    parameters: Tuple[Parameter, ...] = field(default_factory=tuple)


@runtime_checkable
class SyntaxNode(Protocol):
    """Minimal view of a syntax tree node with character offsets."""

    kind: str
    start: int
    end: int

    @property
    def children(self) -> Sequence["SyntaxNode"]: ...

    @property
    def text(self) -> str: ...


class TypeOracle(Protocol):
    """Read-only questions the builder asks about a type handle.

    Handles are opaque to the engine; they only need to be hashable so a
    branch can remember which ones it has already expanded.
    """

    def type_to_string(self, type_: Hashable) -> str: ...

    def is_primitive(self, type_: Hashable) -> bool: ...

    def enum_member_name(self, type_: Hashable) -> Optional[str]: ...

    def union_members(self, type_: Hashable) -> Optional[Sequence[Hashable]]: ...

    def intersection_members(self, type_: Hashable) -> Optional[Sequence[Hashable]]: ...

    def is_promise(self, type_: Hashable) -> bool: ...

    def call_signatures(self, type_: Hashable) -> Sequence[Signature]: ...

    def construct_signatures(self, type_: Hashable) -> Sequence[Signature]: ...

    def is_array(self, type_: Hashable) -> bool: ...

    def is_tuple(self, type_: Hashable) -> bool: ...

    def is_readonly(self, type_: Hashable) -> bool: ...

    def type_arguments(self, type_: Hashable) -> Sequence[Optional[Hashable]]: ...

    def generic_target_name(self, type_: Hashable) -> Optional[str]: ...

    def is_object(self, type_: Hashable) -> bool: ...

    def apparent_properties(self, type_: Hashable) -> Sequence[MemberSymbol]: ...

    def index_signatures(self, type_: Hashable) -> Sequence[IndexSignature]: ...

    def has_type_named(self, name: str) -> bool: ...

    # Entry point queries

    def symbol_at(self, node: SyntaxNode) -> Optional[Hashable]: ...

    def aliased_symbol(self, symbol: Hashable) -> Hashable: ...

    def symbol_name(self, symbol: Hashable) -> str: ...

    def type_of_symbol(self, symbol: Hashable, node: SyntaxNode) -> Hashable: ...

    def declared_type_of_symbol(self, symbol: Hashable) -> Optional[Hashable]: ...

    def declaration_kind(self, symbol: Hashable, node: SyntaxNode) -> Optional[str]: ...

    def is_instantiation_site(self, symbol: Hashable, node: SyntaxNode) -> bool: ...


def cancellation_requested(oracle: Any) -> bool:
    """Poll the oracle's optional cancellation signal."""

    check = getattr(oracle, "is_cancellation_requested", None)
    if check is None:
        return False
    return bool(check())


def throw_if_cancelled(oracle: Any) -> None:
    if cancellation_requested(oracle):
        raise OperationCancelled()


__all__ = [
    "Declaration",
    "IndexSignature",
    "MemberSymbol",
    "OperationCancelled",
    "Parameter",
    "Signature",
    "SyntaxNode",
    "TypeOracle",
    "cancellation_requested",
    "throw_if_cancelled",
]
