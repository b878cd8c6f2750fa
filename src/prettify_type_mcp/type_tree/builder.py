"""Build bounded TypeTrees from oracle type handles.

The walk is depth-limited on object members only: unions, intersections,
signatures, arrays and tuples expand their children at the current depth,
while each object member costs one level. Cycles are broken with a visited
set that belongs to a single branch, so a type seen in one branch can still
be expanded in an unrelated sibling.
"""

from __future__ import annotations

import time
from typing import AbstractSet, Hashable, List, Optional, Sequence

from mcp.server.fastmcp.utilities.logging import get_logger

from prettify_type_mcp.oracle import (
    MemberSymbol,
    OperationCancelled,
    Parameter,
    Signature,
    SyntaxNode,
    TypeOracle,
    throw_if_cancelled,
)
from prettify_type_mcp.request import PrettifyOptions
from prettify_type_mcp.type_tree.declarations import VARIABLE_KINDS, declaration_prefix
from prettify_type_mcp.type_tree.display_parts import build_display_parts
from prettify_type_mcp.type_tree.models import (
    ArrayNode,
    BasicNode,
    EnumNode,
    FunctionNode,
    GenericNode,
    IntersectionNode,
    ObjectNode,
    PrimitiveNode,
    PromiseNode,
    ReferenceNode,
    TupleNode,
    TypeFunctionParameter,
    TypeFunctionSignature,
    TypeInfo,
    TypeProperty,
    TypeTree,
    UnionNode,
)
from prettify_type_mcp.type_tree.position import resolve_node_at_range

logger = get_logger(__name__)

# Quick info lists primitives first and null/undefined last.
_PRIMITIVE_ORDER = ("string", "number", "bigint", "boolean", "symbol")
_FALSY_ORDER = ("null", "undefined")

_MEMBER_DECLARATION_KINDS = frozenset(
    {"MethodDeclaration", "MethodSignature", "PropertyDeclaration", "PropertySignature"}
)
_READONLY_DECLARATION_KINDS = frozenset(
    {"PropertyDeclaration", "PropertySignature", "GetAccessor", "SetAccessor", "Parameter"}
)
_OPTIONAL_DECLARATION_KINDS = frozenset({"PropertyDeclaration", "PropertySignature"})
_HIDDEN_MODIFIERS = frozenset({"private", "protected"})


def is_public_property(symbol: MemberSymbol) -> bool:
    """Hide ``_``/``#`` names and members declared private or protected everywhere."""

    if symbol.name.startswith(("_", "#")):
        return False
    declarations = symbol.declarations
    if not declarations:
        return True
    return not all(
        declaration.kind in _MEMBER_DECLARATION_KINDS
        and _HIDDEN_MODIFIERS.intersection(declaration.modifiers)
        for declaration in declarations
    )


def is_readonly_property(symbol: MemberSymbol) -> bool:
    return any(
        declaration.kind in _READONLY_DECLARATION_KINDS and "readonly" in declaration.modifiers
        for declaration in symbol.declarations or ()
    )


def is_optional_property(symbol: MemberSymbol) -> bool:
    return any(
        declaration.kind in _OPTIONAL_DECLARATION_KINDS and declaration.question_token
        for declaration in symbol.declarations or ()
    )


def _is_optional_parameter(parameter: Parameter) -> bool:
    return any(d.question_token for d in parameter.declarations or ())


def _is_rest_parameter(parameter: Parameter) -> bool:
    return any(d.dot_dot_dot_token for d in parameter.declarations or ())


def _is_anonymous_literal(type_name: str) -> bool:
    return any(token in type_name for token in ("{", "[", "("))


class _TreeBuilder:
    def __init__(self, oracle: TypeOracle, options: PrettifyOptions) -> None:
        self.oracle = oracle
        self.options = options
        self.skipped = frozenset(options.skipped_type_names)
        self.unwrapped_generics = frozenset(options.unwrap_generic_arguments_type_names)

    def build(self, type_: Hashable, depth: int, visited: AbstractSet[Hashable]) -> TypeTree:
        node = self._build(type_, depth, visited)
        if (
            self.options.generate_display_parts
            and depth < self.options.max_depth
            and node.display_parts is None
        ):
            node = node.model_copy(update={"display_parts": tuple(build_display_parts(node))})
        return node

    def _union_sort_key(self, type_: Hashable) -> tuple:
        if not self.oracle.is_primitive(type_):
            return (1, 0)
        name = self.oracle.type_to_string(type_)
        if name in _PRIMITIVE_ORDER:
            return (0, _PRIMITIVE_ORDER.index(name))
        if name in _FALSY_ORDER:
            return (2, _FALSY_ORDER.index(name))
        return (1, 0)

    def _build(self, type_: Hashable, depth: int, visited: AbstractSet[Hashable]) -> TypeTree:
        oracle = self.oracle
        options = self.options
        type_name = oracle.type_to_string(type_)

        if oracle.is_primitive(type_):
            return PrimitiveNode(type_name=type_name)
        if depth >= options.max_depth:
            return BasicNode(type_name=type_name)

        if type_ in visited:
            return BasicNode(type_name="..." if _is_anonymous_literal(type_name) else type_name)
        if type_name in self.skipped:
            return ReferenceNode(type_name=type_name)
        visited = visited | {type_}

        member = oracle.enum_member_name(type_)
        if member:
            return EnumNode(type_name=type_name, member=member)

        union_members = oracle.union_members(type_)
        if union_members:
            limit = options.max_union_members
            shown = sorted(union_members[:limit], key=self._union_sort_key)
            return UnionNode(
                type_name=type_name,
                types=tuple(self.build(t, depth, visited) for t in shown),
                excess_members=max(0, len(union_members) - limit),
            )

        intersection_members = oracle.intersection_members(type_)
        if intersection_members:
            return IntersectionNode(
                type_name=type_name,
                types=tuple(self.build(t, depth, visited) for t in intersection_members),
            )

        if oracle.is_promise(type_):
            arguments = oracle.type_arguments(type_)
            wrapped = arguments[0] if arguments else None
            return PromiseNode(
                type_name=type_name,
                type=(
                    self.build(wrapped, depth, visited)
                    if wrapped is not None
                    else BasicNode(type_name="void")
                ),
            )

        signatures = oracle.call_signatures(type_)
        if signatures:
            signature_depth = depth if options.unwrap_functions else options.max_depth
            limit = options.max_function_signatures
            return FunctionNode(
                type_name=type_name,
                signatures=tuple(
                    self._signature(s, signature_depth, visited) for s in signatures[:limit]
                ),
                excess_signatures=max(0, len(signatures) - limit),
            )

        if oracle.is_array(type_):
            element_depth = depth if options.unwrap_arrays else options.max_depth
            arguments = oracle.type_arguments(type_)
            element = arguments[0] if arguments else None
            return ArrayNode(
                type_name=type_name,
                readonly=oracle.is_readonly(type_),
                element_type=(
                    self.build(element, element_depth, visited)
                    if element is not None
                    else BasicNode(type_name="any")
                ),
            )

        if oracle.is_tuple(type_):
            return TupleNode(
                type_name=type_name,
                readonly=oracle.is_readonly(type_),
                element_types=self._arguments(oracle.type_arguments(type_), depth, visited),
            )

        target = oracle.generic_target_name(type_)
        arguments = oracle.type_arguments(type_) if target else ()
        if target and arguments:
            if target in self.skipped:
                return ReferenceNode(type_name=f"{target}<...>")
            if target in self.unwrapped_generics:
                return GenericNode(
                    type_name=target, arguments=self._arguments(arguments, depth, visited)
                )

        if oracle.is_object(type_):
            return self._object(type_, type_name, depth, visited)

        if target and arguments:
            return GenericNode(type_name=target, arguments=self._arguments(arguments, depth, visited))

        return BasicNode(type_name=type_name)

    def _arguments(
        self,
        arguments: Sequence[Optional[Hashable]],
        depth: int,
        visited: AbstractSet[Hashable],
    ) -> tuple:
        return tuple(
            self.build(argument, depth, visited)
            if argument is not None
            else BasicNode(type_name="unknown")
            for argument in arguments
        )

    def _signature(
        self, signature: Signature, depth: int, visited: AbstractSet[Hashable]
    ) -> TypeFunctionSignature:
        return_type = (
            self.build(signature.return_type, depth, visited)
            if signature.return_type is not None
            else BasicNode(type_name="void")
        )
        parameters = tuple(
            TypeFunctionParameter(
                name=parameter.name,
                optional=_is_optional_parameter(parameter),
                is_rest_parameter=_is_rest_parameter(parameter),
                type=self.build(parameter.type, depth, visited),
            )
            for parameter in signature.parameters
        )
        return TypeFunctionSignature(return_type=return_type, parameters=parameters)

    def _object(
        self,
        type_: Hashable,
        type_name: str,
        depth: int,
        visited: AbstractSet[Hashable],
    ) -> ObjectNode:
        oracle = self.oracle
        options = self.options
        limit = options.max_sub_properties if depth >= 1 else options.max_properties

        members: List[MemberSymbol] = list(oracle.apparent_properties(type_))
        if options.hide_private_properties:
            members = [symbol for symbol in members if is_public_property(symbol)]
        index_signatures = list(oracle.index_signatures(type_))

        excess = max(0, len(members) + len(index_signatures) - limit)
        index_signatures = index_signatures[:limit]
        members = members[: max(0, limit - len(index_signatures))]

        properties: List[TypeProperty] = []
        for index_signature in index_signatures:
            throw_if_cancelled(oracle)
            properties.append(
                TypeProperty(
                    name=f"[{index_signature.key_name}: {index_signature.key_type}]",
                    readonly=index_signature.readonly,
                    type=self.build(index_signature.type, depth + 1, visited),
                )
            )
        for symbol in members:
            throw_if_cancelled(oracle)
            properties.append(
                TypeProperty(
                    name=symbol.name,
                    optional=is_optional_property(symbol),
                    readonly=is_readonly_property(symbol),
                    type=self.build(symbol.type, depth + 1, visited),
                )
            )

        return ObjectNode(
            type_name=type_name,
            properties=tuple(properties),
            excess_properties=excess,
        )

    def constructor(self, type_: Hashable, name: str) -> FunctionNode:
        signature = self.oracle.construct_signatures(type_)[0]
        parameters = tuple(
            TypeFunctionParameter(
                name=parameter.name,
                optional=_is_optional_parameter(parameter),
                is_rest_parameter=_is_rest_parameter(parameter),
                type=self.build(parameter.type, 0, frozenset()),
            )
            for parameter in signature.parameters
        )
        return FunctionNode(
            type_name=name,
            signatures=(
                TypeFunctionSignature(
                    return_type=ReferenceNode(type_name=name), parameters=parameters
                ),
            ),
        )


def build_type_tree(
    type_: Hashable,
    oracle: TypeOracle,
    depth: int = 0,
    visited: AbstractSet[Hashable] = frozenset(),
    options: Optional[PrettifyOptions] = None,
) -> TypeTree:
    """Convert an oracle type handle into a bounded TypeTree.

    Oracle exceptions propagate to the caller; structural gaps such as a
    missing element type or type argument become conservative ``basic`` nodes.
    """

    builder = _TreeBuilder(oracle, options or PrettifyOptions())
    return builder.build(type_, depth, frozenset(visited))


def get_type_info_at_position(
    oracle: TypeOracle,
    root: SyntaxNode,
    position: int,
    options: Optional[PrettifyOptions] = None,
) -> Optional[TypeInfo]:
    """Resolve the symbol at ``position`` and build its TypeInfo.

    Returns ``None`` when nothing hoverable sits at the position or when the
    oracle fails; a partial tree is never returned. Cancellation propagates.
    """

    options = options or PrettifyOptions()
    started = time.perf_counter()
    try:
        node = resolve_node_at_range(root, (position, position))
        if node is root:
            return None

        symbol = oracle.symbol_at(node)
        if symbol is None:
            return None
        symbol = oracle.aliased_symbol(symbol)

        type_ = oracle.type_of_symbol(symbol, node)
        declared_kind = oracle.declaration_kind(symbol, node)
        syntax_kind = declared_kind or "ConstKeyword"
        name = oracle.symbol_name(symbol) or oracle.type_to_string(type_)
        builder = _TreeBuilder(oracle, options)

        if (
            syntax_kind == "ClassDeclaration"
            and oracle.is_instantiation_site(symbol, node)
            and oracle.construct_signatures(type_)
        ):
            return TypeInfo(
                type_tree=builder.constructor(type_, name),
                declaration=declaration_prefix("Constructor", name),
                name=name,
                syntax_kind="Constructor",
            )

        if declared_kind not in VARIABLE_KINDS:
            declared_type = oracle.declared_type_of_symbol(symbol)
            if declared_type is not None:
                type_ = declared_type

        type_tree = builder.build(type_, 0, frozenset())
    except OperationCancelled:
        raise
    except Exception as exc:
        logger.warning("Type lookup failed at offset %s: %s", position, exc)
        return None

    elapsed_ms = (time.perf_counter() - started) * 1000
    if elapsed_ms > options.perf_warning_threshold_ms:
        logger.warning(
            "Type tree for %s took %.1fms (threshold %sms)",
            name,
            elapsed_ms,
            options.perf_warning_threshold_ms,
        )

    return TypeInfo(
        type_tree=type_tree,
        declaration=declaration_prefix(syntax_kind, name),
        name=name,
        syntax_kind=syntax_kind,
    )


__all__ = [
    "build_type_tree",
    "get_type_info_at_position",
    "is_optional_property",
    "is_public_property",
    "is_readonly_property",
]
