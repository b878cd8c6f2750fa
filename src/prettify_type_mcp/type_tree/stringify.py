"""Plain-text rendering of TypeTrees."""

from __future__ import annotations

import re
from typing import List, Optional, Sequence

from prettify_type_mcp.type_tree.models import (
    TypeFunctionParameter,
    TypeFunctionSignature,
    TypeProperty,
    TypeTree,
)

# Keys that can be written bare; index signatures such as ``[key: string]``
# are already bracketed.
_UNQUOTED_KEY = re.compile(r"^(?:[A-Za-z_$][\w$]*|\[.*\])$")

_WRAPPED_ELEMENT_KINDS = frozenset({"union", "intersection", "function"})


def quote_property_name(name: str) -> str:
    """Quote ``name`` unless it is a bare identifier or an index signature."""

    if _UNQUOTED_KEY.match(name):
        return name
    escaped = name.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def strip_undefined(tree: TypeTree) -> TypeTree:
    """Drop ``undefined`` members from a union that backs an optional slot."""

    if tree.kind != "union":
        return tree
    kept = tuple(member for member in tree.types if member.type_name != "undefined")
    if len(kept) == len(tree.types) or not kept:
        return tree
    if len(kept) == 1 and tree.excess_members == 0:
        return kept[0]
    return tree.model_copy(update={"types": kept, "display_parts": None})


def is_arrow_function(tree: TypeTree) -> bool:
    """True when ``tree`` renders as ``(...) => R`` and needs parentheses inside ``|`` or ``&``."""

    return tree.kind == "function" and len(tree.signatures) == 1 and tree.excess_signatures == 0


def _operand_text(tree: TypeTree) -> str:
    rendered = stringify_type_tree(tree)
    return f"({rendered})" if is_arrow_function(tree) else rendered


def _union_text(types: Sequence[TypeTree], excess_members: int) -> str:
    members = [_operand_text(member) for member in types]
    if "false" in members and "true" in members:
        first = min(members.index("false"), members.index("true"))
        members = [m for m in members if m not in ("false", "true")]
        members.insert(first, "boolean")
    if excess_members > 0:
        members.append(f"... {excess_members} more")
    return " | ".join(members)


def _property_text(prop: TypeProperty) -> str:
    readonly = "readonly " if prop.readonly else ""
    optional = "?" if prop.optional else ""
    prop_type = strip_undefined(prop.type) if prop.optional else prop.type
    name = quote_property_name(prop.name)
    return f"{readonly}{name}{optional}: {stringify_type_tree(prop_type)};"


def _object_text(properties: Sequence[TypeProperty], excess_properties: int) -> str:
    entries = [_property_text(prop) for prop in properties]
    if excess_properties > 0:
        entries.append(f"... {excess_properties} more;")
    if not entries:
        return "{}"
    return "{ " + " ".join(entries) + " }"


def _parameter_text(parameter: TypeFunctionParameter) -> str:
    rest = "..." if parameter.is_rest_parameter else ""
    optional = "?" if parameter.optional else ""
    param_type = strip_undefined(parameter.type) if parameter.optional else parameter.type
    return f"{rest}{parameter.name}{optional}: {stringify_type_tree(param_type)}"


def _signature_text(signature: TypeFunctionSignature, arrow: bool) -> str:
    parameters = ", ".join(_parameter_text(p) for p in signature.parameters)
    separator = " =>" if arrow else ":"
    return f"({parameters}){separator} {stringify_type_tree(signature.return_type)}"


def _intersection_text(types: Sequence[TypeTree]) -> str:
    segments: List[Optional[str]] = []
    merged: Optional[List[TypeProperty]] = None
    merged_excess = 0
    for member in types:
        if member.kind == "object":
            if merged is None:
                merged = []
                segments.append(None)
            merged.extend(member.properties)
            merged_excess += member.excess_properties
        else:
            segments.append(_operand_text(member))
    object_text = _object_text(merged or (), merged_excess)
    return " & ".join(object_text if segment is None else segment for segment in segments)


def stringify_type_tree(tree: TypeTree, anonymous: bool = True) -> str:
    """Render ``tree`` as single-line declaration text.

    ``anonymous`` selects the arrow form for a lone call signature; named
    function declarations use ``(params): Return`` instead.
    """

    kind = tree.kind
    if kind == "union":
        return _union_text(tree.types, tree.excess_members)

    if kind == "intersection":
        return _intersection_text(tree.types)

    if kind == "object":
        return _object_text(tree.properties, tree.excess_properties)

    if kind == "tuple":
        elements = ", ".join(stringify_type_tree(t) for t in tree.element_types)
        return f"{'readonly ' if tree.readonly else ''}[{elements}]"

    if kind == "array":
        element = stringify_type_tree(tree.element_type)
        if tree.element_type.kind in _WRAPPED_ELEMENT_KINDS:
            element = f"({element})"
        return f"{'readonly ' if tree.readonly else ''}{element}[]"

    if kind == "function":
        if not tree.signatures:
            return tree.type_name
        if len(tree.signatures) == 1 and tree.excess_signatures == 0:
            return _signature_text(tree.signatures[0], arrow=anonymous)
        body = "; ".join(_signature_text(s, arrow=False) for s in tree.signatures) + ";"
        if tree.excess_signatures > 0:
            body += f" ... {tree.excess_signatures} more;"
        return "{" + body + "}"

    if kind == "promise":
        return f"Promise<{stringify_type_tree(tree.type)}>"

    if kind == "enum":
        return tree.member

    if kind == "generic":
        arguments = ", ".join(stringify_type_tree(arg) for arg in tree.arguments)
        return f"{tree.type_name}<{arguments}>"

    return tree.type_name


__all__ = ["is_arrow_function", "quote_property_name", "strip_undefined", "stringify_type_tree"]
