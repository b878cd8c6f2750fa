"""Semantic display parts for rich rendering of TypeTrees.

Part kinds follow the language-service token classification
(``keyword``, ``punctuation``, ``propertyName`` ...), so hosts that already
colour quick-info tooltips can colour these the same way.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Optional, Sequence, Tuple

from prettify_type_mcp.type_tree.models import DisplayPart, TypeProperty, TypeTree
from prettify_type_mcp.type_tree.stringify import is_arrow_function, quote_property_name, strip_undefined

KEYWORDS = frozenset(
    {
        "abstract", "any", "as", "async", "await", "bigint", "boolean", "break",
        "case", "catch", "class", "const", "continue", "declare", "default",
        "do", "else", "enum", "export", "extends", "false", "finally", "for",
        "function", "if", "implements", "import", "in", "infer", "interface",
        "is", "keyof", "let", "module", "namespace", "never", "new", "null",
        "number", "object", "out", "private", "protected", "public",
        "readonly", "return", "static", "string", "super", "switch", "symbol",
        "this", "throw", "true", "try", "type", "typeof", "undefined",
        "unique", "unknown", "var", "void", "while", "yield",
    }
)

_NUMERIC_LITERAL = re.compile(r"^-?(?:\d+(?:\.\d+)?(?:e[+-]?\d+)?|0x[0-9a-f]+)n?$", re.IGNORECASE)


def _part(kind: str):
    def factory(text: str) -> DisplayPart:
        return DisplayPart(text=text, kind=kind)

    factory.__name__ = kind
    return factory


enum_member = _part("enumMemberName")
enum_name = _part("enumName")
keyword = _part("keyword")
numeric_literal = _part("numericLiteral")
operator = _part("operator")
parameter_name = _part("parameterName")
property_name = _part("propertyName")
punctuation = _part("punctuation")
string_literal = _part("stringLiteral")
text = _part("text")


def space() -> DisplayPart:
    return DisplayPart(text=" ", kind="space")


def is_keyword(type_name: str) -> bool:
    return type_name in KEYWORDS


def create_type_reference_display_parts(
    type_name: str,
    type_arguments: Optional[Sequence[Sequence[DisplayPart]]] = None,
) -> List[DisplayPart]:
    parts = [keyword(type_name) if is_keyword(type_name) else text(type_name)]
    if type_arguments:
        parts.append(punctuation("<"))
        for index, argument in enumerate(type_arguments):
            if index > 0:
                parts.extend((punctuation(","), space()))
            parts.extend(argument)
        parts.append(punctuation(">"))
    return parts


def terminal_display_parts(type_name: str) -> List[DisplayPart]:
    if is_keyword(type_name):
        return [keyword(type_name)]
    if len(type_name) >= 2 and type_name[0] == type_name[-1] and type_name[0] in "\"'`":
        return [string_literal(type_name)]
    if _NUMERIC_LITERAL.match(type_name):
        return [numeric_literal(type_name)]
    return [text(type_name)]


def type_tree_to_display_parts(tree: TypeTree) -> Tuple[DisplayPart, ...]:
    """Return the pre-computed parts, or one ``text`` part holding ``type_name``."""

    if tree.display_parts:
        return tree.display_parts
    return (text(tree.type_name),)


def _child_parts(tree: TypeTree) -> Sequence[DisplayPart]:
    if tree.display_parts:
        return tree.display_parts
    if tree.kind in {"primitive", "basic", "reference"}:
        return terminal_display_parts(tree.type_name)
    return build_display_parts(tree)


def _joined(trees: Iterable[TypeTree], separator: Sequence[DisplayPart]) -> List[DisplayPart]:
    parts: List[DisplayPart] = []
    for index, tree in enumerate(trees):
        if index > 0:
            parts.extend(separator)
        parts.extend(_child_parts(tree))
    return parts


def _more(count: int) -> List[DisplayPart]:
    return [punctuation("..."), space(), text(f"{count} more")]


def _signature_parts(signature, arrow: bool) -> List[DisplayPart]:
    parts: List[DisplayPart] = [punctuation("(")]
    for index, parameter in enumerate(signature.parameters):
        if index > 0:
            parts.extend((punctuation(","), space()))
        if parameter.is_rest_parameter:
            parts.append(punctuation("..."))
        parts.append(parameter_name(parameter.name))
        if parameter.optional:
            parts.append(punctuation("?"))
        parts.extend((punctuation(":"), space()))
        param_type = strip_undefined(parameter.type) if parameter.optional else parameter.type
        parts.extend(_child_parts(param_type))
    parts.append(punctuation(")"))
    if arrow:
        parts.extend((space(), punctuation("=>"), space()))
    else:
        parts.extend((punctuation(":"), space()))
    parts.extend(_child_parts(signature.return_type))
    return parts


def _operand_parts(tree: TypeTree) -> List[DisplayPart]:
    parts = list(_child_parts(tree))
    if is_arrow_function(tree):
        return [punctuation("("), *parts, punctuation(")")]
    return parts


def _is_boolean_literal(tree: TypeTree, literal: str) -> bool:
    return tree.kind in {"primitive", "basic", "reference"} and tree.type_name == literal


def _union_parts(types: Sequence[TypeTree], excess_members: int) -> List[DisplayPart]:
    members: List[List[DisplayPart]] = []
    fold = any(_is_boolean_literal(t, "true") for t in types) and any(
        _is_boolean_literal(t, "false") for t in types
    )
    folded = False
    for member in types:
        if fold and (_is_boolean_literal(member, "true") or _is_boolean_literal(member, "false")):
            if not folded:
                members.append([keyword("boolean")])
                folded = True
            continue
        members.append(_operand_parts(member))
    if excess_members > 0:
        members.append(_more(excess_members))
    return _interleave(members, (space(), operator("|"), space()))


def _object_parts(properties: Sequence[TypeProperty], excess_properties: int) -> List[DisplayPart]:
    if not properties and excess_properties == 0:
        return [punctuation("{"), punctuation("}")]
    parts = [punctuation("{"), space()]
    for prop in properties:
        if prop.readonly:
            parts.extend((keyword("readonly"), space()))
        parts.append(property_name(quote_property_name(prop.name)))
        if prop.optional:
            parts.append(punctuation("?"))
        parts.extend((punctuation(":"), space()))
        prop_type = strip_undefined(prop.type) if prop.optional else prop.type
        parts.extend(_child_parts(prop_type))
        parts.extend((punctuation(";"), space()))
    if excess_properties > 0:
        parts.extend((*_more(excess_properties), punctuation(";"), space()))
    parts.append(punctuation("}"))
    return parts


def _intersection_parts(types: Sequence[TypeTree]) -> List[DisplayPart]:
    # Object operands merge into the first object's slot.
    segments: List[Optional[List[DisplayPart]]] = []
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
            segments.append(_operand_parts(member))
    object_parts = _object_parts(merged or (), merged_excess)
    return _interleave(
        [object_parts if segment is None else segment for segment in segments],
        (space(), operator("&"), space()),
    )


def _interleave(
    groups: Iterable[Sequence[DisplayPart]], separator: Sequence[DisplayPart]
) -> List[DisplayPart]:
    parts: List[DisplayPart] = []
    for index, group in enumerate(groups):
        if index > 0:
            parts.extend(separator)
        parts.extend(group)
    return parts


def build_display_parts(tree: TypeTree) -> List[DisplayPart]:
    """Compute the parts for ``tree`` from its children's parts.

    The token stream mirrors the single-line plain rendering produced by
    :func:`prettify_type_mcp.type_tree.stringify.stringify_type_tree`.
    """

    kind = tree.kind
    if kind == "union":
        return _union_parts(tree.types, tree.excess_members)

    if kind == "intersection":
        return _intersection_parts(tree.types)

    if kind == "object":
        return _object_parts(tree.properties, tree.excess_properties)

    if kind == "array":
        parts = [keyword("readonly"), space()] if tree.readonly else []
        element = list(_child_parts(tree.element_type))
        if tree.element_type.kind in {"union", "intersection", "function"}:
            element = [punctuation("("), *element, punctuation(")")]
        parts.extend(element)
        parts.append(punctuation("[]"))
        return parts

    if kind == "tuple":
        parts = [keyword("readonly"), space()] if tree.readonly else []
        parts.append(punctuation("["))
        parts.extend(_joined(tree.element_types, (punctuation(","), space())))
        parts.append(punctuation("]"))
        return parts

    if kind == "function":
        if not tree.signatures:
            return terminal_display_parts(tree.type_name)
        if is_arrow_function(tree):
            return _signature_parts(tree.signatures[0], arrow=True)
        parts = [punctuation("{")]
        for index, signature in enumerate(tree.signatures):
            if index > 0:
                parts.append(space())
            parts.extend(_signature_parts(signature, arrow=False))
            parts.append(punctuation(";"))
        if tree.excess_signatures > 0:
            parts.extend((space(), *_more(tree.excess_signatures), punctuation(";")))
        parts.append(punctuation("}"))
        return parts

    if kind == "promise":
        return create_type_reference_display_parts("Promise", [_child_parts(tree.type)])

    if kind == "generic":
        return create_type_reference_display_parts(
            tree.type_name, [_child_parts(argument) for argument in tree.arguments]
        )

    if kind == "enum":
        enum, _, member = tree.member.rpartition(".")
        if not enum:
            return [enum_member(member)]
        return [enum_name(enum), punctuation("."), enum_member(member)]

    return terminal_display_parts(tree.type_name)


__all__ = [
    "KEYWORDS",
    "build_display_parts",
    "create_type_reference_display_parts",
    "enum_member",
    "enum_name",
    "is_keyword",
    "keyword",
    "numeric_literal",
    "operator",
    "parameter_name",
    "property_name",
    "punctuation",
    "space",
    "string_literal",
    "terminal_display_parts",
    "text",
    "type_tree_to_display_parts",
]
