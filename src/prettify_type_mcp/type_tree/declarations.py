"""Declaration keyword prefixes and full declaration rendering."""

from __future__ import annotations

from typing import Optional

from prettify_type_mcp.type_tree.models import TypeInfo
from prettify_type_mcp.type_tree.pretty_print import pretty_print_type_string
from prettify_type_mcp.type_tree.stringify import stringify_type_tree

CLASS_KINDS = frozenset({"ClassDeclaration", "NewExpression"})

INTERFACE_KINDS = frozenset(
    {"ExpressionWithTypeArguments", "InterfaceDeclaration", "QualifiedName"}
)

TYPE_KINDS = frozenset(
    {
        "ArrayType",
        "ConstructorType",
        "ConstructSignature",
        "EnumDeclaration",
        "FunctionType",
        "IndexedAccessType",
        "IndexSignature",
        "IntersectionType",
        "MappedType",
        "PropertySignature",
        "ThisType",
        "TupleType",
        "TypeAliasDeclaration",
        "TypeAssertionExpression",
        "TypeLiteral",
        "TypeOperator",
        "TypePredicate",
        "TypeQuery",
        "TypeReference",
        "UnionType",
    }
)

FUNCTION_KINDS = frozenset(
    {
        "FunctionDeclaration",
        "FunctionKeyword",
        "MethodDeclaration",
        "MethodSignature",
        "GetAccessor",
        "SetAccessor",
        "Constructor",
    }
)

VARIABLE_KINDS = frozenset({"VariableDeclaration", "LetKeyword", "VarKeyword", "ConstKeyword"})


def declaration_prefix(syntax_kind: Optional[str], name: str) -> str:
    """Return the keyword prefix that introduces ``name`` in a rendered declaration.

    >>> declaration_prefix("InterfaceDeclaration", "User")
    'interface User '
    >>> declaration_prefix(None, "value")
    'const value: '
    """

    if len(name) >= 2 and name.startswith('"') and name.endswith('"'):
        module = name.strip('"').split("node_modules/")[-1]
        return f'typeof import("{module}"): '

    if syntax_kind in CLASS_KINDS:
        return f"class {name} "
    if syntax_kind in INTERFACE_KINDS:
        return f"interface {name} "
    if syntax_kind in TYPE_KINDS:
        return f"type {name} = "
    if syntax_kind in FUNCTION_KINDS:
        return f"function {name}"
    if syntax_kind == "LetKeyword":
        return f"let {name}: "
    if syntax_kind == "VarKeyword":
        return f"var {name}: "
    return f"const {name}: "


def render_type_info(info: TypeInfo, indentation: int = 2) -> str:
    """Render ``info`` as prefixed, pretty-printed declaration text."""

    anonymous = info.syntax_kind not in FUNCTION_KINDS
    body = stringify_type_tree(info.type_tree, anonymous=anonymous)
    return info.declaration + pretty_print_type_string(body, indentation)


__all__ = [
    "CLASS_KINDS",
    "FUNCTION_KINDS",
    "INTERFACE_KINDS",
    "TYPE_KINDS",
    "VARIABLE_KINDS",
    "declaration_prefix",
    "render_type_info",
]
