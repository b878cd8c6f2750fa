"""Immutable TypeTree models.

A TypeTree is a bounded, acyclic projection of a type answered by the oracle
at one point in time. Nodes are discriminated on ``kind`` and serialise with
camelCase keys so hosts can consume them as plain JSON.
"""

from __future__ import annotations

from typing import Annotated, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class TreeModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


class DisplayPart(TreeModel):
    """A ``(text, kind)`` token for rich rendering."""

    text: str
    kind: str


class _TypeNode(TreeModel):
    type_name: str
    display_parts: Optional[Tuple[DisplayPart, ...]] = None


class PrimitiveNode(_TypeNode):
    kind: Literal["primitive"] = "primitive"


class BasicNode(_TypeNode):
    """Terminal node for depth-exhausted, cycle-broken or unclassified types."""

    kind: Literal["basic"] = "basic"


class ReferenceNode(_TypeNode):
    """A named type whose expansion was suppressed by policy."""

    kind: Literal["reference"] = "reference"


class UnionNode(_TypeNode):
    kind: Literal["union"] = "union"
    types: Tuple[TypeTree, ...] = ()
    excess_members: int = 0


class IntersectionNode(_TypeNode):
    kind: Literal["intersection"] = "intersection"
    types: Tuple[TypeTree, ...] = ()


class TypeProperty(TreeModel):
    name: str
    optional: bool = False
    readonly: bool = False
    type: TypeTree


class ObjectNode(_TypeNode):
    kind: Literal["object"] = "object"
    properties: Tuple[TypeProperty, ...] = ()
    excess_properties: int = 0


class ArrayNode(_TypeNode):
    kind: Literal["array"] = "array"
    readonly: bool = False
    element_type: TypeTree


class TupleNode(_TypeNode):
    kind: Literal["tuple"] = "tuple"
    readonly: bool = False
    element_types: Tuple[TypeTree, ...] = ()


class TypeFunctionParameter(TreeModel):
    name: str
    optional: bool = False
    is_rest_parameter: bool = False
    type: TypeTree


class TypeFunctionSignature(TreeModel):
    return_type: TypeTree
    parameters: Tuple[TypeFunctionParameter, ...] = ()


class FunctionNode(_TypeNode):
    kind: Literal["function"] = "function"
    signatures: Tuple[TypeFunctionSignature, ...] = ()
    excess_signatures: int = 0


class PromiseNode(_TypeNode):
    kind: Literal["promise"] = "promise"
    type: TypeTree


class EnumNode(_TypeNode):
    kind: Literal["enum"] = "enum"
    member: str


class GenericNode(_TypeNode):
    kind: Literal["generic"] = "generic"
    arguments: Tuple[TypeTree, ...] = ()


TypeTree = Annotated[
    Union[
        PrimitiveNode,
        BasicNode,
        ReferenceNode,
        UnionNode,
        IntersectionNode,
        ObjectNode,
        ArrayNode,
        TupleNode,
        FunctionNode,
        PromiseNode,
        EnumNode,
        GenericNode,
    ],
    Field(discriminator="kind"),
]


class TypeInfo(TreeModel):
    """Result of a position lookup: the tree plus how it was declared."""

    type_tree: TypeTree
    declaration: str
    name: str
    syntax_kind: Optional[str] = None


for _model in (
    UnionNode,
    IntersectionNode,
    TypeProperty,
    ObjectNode,
    ArrayNode,
    TupleNode,
    TypeFunctionParameter,
    TypeFunctionSignature,
    FunctionNode,
    PromiseNode,
    GenericNode,
    TypeInfo,
):
    _model.model_rebuild()


__all__ = [
    "ArrayNode",
    "BasicNode",
    "DisplayPart",
    "EnumNode",
    "FunctionNode",
    "GenericNode",
    "IntersectionNode",
    "ObjectNode",
    "PrimitiveNode",
    "PromiseNode",
    "ReferenceNode",
    "TupleNode",
    "TypeFunctionParameter",
    "TypeFunctionSignature",
    "TypeInfo",
    "TypeProperty",
    "TypeTree",
    "UnionNode",
]
