from __future__ import annotations

import os
from typing import Any, Dict, Optional
from urllib.parse import unquote, urlparse

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from prettify_type_mcp.request import PrettifyOptions


def file_uri_to_path(value: str) -> str:
    """Convert a ``file://`` URI to a local path; other strings pass through."""

    if not value.startswith("file://"):
        return value
    parsed = urlparse(value)
    path = unquote(parsed.path or "")
    if os.name == "nt":
        if parsed.netloc:
            return "\\\\" + parsed.netloc + path.replace("/", "\\")
        return path.lstrip("/")
    return path


class ToolInputBase(BaseModel):
    """Shared configuration for structured tool inputs."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        populate_by_name=True,
        extra="forbid",
    )

    response_format: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("_format", "response_format"),
        serialization_alias="_format",
        description="Optional response rendering hint: `markdown` (default) or `json`.",
    )


class TypeLocationInput(ToolInputBase):
    file_path: str = Field(
        ...,
        validation_alias=AliasChoices("file_path", "uri", "path"),
        description="Absolute or project-relative path to a TypeScript source file.",
    )
    line: int = Field(..., ge=1, description="1-based line of the symbol.")
    column: int = Field(
        ...,
        ge=1,
        validation_alias=AliasChoices("column", "character"),
        description="1-based column of the symbol within the line.",
    )

    @model_validator(mode="before")
    @classmethod
    def _normalize_lsp_position(cls, data: Any) -> Any:
        """Accept a nested ``position`` object.

        ``{"position": {"line": 0, "character": 4}}`` is LSP style and 0-based;
        ``{"position": {"line": 1, "column": 5}}`` is already 1-based. Explicit
        top-level ``line``/``column`` values win.
        """
        if not isinstance(data, dict):
            return data
        position: Optional[Dict[str, Any]] = data.get("position")
        if not isinstance(position, dict):
            return data

        data = {k: v for k, v in data.items() if k != "position"}
        zero_based = "character" in position and "column" not in position
        shift = 1 if zero_based else 0
        line = position.get("line")
        if "line" not in data and isinstance(line, int):
            data["line"] = line + shift
        column = position.get("character" if zero_based else "column")
        if "column" not in data and "character" not in data and isinstance(column, int):
            data["column"] = column + shift
        return data

    @field_validator("file_path", mode="before")
    @classmethod
    def _coerce_file_uri(cls, value: Any) -> Any:
        if isinstance(value, str):
            return file_uri_to_path(value)
        return value

    @field_validator("file_path")
    @classmethod
    def _validate_file_path(cls, value: str) -> str:
        if not value:
            raise ValueError("file_path cannot be empty.")
        return value


class PrettifyTypeInfoInput(TypeLocationInput):
    config_path: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("config_path", "config", "snapshot"),
        description=(
            "Type graph snapshot to query. Defaults to the nearest snapshot above "
            "`file_path` (see PRETTIFY_TYPE_CONFIG)."
        ),
    )
    options: PrettifyOptions = Field(
        default_factory=PrettifyOptions,
        validation_alias=AliasChoices("options", "prettify_options"),
        description="Expansion bounds, camelCase keys (maxDepth, maxProperties, ...).",
    )
    full: bool = Field(
        default=False,
        description="Expand every level and member, ignoring the caps in `options`.",
    )
    indentation: int = Field(
        default=2,
        ge=0,
        le=8,
        description="Spaces per nesting level; 0 keeps the single-line form.",
    )

    @field_validator("config_path", mode="before")
    @classmethod
    def _coerce_config_uri(cls, value: Any) -> Any:
        if isinstance(value, str):
            return file_uri_to_path(value) or None
        return value


class PrettifyTypeStringInput(ToolInputBase):
    type_string: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("type_string", "text", "type"),
        description="Single-line type text, e.g. copied from a hover tooltip.",
    )
    indentation: int = Field(default=2, ge=0, le=8)
    name: Optional[str] = Field(
        default=None,
        description="Symbol name; when set the output is prefixed with a declaration keyword.",
    )
    syntax_kind: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("syntax_kind", "syntaxKind", "kind"),
        description="Declaration syntax kind, e.g. `InterfaceDeclaration` or `TypeAliasDeclaration`.",
    )


class SessionStatusInput(ToolInputBase):
    clear: bool = Field(
        default=False,
        description="Drop every cached type session before reporting.",
    )


__all__ = [
    "PrettifyTypeInfoInput",
    "PrettifyTypeStringInput",
    "SessionStatusInput",
    "ToolInputBase",
    "TypeLocationInput",
    "file_uri_to_path",
]
