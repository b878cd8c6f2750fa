"""Typed response primitives for the prettify-type MCP server."""

from __future__ import annotations

from typing import Any, Dict, List, TypedDict

# ----- Error codes ---------------------------------------------------------
ERROR_BAD_REQUEST = "bad_request"
ERROR_CONFIG_NOT_FOUND = "config_not_found"
ERROR_SESSION_FAILURE = "session_failure"
ERROR_NO_TYPE = "no_type"
ERROR_INVALID_PATH = "invalid_path"
ERROR_CANCELLED = "cancelled"
ERROR_UNKNOWN = "unknown"


# ----- Shared structures ---------------------------------------------------
class FileIdentity(TypedDict):
    uri: str
    relative_path: str


class CompactPosition(TypedDict, total=False):
    l: int
    c: int


class TypeInfoPayload(TypedDict, total=False):
    file: FileIdentity
    pos: CompactPosition
    offset: int
    name: str
    syntaxKind: str | None
    declaration: str
    rendered: str
    typeTree: Dict[str, Any]
    displayParts: List[Dict[str, str]]


class TypeStringPayload(TypedDict):
    rendered: str
    indentation: int
    lineCount: int


class SessionStatusPayload(TypedDict):
    sessions: List[str]
    capacity: int
    cleared: bool


__all__ = [
    "CompactPosition",
    "FileIdentity",
    "SessionStatusPayload",
    "TypeInfoPayload",
    "TypeStringPayload",
    "ERROR_BAD_REQUEST",
    "ERROR_CANCELLED",
    "ERROR_CONFIG_NOT_FOUND",
    "ERROR_INVALID_PATH",
    "ERROR_NO_TYPE",
    "ERROR_SESSION_FAILURE",
    "ERROR_UNKNOWN",
]
