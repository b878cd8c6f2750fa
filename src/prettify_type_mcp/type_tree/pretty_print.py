"""Text-level reflow of stringified declarations.

This pass deliberately works on text rather than on the tree: the stringifier
keeps a single-line grammar and every cosmetic rule lives here. Running the
printer on its own output returns that output unchanged.
"""

from __future__ import annotations

import re
from typing import List

_OPTIONAL_MEMBER = re.compile(
    r"^(?P<readonly>(?:readonly\s+)?)"
    r"(?P<name>\"(?:[^\"\\]|\\.)*\"|[A-Za-z_$][\w$]*)"
    r"\??: (?P<type>.+?)(?P<end>;?)$"
)
_IMPORT_PATH = re.compile(r'typeof import\("([^"]*)"\)')
_EMPTY_BRACES = re.compile(r"\{\s*\}")
_EXCESS_ONLY_BRACES = re.compile(r"\{\s*\.\.\.\s*(\d+)\s*more;?\s*\}")
_TEMPLATE_PLACEHOLDER = re.compile(r"\$\{\s*([^{}]+?)\s*\}")
_WINDOWS_DRIVE = re.compile(r"^[A-Za-z]:[\\/]")


def _optional_sugar(line: str) -> str:
    """Rewrite ``name: X | undefined;`` as ``name?: X;``."""

    match = _OPTIONAL_MEMBER.match(line)
    if match is None:
        return line
    original_type = member_type = match.group("type")
    # A trailing union after an arrow belongs to the return type.
    if "=>" in member_type:
        return line
    while True:
        if member_type.endswith(" | undefined"):
            member_type = member_type[: -len(" | undefined")]
        elif member_type.startswith("undefined | "):
            member_type = member_type[len("undefined | ") :]
        else:
            break
    if member_type == original_type or not member_type.strip():
        return line
    return f"{match.group('readonly')}{match.group('name')}?: {member_type.rstrip()}{match.group('end')}"


def strip_import_path(path: str) -> str:
    """Keep only the module part of an import path.

    ``/repo/node_modules/zod/lib/index`` becomes ``zod/lib/index`` and an
    absolute or relative file path keeps its last segment; bare specifiers are
    left alone.
    """

    normalized = path.replace("\\", "/")
    if "node_modules/" in normalized:
        return normalized.rsplit("node_modules/", 1)[1]
    if normalized.startswith(("/", "./", "../")) or _WINDOWS_DRIVE.match(path):
        return normalized.rstrip("/").rsplit("/", 1)[-1]
    return path


def _strip_import_paths(text: str) -> str:
    return _IMPORT_PATH.sub(lambda m: f'typeof import("{strip_import_path(m.group(1))}")', text)


def pretty_print_type_string(text: str, indentation: int = 2) -> str:
    """Reflow ``text`` one member per line with ``indentation`` spaces per level."""

    if indentation < 1:
        return text

    split_text = text.replace("{", "{\n").replace("}", "\n}").replace(";", ";\n")

    depth = 0
    lines: List[str] = []
    for raw_line in split_text.split("\n"):
        line = raw_line.strip()
        if not line:
            continue
        if "}" in line:
            depth = max(0, depth - 1)
        lines.append(" " * (indentation * depth) + _optional_sugar(line))
        if "{" in line:
            depth += 1

    result = _strip_import_paths("\n".join(lines))
    result = _EMPTY_BRACES.sub("{}", result)
    result = _EXCESS_ONLY_BRACES.sub(r"{ ... \1 more }", result)
    result = _TEMPLATE_PLACEHOLDER.sub(r"${\1}", result)
    result = "\n".join(line for line in result.split("\n") if line.strip())
    return result.rstrip("\n")


def sanitize_type_string(text: str) -> str:
    """Reduce a declaration to a whitespace-free form for comparisons."""

    sanitized = re.sub(r"^[a-z]+\s", "", text)
    sanitized = re.sub(r"\s", "", sanitized)
    sanitized = sanitized.replace(";", "")
    return re.sub(r"\b[a-zA-Z_][a-zA-Z0-9_]*\.", "", sanitized)


__all__ = ["pretty_print_type_string", "sanitize_type_string", "strip_import_path"]
