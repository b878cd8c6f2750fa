from __future__ import annotations

from typing import List, Optional

from mcp.server.auth.provider import AccessToken, TokenVerifier


def _utf16_index_to_py_index(text: str, utf16_index: int) -> int | None:
    """Convert an LSP UTF-16 column index into a Python string index."""
    if utf16_index < 0:
        return None

    units = 0
    for idx, ch in enumerate(text):
        next_units = units + (2 if ord(ch) > 0xFFFF else 1)
        if utf16_index < next_units:
            return idx
        if utf16_index == next_units:
            return idx + 1
        units = next_units
    if units >= utf16_index:
        return len(text)
    return None


def position_to_offset(content: str, line: int, column: int) -> int | None:
    """Return the string offset of a 1-based ``line``/``column`` position.

    Columns count UTF-16 code units, as editors report them. The position just
    past the end of a line is valid; anything further returns ``None``.
    """
    lines: List[str] = content.splitlines(keepends=True) or [""]
    if content.endswith(("\n", "\r")):
        lines.append("")
    if line < 1 or line > len(lines):
        return None

    offset = sum(len(text) for text in lines[: line - 1])
    body = (lines[line - 1].splitlines() or [""])[0]
    index = _utf16_index_to_py_index(body, column - 1)
    if index is None:
        return None
    return offset + index


def format_line(
    file_content: str,
    line_number: int,
    column: Optional[int] = None,
    cursor_tag: Optional[str] = "<cursor>",
) -> str:
    """Show a line with an optional cursor marker.

    Args:
        file_content (str): The content of the file.
        line_number (int): The line number (1-indexed).
        column (Optional[int]): The column number (1-indexed). If None, no cursor position is shown.
        cursor_tag (Optional[str]): The tag to use for the cursor position. Defaults to "<cursor>".
    Returns:
        str: The formatted line.
    """
    lines = file_content.splitlines()
    line_number -= 1
    if line_number < 0 or line_number >= len(lines):
        return "Line number out of range"
    line = lines[line_number]
    if column is None:
        return line
    column -= 1
    if column < 0 or column > len(line):
        return "Invalid column number"
    return f"{line[:column]}{cursor_tag}{line[column:]}"


class OptionalTokenVerifier(TokenVerifier):
    def __init__(self, expected_token: str):
        self.expected_token = expected_token

    async def verify_token(self, token: str) -> AccessToken | None:
        if token == self.expected_token:
            return AccessToken(token=token, client_id="prettify-type-mcp", scopes=["user"])
        return None
