"""Locate the most specific syntax node covering an offset range."""

from __future__ import annotations

from typing import AbstractSet, List, Sequence, Tuple

from prettify_type_mcp.oracle import SyntaxNode

END_OF_FILE_KINDS = frozenset({"EndOfFileToken"})


def _normalize_range(range_: Sequence[int]) -> Tuple[int, int]:
    start, end = int(range_[0]), int(range_[1])
    if start > end:
        start, end = end, start
    return max(0, start), max(0, end)


def resolve_node_at_range(
    root: SyntaxNode,
    range_: Sequence[int],
    *,
    end_of_file_kinds: AbstractSet[str] = END_OF_FILE_KINDS,
) -> SyntaxNode:
    """Return the deepest node whose span contains ``range_``.

    Nodes are visited in pre-order, so among nested or identical spans the
    later node wins. When the range is empty and sits exactly between two
    adjacent nodes, the node that begins there is preferred over the one that
    ends there. End-of-file tokens never win. The root is returned when no
    descendant contains the range.
    """

    range_start, range_end = _normalize_range(range_)
    best = root
    best_start, best_end = root.start, root.end

    stack: List[SyntaxNode] = list(reversed(list(root.children)))
    while stack:
        node = stack.pop()
        start, end = node.start, node.end
        if start <= range_start and end >= range_end and node.kind not in end_of_file_kinds:
            nested = start >= best_start and end <= best_end
            touching = best_end == range_start and best_start < range_start == start
            if nested or touching:
                best, best_start, best_end = node, start, end
        stack.extend(reversed(list(node.children)))

    return best


__all__ = ["END_OF_FILE_KINDS", "resolve_node_at_range"]
