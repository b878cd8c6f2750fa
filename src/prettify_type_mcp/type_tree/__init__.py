from prettify_type_mcp.type_tree.builder import build_type_tree, get_type_info_at_position
from prettify_type_mcp.type_tree.declarations import declaration_prefix, render_type_info
from prettify_type_mcp.type_tree.display_parts import type_tree_to_display_parts
from prettify_type_mcp.type_tree.models import TypeInfo, TypeTree
from prettify_type_mcp.type_tree.position import resolve_node_at_range
from prettify_type_mcp.type_tree.pretty_print import pretty_print_type_string
from prettify_type_mcp.type_tree.stringify import stringify_type_tree

__all__ = [
    "TypeInfo",
    "TypeTree",
    "build_type_tree",
    "declaration_prefix",
    "get_type_info_at_position",
    "pretty_print_type_string",
    "render_type_info",
    "resolve_node_at_range",
    "stringify_type_tree",
    "type_tree_to_display_parts",
]
