INSTRUCTIONS = """## Workflow
- You are connected to the `prettify_type_mcp` server. It renders TypeScript types from a type graph snapshot as readable, indented declarations.
- Call `prettify_type_info` with a file path and a 1-based line/column on the symbol you care about. The snapshot (`type-graph.json` by default) is found by walking up from the file.
- Call `prettify_type_string` to reflow a type string you already have, such as the one-line text of a hover tooltip.
- Use `prettify_session_status` to see which snapshots are loaded, or pass `clear=true` after regenerating one outside the server.

## Reading the output
- Object members past `maxProperties` (top level) or `maxSubProperties` (nested) are summarised as `... N more;`. Unions past `maxUnionMembers` end with `| ... N more`.
- Objects nested deeper than `maxDepth` keep only their type name. Raise `maxDepth`, or pass `full=true`, to expand further.
- Types listed in `skippedTypeNames` (and built-ins like `Date` or `RegExp`) are shown by name only.
- `structured.typeTree` holds the full tree; every node has `kind` and `typeName`.

## Positioning
- Lines and columns are 1-based. Columns count UTF-16 code units, matching editors.
- A nested LSP `position` object (`line`/`character`, 0-based) is accepted too.
- No type at a position returns `no_type`; move the cursor onto an identifier.
"""
