from __future__ import annotations

import os
import time
from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager
from threading import Lock
from typing import Any, Dict, List, Optional

from mcp.server.auth.settings import AuthSettings
from mcp.server.fastmcp import Context, FastMCP
from mcp.server.fastmcp.utilities.logging import get_logger
from pydantic import ValidationError

from prettify_type_mcp.file_utils import DEFAULT_CONFIG_NAME, get_relative_file_path
from prettify_type_mcp.graph_oracle import (
    GraphLanguageService,
    GraphTypeOracle,
    load_graph_session,
)
from prettify_type_mcp.instructions import INSTRUCTIONS
from prettify_type_mcp.oracle import OperationCancelled
from prettify_type_mcp.request import (
    PRETTIFY_RESPONSE_FIELD,
    CompletionProxy,
    PrettifyOptions,
    PrettifyRequest,
)
from prettify_type_mcp.response_formatter import (
    JSON_RESPONSE_FORMAT,
    apply_character_limit,
    build_markdown_summary,
    normalize_response_format,
    with_truncation_meta,
)
from prettify_type_mcp.schema import code_block, json_item, mcp_result, text_item
from prettify_type_mcp.schema_types import (
    ERROR_BAD_REQUEST,
    ERROR_CANCELLED,
    ERROR_CONFIG_NOT_FOUND,
    ERROR_INVALID_PATH,
    ERROR_NO_TYPE,
    ERROR_SESSION_FAILURE,
    ERROR_UNKNOWN,
    FileIdentity,
    SessionStatusPayload,
    TypeInfoPayload,
    TypeStringPayload,
)
from prettify_type_mcp.session_cache import (
    DEFAULT_SESSION_CAPACITY,
    DEFAULT_SESSION_TTL_SECONDS,
    ProjectConfigNotFoundError,
    SessionBuildError,
    SessionCache,
    SessionEntry,
)
from prettify_type_mcp.session_utils import session_for_file
from prettify_type_mcp.tool_inputs import (
    PrettifyTypeInfoInput,
    PrettifyTypeStringInput,
    SessionStatusInput,
)
from prettify_type_mcp.type_tree.declarations import declaration_prefix, render_type_info
from prettify_type_mcp.type_tree.display_parts import type_tree_to_display_parts
from prettify_type_mcp.type_tree.models import TypeInfo
from prettify_type_mcp.type_tree.pretty_print import pretty_print_type_string
from prettify_type_mcp.utils import OptionalTokenVerifier, format_line, position_to_offset

logger = get_logger(__name__)


READ_ONLY_ANNOTATIONS: Dict[str, Any] = {
    "readOnlyHint": True,
    "idempotentHint": True,
    "destructiveHint": False,
    "openWorldHint": False,
}


# Server and context
class AppContext:
    session_cache: SessionCache
    config_name: str
    project_cache: Dict[str, str]
    project_cache_lock: Lock

    def __init__(
        self,
        *,
        session_cache: SessionCache,
        config_name: str = DEFAULT_CONFIG_NAME,
        project_cache: Dict[str, str] | None = None,
        project_cache_lock: Lock | None = None,
    ) -> None:
        self.session_cache = session_cache
        self.config_name = config_name
        self.project_cache = project_cache if project_cache is not None else {}
        self.project_cache_lock = project_cache_lock or Lock()


def _env_number(name: str, default: float, cast=int) -> Any:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return cast(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r; using %s", name, raw, default)
        return default


def create_app_context() -> AppContext:
    """Build the lifespan state from ``PRETTIFY_TYPE_*`` environment variables."""

    config_name = os.environ.get("PRETTIFY_TYPE_CONFIG", "").strip() or DEFAULT_CONFIG_NAME
    capacity = _env_number("PRETTIFY_TYPE_CACHE_SIZE", DEFAULT_SESSION_CAPACITY)
    if capacity < 1:
        logger.warning("PRETTIFY_TYPE_CACHE_SIZE must be positive; using %s", DEFAULT_SESSION_CAPACITY)
        capacity = DEFAULT_SESSION_CAPACITY
    ttl = _env_number("PRETTIFY_TYPE_CACHE_TTL", DEFAULT_SESSION_TTL_SECONDS, cast=float)
    return AppContext(
        session_cache=SessionCache(
            load_graph_session,
            capacity=capacity,
            ttl_seconds=ttl if ttl > 0 else None,
        ),
        config_name=config_name,
    )


@asynccontextmanager
async def app_lifespan(server: FastMCP) -> AsyncIterator[AppContext]:
    context = create_app_context()
    logger.info(
        "Serving type snapshots named %s (cache size %s)",
        context.config_name,
        context.session_cache.capacity,
    )
    try:
        yield context
    finally:
        logger.info("Dropping %s cached type sessions", context.session_cache.size)
        context.session_cache.clear()


mcp_kwargs: Dict[str, Any] = dict(
    name="prettify_type_mcp",
    instructions=INSTRUCTIONS,
    lifespan=app_lifespan,
)

auth_token = os.environ.get("PRETTIFY_TYPE_MCP_TOKEN")
if auth_token:
    mcp_kwargs["auth"] = AuthSettings(
        type="optional",
        issuer_url="http://localhost/dummy-issuer",
        resource_server_url="http://localhost/dummy-resource",
    )
    mcp_kwargs["token_verifier"] = OptionalTokenVerifier(auth_token)

mcp = FastMCP(**mcp_kwargs)


def _set_response_format_hint(ctx: Context | None, response_format: Optional[str]) -> None:
    """Stash the caller's preferred response format on the request context."""

    request_context = getattr(ctx, "request_context", None)
    if request_context is not None:
        setattr(request_context, "_response_format_hint", response_format)


def _response_format(ctx: Context | None, response_format: Optional[str]) -> str:
    if response_format is None:
        request_context = getattr(ctx, "request_context", None)
        response_format = getattr(request_context, "_response_format_hint", None)
    return normalize_response_format(response_format)


class ToolError(Exception):
    """Internal control-flow exception carrying a ready-to-send MCP response."""

    def __init__(self, payload: Dict[str, Any]):
        super().__init__(payload.get("structuredContent", {}).get("message", "Tool error"))
        self.payload = payload


def _envelope(
    *,
    summary: str,
    details: List[str] | None,
    structured: Dict[str, Any] | None,
    extra: List[Dict[str, Any]],
    response_format: str,
    is_error: bool,
) -> Dict[str, Any]:
    summary_markdown = build_markdown_summary(summary, details)
    limited = apply_character_limit([text_item(summary_markdown), *extra])
    structured_payload = with_truncation_meta(structured, limited)

    if response_format == JSON_RESPONSE_FORMAT:
        structured_for_json = structured_payload or {}
        structured_for_json.setdefault("_meta", {}).setdefault("summary", summary)
        return mcp_result(
            content=[json_item(structured_for_json), *limited.items[1:]],
            structured=structured_for_json,
            is_error=is_error,
        )

    return mcp_result(content=limited.items, structured=structured_payload, is_error=is_error)


def success_result(
    *,
    summary: str,
    structured: Dict[str, Any] | None,
    start_time: float,
    ctx: Context | None = None,
    content: List[Dict[str, Any]] | None = None,
    response_format: str | None = None,
) -> Dict[str, Any]:
    extra = list(content or [])
    if extra and extra[0].get("type") == "text" and extra[0].get("text") == summary:
        extra = extra[1:]
    logger.debug("Tool succeeded in %.1fms: %s", (time.perf_counter() - start_time) * 1000, summary)
    return _envelope(
        summary=summary,
        details=None,
        structured=structured,
        extra=extra,
        response_format=_response_format(ctx, response_format),
        is_error=False,
    )


def _derive_error_hints(
    *,
    code: str | None,
    details: Dict[str, Any] | None,
    ctx: Context | None,
) -> List[str]:
    hints: List[str] = []

    def _append(text: str) -> None:
        if text not in hints:
            hints.append(text)

    lifespan = getattr(getattr(ctx, "request_context", None), "lifespan_context", None)
    config_name = getattr(lifespan, "config_name", None) or DEFAULT_CONFIG_NAME

    if code == ERROR_CONFIG_NOT_FOUND:
        _append(
            f"Export a type graph snapshot named `{config_name}` next to your project, "
            "set `PRETTIFY_TYPE_CONFIG`, or pass `config_path`."
        )

    if code == ERROR_SESSION_FAILURE:
        _append("Regenerate the snapshot; it could not be parsed or references unknown types.")
        _append("Call `prettify_session_status` with `clear=true` after replacing the file.")

    if code == ERROR_INVALID_PATH:
        documents = (details or {}).get("documents")
        if documents:
            _append("The snapshot only covers: " + ", ".join(documents[:5]))
        else:
            _append("Check that the file is part of the exported snapshot.")

    if code == ERROR_BAD_REQUEST:
        _append("Lines and columns are 1-based and must fall inside the document.")

    if code == ERROR_NO_TYPE:
        _append("Place the cursor on an identifier, such as a variable, type or property name.")

    if code == ERROR_CANCELLED:
        _append("The lookup was cancelled; retry with a smaller `maxDepth` if it keeps timing out.")

    if not hints:
        _append("If the problem persists, clear the cached sessions with `prettify_session_status`.")

    return hints


def error_result(
    *,
    message: str,
    start_time: float,
    ctx: Context | None = None,
    code: str | None = None,
    category: str | None = None,
    details: Dict[str, Any] | None = None,
    hints: List[str] | None = None,
    response_format: str | None = None,
) -> Dict[str, Any]:
    structured: Dict[str, Any] = {"message": message}
    if code:
        structured["code"] = code
    if category:
        structured["category"] = category
    if details:
        structured["details"] = details

    combined_hints: List[str] = []
    for hint in [*(hints or []), *_derive_error_hints(code=code, details=details, ctx=ctx)]:
        if hint not in combined_hints:
            combined_hints.append(hint)
    structured["hints"] = combined_hints

    detail_bullets: List[str] = []
    if code:
        detail_bullets.append(f"Code: `{code}`")
    if category:
        detail_bullets.append(f"Category: {category}")
    detail_bullets.extend(f"Hint: {hint}" for hint in combined_hints)

    logger.debug(
        "Tool failed in %.1fms: %s", (time.perf_counter() - start_time) * 1000, message
    )
    return _envelope(
        summary=f"Error: {message}",
        details=detail_bullets,
        structured=structured,
        extra=[],
        response_format=_response_format(ctx, response_format),
        is_error=True,
    )


def _identity(entry: SessionEntry, document_key: str) -> FileIdentity:
    project_root = os.path.dirname(entry.key)
    absolute = os.path.abspath(os.path.join(project_root, document_key))
    return {
        "uri": "file://" + absolute.replace(os.sep, "/"),
        "relative_path": get_relative_file_path(project_root, absolute) or document_key,
    }


class TypeSession:
    """A resolved snapshot session plus the document being inspected."""

    def __init__(self, *, entry: SessionEntry, document_key: str) -> None:
        self.entry = entry
        self.document_key = document_key
        self.identity = _identity(entry, document_key)

    @property
    def oracle(self) -> GraphTypeOracle:
        return self.entry.oracle

    @property
    def text(self) -> str:
        return self.oracle.document_text(self.document_key)


@contextmanager
def open_type_session(
    ctx: Context,
    file_path: str,
    *,
    started: float,
    config_path: Optional[str] = None,
    response_format: Optional[str] = None,
    category: str | None = None,
) -> Iterator[TypeSession]:
    """Yield a :class:`TypeSession` or raise :class:`ToolError` with a ready payload."""

    details: Dict[str, Any] = {"file_path": file_path}
    if config_path:
        details["config_path"] = config_path

    def fail(message: str, code: str, **extra: Any) -> ToolError:
        return ToolError(
            error_result(
                message=message,
                code=code,
                category=category,
                details={**details, **extra},
                start_time=started,
                ctx=ctx,
                response_format=response_format,
            )
        )

    try:
        entry = session_for_file(ctx, file_path, config_path)
    except ProjectConfigNotFoundError as exc:
        raise fail(str(exc), ERROR_CONFIG_NOT_FOUND) from exc
    except SessionBuildError as exc:
        logger.warning("Type session build failed: %s", exc)
        raise fail(str(exc), ERROR_SESSION_FAILURE, config_path=exc.config_path) from exc

    oracle: GraphTypeOracle = entry.oracle
    document_key = oracle.document_key(file_path)
    if document_key is None:
        raise fail(
            "File is not part of the type graph snapshot.",
            ERROR_INVALID_PATH,
            config_path=entry.key,
            documents=sorted(oracle.snapshot.documents),
        )

    yield TypeSession(entry=entry, document_key=document_key)


def _effective_options(params: PrettifyTypeInfoInput, entry: SessionEntry) -> PrettifyOptions:
    options = params.options
    skipped = list(dict.fromkeys([*entry.skipped_type_names, *options.skipped_type_names]))
    if params.full:
        return PrettifyOptions.full(
            hide_private_properties=options.hide_private_properties,
            skipped_type_names=skipped,
            unwrap_generic_arguments_type_names=options.unwrap_generic_arguments_type_names,
            generate_display_parts=options.generate_display_parts,
            perf_warning_threshold_ms=options.perf_warning_threshold_ms,
        )
    return options.model_copy(update={"skipped_type_names": skipped})


def _compact_pos(line: int, column: int) -> Dict[str, int]:
    return {"l": line, "c": column}


@mcp.tool(
    "prettify_type_info",
    description=(
        "Render the type of the symbol at a 1-based file position as an indented "
        "TypeScript declaration, with the bounded type tree in `structured.typeTree`."
    ),
    annotations={"title": "Prettify Type At Position", **READ_ONLY_ANNOTATIONS},
)
def prettify_type_info(ctx: Context, params: PrettifyTypeInfoInput) -> Any:
    """Resolve the symbol under the cursor and render its expanded type.

    Parameters
    ----------
    params : PrettifyTypeInfoInput
        - ``file_path`` (str): Source file covered by the snapshot.
        - ``line`` / ``column`` (int): 1-based cursor position.
        - ``config_path`` (Optional[str]): Explicit snapshot path.
        - ``options`` (PrettifyOptions): Depth, member caps, skipped names.
        - ``full`` (bool): Lift every cap for a complete rendering.
        - ``indentation`` (int = 2): Spaces per level; 0 keeps one line.

    Returns
    -------
    TypeInfo
        ``structuredContent`` carries ``name``, ``declaration``, ``rendered`` and
        ``typeTree``; ``displayParts`` is added when ``generateDisplayParts`` is set.

    Error handling
    --------------
    - Missing snapshot: ``ERROR_CONFIG_NOT_FOUND``. Broken snapshot: ``ERROR_SESSION_FAILURE``.
    - File absent from the snapshot: ``ERROR_INVALID_PATH``.
    - Position outside the document: ``ERROR_BAD_REQUEST``.
    - Nothing hoverable at the position: ``ERROR_NO_TYPE``.
    """
    started = time.perf_counter()
    line, column = params.line, params.column
    response_format = params.response_format
    _set_response_format_hint(ctx, response_format)
    category = "prettify_type_info"

    try:
        with open_type_session(
            ctx,
            params.file_path,
            started=started,
            config_path=params.config_path,
            response_format=response_format,
            category=category,
        ) as session:
            identity = session.identity
            text = session.text
            offset = position_to_offset(text, line, column)
            if offset is None:
                return error_result(
                    message=f"Position {line}:{column} is outside the document.",
                    code=ERROR_BAD_REQUEST,
                    category=category,
                    details={"file": identity["relative_path"], "line": line, "column": column},
                    start_time=started,
                    ctx=ctx,
                )

            options = _effective_options(params, session.entry)
            service = GraphLanguageService(session.oracle)
            proxy = CompletionProxy(service, service.get_type_info)
            trigger = PrettifyRequest(options=options).model_dump(by_alias=True)
            try:
                response = proxy.get_completions_at_position(
                    session.document_key, offset, {"triggerCharacter": trigger}
                )
            except OperationCancelled as exc:
                return error_result(
                    message=str(exc),
                    code=ERROR_CANCELLED,
                    category=category,
                    start_time=started,
                    ctx=ctx,
                )

            payload = response.get(PRETTIFY_RESPONSE_FIELD)
            if payload is None:
                return error_result(
                    message=f"No type information at {line}:{column}.",
                    code=ERROR_NO_TYPE,
                    category=category,
                    details={
                        "file": identity["relative_path"],
                        "line": line,
                        "column": column,
                        "context": format_line(text, line, column),
                    },
                    start_time=started,
                    ctx=ctx,
                )

            try:
                info = TypeInfo.model_validate(payload)
            except ValidationError as exc:
                logger.error("Malformed type info payload: %s", exc)
                return error_result(
                    message="The type lookup returned a malformed result.",
                    code=ERROR_UNKNOWN,
                    category=category,
                    start_time=started,
                    ctx=ctx,
                )

            rendered = render_type_info(info, params.indentation)
            structured: TypeInfoPayload = {
                "file": identity,
                "pos": _compact_pos(line, column),
                "offset": offset,
                "name": info.name,
                "syntaxKind": info.syntax_kind,
                "declaration": info.declaration,
                "rendered": rendered,
                "typeTree": info.type_tree.model_dump(by_alias=True, exclude_none=True),
            }
            if options.generate_display_parts:
                structured["displayParts"] = [
                    part.model_dump() for part in type_tree_to_display_parts(info.type_tree)
                ]

            summary = f"Type of `{info.name}` at {line}:{column}."
            return success_result(
                summary=summary,
                structured=dict(structured),
                content=[text_item(code_block(rendered))],
                start_time=started,
                ctx=ctx,
            )
    except ToolError as exc:
        return exc.payload


@mcp.tool(
    "prettify_type_string",
    description=(
        "Reflow a one-line TypeScript type string into an indented declaration, "
        "turning `x: T | undefined` into `x?: T` and shortening import paths."
    ),
    annotations={"title": "Prettify Type String", **READ_ONLY_ANNOTATIONS},
)
def prettify_type_string(ctx: Context, params: PrettifyTypeStringInput) -> Any:
    """Pretty-print raw type text without consulting a snapshot.

    When ``name`` is given the result is prefixed with the keyword that matches
    ``syntax_kind`` (``interface User ``, ``type Props = ``, ``const x: `` ...).
    """
    started = time.perf_counter()
    _set_response_format_hint(ctx, params.response_format)

    rendered = pretty_print_type_string(params.type_string, params.indentation)
    if params.name:
        rendered = declaration_prefix(params.syntax_kind, params.name) + rendered

    structured: TypeStringPayload = {
        "rendered": rendered,
        "indentation": params.indentation,
        "lineCount": rendered.count("\n") + 1,
    }
    return success_result(
        summary=f"Reflowed type ({structured['lineCount']} lines).",
        structured=dict(structured),
        content=[text_item(code_block(rendered))],
        start_time=started,
        ctx=ctx,
    )


@mcp.tool(
    "prettify_session_status",
    description="List the type graph snapshots currently loaded, optionally clearing them.",
    annotations={
        "title": "Type Session Status",
        "readOnlyHint": False,
        "idempotentHint": True,
        "destructiveHint": False,
        "openWorldHint": False,
    },
)
def prettify_session_status(ctx: Context, params: SessionStatusInput) -> Any:
    """Report cached sessions, least recently used first."""
    started = time.perf_counter()
    _set_response_format_hint(ctx, params.response_format)
    cache: SessionCache = ctx.request_context.lifespan_context.session_cache

    if params.clear:
        cache.clear()
        logger.info("Cleared cached type sessions on request")

    structured: SessionStatusPayload = {
        "sessions": list(cache.keys()),
        "capacity": cache.capacity,
        "cleared": params.clear,
    }
    count = len(structured["sessions"])
    summary = f"{count} type session{'s' if count != 1 else ''} cached."
    return success_result(
        summary=summary,
        structured=dict(structured),
        content=[text_item(path) for path in structured["sessions"]],
        start_time=started,
        ctx=ctx,
    )


__all__ = [
    "AppContext",
    "ToolError",
    "app_lifespan",
    "create_app_context",
    "error_result",
    "mcp",
    "open_type_session",
    "prettify_session_status",
    "prettify_type_info",
    "prettify_type_string",
    "success_result",
]
