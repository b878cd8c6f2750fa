from __future__ import annotations

import os
from threading import Lock
from typing import Dict, Optional

from mcp.server.fastmcp import Context
from mcp.server.fastmcp.utilities.logging import get_logger

from prettify_type_mcp.file_utils import DEFAULT_CONFIG_NAME, find_project_config, iter_parent_dirs
from prettify_type_mcp.session_cache import ProjectConfigNotFoundError, SessionEntry

logger = get_logger(__name__)


def _project_cache(lifespan) -> tuple[Dict[str, str], Lock]:
    cache: Dict[str, str] | None = getattr(lifespan, "project_cache", None)
    if cache is None:
        cache = {}
        lifespan.project_cache = cache
    lock: Lock | None = getattr(lifespan, "project_cache_lock", None)
    if lock is None:
        lock = Lock()
        lifespan.project_cache_lock = lock
    return cache, lock


def resolve_config_path(
    ctx: Context, file_path: str, config_path: Optional[str] = None
) -> str:
    """Return the absolute snapshot path that governs ``file_path``.

    Args:
        ctx: FastMCP context whose lifespan holds the directory-to-config cache.
        file_path: Source file being inspected.
        config_path: Explicit snapshot path; skips the directory search.

    Raises:
        ProjectConfigNotFoundError: No snapshot exists for the file.
    """
    if config_path:
        absolute = os.path.abspath(config_path)
        if not os.path.isfile(absolute):
            raise ProjectConfigNotFoundError(f"Snapshot {config_path} does not exist.")
        return absolute

    lifespan = ctx.request_context.lifespan_context
    cache, lock = _project_cache(lifespan)
    file_dir = os.path.dirname(os.path.abspath(file_path))

    with lock:
        cached = cache.get(file_dir)
    if cached is not None and os.path.isfile(cached):
        return cached

    config_name = getattr(lifespan, "config_name", None) or DEFAULT_CONFIG_NAME
    found = os.path.abspath(find_project_config(file_path, config_name))

    # Every directory between the file and the config shares the same answer.
    config_dir = os.path.dirname(found)
    with lock:
        for directory in iter_parent_dirs(file_dir):
            cache[directory] = found
            if directory == config_dir or not directory.startswith(config_dir):
                break
    logger.debug("Resolved %s to snapshot %s", file_path, found)
    return found


def session_for_file(
    ctx: Context, file_path: str, config_path: Optional[str] = None
) -> SessionEntry:
    """Return the cached (or freshly built) session for ``file_path``."""
    resolved = resolve_config_path(ctx, file_path, config_path)
    return ctx.request_context.lifespan_context.session_cache.get_or_create(resolved)


__all__ = ["resolve_config_path", "session_for_file"]
