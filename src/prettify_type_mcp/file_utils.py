from __future__ import annotations

import os
from typing import Iterable, Optional

from prettify_type_mcp.session_cache import ProjectConfigNotFoundError

DEFAULT_CONFIG_NAME = "type-graph.json"


def get_relative_file_path(project_root: str, file_path: str) -> Optional[str]:
    """Return ``file_path`` relative to ``project_root`` if it lies inside it.

    Relative inputs are tried against the project root first, then the working
    directory. Files need not exist; snapshot documents are matched by path.
    """

    root = os.path.abspath(project_root)
    if os.path.isabs(file_path):
        candidates = [os.path.abspath(file_path)]
    else:
        candidates = [
            os.path.abspath(os.path.join(root, file_path)),
            os.path.abspath(os.path.join(os.getcwd(), file_path)),
        ]

    for candidate in candidates:
        try:
            if os.path.commonpath([candidate, root]) == root:
                return os.path.relpath(candidate, root).replace(os.sep, "/")
        except ValueError:
            continue
    return None


def iter_parent_dirs(path: str) -> Iterable[str]:
    """Yield ``path`` (or its directory, for files) and every ancestor."""

    current = os.path.abspath(path)
    if not os.path.isdir(current):
        current = os.path.dirname(current)
    while True:
        yield current
        parent = os.path.dirname(current)
        if parent == current:
            return
        current = parent


def find_project_config(file_path: str, config_name: str = DEFAULT_CONFIG_NAME) -> str:
    """Locate the project configuration governing ``file_path``.

    ``config_name`` may be an absolute path, used as is when it exists, or a
    file name searched for from the file's directory upwards.
    """

    if os.path.isabs(config_name):
        if os.path.isfile(config_name):
            return config_name
        raise ProjectConfigNotFoundError(f"Configured snapshot {config_name} does not exist.")

    for directory in iter_parent_dirs(file_path):
        candidate = os.path.join(directory, config_name)
        if os.path.isfile(candidate):
            return candidate
    raise ProjectConfigNotFoundError(
        f"Could not find {config_name} in any directory above {file_path}."
    )


__all__ = [
    "DEFAULT_CONFIG_NAME",
    "find_project_config",
    "get_relative_file_path",
    "iter_parent_dirs",
]
