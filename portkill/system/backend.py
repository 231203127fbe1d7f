"""
Locates an optional port-kill backend executable.

The engine does not need it; it is reported to the shell for display and for
tools that prefer to delegate to the native backend.
"""
import logging
import os
import shutil
from typing import List, Optional

from ..errors import BackendNotFound

BACKEND_NAME = "port-kill"

DEFAULT_BACKEND_PATHS = [
    "../zig-backend/zig-out/bin/port-kill",
    "../../zig-backend/zig-out/bin/port-kill",
    "./zig-backend/zig-out/bin/port-kill",
    "/usr/local/bin/port-kill",
]


def find_backend_executable(configured_path: str = "", candidates: Optional[List[str]] = None) -> Optional[str]:
    """
    Finds the first existing backend executable.

    A configured path wins when it exists. Otherwise the candidate paths are
    tried in order, then the PATH. Returns None if nothing is found.
    """
    search = []
    if configured_path:
        search.append(configured_path)
    search.extend(DEFAULT_BACKEND_PATHS if candidates is None else candidates)

    for path in search:
        expanded = os.path.expanduser(path)
        if os.path.isfile(expanded):
            logging.debug(f"Found backend executable at {expanded}")
            return os.path.abspath(expanded)

    on_path = shutil.which(BACKEND_NAME)
    if on_path:
        return on_path

    logging.debug(f"No backend executable found in {search}")
    return None


def require_backend_executable(configured_path: str = "", candidates: Optional[List[str]] = None) -> str:
    """Like find_backend_executable, but raises BackendNotFound on failure."""
    path = find_backend_executable(configured_path, candidates)
    if path is None:
        searched = ([configured_path] if configured_path else []) + list(
            DEFAULT_BACKEND_PATHS if candidates is None else candidates
        )
        raise BackendNotFound(searched)
    return path
