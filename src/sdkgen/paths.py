"""Repository and module discovery for the Azure SDK for Java layout.

Walks parent directories from a starting path until a directory contains a
full set of marker files.

Design follows Function Core / Imperative Shell:
- Constants: REPO_ROOT_MARKERS, MODULE_MARKERS
- Filesystem queries: has_markers, find_root
- Composed lookups: find_repo_root, find_module_directory, locate_module
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from pathlib import Path

from sdkgen.errors import SdkgenError
from sdkgen.models import ModuleLocation

logger = logging.getLogger(__name__)

# pom.xml, sdk and eng are present at the root of the Azure SDK for Java.
REPO_ROOT_MARKERS: frozenset[str] = frozenset({"pom.xml", "sdk", "eng"})

# pom.xml and src are present in every SDK module directory.
MODULE_MARKERS: frozenset[str] = frozenset({"pom.xml", "src"})


class RootNotFoundError(SdkgenError):
    """No ancestor directory satisfied any of the marker sets."""


def has_markers(directory: Path, markers: Iterable[str]) -> bool:
    """Return True if every marker name exists in *directory* (file or directory)."""
    return all((directory / name).exists() for name in markers)


def find_root(start_path: str | Path, marker_sets: Sequence[Iterable[str]]) -> Path:
    """Find the nearest ancestor of *start_path* satisfying a marker set.

    The search begins at the parent of *start_path* and moves up one level
    at a time. At each level the marker sets are tried in order and the
    first fully satisfied one wins. The walk ends at the filesystem root,
    so it takes at most as many steps as *start_path* is deep.

    Raises:
        RootNotFoundError: If the filesystem root is reached without a match.
    """
    start = Path(start_path).absolute()
    sets = [tuple(markers) for markers in marker_sets]

    current = start.parent
    while True:
        for markers in sets:
            if has_markers(current, markers):
                logger.debug("Found %s in %s", sorted(markers), current)
                return current
        parent = current.parent
        if parent == current:
            break
        current = parent

    msg = f"No directory matching {[sorted(m) for m in sets]} found above {start}"
    raise RootNotFoundError(msg)


def find_repo_root(path: str | Path) -> Path:
    """Find the Azure SDK for Java repository root above *path*."""
    try:
        return find_root(path, [REPO_ROOT_MARKERS])
    except RootNotFoundError:
        msg = f"Azure SDK root not found from module directory: {path}"
        raise RootNotFoundError(msg) from None


def find_module_directory(path: str | Path) -> Path:
    """Find the SDK module directory containing *path*.

    *path* is a file or directory inside the module, e.g. its
    ``tsp-location.yaml`` or a jar under ``target/``.
    """
    try:
        return find_root(path, [MODULE_MARKERS])
    except RootNotFoundError:
        msg = f"Azure SDK module not found from source: {path}"
        raise RootNotFoundError(msg) from None


def locate_module(path: str | Path) -> ModuleLocation:
    """Resolve both the module directory containing *path* and its repository root."""
    module_root = find_module_directory(path)
    repo_root = find_repo_root(module_root)
    return ModuleLocation(module_root=module_root, repo_root=repo_root)
