"""Project-root scoped path resolution for placeholders and file requests."""

from __future__ import annotations

import os
import posixpath
from collections.abc import Iterator
from pathlib import Path, PurePosixPath, PureWindowsPath

from loguru import logger

from .errors import PathNotFoundError, PathResolutionError, PathSecurityError

GLOB_CHARS = frozenset("*?[")


def resolve_paths(path_expr: str, root: Path, *, lenient: bool = False) -> list[Path]:
    """Resolve a literal path, glob or directory into files under ``root``.

    Strict mode raises on the first path that escapes the root. Lenient mode,
    used for model-originated requests, drops offending entries and returns
    whatever remains (possibly nothing).
    """

    root = root.resolve()
    try:
        expr = _normalize(path_expr)
        candidates = _candidates(expr, root)
    except PathResolutionError as exc:
        if not lenient:
            raise
        logger.debug("paths.drop expr={} reason={}", path_expr, exc)
        return []

    files: dict[str, Path] = {}
    for candidate in candidates:
        label = relative_label(candidate, root)
        if not is_within_root(candidate, root):
            if not lenient:
                raise PathSecurityError(f"'{label}' resolves outside the project root")
            logger.debug("paths.drop expr={} path={} reason=outside_root", path_expr, label)
            continue
        files[label] = candidate

    if not files:
        if lenient:
            return []
        raise PathNotFoundError(f"no files match '{path_expr}'")
    return [files[label] for label in sorted(files)]


def render_tree(path_expr: str, root: Path) -> str:
    """Render a nested listing of one directory under ``root``."""

    root = root.resolve()
    expr = _normalize(path_expr)
    if _is_glob(expr):
        raise PathResolutionError(f"directory trees do not accept glob patterns: '{path_expr}'")
    target = root / expr
    if not is_within_root(target, root):
        raise PathSecurityError(f"'{path_expr}' resolves outside the project root")
    if not target.is_dir():
        raise PathNotFoundError(f"directory not found: '{path_expr}'")

    lines = list(_tree_lines(target, root, depth=0))
    body = "\n".join(lines) + "\n" if lines else "(empty directory)\n"
    return f"Contents of directory {relative_label(target, root)}:\n```\n{body}```\n"


def relative_label(path: Path, root: Path) -> str:
    """Return the POSIX path of ``path`` relative to ``root``."""
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return path.as_posix()


def is_within_root(path: Path, root: Path) -> bool:
    """Check that the canonical target of ``path`` stays under the canonical root."""
    try:
        return path.resolve().is_relative_to(root)
    except (OSError, RuntimeError):
        return False


def _normalize(path_expr: str) -> str:
    expr = path_expr.strip()
    if not expr:
        raise PathSecurityError("empty path")
    if expr.startswith("~"):
        raise PathSecurityError(f"home-relative paths are not allowed: '{path_expr}'")
    if expr.startswith(("/", "\\")) or PurePosixPath(expr).is_absolute() or PureWindowsPath(expr).drive:
        raise PathSecurityError(f"absolute paths are not allowed: '{path_expr}'")

    normalized = posixpath.normpath(expr.replace("\\", "/"))
    if normalized == ".." or normalized.startswith("../"):
        raise PathSecurityError(f"parent traversal is not allowed: '{path_expr}'")
    return normalized


def _is_glob(expr: str) -> bool:
    return any(ch in GLOB_CHARS for ch in expr)


def _candidates(expr: str, root: Path) -> list[Path]:
    # a literal file whose name contains glob characters wins over pattern matching
    if _is_glob(expr) and not (root / expr).is_file():
        try:
            matches = list(root.glob(expr))
        except (ValueError, NotImplementedError) as exc:
            raise PathResolutionError(f"invalid glob pattern '{expr}': {exc!s}") from exc
        return [path for path in matches if path.is_file()]

    target = root / expr
    if not is_within_root(target, root):
        raise PathSecurityError(f"'{expr}' resolves outside the project root")
    if target.is_dir():
        return list(_walk_files(target))
    if target.is_file():
        return [target]
    return []


def _walk_files(directory: Path) -> Iterator[Path]:
    for dirpath, dirnames, filenames in os.walk(directory):
        dirnames.sort()
        for name in sorted(filenames):
            path = Path(dirpath) / name
            if path.is_file():
                yield path


def _tree_lines(directory: Path, root: Path, *, depth: int) -> Iterator[str]:
    try:
        entries = sorted(directory.iterdir(), key=lambda entry: entry.name)
    except OSError as exc:
        logger.warning("paths.tree.unreadable path={} error={}", directory, exc)
        return

    indent = "  " * depth
    for entry in entries:
        if not is_within_root(entry, root):
            continue
        if entry.is_dir():
            yield f"{indent}{entry.name}/"
            if not entry.is_symlink():
                yield from _tree_lines(entry, root, depth=depth + 1)
        else:
            yield f"{indent}{entry.name}"
