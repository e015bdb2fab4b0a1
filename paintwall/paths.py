"""
Path sandboxing for user-supplied paths (uploads, static files).

Two policies:
- resolve_within: nested relative paths (batch folders, trash subtree),
  rejected when they leave the root
- resolve_basename: keeps only the final path component
"""

import posixpath
from pathlib import Path, PurePosixPath, PureWindowsPath
from urllib.parse import unquote

from .errors import InvalidPathError


def resolve_within(root: Path, user_path: str, decode: bool = True) -> Path:
    """
    Resolve a URL-style relative path against root.

    Args:
        root: Sandbox directory
        user_path: Percent-encoded or plain relative path, e.g. "batch-0001/x.png"
        decode: Percent-decode user_path first. Route path parameters arrive
            already decoded and pass False

    Returns:
        Absolute path equal to root or inside it

    Raises:
        InvalidPathError: absolute paths, ".." traversal out of root, NUL bytes
    """
    decoded = (unquote(user_path or "") if decode else (user_path or "")).replace("\\", "/")
    if "\x00" in decoded:
        raise InvalidPathError()
    if PurePosixPath(decoded).is_absolute() or PureWindowsPath(decoded).drive:
        raise InvalidPathError()

    normalized = posixpath.normpath(decoded) if decoded else "."
    if normalized == ".." or normalized.startswith("../"):
        raise InvalidPathError()

    root_resolved = root.resolve()
    resolved = (root_resolved / normalized).resolve()
    if resolved != root_resolved and root_resolved not in resolved.parents:
        raise InvalidPathError()

    return resolved


def resolve_basename(root: Path, name: str) -> Path:
    """Resolve only the last component of name inside root (no nesting)."""
    decoded = unquote(name or "").replace("\\", "/")
    basename = posixpath.basename(decoded.rstrip("/"))
    if not basename or basename in (".", "..") or "\x00" in basename:
        raise InvalidPathError()
    return root.resolve() / basename


def to_relative(root: Path, path: Path) -> str:
    """POSIX-style path of path relative to root, as used in URLs and manifests."""
    return path.resolve().relative_to(root.resolve()).as_posix()
