"""Mapping request paths onto the served root directory."""

from __future__ import annotations

import enum
import os
import posixpath
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import unquote

from media_browser.errors import PathEscapeError


class TargetKind(enum.Enum):
    FILE = "file"
    DIRECTORY = "directory"


@dataclass(frozen=True)
class ResolvedTarget:
    kind: TargetKind
    absolute_path: Path


def decode_url_path(url_path: str) -> str:
    return "/".join(unquote(segment) for segment in url_path.split("/"))


def _decoded_relative(url_path: str) -> str:
    decoded = decode_url_path(url_path)
    if "\0" in decoded:
        raise PathEscapeError("Null bytes are not permitted in paths")
    return decoded.lstrip("/")


def _contained(root: Path, relative: str) -> Path:
    full_path = (root / relative).resolve()
    if root == full_path:
        return full_path
    if root not in full_path.parents:
        raise PathEscapeError("Requested path escapes the media root")
    return full_path


def resolve_request_path(root: Path, url_path: str) -> Path:
    """Join a percent-encoded URL path onto ``root`` and canonicalise it.

    Raises ``PathEscapeError`` if the canonical path leaves ``root``.
    """
    return _contained(root, _decoded_relative(url_path))


def resolve_entry_path(root: Path, url_path: str) -> Path:
    """Like ``resolve_request_path`` but leaves the final component unresolved.

    Only the parent directory is canonicalised and checked against ``root``, so
    a symlink named by the URL stays a symlink instead of becoming its target.
    """
    relative = posixpath.normpath(_decoded_relative(url_path) or ".")
    if relative == ".":
        return root
    parent, name = posixpath.split(relative)
    if name == "..":
        raise PathEscapeError("Requested path escapes the media root")
    return _contained(root, parent) / name


def resolve_target(root: Path, url_path: str) -> ResolvedTarget:
    path = resolve_request_path(root, url_path)
    if path.is_dir():
        return ResolvedTarget(TargetKind.DIRECTORY, path)
    if path.is_file():
        return ResolvedTarget(TargetKind.FILE, path)
    raise FileNotFoundError(decode_url_path(url_path))


def relative_sub_path(root: Path, target: Path) -> str:
    if target == root:
        return ""
    return "/" + str(target.relative_to(root)).replace(os.sep, "/")
