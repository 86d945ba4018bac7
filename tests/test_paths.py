from __future__ import annotations

from pathlib import Path

import pytest

from media_browser.errors import PathEscapeError
from media_browser.paths import (
    TargetKind,
    decode_url_path,
    relative_sub_path,
    resolve_entry_path,
    resolve_request_path,
    resolve_target,
)


@pytest.fixture
def root(media_root: Path) -> Path:
    return media_root.resolve()


def test_root_url_maps_to_root(root: Path) -> None:
    assert resolve_request_path(root, "/") == root
    assert resolve_request_path(root, "") == root


def test_percent_encoded_segments_are_decoded(root: Path) -> None:
    (root / "summer trip").mkdir()

    assert resolve_request_path(root, "/summer%20trip") == root / "summer trip"
    assert decode_url_path("/a%2Fb/c%20d") == "/a/b/c d"


@pytest.mark.parametrize("url", ["/../etc/passwd", "/pics/../../x", "/%2E%2E/secret", "/..%2F..%2Fetc"])
def test_traversal_outside_root_is_rejected(root: Path, url: str) -> None:
    with pytest.raises(PathEscapeError):
        resolve_request_path(root, url)


def test_dot_dot_inside_root_is_allowed(root: Path) -> None:
    assert resolve_request_path(root, "/pics/../a.jpg") == root / "a.jpg"


def test_null_byte_is_rejected(root: Path) -> None:
    with pytest.raises(PathEscapeError):
        resolve_request_path(root, "/a.jpg%00.png")


def test_symlink_escaping_root_is_rejected(root: Path, tmp_path: Path) -> None:
    outside = tmp_path / "outside"
    outside.mkdir()
    (root / "escape").symlink_to(outside, target_is_directory=True)

    with pytest.raises(PathEscapeError):
        resolve_request_path(root, "/escape")


def test_path_escape_is_a_value_error() -> None:
    assert issubclass(PathEscapeError, ValueError)


def test_resolve_target_kinds(root: Path) -> None:
    assert resolve_target(root, "/pics").kind is TargetKind.DIRECTORY
    assert resolve_target(root, "/pics/1.png").kind is TargetKind.FILE
    with pytest.raises(FileNotFoundError):
        resolve_target(root, "/missing.png")


def test_relative_sub_path(root: Path) -> None:
    assert relative_sub_path(root, root) == ""
    assert relative_sub_path(root, root / "pics") == "/pics"


def test_entry_path_keeps_final_symlink(root: Path) -> None:
    (root / "pics-link").symlink_to(root / "pics", target_is_directory=True)

    assert resolve_entry_path(root, "/pics-link") == root / "pics-link"
    assert resolve_request_path(root, "/pics-link") == root / "pics"


def test_entry_path_normalises_dot_segments(root: Path) -> None:
    assert resolve_entry_path(root, "/") == root
    assert resolve_entry_path(root, "/pics/..") == root
    assert resolve_entry_path(root, "/pics/../a.jpg") == root / "a.jpg"


@pytest.mark.parametrize("url", ["/..", "/../a.jpg", "/%2E%2E/%2E%2E/etc", "/a.jpg%00"])
def test_entry_path_outside_root_is_rejected(root: Path, url: str) -> None:
    with pytest.raises(PathEscapeError):
        resolve_entry_path(root, url)
