"""Turn a directory into a typed listing of files, directories and image galleries.

Only immediate children are examined. A child directory is inspected one level
deeper (``GALLERY_SCAN_DEPTH``) to decide whether it is an image gallery: it
must be non-empty and every visible child inside it must be a regular file
(symlinks followed) whose name resolves to an image content type. A directory
holding a sub-directory is never a gallery, whatever the sub-directory is named.
"""

from __future__ import annotations

import enum
import logging
import os
import stat
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from PIL import Image, UnidentifiedImageError

from media_browser.content_types import is_image, resolve_content_type

GALLERY_SCAN_DEPTH = 1

logger = logging.getLogger(__name__)


class EntryKind(enum.Enum):
    FILE = "file"
    DIRECTORY = "directory"
    IMAGE_GALLERY = "imageDirectory"


@dataclass
class Entry:
    name: str
    kind: EntryKind
    last_modified: datetime
    content_type: Optional[str] = None
    thumbnail_path: Optional[str] = None
    image_width: Optional[int] = None
    image_height: Optional[int] = None
    image_count: Optional[int] = None

    @property
    def is_image_file(self) -> bool:
        return self.kind is EntryKind.FILE and is_image(self.content_type or "")

    def to_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "name": self.name,
            "type": self.kind.value,
            "lastModified": self.last_modified.isoformat().replace("+00:00", "Z"),
        }
        optional = {
            "contentType": self.content_type,
            "thumbnailPath": self.thumbnail_path,
            "imageWidth": self.image_width,
            "imageHeight": self.image_height,
            "imageCount": self.image_count,
        }
        payload.update({key: value for key, value in optional.items() if value is not None})
        return payload


@dataclass
class Listing:
    root_path: str
    sub_path: str
    entries: List[Entry] = field(default_factory=list)

    def entry(self, name: str) -> Entry:
        for candidate in self.entries:
            if candidate.name == name:
                return candidate
        raise KeyError(name)

    def to_dict(self) -> Dict[str, object]:
        return {
            "rootPath": self.root_path,
            "subPath": self.sub_path,
            "files": [entry.to_dict() for entry in self.entries],
        }


def is_hidden(name: str) -> bool:
    return name.startswith(".")


def visible_names(directory: Path) -> List[str]:
    """Names inside ``directory`` in enumeration order, hidden ones removed."""
    return [name for name in os.listdir(directory) if not is_hidden(name)]


def probe_dimensions(path: Path) -> Optional[Tuple[int, int]]:
    # Image.open reads the header only; pixel data is never decoded here.
    try:
        with Image.open(path) as img:
            return img.size
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        logger.debug("Unable to read dimensions of %s: %s", path, exc)
        return None


def _modified_at(stat_result: os.stat_result) -> datetime:
    return datetime.fromtimestamp(stat_result.st_mtime, tz=timezone.utc)


def _file_entry(path: Path, stat_result: os.stat_result) -> Entry:
    content_type = resolve_content_type(path.name)
    entry = Entry(
        name=path.name,
        kind=EntryKind.FILE,
        last_modified=_modified_at(stat_result),
        content_type=content_type,
    )
    if is_image(content_type):
        size = probe_dimensions(path)
        if size:
            entry.image_width, entry.image_height = size
    return entry


def _gallery_images(path: Path) -> List[str]:
    """Names of the visible children of ``path`` if all of them are image files, else ``[]``."""
    with os.scandir(path) as it:
        children = [child for child in it if not is_hidden(child.name)]
    for child in children:
        if not is_image(resolve_content_type(child.name)) or not child.is_file():
            return []
    return [child.name for child in children]


def _directory_entry(path: Path, stat_result: os.stat_result, gallery_depth: int) -> Entry:
    entry = Entry(
        name=path.name,
        kind=EntryKind.DIRECTORY,
        last_modified=_modified_at(stat_result),
    )
    if gallery_depth < 1:
        return entry

    try:
        inner = _gallery_images(path)
    except OSError as exc:
        logger.warning("Unable to list %s, treating it as a plain directory: %s", path, exc)
        return entry

    if not inner:
        return entry

    entry.kind = EntryKind.IMAGE_GALLERY
    entry.thumbnail_path = f"{path.name}/{inner[0]}"
    entry.image_count = len(inner)
    size = probe_dimensions(path / inner[0])
    if size:
        entry.image_width, entry.image_height = size
    return entry


def classify_child(path: Path, gallery_depth: int = GALLERY_SCAN_DEPTH) -> Optional[Entry]:
    """Classify one directory child, or return ``None`` if it cannot be read."""
    try:
        stat_result = path.stat()
    except OSError as exc:
        logger.warning("Skipping %s: %s", path, exc)
        return None

    if stat.S_ISDIR(stat_result.st_mode):
        return _directory_entry(path, stat_result, gallery_depth)
    return _file_entry(path, stat_result)


def classify(
    directory: Path,
    root: Optional[Path] = None,
    sub_path: str = "",
    gallery_depth: int = GALLERY_SCAN_DEPTH,
) -> Listing:
    directory = Path(directory)
    if not directory.exists():
        raise FileNotFoundError(str(directory))
    if not directory.is_dir():
        raise NotADirectoryError(str(directory))

    entries: List[Entry] = []
    for name in visible_names(directory):
        entry = classify_child(directory / name, gallery_depth)
        if entry is not None:
            entries.append(entry)

    return Listing(
        root_path=str(root if root is not None else directory),
        sub_path=sub_path,
        entries=entries,
    )


def image_entries(listing: Listing) -> List[Entry]:
    return [entry for entry in listing.entries if entry.is_image_file]
