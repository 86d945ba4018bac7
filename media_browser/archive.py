"""Stream a directory's images to a client as a zip archive.

The archive is written straight into the response stream. ``zipfile`` falls
back to data descriptors when its output is not seekable, so nothing larger
than one compression chunk is held in memory regardless of gallery size.
"""

from __future__ import annotations

import logging
import re
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, List, Optional

from media_browser.classifier import Listing, classify, image_entries
from media_browser.errors import ArchiveIOError, NoImagesError

DEFAULT_ARCHIVE_NAME = "gallery"
ZIP_COMPRESS_LEVEL = 1

_ILLEGAL_NAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')

logger = logging.getLogger(__name__)


def sanitize_archive_name(raw: str, fallback: str = DEFAULT_ARCHIVE_NAME) -> str:
    cleaned = _ILLEGAL_NAME_CHARS.sub("_", raw)
    cleaned = cleaned.lstrip(".").strip()
    return cleaned or fallback


def archive_name_for(root: Path, target: Path) -> str:
    return sanitize_archive_name(target.name if target != root else root.name)


class ResponseSink:
    """Write-only stream wrapper that counts bytes and can be cut off.

    Once ``abort()`` has been called, or a write to the underlying stream has
    failed, later writes are dropped so a trailer never follows a broken entry.
    """

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream
        self.bytes_written = 0
        self.aborted = False
        self.broken = False

    @property
    def started(self) -> bool:
        return self.bytes_written > 0

    def write(self, data: bytes) -> int:
        if self.aborted or self.broken:
            return len(data)
        try:
            self._stream.write(data)
        except OSError:
            self.broken = True
            raise
        self.bytes_written += len(data)
        return len(data)

    def flush(self) -> None:
        if self.aborted or self.broken:
            return
        try:
            self._stream.flush()
        except OSError:
            self.broken = True
            raise

    def abort(self) -> None:
        self.aborted = True


@dataclass
class ArchiveSummary:
    archived: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


def eligible_images(directory: Path, listing: Optional[Listing] = None) -> List[str]:
    directory = Path(directory)
    if not directory.exists():
        raise FileNotFoundError(str(directory))
    if not directory.is_dir():
        raise NotADirectoryError(str(directory))
    if listing is None:
        listing = classify(directory)
    names = [entry.name for entry in image_entries(listing)]
    if not names:
        raise NoImagesError(f"No images found in {directory}")
    return names


def write_archive(directory: Path, names: List[str], sink: ResponseSink) -> ArchiveSummary:
    """Add ``names`` from ``directory`` to a zip written into ``sink``."""
    summary = ArchiveSummary()
    with zipfile.ZipFile(
        sink, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=ZIP_COMPRESS_LEVEL
    ) as archive:
        for name in names:
            path = directory / name
            if not path.is_file():
                logger.warning("Skipping missing file: %s", path)
                summary.skipped.append(name)
                continue

            before = sink.bytes_written
            try:
                archive.write(path, arcname=name)
            except OSError as exc:
                if sink.broken:
                    raise
                if sink.bytes_written == before:
                    logger.warning("Skipping unreadable file %s: %s", path, exc)
                    summary.skipped.append(name)
                    continue
                sink.abort()
                raise ArchiveIOError(f"Failed while archiving {path}: {exc}") from exc
            summary.archived.append(name)
    sink.flush()
    return summary


def stream_zip(directory: Path, sink: ResponseSink, listing: Optional[Listing] = None) -> ArchiveSummary:
    directory = Path(directory)
    names = eligible_images(directory, listing)
    summary = write_archive(directory, names, sink)
    logger.info(
        "Zip download completed: %s (%d files, %d skipped)",
        directory,
        len(summary.archived),
        len(summary.skipped),
    )
    return summary
