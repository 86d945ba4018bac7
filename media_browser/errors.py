"""Exceptions raised by the media browser beyond the built-in OS errors."""

from __future__ import annotations


class MediaBrowserError(Exception):
    pass


class PathEscapeError(MediaBrowserError, ValueError):
    """A request path resolved outside the served root."""


class NoImagesError(MediaBrowserError):
    """A zip was requested for a directory without image files."""


class ArchiveIOError(MediaBrowserError, OSError):
    """The archive could not be completed after streaming had started."""


class TranscodeError(MediaBrowserError):
    pass


class RootDeletionError(MediaBrowserError, ValueError):
    """A delete request named the served root itself."""
