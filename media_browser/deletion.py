"""Permanent removal of files and directory trees."""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)


def remove_path(path: Path) -> None:
    """Delete ``path``; directories are removed with everything beneath them.

    Symbolic links are unlinked rather than followed. Raises
    ``FileNotFoundError`` if nothing exists at ``path``. A failure part way
    through a tree stops the removal and is re-raised; entries removed before
    the failure stay removed.
    """
    path = Path(path)
    if not os.path.lexists(path):
        raise FileNotFoundError(str(path))

    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
        logger.info("Removed directory %s", path)
    else:
        path.unlink()
        logger.info("Removed file %s", path)
