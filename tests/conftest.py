"""Pytest bootstrap and shared fixtures.

The ``pytest`` console script can run with a sys.path that excludes the
repository root. Ensure ``import media_browser`` resolves to the local package.
"""

from __future__ import annotations

import io
import random
import sys
from pathlib import Path

import pytest
from PIL import Image

PROJECT_ROOT = Path(__file__).resolve().parent.parent
PROJECT_ROOT_STR = str(PROJECT_ROOT)

if PROJECT_ROOT_STR not in sys.path:
    sys.path.insert(0, PROJECT_ROOT_STR)


def image_bytes(size=(8, 6), fmt="PNG", color=(200, 40, 40)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, fmt)
    return buffer.getvalue()


def noisy_jpeg(size=(400, 400), seed=7) -> bytes:
    """A JPEG of random noise, which compresses badly and stays large."""
    rng = random.Random(seed)
    raw = rng.randbytes(size[0] * size[1] * 3)
    buffer = io.BytesIO()
    Image.frombytes("RGB", size, raw).save(buffer, "JPEG", quality=100)
    return buffer.getvalue()


def write_image(path: Path, size=(8, 6), fmt=None) -> Path:
    fmt = fmt or ("JPEG" if path.suffix.lower() in (".jpg", ".jpeg") else "PNG")
    path.write_bytes(image_bytes(size, fmt))
    return path


@pytest.fixture
def media_root(tmp_path: Path) -> Path:
    """``a.jpg``, ``b.jpg``, ``notes.txt`` and a ``pics/`` gallery of two PNGs."""
    root = tmp_path / "media"
    root.mkdir()
    write_image(root / "a.jpg", size=(40, 30))
    write_image(root / "b.jpg", size=(20, 10))
    (root / "notes.txt").write_text("hello")
    pics = root / "pics"
    pics.mkdir()
    write_image(pics / "1.png", size=(16, 9))
    write_image(pics / "2.png", size=(16, 9))
    return root
