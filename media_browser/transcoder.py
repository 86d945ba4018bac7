"""Shrink large images for remote clients before they go over the wire."""

from __future__ import annotations

import io
import ipaddress
import logging
from dataclasses import dataclass
from typing import Optional

from PIL import Image, ImageOps

from media_browser.content_types import is_image
from media_browser.errors import TranscodeError

DEFAULT_QUALITY = 80
DEFAULT_THRESHOLD_BYTES = 100_000
LOCALITY_MODES = ("address", "header")
LOCAL_HOST_MARKERS = ("localhost", "127.0.0.1")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TranscodeSettings:
    quality: int = DEFAULT_QUALITY
    threshold_bytes: int = DEFAULT_THRESHOLD_BYTES
    locality: str = "address"


def _is_loopback_address(address: Optional[str]) -> Optional[bool]:
    if not address:
        return None
    try:
        ip = ipaddress.ip_address(address.split("%", 1)[0])
    except ValueError:
        return None
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    return ip.is_loopback


def is_local_client(
    client_address: Optional[str],
    host_header: Optional[str],
    locality: str = "address",
) -> bool:
    """Decide whether a request comes from the machine serving it.

    The socket address wins; the ``Host`` header is consulted only when the
    address is missing or not an IP, or when ``locality`` is ``"header"``.
    """
    if locality == "address":
        by_address = _is_loopback_address(client_address)
        if by_address is not None:
            return by_address
    host = (host_header or "").lower()
    return any(marker in host for marker in LOCAL_HOST_MARKERS)


def should_transcode(
    size: int,
    content_type: str,
    is_local: bool,
    compress_opt_out: bool,
    settings: TranscodeSettings = TranscodeSettings(),
) -> bool:
    return (
        is_image(content_type)
        and not is_local
        and size > settings.threshold_bytes
        and not compress_opt_out
    )


def transcode_to_jpeg(data: bytes, quality: int) -> bytes:
    try:
        with Image.open(io.BytesIO(data)) as img:
            if getattr(img, "n_frames", 1) > 1:
                raise TranscodeError("animated images are sent unchanged")
            img = ImageOps.exif_transpose(img)
            if img.mode in ("RGBA", "LA", "P"):
                img = img.convert("RGBA")
                background = Image.new("RGB", img.size, (16, 16, 16))
                background.paste(img, mask=img.split()[3])
                img = background
            elif img.mode != "RGB":
                img = img.convert("RGB")
            buffer = io.BytesIO()
            img.save(buffer, "JPEG", quality=quality, optimize=True)
    except TranscodeError:
        raise
    except Exception as exc:  # noqa: BLE001 - Pillow raises a wide range of decoder errors
        raise TranscodeError(str(exc)) from exc
    return buffer.getvalue()


def maybe_transcode(
    data: bytes,
    content_type: str,
    is_local: bool,
    compress_opt_out: bool,
    settings: TranscodeSettings = TranscodeSettings(),
) -> bytes:
    """Return JPEG re-encoded bytes when the policy allows it, else ``data``.

    A failed re-encode falls back to the original bytes.
    """
    if not should_transcode(len(data), content_type, is_local, compress_opt_out, settings):
        return data
    try:
        encoded = transcode_to_jpeg(data, settings.quality)
    except TranscodeError as exc:
        logger.warning("Sending original %s bytes, transcode failed: %s", content_type, exc)
        return data
    logger.debug("Transcoded %s from %d to %d bytes", content_type, len(data), len(encoded))
    return encoded
