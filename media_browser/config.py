"""Command line options and server configuration."""

from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from media_browser.classifier import GALLERY_SCAN_DEPTH
from media_browser.transcoder import (
    DEFAULT_QUALITY,
    DEFAULT_THRESHOLD_BYTES,
    LOCALITY_MODES,
    TranscodeSettings,
)

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3000
DEFAULT_REQUEST_TIMEOUT = 60.0
LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"


@dataclass(frozen=True)
class ServerConfig:
    root: Path
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    transcode: TranscodeSettings = field(default_factory=TranscodeSettings)
    gallery_depth: int = GALLERY_SCAN_DEPTH
    request_timeout: Optional[float] = DEFAULT_REQUEST_TIMEOUT
    open_browser: bool = False
    verbose: bool = False

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "ServerConfig":
        root = args.root.expanduser().resolve()
        if not root.exists():
            raise FileNotFoundError(f"Media directory not found: {root}")
        if not root.is_dir():
            raise NotADirectoryError(f"Media root is not a directory: {root}")
        if not 1 <= args.quality <= 95:
            raise ValueError(f"JPEG quality must be between 1 and 95, got {args.quality}")
        if args.transcode_threshold < 0:
            raise ValueError("Transcode threshold cannot be negative")

        timeout = args.request_timeout if args.request_timeout and args.request_timeout > 0 else None
        return cls(
            root=root,
            host=args.host,
            port=args.port,
            transcode=TranscodeSettings(
                quality=args.quality,
                threshold_bytes=args.transcode_threshold,
                locality=args.locality,
            ),
            gallery_depth=0 if args.no_galleries else GALLERY_SCAN_DEPTH,
            request_timeout=timeout,
            open_browser=args.open_browser,
            verbose=args.verbose,
        )


def parse_args(argv: Optional[Iterable[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Browse and download a media directory over HTTP.")
    parser.add_argument(
        "--root",
        type=Path,
        default=Path.cwd(),
        help="Directory to serve (default: current working directory)",
    )
    parser.add_argument("--host", default=DEFAULT_HOST, help=f"Host to bind (default: {DEFAULT_HOST})")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help=f"Port to listen on (default: {DEFAULT_PORT})")
    parser.add_argument(
        "--quality",
        type=int,
        default=DEFAULT_QUALITY,
        help=f"JPEG quality used when shrinking images for remote clients (default: {DEFAULT_QUALITY})",
    )
    parser.add_argument(
        "--transcode-threshold",
        type=int,
        default=DEFAULT_THRESHOLD_BYTES,
        help=f"Only images larger than this many bytes are shrunk (default: {DEFAULT_THRESHOLD_BYTES})",
    )
    parser.add_argument(
        "--locality",
        choices=LOCALITY_MODES,
        default="address",
        help="How local clients are recognised: socket address or Host header (default: address)",
    )
    parser.add_argument(
        "--request-timeout",
        type=float,
        default=DEFAULT_REQUEST_TIMEOUT,
        help=f"Socket timeout per request in seconds, 0 disables it (default: {DEFAULT_REQUEST_TIMEOUT:g})",
    )
    parser.add_argument(
        "--no-galleries",
        action="store_true",
        help="List image folders as plain directories instead of galleries.",
    )
    parser.add_argument("--open-browser", action="store_true", help="Open the served URL in a browser.")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging output.")
    return parser.parse_args(list(argv) if argv is not None else None)


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format=LOG_FORMAT)
