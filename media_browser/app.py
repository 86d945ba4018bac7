#!/usr/bin/env python3
"""Media browser web application."""

from __future__ import annotations

import functools
import http.server
import json
import logging
import os
import webbrowser
from http import HTTPStatus
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional
from urllib.parse import ParseResult, parse_qs, quote, urlparse

from media_browser import __version__
from media_browser.archive import ResponseSink, archive_name_for, eligible_images, write_archive
from media_browser.classifier import classify
from media_browser.config import ServerConfig, configure_logging, parse_args
from media_browser.content_types import resolve_content_type
from media_browser.deletion import remove_path
from media_browser.errors import ArchiveIOError, NoImagesError, PathEscapeError, RootDeletionError
from media_browser.paths import (
    TargetKind,
    decode_url_path,
    relative_sub_path,
    resolve_entry_path,
    resolve_request_path,
    resolve_target,
)
from media_browser.templates import render_listing
from media_browser.transcoder import is_local_client, maybe_transcode, should_transcode

FILE_CHUNK_SIZE = 64_000
FILE_CACHE_CONTROL = "max-age=3600"
CLIENT_GONE_ERRORS = (BrokenPipeError, ConnectionResetError)

logger = logging.getLogger(__name__)


def wants_json(params: Dict[str, List[str]], accept: Optional[str]) -> bool:
    requested = params.get("format", [""])[0].lower()
    if requested:
        return requested == "json"
    accept = (accept or "").lower()
    return "application/json" in accept and "text/html" not in accept


def compress_opted_out(params: Dict[str, List[str]]) -> bool:
    return params.get("compress", [""])[0].lower() == "false"


class MediaRequestHandler(http.server.BaseHTTPRequestHandler):
    server_version = f"MediaBrowser/{__version__}"

    def __init__(self, *args, config: ServerConfig, **kwargs):
        self.config = config
        self.timeout = config.request_timeout
        super().__init__(*args, **kwargs)

    @property
    def root_path(self) -> Path:
        return self.config.root

    def do_GET(self) -> None:  # noqa: N802 - standard library signature
        parsed = urlparse(self.path)
        self.log_request_start(parsed.path)
        self.dispatch(self.handle_get, parsed)

    def do_DELETE(self) -> None:  # noqa: N802 - standard library signature
        parsed = urlparse(self.path)
        self.log_request_start(parsed.path)
        self.dispatch(self.handle_delete, parsed)

    def reject_method(self) -> None:
        self.log_request_start(urlparse(self.path).path)
        self.send_text("invalid call", status=HTTPStatus.BAD_REQUEST)

    do_POST = do_PUT = do_PATCH = do_HEAD = reject_method

    def dispatch(self, handler: Callable[[ParseResult], None], parsed: ParseResult) -> None:
        path = decode_url_path(parsed.path)
        try:
            handler(parsed)
        except CLIENT_GONE_ERRORS:
            logger.info("Client closed connection while requesting %s", path)
        except FileNotFoundError:
            logger.error("file not found: %s", path)
            self.send_json({"error": f"Not found: {path}"}, status=HTTPStatus.NOT_FOUND)
        except NotADirectoryError:
            self.send_json({"error": "Path is not a directory"}, status=HTTPStatus.BAD_REQUEST)
        except NoImagesError:
            self.send_json({"error": "No images found in directory"}, status=HTTPStatus.NOT_FOUND)
        except PathEscapeError as exc:
            logger.warning("Rejected path %s: %s", path, exc)
            self.send_json({"error": "Invalid path"}, status=HTTPStatus.BAD_REQUEST)
        except RootDeletionError:
            logger.warning("Refused to delete the media root")
            self.send_json({"error": "Refusing to delete the media root"}, status=HTTPStatus.BAD_REQUEST)
        except PermissionError as exc:
            logger.error("Permission denied for %s: %s", path, exc)
            self.send_json({"error": "Unexpected server error"}, status=HTTPStatus.INTERNAL_SERVER_ERROR)
        except Exception:  # noqa: BLE001 - report unexpected errors
            logger.exception("Unexpected error serving %s %s", self.command, path)
            self.send_json({"error": "Unexpected server error"}, status=HTTPStatus.INTERNAL_SERVER_ERROR)

    # Handlers
    def handle_get(self, parsed: ParseResult) -> None:
        params = parse_qs(parsed.query or "")
        if params.get("download", [""])[0] == "zip":
            self.serve_zip(parsed.path)
            return
        target = resolve_target(self.root_path, parsed.path)
        if target.kind is TargetKind.DIRECTORY:
            self.serve_listing(target.absolute_path, params)
        else:
            self.serve_file(target.absolute_path, params)

    def handle_delete(self, parsed: ParseResult) -> None:
        target = resolve_entry_path(self.root_path, parsed.path)
        if target == self.root_path:
            raise RootDeletionError(str(target))
        remove_path(target)
        self.send_text("removed")

    def serve_listing(self, directory: Path, params: Dict[str, List[str]]) -> None:
        listing = classify(
            directory,
            root=self.root_path,
            sub_path=relative_sub_path(self.root_path, directory),
            gallery_depth=self.config.gallery_depth,
        )
        if wants_json(params, self.headers.get("Accept")):
            self.send_json(listing.to_dict())
        else:
            self.send_html(render_listing(listing))

    def serve_file(self, path: Path, params: Dict[str, List[str]]) -> None:
        content_type = resolve_content_type(path.name)
        local = self.is_local_request()
        opted_out = compress_opted_out(params)
        if not should_transcode(path.stat().st_size, content_type, local, opted_out, self.config.transcode):
            self.send_file(path, content_type)
            return

        data = path.read_bytes()
        body = maybe_transcode(data, content_type, local, opted_out, self.config.transcode)
        if body is not data:
            content_type = "image/jpeg"
        self.send_binary(body, content_type, cache_control=FILE_CACHE_CONTROL)

    def serve_zip(self, url_path: str) -> None:
        directory = resolve_request_path(self.root_path, url_path)
        names = eligible_images(directory)
        zip_name = archive_name_for(self.root_path, directory) + ".zip"

        self.close_connection = True
        self.send_response(HTTPStatus.OK)
        self.send_header("Content-Type", "application/zip")
        self.send_header("Content-Disposition", f'attachment; filename="{quote(zip_name)}"')
        self.send_header("Cache-Control", "no-cache")
        self.send_header("Connection", "close")
        self.end_headers()

        sink = ResponseSink(self.wfile)
        try:
            summary = write_archive(directory, names, sink)
        except CLIENT_GONE_ERRORS:
            logger.info("Client closed connection while downloading %s", zip_name)
            return
        except (ArchiveIOError, OSError):
            sink.abort()
            logger.exception("Zip download of %s aborted after %d bytes", directory, sink.bytes_written)
            return
        logger.info(
            "Zip download completed: %s (%d files, %d skipped, %d bytes)",
            zip_name,
            len(summary.archived),
            len(summary.skipped),
            sink.bytes_written,
        )

    # Helpers
    def is_local_request(self) -> bool:
        address = self.client_address[0] if isinstance(self.client_address, tuple) else None
        return is_local_client(address, self.headers.get("Host"), self.config.transcode.locality)

    @property
    def client_ip(self) -> str:
        return self.client_address[0] if isinstance(self.client_address, tuple) else "-"

    def log_request_start(self, url_path: str) -> None:
        logger.info(
            "on request method=%s path=%s ip=%s", self.command, decode_url_path(url_path), self.client_ip
        )

    def send_json(self, payload: Dict[str, object], status: HTTPStatus = HTTPStatus.OK) -> None:
        data = json.dumps(payload).encode("utf-8")
        self.send_binary(data, "application/json; charset=utf-8", status=status, cache_control="no-store")

    def send_html(self, page: str) -> None:
        self.send_binary(page.encode("utf-8"), "text/html; charset=utf-8", cache_control="no-store")

    def send_text(self, text: str, status: HTTPStatus = HTTPStatus.OK) -> None:
        self.send_binary(text.encode("utf-8"), "text/plain; charset=utf-8", status=status, cache_control="no-store")

    def send_binary(
        self,
        data: bytes,
        content_type: str,
        status: HTTPStatus = HTTPStatus.OK,
        cache_control: Optional[str] = None,
    ) -> None:
        try:
            self.send_response(status)
            self.send_header("Content-Type", content_type)
            self.send_header("Content-Length", str(len(data)))
            if cache_control:
                self.send_header("Cache-Control", cache_control)
            self.end_headers()
            self.wfile.write(data)
        except CLIENT_GONE_ERRORS:
            logger.info("Client closed connection while sending %s response", content_type)

    def send_file(self, path: Path, content_type: str) -> None:
        with path.open("rb") as file_obj:
            size = os.fstat(file_obj.fileno()).st_size
            try:
                self.send_response(HTTPStatus.OK)
                self.send_header("Content-Type", content_type)
                self.send_header("Content-Length", str(size))
                self.send_header("Cache-Control", FILE_CACHE_CONTROL)
                self.end_headers()
                while True:
                    chunk = file_obj.read(FILE_CHUNK_SIZE)
                    if not chunk:
                        break
                    self.wfile.write(chunk)
            except CLIENT_GONE_ERRORS:
                logger.info("Client closed connection while streaming file %s", path)
            except OSError:
                # Headers are already out; the only option left is to drop the connection.
                logger.exception("Failed while streaming file %s", path)
                self.close_connection = True

    def log_message(self, format: str, *args) -> None:  # noqa: A003 - match base signature
        logger.debug("%s - %s", self.address_string(), format % args)


def make_server(config: ServerConfig) -> http.server.ThreadingHTTPServer:
    handler_class = functools.partial(MediaRequestHandler, config=config)
    server = http.server.ThreadingHTTPServer((config.host, config.port), handler_class)
    server.daemon_threads = True
    return server


def main(argv: Optional[Iterable[str]] = None) -> None:
    args = parse_args(argv)
    configure_logging(args.verbose)
    config = ServerConfig.from_args(args)

    server = make_server(config)
    host, port = server.server_address[:2]
    url = f"http://{'127.0.0.1' if host in ('0.0.0.0', '::') else host}:{port}/"
    logger.info("Serving media from %s", config.root)
    logger.info("Open %s in your browser", url)
    if config.open_browser:
        webbrowser.open(url)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutting down server")
    finally:
        server.server_close()


if __name__ == "__main__":
    main()
