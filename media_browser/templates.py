"""Minimal server-rendered HTML for directory listings."""

from __future__ import annotations

import html
from typing import List
from urllib.parse import quote

from media_browser.classifier import Entry, EntryKind, Listing

PAGE_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>{title}</title>
  <style>
    body {{ font-family: sans-serif; background: #111; color: #eee; margin: 1rem; }}
    a {{ color: #9cf; text-decoration: none; }}
    ul {{ list-style: none; padding: 0; }}
    .grid {{ display: flex; flex-wrap: wrap; gap: 0.5rem; }}
    .tile {{ width: 200px; }}
    .tile img {{ width: 200px; height: 200px; object-fit: cover; display: block; }}
    .count {{ color: #999; font-size: 0.8rem; }}
  </style>
</head>
<body>
  <h1>{header}</h1>
  <div class="grid">{tiles}</div>
  <ul>{links}</ul>
</body>
</html>
"""


def _href(sub_path: str, name: str, query: str = "") -> str:
    segments = [segment for segment in sub_path.split("/") if segment] + [name]
    url = "/" + "/".join(quote(segment) for segment in segments)
    return f"{url}?{query}" if query else url


def _breadcrumbs(sub_path: str) -> str:
    crumbs = ['<a href="/">Home</a>']
    accumulated = ""
    for segment in [segment for segment in sub_path.split("/") if segment]:
        accumulated += "/" + quote(segment)
        crumbs.append(f'<a href="{html.escape(accumulated)}">{html.escape(segment)}</a>')
    return " / ".join(crumbs)


def _tile(listing: Listing, entry: Entry) -> str:
    name = html.escape(entry.name)
    if entry.kind is EntryKind.IMAGE_GALLERY:
        thumb = _href(listing.sub_path, entry.thumbnail_path or "")
        link = _href(listing.sub_path, entry.name)
        zip_link = _href(listing.sub_path, entry.name, "download=zip")
        return (
            f'<div class="tile"><a href="{html.escape(link)}">'
            f'<img loading="lazy" src="{html.escape(thumb)}" alt="{name}"></a>'
            f'<a href="{html.escape(link)}">{name}</a> '
            f'<span class="count">{entry.image_count} images</span> '
            f'<a href="{html.escape(zip_link)}">zip</a></div>'
        )
    src = _href(listing.sub_path, entry.name)
    return (
        f'<div class="tile"><a href="{html.escape(src)}">'
        f'<img loading="lazy" src="{html.escape(src)}" alt="{name}"></a></div>'
    )


def render_listing(listing: Listing) -> str:
    entries: List[Entry] = sorted(listing.entries, key=lambda item: item.last_modified, reverse=True)
    tiles = [_tile(listing, entry) for entry in entries if entry.kind is EntryKind.IMAGE_GALLERY or entry.is_image_file]
    links = []
    for entry in entries:
        if entry.kind is EntryKind.IMAGE_GALLERY or entry.is_image_file:
            continue
        suffix = "/" if entry.kind is EntryKind.DIRECTORY else ""
        href = html.escape(_href(listing.sub_path, entry.name))
        links.append(f'<li><a href="{href}">{html.escape(entry.name)}{suffix}</a></li>')

    title = listing.sub_path.rsplit("/", 1)[-1] or "Gallery"
    return PAGE_TEMPLATE.format(
        title=html.escape(title),
        header=_breadcrumbs(listing.sub_path),
        tiles="".join(tiles),
        links="".join(links),
    )
