"""Self-hosted media browser: directory listings, image galleries and zip downloads."""

__version__ = "0.3.0"
