"""A video-metadata HTTP server backed by SQLite, with ffmpeg video helpers."""

__version__ = "0.1.0"
__all__ = ["__version__"]