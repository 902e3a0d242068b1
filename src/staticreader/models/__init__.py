"""Data models for options, settings and read documents."""

from staticreader.models.config import IncrementalOptions, ReaderOptions, Settings
from staticreader.models.document import Document, Header

__all__ = [
    "Document",
    "Header",
    "IncrementalOptions",
    "ReaderOptions",
    "Settings",
]
