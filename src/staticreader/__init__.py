"""File discovery for static-site pipelines with incremental change detection."""

from staticreader.exceptions import (
    GitEnvironmentError,
    IncrementalError,
    InvalidReferenceError,
    StateCorruption,
    ValidationError,
)
from staticreader.incremental import IncrementalFilter
from staticreader.reader import Document, FileReader, Header, read_files

__version__ = "0.1.0"

__all__ = [
    "Document",
    "FileReader",
    "GitEnvironmentError",
    "Header",
    "IncrementalError",
    "IncrementalFilter",
    "InvalidReferenceError",
    "StateCorruption",
    "ValidationError",
    "read_files",
]
