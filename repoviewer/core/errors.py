# repoviewer/core/errors.py
from pathlib import Path
from typing import Optional, Union


class RepoViewerError(Exception):
    """Base class for recoverable errors raised by the core."""

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None):
        super().__init__(message)
        self.message = message
        self.path = Path(path) if path is not None else None

    def __str__(self) -> str:
        return self.message


class ListingError(RepoViewerError):
    """A directory could not be read (permission denied, removed, not a directory)."""


class NotCollectable(RepoViewerError):
    """The path may not enter the collection (binary, not a regular file, too large)."""


class CollectionError(RepoViewerError):
    """Filesystem failure while adding a file to the collection."""


class ExportError(RepoViewerError):
    """Export aborted; nothing was written or copied."""
