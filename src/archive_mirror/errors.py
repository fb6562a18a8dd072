"""
Typed errors raised by archive-mirror.

Callers branch on the exception class and its ``kind`` attribute instead of
matching message strings. Every class offers ``user_message``: a short text
suitable for a status line or toast.
"""

import errno
from typing import Optional


class ArchiveError(Exception):
    """Base class for every error raised by this package."""

    @property
    def user_message(self) -> str:
        return str(self)


class SourceError(ArchiveError):
    """
    The remote source is unreachable or served something unusable.

    Attributes:
        url: The URL that failed
        status_code: HTTP status for ``kind == "http"``, otherwise None
        kind: One of ``http``, ``timeout``, ``network``, ``invalid``, ``too_large``
    """

    KINDS = ("http", "timeout", "network", "invalid", "too_large")

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        kind: str = "http",
    ):
        super().__init__(message)
        self.url = url
        self.status_code = status_code
        self.kind = kind

    @property
    def user_message(self) -> str:
        if self.kind == "timeout":
            return "Connection timeout"
        if self.kind == "network":
            return "Cannot reach the archive (no internet connection?)"
        if self.kind == "invalid":
            return "The archive returned malformed data"
        if self.kind == "too_large":
            return "Download is too large"
        status = self.status_code
        if status == 404:
            return "File not found on server"
        if status == 403:
            return "Access denied"
        if status == 429:
            return "Too many requests, try again later"
        if status is not None and 500 <= status < 600:
            return f"Server error ({status})"
        return f"Download failed: HTTP {status}"


class AttachmentError(ArchiveError):
    """An attachment cannot be saved as requested (not downloadable, not a world archive...)."""


class ExtractionSafetyError(ArchiveError):
    """
    A world archive violated an extraction bound and was rejected.

    Attributes:
        kind: One of ``path_escape``, ``entry_too_large``,
              ``archive_too_large``, ``too_many_entries``
        entry: Name of the offending archive entry, when there is one
    """

    KINDS = ("path_escape", "entry_too_large", "archive_too_large", "too_many_entries")

    _MESSAGES = {
        "path_escape": "Archive contains a path outside the extraction folder",
        "entry_too_large": "Archive entry exceeds allowed size",
        "archive_too_large": "Archive is too large to extract",
        "too_many_entries": "Archive has too many files to extract",
    }

    def __init__(self, kind: str, entry: Optional[str] = None):
        message = self._MESSAGES.get(kind, "Unsafe archive")
        if entry:
            message = f"{message}: {entry!r}"
        super().__init__(message)
        self.kind = kind
        self.entry = entry

    @property
    def user_message(self) -> str:
        return f"Unsafe archive: {self._MESSAGES.get(self.kind, self.kind)}"


class StorageError(ArchiveError):
    """
    Local filesystem failure while saving or extracting.

    The original ``OSError`` is kept as ``__cause__`` and as ``os_error``.

    Attributes:
        kind: One of ``permission_denied``, ``disk_full``, ``not_found``, ``io``
        path: The path being written, when known
    """

    KINDS = ("permission_denied", "disk_full", "not_found", "io")

    def __init__(self, message: str, kind: str = "io", path: Optional[str] = None,
                 os_error: Optional[OSError] = None):
        super().__init__(message)
        self.kind = kind
        self.path = path
        self.os_error = os_error

    @classmethod
    def from_os_error(cls, exc: OSError, path: Optional[str] = None) -> "StorageError":
        """Classify an ``OSError`` by errno."""
        code = exc.errno
        if isinstance(exc, PermissionError) or code in (errno.EACCES, errno.EPERM, errno.EROFS):
            kind = "permission_denied"
        elif code in (errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC)):
            kind = "disk_full"
        elif isinstance(exc, FileNotFoundError) or code == errno.ENOENT:
            kind = "not_found"
        else:
            kind = "io"
        target = path or exc.filename
        return cls(str(exc), kind=kind, path=str(target) if target else None, os_error=exc)

    @property
    def user_message(self) -> str:
        if self.kind == "permission_denied":
            return "Cannot write to disk (permission denied)"
        if self.kind == "disk_full":
            return "Not enough disk space"
        if self.kind == "not_found":
            return "File not found"
        return f"Disk error: {self}"
