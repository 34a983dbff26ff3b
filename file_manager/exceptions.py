"""Error kinds raised by the file service and rendered by the API layer."""

from __future__ import annotations

from typing import Any, Optional


class FileManagerError(Exception):
    """Base class for every error surfaced to API callers."""

    status_code = 500

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class NotFound(FileManagerError):
    """The path does not resolve to an existing file or folder."""

    status_code = 404


class InvalidPath(FileManagerError):
    """The resolved path escapes the configured root."""

    status_code = 403


class UnsupportedOperation(FileManagerError):
    """Unknown operation tag, or a combination that is not implemented."""

    status_code = 400


class InvalidRequest(FileManagerError):
    """Arguments are missing or malformed for the requested operation."""

    status_code = 400


class IOFailure(FileManagerError):
    """A filesystem call failed for a reason other than existence."""

    status_code = 500


class PermissionDenied(IOFailure):
    status_code = 403
