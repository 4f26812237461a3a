"""Structured error codes for sharing, streaming and search operations.

Provides stable, machine-readable error codes so every user-visible failure
names its condition (and, where relevant, the path or range involved)
instead of surfacing an opaque generic error.
"""

from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    """filepilot error codes."""

    # Resource exhaustion
    NO_PORT_AVAILABLE = "no_port_available"

    # Not found / vanished
    SHARE_NOT_FOUND = "share_not_found"
    SHARED_FILE_MISSING = "shared_file_missing"

    # Invalid input
    INVALID_SHARE_PATH = "invalid_share_path"
    RANGE_NOT_SATISFIABLE = "range_not_satisfiable"
    SEARCH_ROOT_INVALID = "search_root_invalid"
    UNKNOWN_PROFILE = "unknown_profile"

    # Degradations
    FORMAT_FAILED = "format_failed"

    # Startup
    CONFIG_INVALID = "config_invalid"


class FilePilotError(Exception):
    """Base error with code and details.

    Attributes:
        code: ErrorCode enum value
        message: Human-readable error message
        http_status: HTTP status code to return to client
        details: Optional additional error context
    """

    code: ErrorCode = ErrorCode.CONFIG_INVALID
    http_status: int = 500

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert to dict for API responses."""
        return {
            "error_code": self.code.value,
            "message": self.message,
            "http_status": self.http_status,
            "details": self.details,
        }


class NoPortAvailableError(FilePilotError):
    """Every port in the candidate range is occupied."""

    code = ErrorCode.NO_PORT_AVAILABLE
    http_status = 503

    def __init__(self, first_port: int, last_port: int, host: str):
        super().__init__(
            f"No available port in range {first_port}-{last_port} on {host}",
            details={"first_port": first_port, "last_port": last_port, "host": host},
        )


class ShareNotFoundError(FilePilotError):
    code = ErrorCode.SHARE_NOT_FOUND
    http_status = 404

    def __init__(self, token: str):
        super().__init__(f"Share not found: {token}", details={"token": token})


class SharedFileMissingError(FilePilotError):
    """The share exists but its file was removed or is no longer a file."""

    code = ErrorCode.SHARED_FILE_MISSING
    http_status = 404

    def __init__(self, token: str, path: str):
        super().__init__(
            f"Shared file no longer exists: {path}",
            details={"token": token, "path": path},
        )


class InvalidSharePathError(FilePilotError):
    code = ErrorCode.INVALID_SHARE_PATH
    http_status = 400

    def __init__(self, path: str, reason: str):
        super().__init__(f"Cannot share {path}: {reason}", details={"path": path})


class RangeNotSatisfiableError(FilePilotError):
    """The requested byte range does not fit the current content length."""

    code = ErrorCode.RANGE_NOT_SATISFIABLE
    http_status = 416

    def __init__(self, header: str, length: int):
        super().__init__(
            f"Range {header!r} not satisfiable for length {length}",
            details={"range": header, "length": length},
        )
        self.length = length


class FormatError(FilePilotError):
    """Server-side formatting could not parse the file."""

    code = ErrorCode.FORMAT_FAILED
    http_status = 422

    def __init__(self, path: str, reason: str):
        super().__init__(f"Could not format {path}: {reason}", details={"path": path})
        self.reason = reason


class SearchRootError(FilePilotError):
    code = ErrorCode.SEARCH_ROOT_INVALID
    http_status = 400

    def __init__(self, root: str, reason: str):
        super().__init__(f"Search path {reason}: {root}", details={"root": root})


class UnknownProfileError(FilePilotError):
    code = ErrorCode.UNKNOWN_PROFILE
    http_status = 400

    def __init__(self, name: str, known: list[str]):
        super().__init__(
            f"Unknown search profile '{name}'. Must be one of: {', '.join(known)}",
            details={"profile": name, "known": known},
        )


class ConfigError(FilePilotError):
    code = ErrorCode.CONFIG_INVALID
    http_status = 500
