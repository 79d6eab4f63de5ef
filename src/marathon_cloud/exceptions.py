"""
Exceptions for Marathon Cloud CLI.

All errors raised by the client derive from MarathonError, so callers can
catch one type at the CLI boundary.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from marathon_cloud.services.artifacts import RetrievalSummary


class MarathonError(Exception):
    """Base error for the Marathon Cloud client."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.message = message
        self._original_cause = cause

    def __str__(self) -> str:
        return self.message


# =============================================================================
# Remote errors
# =============================================================================


class TransportError(MarathonError):
    """Network or HTTP failure talking to the cloud API."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.status_code = status_code


class AuthenticationError(TransportError):
    """Credentials rejected (401/403) or login failed."""


class DecodeError(MarathonError):
    """Response body could not be decoded into the expected shape."""


class RunSubmissionError(MarathonError):
    """Run could not be created."""


# =============================================================================
# Local errors
# =============================================================================


class FilesystemError(MarathonError):
    """Local create/write failure."""

    def __init__(
        self,
        message: str,
        path: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.path = path


class FilterValidationError(MarathonError):
    """Filter YAML is malformed or uses unsupported features."""


class PartialFailureError(MarathonError):
    """One or more artifacts were never retrieved."""

    def __init__(self, summary: RetrievalSummary) -> None:
        missing = summary.total_files - summary.downloaded
        super().__init__(
            f"{missing} of {summary.total_files} artifact(s) were not downloaded"
        )
        self.summary = summary


__all__ = [
    "MarathonError",
    "TransportError",
    "AuthenticationError",
    "DecodeError",
    "RunSubmissionError",
    "FilesystemError",
    "FilterValidationError",
    "PartialFailureError",
]
