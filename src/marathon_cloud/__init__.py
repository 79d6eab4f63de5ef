"""
Marathon Cloud CLI.

Submits test runs to Marathon Cloud, waits for them to finish and
downloads the resulting Allure artifacts.

Usage:
    >>> from marathon_cloud import AsyncMarathonAPI, AsyncArtifactService
    >>>
    >>> async with AsyncMarathonAPI(api_key="key") as api:
    ...     api.set_token(await api.request_jwt())
    ...     summary = await AsyncArtifactService(api).fetch("run-id", Path("./allure"))
"""

from marathon_cloud.api import AsyncMarathonAPI
from marathon_cloud.exceptions import (
    AuthenticationError,
    DecodeError,
    FilesystemError,
    FilterValidationError,
    MarathonError,
    PartialFailureError,
    RunSubmissionError,
    TransportError,
)
from marathon_cloud.services.artifacts import (
    ArtifactService,
    AsyncArtifactService,
    RetrievalSummary,
)

__version__ = "0.4.0"

__all__ = [
    "AsyncMarathonAPI",
    "ArtifactService",
    "AsyncArtifactService",
    "RetrievalSummary",
    "MarathonError",
    "TransportError",
    "AuthenticationError",
    "DecodeError",
    "FilesystemError",
    "FilterValidationError",
    "PartialFailureError",
    "RunSubmissionError",
]
