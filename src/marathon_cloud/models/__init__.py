"""
Data models for Marathon Cloud API payloads.
"""

from marathon_cloud.models.artifacts import ArtifactEntry
from marathon_cloud.models.run import (
    CreateRunResponse,
    RunStats,
    RuntimeState,
    TokenResponse,
)

__all__ = [
    "ArtifactEntry",
    "CreateRunResponse",
    "RunStats",
    "RuntimeState",
    "TokenResponse",
]
