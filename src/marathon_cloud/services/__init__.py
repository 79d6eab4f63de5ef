"""
Services for Marathon Cloud CLI.
"""

from marathon_cloud.services.artifacts import ArtifactService, AsyncArtifactService

__all__ = ["ArtifactService", "AsyncArtifactService"]
