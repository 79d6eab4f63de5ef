"""
Artifact retrieval service for Marathon Cloud CLI.

Mirrors the remote artifact tree of a run into a local directory:
- Recursive discovery and downloads share one concurrency limit
- Failed downloads are retried with linear backoff
- Passes repeat until the remote tree stops growing
- Allure attachment paths are rewritten to the downloaded files
"""

from marathon_cloud.services.artifacts._aio import AsyncArtifactService
from marathon_cloud.services.artifacts._discovery import TreeDiscoverer
from marathon_cloud.services.artifacts._materialize import LocalMaterializer
from marathon_cloud.services.artifacts._models import (
    DownloadFailure,
    FileNode,
    NodeRegistry,
    PassReport,
    RemoteTreeClient,
    RetrievalSummary,
)
from marathon_cloud.services.artifacts._scheduler import DownloadScheduler
from marathon_cloud.services.artifacts._sync import ArtifactService

__all__ = [
    "ArtifactService",
    "AsyncArtifactService",
    "DownloadFailure",
    "DownloadScheduler",
    "FileNode",
    "LocalMaterializer",
    "NodeRegistry",
    "PassReport",
    "RemoteTreeClient",
    "RetrievalSummary",
    "TreeDiscoverer",
]
