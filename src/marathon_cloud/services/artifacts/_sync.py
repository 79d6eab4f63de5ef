"""
Synchronous artifact retrieval service.

Wrapper around AsyncArtifactService using asyncio.run().
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Callable

from marathon_cloud.services.artifacts._aio import AsyncArtifactService
from marathon_cloud.services.artifacts._models import RemoteTreeClient, RetrievalSummary


class ArtifactService:
    """
    Synchronous artifact retrieval service.

    Thin wrapper around AsyncArtifactService.

    Example:
        >>> service = ArtifactService(api)
        >>> summary = service.fetch("run-id", Path("./allure"))
        >>> print(summary)
    """

    def __init__(self, client: RemoteTreeClient) -> None:
        self._async_service = AsyncArtifactService(client)

    def configure(
        self,
        max_concurrency: int | None = None,
        download_attempts: int | None = None,
        convergence_interval: float | None = None,
        max_passes: int | None = None,
    ) -> None:
        """Configure retrieval settings. See AsyncArtifactService.configure()."""
        self._async_service.configure(
            max_concurrency=max_concurrency,
            download_attempts=download_attempts,
            convergence_interval=convergence_interval,
            max_passes=max_passes,
        )

    def fetch(
        self,
        run_id: str,
        destination: Path,
        on_progress: Callable[[int, int], None] | None = None,
        deadline: float | None = None,
    ) -> RetrievalSummary:
        """Retrieve every artifact of a run into destination."""
        return asyncio.run(
            self._async_service.fetch(
                run_id=run_id,
                destination=destination,
                on_progress=on_progress,
                deadline=deadline,
            )
        )
