"""
Concurrent download of discovered artifact files.
"""

from __future__ import annotations

import asyncio
from typing import Callable

from marathon_cloud.exceptions import MarathonError
from marathon_cloud.logging import get_logger
from marathon_cloud.services.artifacts._config import RETRY_BACKOFF
from marathon_cloud.services.artifacts._materialize import LocalMaterializer
from marathon_cloud.services.artifacts._models import (
    DownloadFailure,
    FileNode,
    NodeRegistry,
    PassReport,
    RemoteTreeClient,
)

logger = get_logger(__name__)


class DownloadScheduler:
    """
    Downloads every pending file of a registry, one task per file.

    Each attempt holds the shared limiter only around fetch + write. After
    failed attempt n the task sleeps n * RETRY_BACKOFF seconds outside the
    limiter. A file that fails every attempt is put on the error queue and
    stays pending for the next pass.
    """

    def __init__(
        self,
        client: RemoteTreeClient,
        materializer: LocalMaterializer,
        limiter: asyncio.Semaphore,
        errors: asyncio.Queue[DownloadFailure | None],
        attempts: int = 3,
        on_progress: Callable[[int, int], None] | None = None,
    ) -> None:
        self._client = client
        self._materializer = materializer
        self._limiter = limiter
        self._errors = errors
        self._attempts = max(1, attempts)
        self._on_progress = on_progress

    async def run(self, registry: NodeRegistry) -> PassReport:
        """Download all pending files of the registry."""
        report = PassReport()
        pending = registry.pending()
        if not pending:
            return report

        logger.debug(f"Downloading {len(pending)} artifacts")
        tasks = [
            asyncio.create_task(self._download_with_retry(node, registry, report))
            for node in pending
        ]
        try:
            await asyncio.gather(*tasks)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
        return report

    async def _download_with_retry(
        self,
        node: FileNode,
        registry: NodeRegistry,
        report: PassReport,
    ) -> bool:
        last_error: MarathonError | None = None

        for attempt in range(1, self._attempts + 1):
            report.attempts += 1
            try:
                async with self._limiter:
                    data = await self._client.download_artifact(node.id)
                    self._materializer.write(node.id, data)
            except MarathonError as e:
                last_error = e
                logger.debug(
                    f"Error fetching {node.id} (attempt {attempt}/{self._attempts}): {e}"
                )
                if attempt < self._attempts:
                    await asyncio.sleep(attempt * RETRY_BACKOFF)
                continue

            registry.mark_downloaded(node.id)
            report.succeeded += 1
            if self._on_progress:
                self._on_progress(registry.downloaded_count, registry.file_count)
            return True

        report.failed.append(node.id)
        await self._errors.put(
            DownloadFailure(
                node_id=node.id,
                attempts=self._attempts,
                error=str(last_error),
            )
        )
        return False
