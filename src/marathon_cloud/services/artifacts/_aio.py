"""
Asynchronous artifact retrieval service.

The service may start before the cloud has finished producing artifacts
(the report step runs after tests), so retrieval repeats
discover-then-download passes until a pass changes nothing:

1. Discover the tree under the run id.
2. Download every pending file, rediscover, and merge unseen nodes.
3. Stop when a pass neither attempted a download nor found a new node,
   otherwise sleep and repeat.

Afterwards the run directory is lifted to the destination root and report
attachment paths are rewritten.
"""

from __future__ import annotations

import asyncio
import time
from pathlib import Path
from typing import Callable

from marathon_cloud.config import get_settings
from marathon_cloud.logging import get_logger
from marathon_cloud.services.artifacts._config import ERROR_QUEUE_SIZE
from marathon_cloud.services.artifacts._discovery import TreeDiscoverer
from marathon_cloud.services.artifacts._materialize import LocalMaterializer
from marathon_cloud.services.artifacts._models import (
    DownloadFailure,
    NodeRegistry,
    RemoteTreeClient,
    RetrievalSummary,
)
from marathon_cloud.services.artifacts._scheduler import DownloadScheduler

logger = get_logger(__name__)


async def _drain_errors(errors: asyncio.Queue[DownloadFailure | None]) -> None:
    """Log download failures until the None sentinel arrives."""
    while True:
        failure = await errors.get()
        if failure is None:
            return
        _log_failure(failure)


def _log_failure(failure: DownloadFailure) -> None:
    logger.error(f"Error during download: {failure}")


class AsyncArtifactService:
    """
    Asynchronous artifact retrieval service.

    Example:
        >>> async with AsyncMarathonAPI(api_key="key") as api:
        ...     api.set_token(await api.request_jwt())
        ...     service = AsyncArtifactService(api)
        ...     summary = await service.fetch("run-id", Path("./allure"))
        ...     print(summary)
    """

    def __init__(self, client: RemoteTreeClient) -> None:
        settings = get_settings()
        self._client = client
        self._max_concurrency = settings.max_concurrency
        self._download_attempts = settings.download_attempts
        self._convergence_interval = settings.convergence_interval
        self._max_passes = settings.max_passes

    def configure(
        self,
        max_concurrency: int | None = None,
        download_attempts: int | None = None,
        convergence_interval: float | None = None,
        max_passes: int | None = None,
    ) -> None:
        """
        Configure retrieval settings.

        Args:
            max_concurrency: Remote operations (listings + downloads) in flight.
            download_attempts: Attempts per file per pass.
            convergence_interval: Seconds slept between passes.
            max_passes: Pass cap; 0 means no cap.

        Raises:
            ValueError: If a value is out of range.
        """
        if max_concurrency is not None and max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {max_concurrency}")
        if download_attempts is not None and download_attempts < 1:
            raise ValueError(f"download_attempts must be >= 1, got {download_attempts}")
        if convergence_interval is not None and convergence_interval < 0:
            raise ValueError(f"convergence_interval must be >= 0, got {convergence_interval}")
        if max_passes is not None and max_passes < 0:
            raise ValueError(f"max_passes must be >= 0, got {max_passes}")

        if max_concurrency is not None:
            self._max_concurrency = max_concurrency
        if download_attempts is not None:
            self._download_attempts = download_attempts
        if convergence_interval is not None:
            self._convergence_interval = convergence_interval
        if max_passes is not None:
            self._max_passes = max_passes

    async def fetch(
        self,
        run_id: str,
        destination: Path,
        on_progress: Callable[[int, int], None] | None = None,
        deadline: float | None = None,
    ) -> RetrievalSummary:
        """
        Retrieve every artifact of a run into destination.

        Partial failure is not raised: check summary.is_complete or call
        summary.raise_for_partial().

        Args:
            run_id: Run id, also the root of the remote tree.
            destination: Local output directory.
            on_progress: Callback(downloaded, total) after each file.
            deadline: Seconds after which passes stop; None for no limit.

        Returns:
            RetrievalSummary with counts and failed node ids.
        """
        logger.info("Start downloading artifacts")
        start = time.perf_counter()
        destination = Path(destination)

        registry = NodeRegistry()
        summary = RetrievalSummary(run_id=run_id, destination=destination)

        try:
            await asyncio.wait_for(
                self._converge(run_id, destination, registry, summary, on_progress),
                timeout=deadline,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Artifact retrieval deadline of {deadline}s reached")
            summary.stopped_early = True
            summary.failed = [node.id for node in registry.pending()]

        summary.rewritten_reports = LocalMaterializer(destination).finalize(run_id)
        summary.total_files = registry.file_count
        summary.downloaded = registry.downloaded_count
        summary.total_time = time.perf_counter() - start

        if summary.is_complete:
            logger.info(f"Finished downloading {summary.downloaded} artifacts")
        else:
            logger.warning(
                f"Finished with {summary.pending} of {summary.total_files} artifacts missing"
            )
        return summary

    async def _converge(
        self,
        run_id: str,
        destination: Path,
        registry: NodeRegistry,
        summary: RetrievalSummary,
        on_progress: Callable[[int, int], None] | None,
    ) -> None:
        limiter = asyncio.Semaphore(self._max_concurrency)
        errors: asyncio.Queue[DownloadFailure | None] = asyncio.Queue(maxsize=ERROR_QUEUE_SIZE)
        discoverer = TreeDiscoverer(self._client, limiter, workers=self._max_concurrency)
        scheduler = DownloadScheduler(
            client=self._client,
            materializer=LocalMaterializer(destination),
            limiter=limiter,
            errors=errors,
            attempts=self._download_attempts,
            on_progress=on_progress,
        )

        consumer = asyncio.create_task(_drain_errors(errors))
        try:
            registry.merge(await discoverer.discover(run_id))
            logger.info(f"Discovered {registry.file_count} artifact file(s)")

            while True:
                summary.passes += 1
                report = await scheduler.run(registry)
                summary.attempts += report.attempts
                summary.failed = list(report.failed)

                added = registry.merge(await discoverer.discover(run_id))
                logger.info(
                    f"Pass {summary.passes}: {report.succeeded} downloaded, "
                    f"{added} new node(s), "
                    f"{len(registry.pending())} file(s) not yet downloaded"
                )

                if not added and not report.attempts:
                    break
                if self._max_passes and summary.passes >= self._max_passes:
                    logger.warning(f"Stopping after {summary.passes} passes")
                    summary.stopped_early = True
                    break
                await asyncio.sleep(self._convergence_interval)

            await errors.put(None)
            await consumer
        finally:
            if not consumer.done():
                while not errors.empty():
                    failure = errors.get_nowait()
                    if failure is not None:
                        _log_failure(failure)
                consumer.cancel()
