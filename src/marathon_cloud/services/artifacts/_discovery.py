"""
Recursive discovery of the remote artifact tree.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from marathon_cloud.exceptions import MarathonError
from marathon_cloud.logging import get_logger
from marathon_cloud.models.artifacts import ArtifactEntry
from marathon_cloud.services.artifacts._models import (
    FileNode,
    NodeRegistry,
    RemoteTreeClient,
)

logger = get_logger(__name__)


@dataclass
class _Listing:
    dir_id: str
    entries: list[ArtifactEntry] = field(default_factory=list)
    error: BaseException | None = None


class TreeDiscoverer:
    """
    Expands the remote tree from a root id into a NodeRegistry.

    A pool of workers drains a queue of directory ids, listing each one
    under the shared limiter. Listings are posted back to discover(), which
    is the only writer of the registry and enqueues every newly seen
    directory. A listing that fails with a MarathonError is logged and ends
    only that branch. Any other exception is a programming error and is
    re-raised from discover() once the workers are cancelled.
    """

    def __init__(
        self,
        client: RemoteTreeClient,
        limiter: asyncio.Semaphore,
        workers: int,
    ) -> None:
        self._client = client
        self._limiter = limiter
        self._workers = max(1, workers)

    async def discover(self, root_id: str) -> NodeRegistry:
        """List root_id recursively and return every reachable node."""
        registry = NodeRegistry()
        work: asyncio.Queue[str] = asyncio.Queue()
        results: asyncio.Queue[_Listing] = asyncio.Queue()

        work.put_nowait(root_id)
        outstanding = 1

        workers = [
            asyncio.create_task(self._worker(work, results))
            for _ in range(self._workers)
        ]
        try:
            while outstanding:
                listing = await results.get()
                outstanding -= 1

                if listing.error is not None:
                    raise listing.error

                for entry in listing.entries:
                    if not registry.add(FileNode.from_entry(entry)):
                        continue
                    if not entry.is_file:
                        work.put_nowait(entry.id)
                        outstanding += 1
        finally:
            for task in workers:
                task.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

        return registry

    async def _worker(
        self,
        work: asyncio.Queue[str],
        results: asyncio.Queue[_Listing],
    ) -> None:
        while True:
            dir_id = await work.get()
            listing = _Listing(dir_id)
            try:
                async with self._limiter:
                    listing.entries = await self._client.list_artifact(dir_id)
            except MarathonError as e:
                logger.warning(f"Failed to list {dir_id!r}, skipping branch: {e}")
            except Exception as e:
                listing.error = e
            results.put_nowait(listing)
