"""
Pytest fixtures for artifact retrieval tests.
"""

import asyncio
import time

import pytest

from marathon_cloud.exceptions import DecodeError, TransportError
from marathon_cloud.models.artifacts import ArtifactEntry

ROOT = "run-1"


def make_tree(root: str, file_paths: list[str]) -> dict[str, list[ArtifactEntry]]:
    """Build listings for files given relative to root, e.g. ``report/a.json``."""
    tree: dict[str, list[ArtifactEntry]] = {root: []}
    for rel in file_paths:
        parent = root
        parts = rel.split("/")
        for i, part in enumerate(parts):
            node_id = f"{parent}/{part}"
            is_file = i == len(parts) - 1
            siblings = tree.setdefault(parent, [])
            if not any(e.id == node_id for e in siblings):
                siblings.append(ArtifactEntry(id=node_id, is_file=is_file, name=part))
            if not is_file:
                tree.setdefault(node_id, [])
            parent = node_id
    return tree


class FakeTreeClient:
    """In-memory remote tree that counts in-flight operations."""

    def __init__(self, root: str = ROOT, file_paths: list[str] | None = None, delay: float = 0.0):
        self.root = root
        self.tree = make_tree(root, file_paths or [])
        self.delay = delay

        self.failures: dict[str, int] = {}
        self.list_errors: dict[str, Exception] = {}
        self.growth: dict[int, list[str]] = {}

        self.in_flight = 0
        self.max_in_flight = 0
        self.list_calls: list[str] = []
        self.download_calls: list[str] = []
        self.download_times: dict[str, list[float]] = {}

    def add_files(self, file_paths: list[str]) -> None:
        for node_id, entries in make_tree(self.root, file_paths).items():
            known = self.tree.setdefault(node_id, [])
            for entry in entries:
                if not any(e.id == entry.id for e in known):
                    known.append(entry)

    def fail_always(self, node_id: str) -> None:
        self.failures[node_id] = 10**6

    async def _enter(self) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        if self.delay:
            await asyncio.sleep(self.delay)

    async def list_artifact(self, node_id: str) -> list[ArtifactEntry]:
        self.list_calls.append(node_id)
        if node_id == self.root:
            root_listings = self.list_calls.count(self.root)
            if root_listings in self.growth:
                self.add_files(self.growth.pop(root_listings))
        await self._enter()
        try:
            if node_id in self.list_errors:
                raise self.list_errors[node_id]
            return list(self.tree.get(node_id, []))
        finally:
            self.in_flight -= 1

    async def download_artifact(self, node_id: str) -> bytes:
        self.download_calls.append(node_id)
        self.download_times.setdefault(node_id, []).append(time.monotonic())
        await self._enter()
        try:
            if self.failures.get(node_id, 0) > 0:
                self.failures[node_id] -= 1
                raise TransportError(f"GET {node_id} returned status 502", status_code=502)
            return f"content of {node_id}".encode()
        finally:
            self.in_flight -= 1


@pytest.fixture
def fake_client():
    """Static tree with a report and attachments."""
    return FakeTreeClient(
        file_paths=[
            "report/allure-results/result-1.json",
            "report/allure-results/container-1.json",
            "report/screenshots/shot-1.png",
            "logs/omni/device-1.log",
            "video/omni/test-1.mp4",
        ]
    )


@pytest.fixture
def empty_client():
    return FakeTreeClient(file_paths=[])


@pytest.fixture
def decode_error():
    return DecodeError("Malformed listing")
