"""
Models for artifact retrieval.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterator, Protocol

from pydantic import BaseModel, Field

from marathon_cloud.exceptions import PartialFailureError
from marathon_cloud.models.artifacts import ArtifactEntry


class RemoteTreeClient(Protocol):
    """What retrieval needs from the API: list a node, fetch a file."""

    async def list_artifact(self, node_id: str) -> list[ArtifactEntry]: ...

    async def download_artifact(self, node_id: str) -> bytes: ...


class FileNode(BaseModel):
    """A file or directory of the remote artifact tree."""

    id: str
    is_file: bool
    name: str = ""
    downloaded: bool = False

    @classmethod
    def from_entry(cls, entry: ArtifactEntry) -> FileNode:
        return cls(id=entry.id, is_file=entry.is_file, name=entry.name)


class NodeRegistry:
    """
    Insertion-ordered set of FileNode, unique by id.

    Only add(), merge() and mark_downloaded() mutate it. None of them
    await, so on a single event loop they never interleave.
    """

    def __init__(self) -> None:
        self._nodes: dict[str, FileNode] = {}

    def add(self, node: FileNode) -> bool:
        """Append a node unless its id is already known. Returns True if added."""
        if node.id in self._nodes:
            return False
        self._nodes[node.id] = node
        return True

    def merge(self, other: NodeRegistry) -> int:
        """Append nodes of another registry not seen here. Returns count added."""
        added = 0
        for node in other:
            if self.add(node.model_copy()):
                added += 1
        return added

    def mark_downloaded(self, node_id: str) -> bool:
        """Flag a node as downloaded. Returns False if it already was."""
        node = self._nodes[node_id]
        if node.downloaded:
            return False
        node.downloaded = True
        return True

    def get(self, node_id: str) -> FileNode | None:
        return self._nodes.get(node_id)

    def pending(self) -> list[FileNode]:
        """File nodes not yet downloaded, in insertion order."""
        return [n for n in self._nodes.values() if n.is_file and not n.downloaded]

    @property
    def file_count(self) -> int:
        return sum(1 for n in self._nodes.values() if n.is_file)

    @property
    def downloaded_count(self) -> int:
        return sum(1 for n in self._nodes.values() if n.downloaded)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __iter__(self) -> Iterator[FileNode]:
        return iter(list(self._nodes.values()))

    def __len__(self) -> int:
        return len(self._nodes)

    def __repr__(self) -> str:
        return f"NodeRegistry(nodes={len(self)}, files={self.file_count}, downloaded={self.downloaded_count})"


class DownloadFailure(BaseModel):
    """A file that failed every attempt of a pass."""

    node_id: str
    attempts: int
    error: str

    def __str__(self) -> str:
        return f"{self.node_id}: all {self.attempts} attempts failed. {self.error}"


class PassReport(BaseModel):
    """Outcome of one scheduler pass."""

    attempts: int = 0
    succeeded: int = 0
    failed: list[str] = Field(default_factory=list)


class RetrievalSummary(BaseModel):
    """Result of an artifact retrieval session."""

    run_id: str
    destination: Path | None = None

    # Nodes
    total_files: int = 0
    downloaded: int = 0
    failed: list[str] = Field(default_factory=list)

    # Loop
    passes: int = 0
    attempts: int = 0
    stopped_early: bool = False

    # Post-processing
    rewritten_reports: int = 0

    # Timing (seconds)
    total_time: float = 0.0

    @property
    def pending(self) -> int:
        """Files discovered but never downloaded."""
        return self.total_files - self.downloaded

    @property
    def is_complete(self) -> bool:
        return self.pending == 0

    def raise_for_partial(self) -> None:
        """Raise PartialFailureError if any discovered file is missing locally."""
        if not self.is_complete:
            raise PartialFailureError(self)

    def summary(self) -> str:
        """Human-readable summary."""
        lines = [
            f"Artifacts: {self.downloaded}/{self.total_files} downloaded",
            f"Passes: {self.passes} ({self.attempts} download attempts) in {self.total_time:.1f}s",
        ]
        if self.failed:
            lines.append(f"Failed: {len(self.failed)}")
            lines.extend(f"  └─ {node_id}" for node_id in self.failed)
        if self.stopped_early:
            lines.append("Stopped before the artifact tree settled")
        if self.rewritten_reports:
            lines.append(f"Report files patched: {self.rewritten_reports}")
        return "\n".join(lines)

    def __repr__(self) -> str:
        state = "complete" if self.is_complete else f"{self.pending} missing"
        return (
            f"RetrievalSummary({state}, {self.downloaded}/{self.total_files}, "
            f"passes={self.passes})"
        )

    def __str__(self) -> str:
        return self.summary()
