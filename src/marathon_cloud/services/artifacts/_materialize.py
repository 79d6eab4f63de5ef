"""
Local side of artifact retrieval.

Writes downloaded files under the destination, lifts the run directory to
the destination root, and points Allure attachment sources at the files
that were actually downloaded.
"""

from __future__ import annotations

import json
import os
import shutil
from pathlib import Path, PurePosixPath

from marathon_cloud.exceptions import FilesystemError
from marathon_cloud.logging import get_logger
from marathon_cloud.services.artifacts._config import ALLURE_RESULTS_PATH, JSON_INDENT

logger = get_logger(__name__)


class LocalMaterializer:
    """Maps remote node ids onto a local destination directory."""

    def __init__(self, destination: Path) -> None:
        self._destination = Path(destination)

    @property
    def destination(self) -> Path:
        return self._destination

    @property
    def results_dir(self) -> Path:
        return self._destination.joinpath(*ALLURE_RESULTS_PATH)

    def node_path(self, node_id: str) -> Path:
        """
        Local path of a remote node: ``a/b/c.png`` -> ``<destination>/a/b/c.png``.

        Raises:
            FilesystemError: If the id is empty or escapes the destination.
        """
        parts = [p for p in node_id.split("/") if p]
        if not parts:
            raise FilesystemError("empty node id provided", path=node_id)
        if ".." in parts:
            raise FilesystemError(f"node id escapes destination: {node_id}", path=node_id)
        return self._destination.joinpath(*parts)

    def write(self, node_id: str, data: bytes) -> Path:
        """Write file bytes for a node, creating parent directories."""
        path = self.node_path(node_id)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise FilesystemError(f"Error writing {path}: {e}", path=str(path), cause=e) from e
        return path

    def relocate(self, run_id: str) -> bool:
        """
        Merge ``<destination>/<run_id>`` into the destination and remove it.

        Returns:
            True if the run directory existed and was relocated.
        """
        run_dir = self._destination / run_id
        if not run_dir.is_dir():
            logger.info(f"{run_id} directory does not exist. Skipping relocation.")
            return False

        try:
            shutil.copytree(run_dir, self._destination, dirs_exist_ok=True)
        except (OSError, shutil.Error) as e:
            logger.error(f"Error copying files from {run_dir}: {e}")
            return False

        try:
            shutil.rmtree(run_dir)
        except OSError as e:
            logger.error(f"Error removing directory {run_dir}: {e}")
        return True

    def repair_references(self) -> int:
        """
        Rewrite ``attachments[].source`` of Allure result files.

        Each source whose basename matches a downloaded file is replaced by
        the relative path from the results directory to that file. Running
        it twice changes nothing.

        Returns:
            Number of files rewritten.
        """
        results_dir = self.results_dir
        if not results_dir.is_dir():
            logger.info(f"Directory {results_dir} does not exist. Skipping report patching.")
            return 0

        files_by_name = self._index_files()
        rewritten = 0

        for json_path in sorted(results_dir.glob("*.json")):
            if not json_path.is_file():
                continue
            try:
                if self._repair_file(json_path, results_dir, files_by_name):
                    rewritten += 1
            except (OSError, ValueError) as e:
                logger.warning(f"Error patching {json_path}: {e}")

        return rewritten

    def finalize(self, run_id: str) -> int:
        """Relocate the run directory, then repair report references."""
        self.relocate(run_id)
        return self.repair_references()

    def _index_files(self) -> dict[str, Path]:
        files_by_name: dict[str, Path] = {}
        for dirpath, dirnames, filenames in os.walk(self._destination):
            dirnames.sort()
            for filename in sorted(filenames):
                files_by_name[filename] = Path(dirpath) / filename
        return files_by_name

    @staticmethod
    def _repair_file(
        json_path: Path,
        results_dir: Path,
        files_by_name: dict[str, Path],
    ) -> bool:
        raw = json_path.read_text(encoding="utf-8")
        document = json.loads(raw)

        if not isinstance(document, dict):
            return False
        attachments = document.get("attachments")
        if not isinstance(attachments, list):
            return False

        changed = False
        for attachment in attachments:
            if not isinstance(attachment, dict):
                continue
            source = attachment.get("source")
            if not isinstance(source, str):
                continue
            target = files_by_name.get(PurePosixPath(source.replace("\\", "/")).name)
            if target is None:
                continue
            relative = Path(os.path.relpath(target, results_dir)).as_posix()
            if relative != source:
                attachment["source"] = relative
                changed = True

        if not changed:
            return False
        json_path.write_text(
            json.dumps(document, indent=JSON_INDENT, ensure_ascii=False),
            encoding="utf-8",
        )
        return True
