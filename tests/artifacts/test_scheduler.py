"""Tests for the download scheduler."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from marathon_cloud.services.artifacts import (
    DownloadFailure,
    DownloadScheduler,
    LocalMaterializer,
    TreeDiscoverer,
)
from marathon_cloud.services.artifacts._config import RETRY_BACKOFF

from .conftest import ROOT, FakeTreeClient


async def _discover(client, limit=4):
    return await TreeDiscoverer(client, asyncio.Semaphore(limit), workers=limit).discover(ROOT)


def _scheduler(client, tmp_path, limit=4, attempts=3, on_progress=None, errors=None):
    return DownloadScheduler(
        client=client,
        materializer=LocalMaterializer(tmp_path),
        limiter=asyncio.Semaphore(limit),
        errors=errors if errors is not None else asyncio.Queue(),
        attempts=attempts,
        on_progress=on_progress,
    )


class TestDownloadScheduler:
    """Tests for DownloadScheduler.run()."""

    @pytest.mark.asyncio
    async def test_downloads_all_pending(self, fake_client, tmp_path):
        registry = await _discover(fake_client)
        report = await _scheduler(fake_client, tmp_path).run(registry)

        assert report.succeeded == 5
        assert report.attempts == 5
        assert report.failed == []
        assert registry.pending() == []

        written = tmp_path / ROOT / "logs" / "omni" / "device-1.log"
        assert written.read_bytes() == f"content of {ROOT}/logs/omni/device-1.log".encode()

    @pytest.mark.asyncio
    async def test_nothing_pending(self, fake_client, tmp_path):
        registry = await _discover(fake_client)
        scheduler = _scheduler(fake_client, tmp_path)
        await scheduler.run(registry)
        fake_client.download_calls.clear()

        report = await scheduler.run(registry)

        assert report.attempts == 0
        assert fake_client.download_calls == []

    @pytest.mark.asyncio
    async def test_transient_failure_is_retried(self, fake_client, tmp_path):
        node_id = f"{ROOT}/report/screenshots/shot-1.png"
        fake_client.failures[node_id] = 2
        registry = await _discover(fake_client)

        with patch(
            "marathon_cloud.services.artifacts._scheduler.asyncio.sleep",
            new_callable=AsyncMock,
        ):
            report = await _scheduler(fake_client, tmp_path).run(registry)

        assert fake_client.download_calls.count(node_id) == 3
        assert report.failed == []
        assert registry.get(node_id).downloaded is True

    @pytest.mark.asyncio
    async def test_exhausted_attempts(self, fake_client, tmp_path):
        node_id = f"{ROOT}/video/omni/test-1.mp4"
        fake_client.fail_always(node_id)
        registry = await _discover(fake_client)
        errors: asyncio.Queue = asyncio.Queue()

        with patch(
            "marathon_cloud.services.artifacts._scheduler.asyncio.sleep",
            new_callable=AsyncMock,
        ) as mock_sleep:
            report = await _scheduler(fake_client, tmp_path, errors=errors).run(registry)

        assert fake_client.download_calls.count(node_id) == 3
        # Linear backoff, no sleep after the last attempt
        assert [c.args[0] for c in mock_sleep.await_args_list] == [
            1 * RETRY_BACKOFF,
            2 * RETRY_BACKOFF,
        ]
        assert report.failed == [node_id]
        assert report.succeeded == 4
        assert report.attempts == 7
        assert registry.get(node_id).downloaded is False
        assert [n.id for n in registry.pending()] == [node_id]

        failure = errors.get_nowait()
        assert isinstance(failure, DownloadFailure)
        assert failure.node_id == node_id
        assert failure.attempts == 3
        assert "502" in failure.error
        assert errors.empty()

    @pytest.mark.asyncio
    async def test_single_attempt(self, fake_client, tmp_path):
        node_id = f"{ROOT}/logs/omni/device-1.log"
        fake_client.fail_always(node_id)
        registry = await _discover(fake_client)

        report = await _scheduler(fake_client, tmp_path, attempts=1).run(registry)

        assert fake_client.download_calls.count(node_id) == 1
        assert report.failed == [node_id]

    @pytest.mark.asyncio
    async def test_backoff_spacing(self, tmp_path, monkeypatch):
        monkeypatch.setattr(
            "marathon_cloud.services.artifacts._scheduler.RETRY_BACKOFF", 0.05
        )
        client = FakeTreeClient(file_paths=["a.bin"])
        node_id = f"{ROOT}/a.bin"
        client.fail_always(node_id)
        registry = await _discover(client)

        await _scheduler(client, tmp_path).run(registry)

        first, second, third = client.download_times[node_id]
        assert second - first >= 0.05
        assert third - second >= 0.10

    @pytest.mark.asyncio
    async def test_concurrency_cap(self, tmp_path):
        paths = [f"dir-{i % 3}/file-{i}.bin" for i in range(20)]
        client = FakeTreeClient(file_paths=paths, delay=0.01)
        registry = await _discover(client)

        report = await _scheduler(client, tmp_path, limit=3).run(registry)

        assert report.succeeded == 20
        assert client.max_in_flight <= 3

    @pytest.mark.asyncio
    async def test_failed_write_counts_as_failed_attempt(self, tmp_path):
        client = FakeTreeClient(file_paths=["a.bin"])
        registry = await _discover(client)
        # A file where the run directory should be
        (tmp_path / ROOT).write_text("blocker")

        with patch(
            "marathon_cloud.services.artifacts._scheduler.asyncio.sleep",
            new_callable=AsyncMock,
        ):
            report = await _scheduler(client, tmp_path).run(registry)

        assert report.failed == [f"{ROOT}/a.bin"]
        assert len(client.download_calls) == 3

    @pytest.mark.asyncio
    async def test_progress_callback(self, fake_client, tmp_path):
        registry = await _discover(fake_client)
        on_progress = MagicMock()

        await _scheduler(fake_client, tmp_path, on_progress=on_progress).run(registry)

        assert on_progress.call_count == 5
        assert on_progress.call_args_list[-1].args == (5, 5)
