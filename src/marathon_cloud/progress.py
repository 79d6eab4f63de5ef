"""
Live run progress over WebSocket.

Passive reader: prints what the runtime reports and never fails the run.
"""

from __future__ import annotations

from datetime import datetime
from urllib.parse import urlencode

import websockets
from pydantic import ValidationError
from rich.console import Console

from marathon_cloud.config import get_settings
from marathon_cloud.logging import get_logger
from marathon_cloud.models.run import RuntimeState

logger = get_logger(__name__)


def timestamp(now: datetime | None = None) -> str:
    """Short timestamp used as line prefix, e.g. ``Jan 02 15:04:05``."""
    return (now or datetime.now()).strftime("%b %d %H:%M:%S")


def format_state(state: RuntimeState, now: datetime | None = None) -> list[str]:
    """Lines to print for one runtime message."""
    ts = timestamp(now)
    if state.state:
        return [f"{ts} {state.state}"]
    lines = [f"{ts} Running {state.percents}% done"]
    if state.test_name:
        lines.append(f"{ts} {state.test_name} {state.test_state}")
    return lines


def build_url(token: str, run_id: str, url: str | None = None) -> str:
    base = url or get_settings().ws_url
    return f"{base}?{urlencode({'token': token, 'run_id': run_id})}"


async def subscribe(
    token: str,
    run_id: str,
    url: str | None = None,
    console: Console | None = None,
) -> None:
    """
    Print progress messages of a run until the server closes the stream.

    Args:
        token: JWT of the user.
        run_id: Run to follow.
        url: WebSocket endpoint (defaults to settings).
        console: Output console (defaults to stdout).
    """
    console = console or Console()
    try:
        async with websockets.connect(build_url(token, run_id, url)) as ws:
            async for raw in ws:
                try:
                    state = RuntimeState.model_validate_json(raw)
                except ValidationError as e:
                    logger.warning(f"Error reading runtime message: {e}")
                    continue
                for line in format_state(state):
                    console.print(line, highlight=False)
    except (OSError, websockets.exceptions.WebSocketException) as e:
        logger.warning(f"Progress stream closed: {e}")


__all__ = ["subscribe", "format_state", "build_url", "timestamp"]
