"""
Models for run submission, status and live progress.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class TokenResponse(BaseModel):
    """Token returned by login and API-key exchange."""

    token: str


class CreateRunResponse(BaseModel):
    """Response of run creation, e.g. ``{"run_id": "0dfe...", "status": "ok"}``."""

    run_id: str
    status: str | None = None


class RunStats(BaseModel):
    """Run status as reported by ``GET /api/v1/run/{id}``."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str | None = None
    link: str | None = None
    state: str = ""
    completed: datetime | None = None
    passed: int | None = None
    failed: int | None = None
    ignored: int | None = None
    total_run_time: float = 0.0
    tests_done: datetime | None = None
    created: datetime | None = None
    updated: datetime | None = None

    @property
    def is_completed(self) -> bool:
        return self.completed is not None

    @property
    def is_passed(self) -> bool:
        return self.state == "passed"


class RuntimeState(BaseModel):
    """Live progress message pushed over the WebSocket."""

    model_config = ConfigDict(extra="ignore")

    total_emulators: int = 0
    working_emulators: int = 0
    state: str = ""
    percents: int = 0
    test_name: str = ""
    test_state: str = ""
