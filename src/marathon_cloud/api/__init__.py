"""
Marathon Cloud API client.

Usage:
    >>> from marathon_cloud.api import AsyncMarathonAPI
    >>>
    >>> async with AsyncMarathonAPI(api_key="key") as api:
    ...     stats = await api.get_run("run-id")
"""

from __future__ import annotations

from marathon_cloud.api.client import AsyncMarathonAPI
from marathon_cloud.api.config import get_base_url, get_report_url

__all__ = [
    "AsyncMarathonAPI",
    "get_base_url",
    "get_report_url",
]
