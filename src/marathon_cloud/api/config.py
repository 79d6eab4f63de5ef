"""
Marathon Cloud API URL configuration.
"""

from __future__ import annotations

from marathon_cloud.config import DEFAULT_HOST


def get_base_url(host: str = DEFAULT_HOST) -> str:
    """
    Get base URL for an API host.

    Args:
        host: Bare hostname, or a full URL to use as-is.

    Returns:
        Base URL without trailing slash.

    Example:
        >>> get_base_url("cloud.marathonlabs.io")
        'https://cloud.marathonlabs.io'
        >>> get_base_url("http://localhost:8000/")
        'http://localhost:8000'
    """
    host = host.rstrip("/")
    if host.startswith(("http://", "https://")):
        return host
    return f"https://{host}"


def get_report_url(host: str, run_id: str) -> str:
    """Link to the rendered Allure report of a run."""
    return f"{get_base_url(host)}/api/v1/report/{run_id}"


__all__ = ["get_base_url", "get_report_url"]
