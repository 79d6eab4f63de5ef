"""
Marathon Cloud API client.

Async httpx client for the REST endpoints used by the CLI: authentication,
run submission and polling, and the artifact tree.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from marathon_cloud.api.config import get_base_url
from marathon_cloud.config import get_settings
from marathon_cloud.exceptions import (
    AuthenticationError,
    DecodeError,
    RunSubmissionError,
    TransportError,
)
from marathon_cloud.logging import get_logger
from marathon_cloud.models.artifacts import ArtifactEntry, ArtifactListing
from marathon_cloud.models.run import CreateRunResponse, RunStats, TokenResponse

logger = get_logger(__name__)

M = TypeVar("M", bound=BaseModel)

USER_AGENT = "marathon-cloud-cli"


class AsyncMarathonAPI:
    """
    Async Marathon Cloud API client.

    Authenticates with a bearer token when one is set, otherwise with the
    API key as a query parameter.

    Example:
        >>> async with AsyncMarathonAPI(api_key="key") as api:
        ...     api.set_token(await api.request_jwt())
        ...     run_id = await api.create_run(Path("app.apk"), Path("test.apk"), "Android")
        ...     stats = await api.wait_for_run(run_id)
    """

    def __init__(
        self,
        host: str | None = None,
        api_key: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
        **kwargs: Any,
    ) -> None:
        """
        Initialize API client.

        Args:
            host: API host (defaults to settings).
            api_key: API key for key-authenticated endpoints.
            token: Bearer token (JWT).
            timeout: Request timeout in seconds (defaults to settings).
            **kwargs: Additional httpx.AsyncClient kwargs.
        """
        settings = get_settings()
        self._host = host or settings.host
        self._base_url = get_base_url(self._host)
        self._api_key = api_key
        self._token = token
        self._http = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout if timeout is not None else settings.request_timeout,
            headers={"User-Agent": USER_AGENT},
            **kwargs,
        )

    @property
    def host(self) -> str:
        return self._host

    @property
    def base_url(self) -> str:
        return self._base_url

    def set_token(self, token: str) -> None:
        """Use a bearer token for subsequent requests."""
        self._token = token

    @property
    def _auth_headers(self) -> dict[str, str]:
        if self._token:
            return {"Authorization": f"Bearer {self._token}"}
        return {}

    @property
    def _auth_params(self) -> dict[str, str]:
        if not self._token and self._api_key:
            return {"api_key": self._api_key}
        return {}

    # =========================================================================
    # Authentication
    # =========================================================================

    async def request_jwt(self) -> str:
        """Exchange the API key for a JWT."""
        if not self._api_key:
            raise AuthenticationError("API key required to request a token")
        logger.debug("Requesting token")
        response = await self._request(
            "GET", "/api/v1/user/jwt", params={"api_key": self._api_key}
        )
        return self._decode(response, TokenResponse).token

    async def authorize(self, email: str, password: str) -> str:
        """Log in with e-mail and password (deprecated flow)."""
        response = await self._request(
            "POST",
            "/api/v1/cli/auth",
            json={"email": email, "password": password},
        )
        return self._decode(response, TokenResponse).token

    # =========================================================================
    # Runs
    # =========================================================================

    async def create_run(
        self,
        app: Path,
        testapp: Path,
        platform: str,
        name: str | None = None,
        link: str | None = None,
        os_version: str | None = None,
        isolated: str | None = None,
        system_image: str | None = None,
        filtering_configuration: str | None = None,
        flavor: str | None = None,
    ) -> str:
        """
        Upload binaries and start a test run.

        Args:
            app: Application binary (apk, or zipped iOS app).
            testapp: Test binary.
            platform: ``Android`` or ``iOS``.
            name: Run name, e.g. a commit description.
            link: Link to the commit.
            os_version: Device OS version.
            isolated: ``"true"``/``"false"``; other values are not sent.
            system_image: OS-specific system image.
            filtering_configuration: Filter JSON from validate_filter_file().
            flavor: Test flavor (native, js-test-appium, ...).

        Returns:
            Run ID.

        Raises:
            RunSubmissionError: If a binary can't be read or the API rejects the run.
        """
        app, testapp = Path(app), Path(testapp)
        data: dict[str, str] = {"platform": platform}
        optional = {
            "name": name,
            "link": link,
            "osversion": os_version,
            "system_image": system_image,
            "filtering_configuration": filtering_configuration,
            "flavor": flavor,
        }
        data.update({key: value for key, value in optional.items() if value})
        if isolated in ("true", "false"):
            data["isolated"] = isolated

        try:
            app_file = open(app, "rb")
        except OSError as e:
            raise RunSubmissionError(f"Can't read app file {app}: {e}", cause=e) from e
        try:
            try:
                testapp_file = open(testapp, "rb")
            except OSError as e:
                raise RunSubmissionError(
                    f"Can't read testapp file {testapp}: {e}", cause=e
                ) from e
            with testapp_file:
                files = {
                    "app": (app.name, app_file),
                    "testapp": (testapp.name, testapp_file),
                }
                logger.info("Uploading application and test application")
                try:
                    response = await self._request(
                        "POST", "/api/v1/run", data=data, files=files
                    )
                except AuthenticationError:
                    raise
                except TransportError as e:
                    raise RunSubmissionError(str(e), cause=e) from e
        finally:
            app_file.close()

        run_id = self._decode(response, CreateRunResponse).run_id
        logger.debug(f"Created run {run_id}")
        return run_id

    async def get_run(self, run_id: str) -> RunStats:
        """Fetch run status."""
        response = await self._request("GET", f"/api/v1/run/{run_id}")
        return self._decode(response, RunStats)

    async def wait_for_run(
        self,
        run_id: str,
        poll_interval: float | None = None,
    ) -> RunStats:
        """
        Poll run status until the run is completed.

        Non-2xx statuses are logged and polling continues; network
        failures propagate.
        """
        if poll_interval is None:
            poll_interval = get_settings().run_poll_interval

        logger.info("Waiting for the test run to finish")
        while True:
            try:
                stats = await self.get_run(run_id)
            except AuthenticationError:
                raise
            except TransportError as e:
                if e.status_code is None:
                    raise
                logger.warning(f"Status code = {e.status_code}. Maybe it is a critical error")
            else:
                if stats.is_completed:
                    return stats
            await asyncio.sleep(poll_interval)

    # =========================================================================
    # Artifacts
    # =========================================================================

    async def list_artifact(self, node_id: str) -> list[ArtifactEntry]:
        """List children of a remote artifact directory."""
        path = node_id.replace("#", "%23")
        response = await self._request("GET", f"/api/v1/artifact/{path}")
        try:
            return ArtifactListing.validate_python(response.json())
        except (ValueError, ValidationError) as e:
            raise DecodeError(f"Malformed listing for {node_id}: {e}", cause=e) from e

    async def download_artifact(self, node_id: str) -> bytes:
        """Fetch the raw bytes of a remote artifact file."""
        key = node_id.replace("#", "%23")
        response = await self._request("GET", f"/api/v1/artifact?key={key}")
        return response.content

    # =========================================================================
    # Internals
    # =========================================================================

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        merged = {**self._auth_params, **(params or {})}
        try:
            response = await self._http.request(
                method,
                url,
                params=merged or None,
                headers=self._auth_headers,
                **kwargs,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise TransportError(f"{method} {url} failed: {e}", cause=e) from e

        if response.status_code in (401, 403):
            raise AuthenticationError(
                f"{method} {url} rejected credentials",
                status_code=response.status_code,
            )
        if not response.is_success:
            raise TransportError(
                f"{method} {url} returned status {response.status_code}",
                status_code=response.status_code,
            )
        return response

    @staticmethod
    def _decode(response: httpx.Response, model: type[M]) -> M:
        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise DecodeError(f"Malformed {model.__name__} response: {e}", cause=e) from e

    async def __aenter__(self) -> AsyncMarathonAPI:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._http.aclose()

    def __repr__(self) -> str:
        return f"<AsyncMarathonAPI base_url={self._base_url!r}>"


__all__ = ["AsyncMarathonAPI"]
