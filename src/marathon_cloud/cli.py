"""
Marathon Cloud CLI.

Usage:
    marathon-cloud run --app app.apk --testapp test.apk --platform android -o ./allure
    marathon-cloud download RUN_ID -o ./allure
    marathon-cloud validate-filter filters.yaml
"""

from __future__ import annotations

import asyncio
import contextlib
from pathlib import Path
from typing import Callable, Iterator, NoReturn

import click
from rich.console import Console
from rich.markup import escape
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn

from marathon_cloud.api import AsyncMarathonAPI, get_report_url
from marathon_cloud.config import get_settings
from marathon_cloud.exceptions import FilterValidationError, MarathonError
from marathon_cloud.filtering import validate_filter_file
from marathon_cloud.logging import setup_logging
from marathon_cloud.models.run import RunStats
from marathon_cloud.progress import subscribe
from marathon_cloud.services.artifacts import AsyncArtifactService, RetrievalSummary

console = Console()
err_console = Console(stderr=True)

# Exit codes
EXIT_NOT_PASSED = 3
EXIT_WAIT_FAILED = 4
EXIT_RUN_FAILED = 5
EXIT_LOGIN_FAILED = 6
EXIT_BAD_FLAGS = 7
EXIT_BAD_FILTER = 8
EXIT_PARTIAL = 9

PLATFORMS = {"android": "Android", "ios": "iOS"}


class Credentials:
    """API key, or the deprecated e-mail/password pair."""

    def __init__(self, api_key: str | None, login: str | None, password: str | None) -> None:
        self.api_key = api_key or None
        self.login = login or None
        self.password = password or None

    @property
    def is_valid(self) -> bool:
        return bool(self.api_key or (self.login and self.password))


def fail(message: str, code: int) -> NoReturn:
    err_console.print(f"[red]Error:[/red] {escape(message)}")
    raise SystemExit(code)


def get_credentials(
    ctx: click.Context,
    login: str | None = None,
    password: str | None = None,
) -> Credentials:
    """Get credentials from context, options or environment."""
    api_key = ctx.obj.get("api_key") if ctx.obj else None
    credentials = Credentials(api_key, login, password)
    if not credentials.is_valid:
        fail("api-key or login with password must be specified (MARATHON_API_KEY)", EXIT_BAD_FLAGS)
    return credentials


@click.group()
@click.option("--api-key", envvar="MARATHON_API_KEY", help="Marathon Cloud API key")
@click.option("--host", envvar="MARATHON_HOST", help="Marathon Cloud API host")
@click.option("--log-level", default=None, help="Log level (DEBUG, INFO, WARNING, ...)")
@click.version_option(package_name="marathon-cloud-cli")
@click.pass_context
def main(
    ctx: click.Context,
    api_key: str | None,
    host: str | None,
    log_level: str | None,
) -> None:
    """Marathon Cloud command-line interface."""
    settings = get_settings()
    setup_logging(log_level or settings.log_level, json_output=settings.log_json)
    ctx.ensure_object(dict)
    ctx.obj["api_key"] = api_key
    ctx.obj["host"] = host or settings.host


# =============================================================================
# Run Command
# =============================================================================


@main.command()
@click.option("--app", type=click.Path(path_type=Path), help="Application binary (apk, or zipped iOS app)")
@click.option("--testapp", type=click.Path(path_type=Path), help="Test application binary")
@click.option("--platform", help="Testing platform (Android or iOS)")
@click.option("--name", help="Name for the run, e.g. a commit description")
@click.option("--link", help="Link to the commit")
@click.option("--os-version", help="Android or iOS OS version")
@click.option("--isolated", type=click.Choice(["true", "false"]), help="Run each test in isolation")
@click.option("--system-image", help="OS-specific system image")
@click.option("--filter-file", type=click.Path(path_type=Path), help="Test filters in YAML")
@click.option("--flavor", help="Type of tests: native, js-test-appium, python-robotframework-appium")
@click.option("--output", "-o", type=click.Path(path_type=Path), help="Allure raw results output folder")
@click.option("--login", "-e", help="User e-mail (deprecated)")
@click.option("--password", "-p", help="User password (deprecated)")
@click.option("--no-progress", is_flag=True, help="Hide the download progress bar")
@click.option("--fail-on-partial", is_flag=True, help="Exit 9 if some artifacts were not downloaded")
@click.pass_context
def run(
    ctx: click.Context,
    app: Path | None,
    testapp: Path | None,
    platform: str | None,
    name: str | None,
    link: str | None,
    os_version: str | None,
    isolated: str | None,
    system_image: str | None,
    filter_file: Path | None,
    flavor: str | None,
    output: Path | None,
    login: str | None,
    password: str | None,
    no_progress: bool,
    fail_on_partial: bool,
) -> None:
    """Submit a test run and wait for it to finish.

    Exits 0 when the run passed, 3 when it finished in another state.

    Examples:

        marathon-cloud run --app app.apk --testapp test.apk --platform android

        marathon-cloud run --app App.zip --testapp UITests-Runner.zip --platform ios -o ./allure
    """
    if not app:
        fail("app filepath must be specified", EXIT_BAD_FLAGS)
    if not testapp:
        fail("testapp filepath must be specified", EXIT_BAD_FLAGS)
    if not platform:
        fail("platform must be specified", EXIT_BAD_FLAGS)
    normalized_platform = PLATFORMS.get(platform.lower())
    if normalized_platform is None:
        fail("platform must be 'Android' or 'iOS'", EXIT_BAD_FLAGS)

    credentials = get_credentials(ctx, login, password)

    filtering_configuration = None
    if filter_file:
        try:
            filtering_configuration = validate_filter_file(filter_file)
        except FilterValidationError as e:
            fail(f"Error happened attempting to read {filter_file}\n{e}", EXIT_BAD_FILTER)

    code = asyncio.run(
        _run_async(
            host=ctx.obj["host"],
            credentials=credentials,
            app=app,
            testapp=testapp,
            platform=normalized_platform,
            name=name,
            link=link,
            os_version=os_version,
            isolated=isolated,
            system_image=system_image,
            filtering_configuration=filtering_configuration,
            flavor=flavor,
            output=output,
            show_progress=not no_progress,
            fail_on_partial=fail_on_partial,
        )
    )
    raise SystemExit(code)


async def _authenticate(api: AsyncMarathonAPI, credentials: Credentials) -> str:
    if credentials.api_key:
        token = await api.request_jwt()
    else:
        token = await api.authorize(credentials.login or "", credentials.password or "")
    api.set_token(token)
    return token


async def _run_async(
    host: str,
    credentials: Credentials,
    output: Path | None,
    show_progress: bool,
    fail_on_partial: bool,
    **run_options: object,
) -> int:
    """Async run implementation."""
    async with AsyncMarathonAPI(host=host, api_key=credentials.api_key) as api:
        try:
            token = await _authenticate(api, credentials)
        except MarathonError as e:
            err_console.print(f"[red]Can't login:[/red] {escape(str(e))}")
            return EXIT_LOGIN_FAILED

        console.print("Creating new run")
        try:
            run_id = await api.create_run(**run_options)  # type: ignore[arg-type]
        except MarathonError as e:
            err_console.print(f"[red]{escape(str(e))}[/red]")
            return EXIT_RUN_FAILED
        console.print(f"The test run was started. RunID={run_id}")

        progress_task = asyncio.create_task(subscribe(token, run_id))
        stats: RunStats | None = None
        wait_error: MarathonError | None = None
        try:
            stats = await api.wait_for_run(run_id)
        except MarathonError as e:
            wait_error = e
        finally:
            progress_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await progress_task

    if stats is not None:
        _print_run_stats(host, stats)

    summary: RetrievalSummary | None = None
    if output:
        summary = await _fetch_artifacts(host, token, run_id, output, show_progress)

    if wait_error is not None:
        err_console.print(f"[red]{escape(str(wait_error))}[/red]")
        return EXIT_WAIT_FAILED
    if fail_on_partial and summary is not None and not summary.is_complete:
        return EXIT_PARTIAL
    if stats is None or not stats.is_passed:
        return EXIT_NOT_PASSED
    return 0


def _print_run_stats(host: str, stats: RunStats) -> None:
    console.print(f"Allure report - {get_report_url(host, stats.id)}")
    console.print(f"Passed - {stats.passed or 0}")
    console.print(f"Failed - {stats.failed or 0}")
    console.print(f"Ignored - {stats.ignored or 0}")


# =============================================================================
# Download Command
# =============================================================================


@main.command()
@click.argument("run_id")
@click.option("--output", "-o", required=True, type=click.Path(path_type=Path), help="Output folder")
@click.option("--login", "-e", help="User e-mail (deprecated)")
@click.option("--password", "-p", help="User password (deprecated)")
@click.option("--concurrency", type=click.IntRange(min=1, max=100), help="Remote operations in flight")
@click.option("--interval", type=click.FloatRange(min=0), help="Seconds between passes")
@click.option("--max-passes", type=click.IntRange(min=0), help="Pass cap, 0 for none")
@click.option("--deadline", type=click.FloatRange(min=0, min_open=True), help="Stop passes after this many seconds")
@click.option("--no-progress", is_flag=True, help="Hide the progress bar")
@click.option("--fail-on-partial", is_flag=True, help="Exit 9 if some artifacts were not downloaded")
@click.pass_context
def download(
    ctx: click.Context,
    run_id: str,
    output: Path,
    login: str | None,
    password: str | None,
    concurrency: int | None,
    interval: float | None,
    max_passes: int | None,
    deadline: float | None,
    no_progress: bool,
    fail_on_partial: bool,
) -> None:
    """Download the artifacts of a finished run.

    Examples:

        marathon-cloud download 0dfe9125-dad5-42c9-b642-5599530caa79 -o ./allure
    """
    credentials = get_credentials(ctx, login, password)
    summary = asyncio.run(
        _download_async(
            host=ctx.obj["host"],
            credentials=credentials,
            run_id=run_id,
            output=output,
            show_progress=not no_progress,
            concurrency=concurrency,
            interval=interval,
            max_passes=max_passes,
            deadline=deadline,
        )
    )
    if summary is None:
        raise SystemExit(EXIT_LOGIN_FAILED)
    console.print(summary.summary())
    if fail_on_partial and not summary.is_complete:
        raise SystemExit(EXIT_PARTIAL)


async def _download_async(
    host: str,
    credentials: Credentials,
    run_id: str,
    output: Path,
    show_progress: bool,
    **options: float | int | None,
) -> RetrievalSummary | None:
    """Async download implementation."""
    async with AsyncMarathonAPI(host=host, api_key=credentials.api_key) as api:
        try:
            token = await _authenticate(api, credentials)
        except MarathonError as e:
            err_console.print(f"[red]Can't login:[/red] {escape(str(e))}")
            return None
    return await _fetch_artifacts(host, token, run_id, output, show_progress, **options)


async def _fetch_artifacts(
    host: str,
    token: str,
    run_id: str,
    output: Path,
    show_progress: bool,
    concurrency: int | None = None,
    interval: float | None = None,
    max_passes: int | None = None,
    deadline: float | None = None,
) -> RetrievalSummary:
    async with AsyncMarathonAPI(host=host, token=token) as api:
        service = AsyncArtifactService(api)
        service.configure(
            max_concurrency=concurrency,
            convergence_interval=interval,
            max_passes=max_passes,
        )
        with _progress_bar(show_progress) as on_progress:
            return await service.fetch(
                run_id,
                output,
                on_progress=on_progress,
                deadline=deadline,
            )


@contextlib.contextmanager
def _progress_bar(enabled: bool) -> Iterator[Callable[[int, int], None] | None]:
    if not enabled:
        yield None
        return

    with Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        console=err_console,
        transient=True,
    ) as progress:
        task_id = progress.add_task("Downloading artifacts", total=None)

        def on_progress(done: int, total: int) -> None:
            progress.update(task_id, completed=done, total=total)

        yield on_progress


# =============================================================================
# Validate Filter Command
# =============================================================================


@main.command("validate-filter")
@click.argument("filter_file", type=click.Path(path_type=Path))
def validate_filter(filter_file: Path) -> None:
    """Validate a YAML filter file and print its JSON form."""
    try:
        click.echo(validate_filter_file(filter_file))
    except FilterValidationError as e:
        fail(str(e), EXIT_BAD_FILTER)


# =============================================================================
# Entry Point
# =============================================================================


if __name__ == "__main__":
    main()
