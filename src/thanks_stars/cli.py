"""Command-line interface for thanks-stars."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape

from thanks_stars import __version__
from thanks_stars.config import ConfigManager, ThanksStarsConfig
from thanks_stars.core.models import OutcomeKind, RunSummary, ScanWarning, StarOutcome, WarningKind
from thanks_stars.core.orchestrator import RunEventHandler, RunReport, RunSettings, run_project
from thanks_stars.errors import MissingTokenError, ThanksStarsError
from thanks_stars.github.client import GitHubClient, GitHubConfig
from thanks_stars.utils.logging import configure_logging, get_logger

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130

app = typer.Typer(
    name="thanks-stars",
    help="Star the GitHub repositories of your project's dependencies.",
    invoke_without_command=True,
    rich_markup_mode="rich",
)

console = Console(highlight=False, soft_wrap=True)
logger = get_logger(__name__)

PathOption = Annotated[
    Path,
    typer.Option(
        "--path",
        "-p",
        help="Project root to scan.",
        file_okay=False,
        dir_okay=True,
    ),
]
DryRunOption = Annotated[
    bool,
    typer.Option("--dry-run", help="Show what would be starred without starring."),
]
WorkersOption = Annotated[
    int | None,
    typer.Option("--workers", "-w", min=1, max=32, help="Concurrent GitHub workers (default 4)."),
]
TimeoutOption = Annotated[
    float | None,
    typer.Option("--timeout", help="Stop dispatching new repositories after this many seconds."),
]
CargoMetadataOption = Annotated[
    bool,
    typer.Option("--cargo-metadata", help="Resolve Cargo dependencies through `cargo metadata`."),
]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Enable verbose output.")]
QuietOption = Annotated[bool, typer.Option("--quiet", "-q", help="Suppress non-essential output.")]


class ConsoleReporter(RunEventHandler):
    """Prints one line per repository and the final summary."""

    def __init__(self, out: Console | None = None, quiet: bool = False) -> None:
        self.out = out or console
        self.quiet = quiet

    def on_warning(self, warning: ScanWarning) -> None:
        if warning.kind == WarningKind.RESOLUTION:
            logger.debug("%s", warning.message)
        else:
            logger.warning("Skipping %s: %s", warning.path or warning.ecosystem, warning.message)

    def on_start(self, total: int) -> None:
        if total == 0:
            self.out.print("No GitHub repositories found in dependency manifests.")
        else:
            logger.info("Found %d GitHub repositories", total)

    def on_outcome(self, outcome: StarOutcome, index: int, total: int) -> None:
        if self.quiet and not outcome.failed:
            return
        self.out.print(format_outcome(outcome))

    def on_complete(self, summary: RunSummary) -> None:
        self.out.print(format_summary(summary))

        if summary.failures:
            self.out.print("\n[red]Failed repositories:[/red]")
            for outcome in summary.failures:
                self.out.print(f"  - {outcome.target.reference.url}: {escape(_reason(outcome))}")

        if summary.aborted:
            self.out.print(f"\n[bold red]Error:[/bold red] {escape(summary.fatal_error or 'run aborted')}")
            self.out.print(f"Run aborted; {summary.pending} repositories were not processed.")
        elif summary.interrupted:
            self.out.print(f"\n[yellow]Run interrupted; {summary.pending} repositories were not processed.[/yellow]")


def _reason(outcome: StarOutcome) -> str:
    if outcome.message:
        return outcome.message
    return outcome.reason.value if outcome.reason else "unknown error"


def format_outcome(outcome: StarOutcome) -> str:
    """Render the console line for one repository."""
    url = outcome.target.reference.url
    via = outcome.target.via

    if outcome.kind == OutcomeKind.STARRED:
        return f"⭐ Starred {url} via {via}"
    if outcome.kind in (OutcomeKind.ALREADY_STARRED, OutcomeKind.WOULD_SKIP_ALREADY_STARRED):
        return f"⭐ Already starred {url} via {via}"
    if outcome.kind == OutcomeKind.WOULD_STAR:
        return f"⭐ Would star {url} via {via}"
    return f"❌ Failed {url} via {via}: {escape(_reason(outcome))}"


def format_summary(summary: RunSummary) -> str:
    """Render the final summary line."""
    if summary.dry_run:
        return (
            f"✨ Dry run complete! {summary.would_star} repository would be starred, "
            f"{summary.already_starred} already starred."
        )
    return f"✨ Completed! Starred {summary.starred} repositories."


def exit_code(summary: RunSummary) -> int:
    """Process exit status for a finished run."""
    if summary.interrupted:
        return EXIT_INTERRUPTED
    if summary.success:
        return EXIT_OK
    return EXIT_FAILURE


def create_client(token: str, config: ThanksStarsConfig) -> GitHubClient:
    """Build the GitHub client for a run."""
    return GitHubClient(
        GitHubConfig(token=token, base_url=config.api_url, timeout=config.request_timeout),
        retry_policy=config.retry.to_policy(),
    )


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"thanks-stars {__version__}")
        raise typer.Exit()


def _log_level(verbose: bool, quiet: bool) -> str:
    return "DEBUG" if verbose else "WARNING" if quiet else "INFO"


def _handle_cli_error(error: Exception) -> None:
    """Display a user-friendly error message and exit.

    Args:
        error: The exception to handle.

    Raises:
        typer.Exit: Always exits with code 1.
    """
    if isinstance(error, ThanksStarsError):
        console.print(f"[bold red]Error:[/bold red] {escape(error.message)}")
        if error.hint:
            console.print(f"[yellow]Hint:[/yellow] {escape(error.hint)}")
    else:
        console.print(f"[red]Error: {escape(str(error))}[/red]")

    raise typer.Exit(code=EXIT_FAILURE)


async def _run_with_client(
    root: Path,
    token: str,
    config: ThanksStarsConfig,
    settings: RunSettings,
    reporter: ConsoleReporter,
) -> RunReport:
    async with create_client(token, config) as client:
        return await run_project(root, client, settings, reporter)


def _execute(
    path: Path,
    dry_run: bool,
    workers: int | None,
    timeout: float | None,
    cargo_metadata: bool,
    quiet: bool,
) -> None:
    manager = ConfigManager()

    try:
        config = manager.load_settings()
        token = manager.get_token()
        if not token:
            raise MissingTokenError()

        settings = RunSettings(
            dry_run=dry_run,
            workers=workers or config.workers,
            run_timeout=timeout if timeout is not None else config.run_timeout,
            cargo_metadata=cargo_metadata,
            handle_signals=True,
        )
        reporter = ConsoleReporter(quiet=quiet)
        report = asyncio.run(_run_with_client(path, token, config, settings, reporter))
    except ThanksStarsError as e:
        _handle_cli_error(e)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted.[/yellow]")
        raise typer.Exit(code=EXIT_INTERRUPTED) from None

    raise typer.Exit(code=exit_code(report.summary))


@app.callback()
def main(
    ctx: typer.Context,
    path: PathOption = Path("."),
    dry_run: DryRunOption = False,
    workers: WorkersOption = None,
    timeout: TimeoutOption = None,
    cargo_metadata: CargoMetadataOption = False,
    verbose: VerboseOption = False,
    quiet: QuietOption = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
) -> None:
    """thanks-stars - thank the maintainers of your dependencies with a star.

    Without a subcommand, scans the project and stars its dependencies.
    """
    configure_logging(level=_log_level(verbose, quiet))

    if ctx.invoked_subcommand is None:
        _execute(path, dry_run, workers, timeout, cargo_metadata, quiet)


@app.command()
def run(
    path: PathOption = Path("."),
    dry_run: DryRunOption = False,
    workers: WorkersOption = None,
    timeout: TimeoutOption = None,
    cargo_metadata: CargoMetadataOption = False,
    verbose: VerboseOption = False,
    quiet: QuietOption = False,
) -> None:
    """Scan the project and star the repositories of its dependencies."""
    if verbose or quiet:
        configure_logging(level=_log_level(verbose, quiet))
    _execute(path, dry_run, workers, timeout, cargo_metadata, quiet)


@app.command()
def auth(
    token: Annotated[
        str | None,
        typer.Option(
            "--token",
            "-t",
            help="GitHub personal access token (prompted for when omitted).",
        ),
    ] = None,
) -> None:
    """Save a GitHub personal access token to the config file."""
    if token is None:
        token = typer.prompt("GitHub personal access token", hide_input=True)

    try:
        config_file = ConfigManager().save_token(token)
    except ThanksStarsError as e:
        _handle_cli_error(e)

    console.print(f"[green]Token saved to {escape(str(config_file))}[/green]")


if __name__ == "__main__":
    app()
