"""Run orchestration: scan, resolve, then check and star each repository."""

import asyncio
import signal
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, Field

from thanks_stars.core.models import (
    Detection,
    Ecosystem,
    ErrorKind,
    OutcomeKind,
    RepositoryReference,
    ResolvedTarget,
    RunSummary,
    ScanWarning,
    StarOutcome,
)
from thanks_stars.core.resolver import RepositoryResolver
from thanks_stars.errors import AuthError, ConfigurationError, GitHubError, NoManifestsError
from thanks_stars.scanners import CargoScanner, ManifestScanner, ScannerRegistry
from thanks_stars.utils.logging import get_logger

logger = get_logger(__name__)

MIN_WORKERS = 1
MAX_WORKERS = 32
DEFAULT_WORKERS = 4


class StarClient(Protocol):
    """The subset of the GitHub client the orchestrator needs."""

    async def is_starred(self, ref: RepositoryReference) -> bool: ...

    async def star(self, ref: RepositoryReference) -> None: ...


@dataclass
class RunSettings:
    """Options for a single run.

    Attributes:
        dry_run: Check starred state but never star.
        workers: Number of concurrent repository workers.
        run_timeout: Overall deadline in seconds; None disables it.
        cargo_metadata: Resolve Cargo dependencies through ``cargo metadata``.
        handle_signals: Turn SIGINT into a graceful cancel while running.
    """

    dry_run: bool = False
    workers: int = DEFAULT_WORKERS
    run_timeout: float | None = None
    cargo_metadata: bool = False
    handle_signals: bool = False

    def __post_init__(self) -> None:
        if not MIN_WORKERS <= self.workers <= MAX_WORKERS:
            raise ConfigurationError(
                f"workers must be between {MIN_WORKERS} and {MAX_WORKERS}, got {self.workers}",
                "Pass a smaller value with --workers.",
            )
        if self.run_timeout is not None and self.run_timeout <= 0:
            raise ConfigurationError("timeout must be a positive number of seconds")


class RunEventHandler:
    """Receives progress events from a run. Every hook is a no-op by default."""

    def on_warning(self, warning: ScanWarning) -> None:
        pass

    def on_start(self, total: int) -> None:
        pass

    def on_outcome(self, outcome: StarOutcome, index: int, total: int) -> None:
        pass

    def on_complete(self, summary: RunSummary) -> None:
        pass


class RunReport(BaseModel):
    """Everything a run produced, for callers that need more than the summary."""

    summary: RunSummary
    warnings: list[ScanWarning] = Field(default_factory=list)
    detections: list[Detection] = Field(default_factory=list)


class RunOrchestrator:
    """Drives every resolved repository through check and star.

    Each target moves independently through::

        CheckingStar -> AlreadyStarred
                     -> NotStarred -> WouldStar            (dry run)
                     -> NotStarred -> Starring -> Starred  (live)
                     -> Failed

    Targets are pulled from a queue by a bounded pool of workers. A
    rejected token stops dispatching for every worker; ``cancel`` does the
    same for interrupts and the overall timeout.
    """

    def __init__(
        self,
        client: StarClient,
        settings: RunSettings | None = None,
        handler: RunEventHandler | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            client: GitHub client used for checking and starring.
            settings: Run options.
            handler: Progress event receiver.
        """
        self.client = client
        self.settings = settings or RunSettings()
        self.handler = handler or RunEventHandler()

        self.interrupted = False
        self.aborted = False
        self.fatal_error: str | None = None

        self._stop = asyncio.Event()
        self._lock = asyncio.Lock()
        self._outcomes: dict[int, StarOutcome] = {}
        self._tasks: list[asyncio.Task[None]] = []
        self._cancel_requests = 0

    def cancel(self) -> None:
        """Stop dispatching new work.

        In-flight calls are left to finish. A second request cancels them.
        """
        self._cancel_requests += 1
        if self._cancel_requests == 1:
            logger.warning("Interrupted, waiting for in-flight requests (interrupt again to stop now)")
            self.interrupted = True
            self._stop.set()
            return

        for task in self._tasks:
            task.cancel()

    def _on_timeout(self) -> None:
        logger.warning("Run timeout of %.0f seconds reached", self.settings.run_timeout)
        if self._cancel_requests == 0:
            self.cancel()

    async def run(self, targets: list[ResolvedTarget]) -> RunSummary:
        """Process every target and build the summary.

        Args:
            targets: Deduplicated targets in first-seen order.

        Returns:
            RunSummary ordered by target position.
        """
        total = len(targets)
        queue: asyncio.Queue[tuple[int, ResolvedTarget]] = asyncio.Queue()
        for item in enumerate(targets):
            queue.put_nowait(item)

        self.handler.on_start(total)
        logger.debug("Processing %d repositories with %d workers", total, self.settings.workers)

        loop = asyncio.get_running_loop()
        timer = None
        if self.settings.run_timeout:
            timer = loop.call_later(self.settings.run_timeout, self._on_timeout)
        signals_installed = self.settings.handle_signals and self._install_signal_handler(loop)

        try:
            self._tasks = [
                asyncio.create_task(self._worker(queue, total))
                for _ in range(min(self.settings.workers, total))
            ]
            results = await asyncio.gather(*self._tasks, return_exceptions=True)
        finally:
            if timer is not None:
                timer.cancel()
            if signals_installed:
                loop.remove_signal_handler(signal.SIGINT)

        for result in results:
            if isinstance(result, Exception):
                raise result

        summary = RunSummary(
            dry_run=self.settings.dry_run,
            outcomes=[self._outcomes[index] for index in sorted(self._outcomes)],
            total_targets=total,
            interrupted=self.interrupted,
            aborted=self.aborted,
            fatal_error=self.fatal_error,
        )
        self.handler.on_complete(summary)
        return summary

    def _install_signal_handler(self, loop: asyncio.AbstractEventLoop) -> bool:
        try:
            loop.add_signal_handler(signal.SIGINT, self.cancel)
        except (NotImplementedError, RuntimeError, ValueError):
            logger.debug("Signal handlers are not supported by this event loop")
            return False
        return True

    async def _worker(self, queue: "asyncio.Queue[tuple[int, ResolvedTarget]]", total: int) -> None:
        while not self._stop.is_set():
            try:
                index, target = queue.get_nowait()
            except asyncio.QueueEmpty:
                return

            outcome = await self._process(target)
            if outcome is not None:
                await self._record(index, outcome, total)

    async def _record(self, index: int, outcome: StarOutcome, total: int) -> None:
        async with self._lock:
            self._outcomes[index] = outcome
            self.handler.on_outcome(outcome, len(self._outcomes), total)

    async def _process(self, target: ResolvedTarget) -> StarOutcome | None:
        """Run one target's state machine; None leaves it pending.

        Any other exception ends the target as Failed(api).
        """
        try:
            return await self._advance(target)
        except Exception as e:
            logger.error("Unexpected error for %s: %s", target.reference.full_name, e)
            logger.debug("Traceback for %s", target.reference.full_name, exc_info=True)
            return StarOutcome(
                target=target,
                kind=OutcomeKind.FAILED,
                reason=ErrorKind.API,
                message=f"unexpected error: {e}",
            )

    async def _advance(self, target: ResolvedTarget) -> StarOutcome | None:
        ref = target.reference

        try:
            starred = await self.client.is_starred(ref)
        except GitHubError as e:
            return self._failed(target, e)

        if starred:
            kind = OutcomeKind.WOULD_SKIP_ALREADY_STARRED if self.settings.dry_run else OutcomeKind.ALREADY_STARRED
            return StarOutcome(target=target, kind=kind)

        if self.settings.dry_run:
            return StarOutcome(target=target, kind=OutcomeKind.WOULD_STAR)

        if self._stop.is_set():
            return None

        try:
            await self.client.star(ref)
        except GitHubError as e:
            return self._failed(target, e)

        return StarOutcome(target=target, kind=OutcomeKind.STARRED)

    def _failed(self, target: ResolvedTarget, error: GitHubError) -> StarOutcome:
        if isinstance(error, AuthError):
            if not self.aborted:
                logger.error("Authentication failed, stopping: %s", error.message)
            self.aborted = True
            self.fatal_error = error.message
            self._stop.set()
        else:
            logger.debug("%s failed: %s", target.reference.full_name, error.message)

        return StarOutcome(
            target=target,
            kind=OutcomeKind.FAILED,
            reason=error.kind,
            message=error.message,
        )


async def run_project(
    root: Path,
    client: StarClient,
    settings: RunSettings | None = None,
    handler: RunEventHandler | None = None,
) -> RunReport:
    """Scan a project, resolve its repositories and star them.

    Args:
        root: Project root directory.
        client: GitHub client.
        settings: Run options.
        handler: Progress event receiver.

    Returns:
        RunReport with the summary and every soft warning.

    Raises:
        ProjectRootError: If ``root`` is not a directory.
        NoManifestsError: If no supported manifest exists under ``root``.
    """
    settings = settings or RunSettings()
    handler = handler or RunEventHandler()

    scanners = ScannerRegistry.get_all()
    if settings.cargo_metadata:
        scanners = [
            CargoScanner(use_metadata=True) if scanner.ecosystem == Ecosystem.CARGO else scanner
            for scanner in scanners
        ]
    manifest_scanner = ManifestScanner(scanners)

    scan = manifest_scanner.scan(root)
    warnings = list(scan.warnings)
    if not scan.detections:
        for warning in warnings:
            handler.on_warning(warning)
        raise NoManifestsError(str(scan.root))

    logger.info("Detected ecosystems: %s", ", ".join(e.value for e in scan.ecosystems))

    parsed = manifest_scanner.parse(scan)
    resolution = RepositoryResolver().resolve(parsed.dependencies)
    warnings.extend(parsed.warnings)
    warnings.extend(resolution.warnings)
    for warning in warnings:
        handler.on_warning(warning)

    orchestrator = RunOrchestrator(client, settings, handler)
    summary = await orchestrator.run(resolution.targets)

    return RunReport(summary=summary, warnings=warnings, detections=scan.detections)
