"""Ecosystem detection for a project root."""

from pathlib import Path

from thanks_stars.core.models import (
    Detection,
    Ecosystem,
    ParseResult,
    ScanResult,
    ScanWarning,
    WarningKind,
)
from thanks_stars.errors import ProjectRootError
from thanks_stars.scanners.base import BaseScanner, ScannerRegistry
from thanks_stars.utils.logging import get_logger

logger = get_logger(__name__)


class ManifestScanner:
    """Determines which ecosystems have manifests directly under a root.

    Ecosystems are probed independently: a filesystem error while probing one
    ecosystem is reported as a warning and never hides the others.
    """

    def __init__(self, scanners: list[BaseScanner] | None = None) -> None:
        """Initialize the manifest scanner.

        Args:
            scanners: Scanners to probe, in order. Defaults to the registry.
        """
        self._scanners = scanners

    @property
    def scanners(self) -> list[BaseScanner]:
        if self._scanners is not None:
            return list(self._scanners)
        return ScannerRegistry.get_all()

    def scan(self, root: Path) -> ScanResult:
        """Probe ``root`` for every registered ecosystem.

        Args:
            root: Project root directory.

        Returns:
            ScanResult with one Detection per ecosystem found.

        Raises:
            ProjectRootError: If ``root`` is not a directory.
        """
        root = root.resolve()
        if not root.is_dir():
            raise ProjectRootError(str(root))

        result = ScanResult(root=root)

        for scanner in self.scanners:
            try:
                paths = scanner.detected_paths(root)
            except OSError as e:
                logger.debug("Unable to probe %s manifests: %s", scanner.ecosystem.value, e)
                result.warnings.append(
                    ScanWarning(
                        kind=WarningKind.SCAN,
                        ecosystem=scanner.ecosystem,
                        path=str(e.filename) if e.filename else None,
                        message=str(e),
                    )
                )
                continue

            if paths:
                logger.debug(
                    "Detected %s ecosystem via %s",
                    scanner.ecosystem.value,
                    ", ".join(path.name for path in paths),
                )
                result.detections.append(Detection(ecosystem=scanner.ecosystem, paths=paths))

        return result

    def parse(self, scan: ScanResult) -> ParseResult:
        """Run each detected ecosystem's parser over its files.

        Args:
            scan: Result of ``scan``.

        Returns:
            Combined dependencies and warnings, in ecosystem order.
        """
        combined = ParseResult()

        for detection in scan.detections:
            scanner = self._scanner_for(detection.ecosystem)
            if scanner is None:
                continue
            result = scanner.parse(detection.paths)
            combined.dependencies.extend(result.dependencies)
            combined.warnings.extend(result.warnings)
            combined.files_parsed.extend(result.files_parsed)

        return combined

    def _scanner_for(self, ecosystem: Ecosystem) -> BaseScanner | None:
        for scanner in self.scanners:
            if scanner.ecosystem == ecosystem:
                return scanner
        return None


def detect_ecosystems(directory: Path) -> list[Ecosystem]:
    """Detect which ecosystems are present in a directory.

    Args:
        directory: Directory to scan.

    Returns:
        List of detected ecosystems.
    """
    return ManifestScanner().scan(directory).ecosystems


def register_default_scanners() -> None:
    """Register all default scanner implementations, in reporting order."""
    from thanks_stars.scanners.cargo import CargoScanner
    from thanks_stars.scanners.composer import ComposerScanner
    from thanks_stars.scanners.dart import DartScanner
    from thanks_stars.scanners.deno import DenoScanner
    from thanks_stars.scanners.go import GoScanner
    from thanks_stars.scanners.gradle import GradleScanner
    from thanks_stars.scanners.jsr import JsrScanner
    from thanks_stars.scanners.npm import NpmScanner
    from thanks_stars.scanners.pip import PipScanner
    from thanks_stars.scanners.renv import RenvScanner
    from thanks_stars.scanners.ruby import RubyScanner

    ScannerRegistry.clear()

    ScannerRegistry.register(NpmScanner())
    ScannerRegistry.register(DenoScanner())
    ScannerRegistry.register(JsrScanner())
    ScannerRegistry.register(CargoScanner())
    ScannerRegistry.register(GoScanner())
    ScannerRegistry.register(ComposerScanner())
    ScannerRegistry.register(RubyScanner())
    ScannerRegistry.register(PipScanner())
    ScannerRegistry.register(GradleScanner())
    ScannerRegistry.register(DartScanner())
    ScannerRegistry.register(RenvScanner())

    logger.debug("Registered %d scanners", len(ScannerRegistry.get_all()))
