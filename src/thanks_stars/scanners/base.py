"""Base scanner interface for manifest parsing."""

import json
import re
import stat
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, ClassVar

from thanks_stars.core.models import (
    Dependency,
    Ecosystem,
    ParseResult,
    ScanWarning,
    WarningKind,
)
from thanks_stars.errors import ManifestParseError
from thanks_stars.utils.logging import get_logger

logger = get_logger(__name__)

GITHUB_HOSTS = ("github.com", "www.github.com")


class BaseScanner(ABC):
    """Abstract base class for ecosystem scanners.

    Every ecosystem-specific scanner inherits from this class, lists the file
    names (or glob patterns) it understands in ``manifest_files`` and
    implements ``parse_file``. Entries without a derivable repository hint
    are dropped by the scanner rather than emitted without one.
    """

    manifest_files: ClassVar[list[str]] = []
    """File names or glob patterns, probed directly under the project root."""

    @property
    @abstractmethod
    def ecosystem(self) -> Ecosystem:
        """Return the ecosystem this scanner handles."""
        ...

    @abstractmethod
    def parse_file(self, path: Path) -> list[Dependency]:
        """Parse a single manifest or lockfile.

        Args:
            path: Path to the file.

        Returns:
            Dependencies that carry a repository hint.

        Raises:
            ManifestParseError: If the file is malformed.
            OSError: If the file cannot be read.
        """
        ...

    def detected_paths(self, root: Path) -> list[Path]:
        """List the files of this ecosystem present directly under ``root``.

        Args:
            root: Project root.

        Returns:
            Existing regular files, in ``manifest_files`` order.

        Raises:
            OSError: If a candidate cannot be probed (e.g. permission denied).
        """
        found: list[Path] = []
        for pattern in self.manifest_files:
            if any(ch in pattern for ch in "*?["):
                candidates = sorted(root.glob(pattern))
            else:
                candidates = [root / pattern]

            for candidate in candidates:
                if candidate not in found and _is_regular_file(candidate):
                    found.append(candidate)
        return found

    def detect(self, root: Path) -> bool:
        """Check whether any file of this ecosystem exists under ``root``."""
        return bool(self.detected_paths(root))

    def parse(self, paths: list[Path]) -> ParseResult:
        """Parse every detected file, turning failures into warnings.

        A malformed or unreadable file, or one whose content has an
        unexpected shape, never aborts parsing: it is recorded as a parse
        warning and the remaining files are still parsed.

        Args:
            paths: Files returned by ``detected_paths``.

        Returns:
            ParseResult with the dependencies of every readable file.
        """
        result = ParseResult()

        for path in paths:
            logger.debug("Parsing %s", path)
            try:
                dependencies = self.parse_file(path)
            except ManifestParseError as e:
                self._warn(result, path, e.reason or e.message)
                continue
            except (OSError, UnicodeDecodeError) as e:
                self._warn(result, path, f"unable to read file: {e}")
                continue
            except (TypeError, AttributeError, KeyError, ValueError) as e:
                self._warn(result, path, f"unexpected content: {e}")
                continue

            result.dependencies.extend(dependencies)
            result.files_parsed.append(str(path))
            logger.debug("Found %d repository hints in %s", len(dependencies), path.name)

        return result

    def _warn(self, result: ParseResult, path: Path, message: str) -> None:
        logger.debug("Skipping %s: %s", path, message)
        result.warnings.append(
            ScanWarning(
                kind=WarningKind.PARSE,
                ecosystem=self.ecosystem,
                path=str(path),
                message=message,
            )
        )

    def dependency(self, name: str, path: Path, hint: str | None) -> Dependency:
        """Build a Dependency of this scanner's ecosystem."""
        if not isinstance(name, str):
            raise ManifestParseError(str(path), f"package name must be a string, got {name!r}")
        return Dependency(
            ecosystem=self.ecosystem,
            name=name,
            manifest_path=path,
            raw_repo_hint=hint,
        )


def _is_regular_file(path: Path) -> bool:
    try:
        mode = path.stat().st_mode
    except (FileNotFoundError, NotADirectoryError):
        return False
    return stat.S_ISREG(mode)


def read_json(path: Path) -> Any:
    """Read a JSON document, raising ManifestParseError when malformed."""
    content = path.read_text(encoding="utf-8")
    try:
        return json.loads(content)
    except json.JSONDecodeError as e:
        raise ManifestParseError(str(path), f"invalid JSON: {e}") from e


_JSONC_TOKEN = re.compile(
    r'"(?:\\.|[^"\\])*"|//[^\n]*|/\*.*?\*/',
    re.DOTALL,
)
_TRAILING_COMMA = re.compile(r',(\s*[}\]])')


def strip_jsonc(content: str) -> str:
    """Remove comments and trailing commas from a JSONC document."""

    def _replace(match: re.Match[str]) -> str:
        token = match.group(0)
        return token if token.startswith('"') else ""

    without_comments = _JSONC_TOKEN.sub(_replace, content)

    parts: list[str] = []
    last = 0
    for match in re.finditer(r'"(?:\\.|[^"\\])*"', without_comments):
        parts.append(_TRAILING_COMMA.sub(r"\1", without_comments[last : match.start()]))
        parts.append(match.group(0))
        last = match.end()
    parts.append(_TRAILING_COMMA.sub(r"\1", without_comments[last:]))
    return "".join(parts)


def read_jsonc(path: Path) -> Any:
    """Read a JSON or JSONC document."""
    content = path.read_text(encoding="utf-8")
    try:
        return json.loads(strip_jsonc(content))
    except json.JSONDecodeError as e:
        raise ManifestParseError(str(path), f"invalid JSON: {e}") from e


def repository_field(value: Any) -> str | None:
    """Extract a URL from a ``repository`` field (string or ``{url}`` table)."""
    if isinstance(value, str) and value.strip():
        return value.strip()
    if isinstance(value, dict):
        url = value.get("url")
        if isinstance(url, str) and url.strip():
            return url.strip()
    return None


def is_github_url(value: str) -> bool:
    """Whether a string points at a github.com repository page or clone URL."""
    lowered = value.strip().lower()
    if lowered.startswith("github:"):
        return True
    lowered = re.sub(r"^[a-z+]+://", "", lowered)
    lowered = re.sub(r"^[^@/]+@", "", lowered)
    return lowered.startswith(tuple(f"{host}/" for host in GITHUB_HOSTS)) or lowered.startswith(
        "github.com:"
    )


class ScannerRegistry:
    """Ordered registry of scanner instances."""

    _scanners: ClassVar[list[BaseScanner]] = []

    @classmethod
    def register(cls, scanner: BaseScanner) -> None:
        """Register a scanner instance.

        Args:
            scanner: Scanner to register.
        """
        cls._scanners.append(scanner)

    @classmethod
    def get_all(cls) -> list[BaseScanner]:
        """Get all registered scanners, in registration order."""
        return cls._scanners.copy()

    @classmethod
    def get_for_ecosystem(cls, ecosystem: Ecosystem) -> BaseScanner | None:
        """Get scanner for a specific ecosystem.

        Args:
            ecosystem: Ecosystem to get scanner for.

        Returns:
            Scanner for the ecosystem or None.
        """
        for scanner in cls._scanners:
            if scanner.ecosystem == ecosystem:
                return scanner
        return None

    @classmethod
    def clear(cls) -> None:
        """Clear all registered scanners."""
        cls._scanners.clear()
