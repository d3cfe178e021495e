"""PHP/Composer ecosystem scanner for composer.json and composer.lock."""

from pathlib import Path
from typing import Any, ClassVar

from thanks_stars.core.models import Dependency, Ecosystem
from thanks_stars.errors import ManifestParseError
from thanks_stars.scanners.base import BaseScanner, is_github_url, read_json
from thanks_stars.utils.logging import get_logger

logger = get_logger(__name__)

VCS_REPOSITORY_TYPES = ("vcs", "git", "github")


class ComposerScanner(BaseScanner):
    """Scanner for PHP/Composer manifests and lockfiles."""

    manifest_files: ClassVar[list[str]] = [
        "composer.json",
        "composer.lock",
    ]

    @property
    def ecosystem(self) -> Ecosystem:
        """Return the Composer ecosystem."""
        return Ecosystem.COMPOSER

    def parse_file(self, path: Path) -> list[Dependency]:
        """Parse a Composer manifest or lockfile.

        Args:
            path: Path to the file.

        Returns:
            List of dependencies with repository hints.

        Raises:
            ManifestParseError: If the file format is invalid.
        """
        data = read_json(path)
        if not isinstance(data, dict):
            raise ManifestParseError(str(path), "expected a JSON object")

        if path.name == "composer.lock":
            return self._parse_composer_lock(data, path)
        return self._parse_composer_json(data, path)

    def _parse_composer_lock(self, data: dict[str, Any], path: Path) -> list[Dependency]:
        """Parse composer.lock ``packages`` and ``packages-dev``.

        Each package contributes the first GitHub URL among ``source.url``,
        ``support.source`` and ``homepage``.
        """
        dependencies: list[Dependency] = []

        for section in ("packages", "packages-dev"):
            packages = data.get(section, [])
            if not isinstance(packages, list):
                continue

            for pkg in packages:
                if not isinstance(pkg, dict):
                    continue
                hint = self._package_hint(pkg)
                if hint:
                    dependencies.append(self.dependency(str(pkg.get("name", "")), path, hint))

        return dependencies

    def _package_hint(self, pkg: dict[str, Any]) -> str | None:
        source = pkg.get("source")
        support = pkg.get("support")
        candidates = [
            source.get("url") if isinstance(source, dict) else None,
            support.get("source") if isinstance(support, dict) else None,
            pkg.get("homepage"),
        ]
        for candidate in candidates:
            if isinstance(candidate, str) and is_github_url(candidate):
                return candidate
        return None

    def _parse_composer_json(self, data: dict[str, Any], path: Path) -> list[Dependency]:
        """Parse composer.json VCS ``repositories`` entries."""
        repositories = data.get("repositories", [])
        if isinstance(repositories, dict):
            repositories = list(repositories.values())
        if not isinstance(repositories, list):
            return []

        dependencies: list[Dependency] = []
        for repository in repositories:
            if not isinstance(repository, dict):
                continue
            if repository.get("type") not in VCS_REPOSITORY_TYPES:
                continue
            url = repository.get("url")
            if isinstance(url, str) and url:
                dependencies.append(self.dependency(url, path, url))

        return dependencies
