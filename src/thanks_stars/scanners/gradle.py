"""Gradle ecosystem scanner for build scripts and gradle.lockfile."""

import re
from pathlib import Path
from typing import ClassVar

from thanks_stars.core.models import Dependency, Ecosystem
from thanks_stars.scanners.base import BaseScanner
from thanks_stars.utils.logging import get_logger

logger = get_logger(__name__)

# "group:artifact:version" inside single or double quotes
QUOTED_COORDINATE = re.compile(r"""['"]([^:'"\s]+):([^:'"\s]+):[^'"]+['"]""")

GITHUB_GROUP_PREFIXES = ("com.github.", "io.github.")


def github_coordinate_hint(group: str, artifact: str) -> str | None:
    """Map JitPack-style ``com.github.<owner>`` / ``io.github.<owner>`` groups to a repository URL."""
    group = group.strip()
    artifact = artifact.strip()
    for prefix in GITHUB_GROUP_PREFIXES:
        if group.startswith(prefix):
            owner = group[len(prefix) :].split(".", 1)[0]
            if owner and artifact:
                return f"https://github.com/{owner}/{artifact}"
    return None


class GradleScanner(BaseScanner):
    """Scanner for Gradle build files."""

    manifest_files: ClassVar[list[str]] = [
        "build.gradle",
        "build.gradle.kts",
        "settings.gradle",
        "settings.gradle.kts",
        "gradle.lockfile",
    ]

    @property
    def ecosystem(self) -> Ecosystem:
        """Return the Gradle ecosystem."""
        return Ecosystem.GRADLE

    def parse_file(self, path: Path) -> list[Dependency]:
        """Parse a Gradle build script or lockfile.

        Args:
            path: Path to the file.

        Returns:
            Dependencies whose group names a GitHub owner.
        """
        content = path.read_text(encoding="utf-8")

        if path.name == "gradle.lockfile":
            coordinates = self._parse_lockfile(content)
        else:
            coordinates = [(m.group(1), m.group(2)) for m in QUOTED_COORDINATE.finditer(content)]

        dependencies: list[Dependency] = []
        for group, artifact in coordinates:
            hint = github_coordinate_hint(group, artifact)
            if hint:
                dependencies.append(self.dependency(f"{group}:{artifact}", path, hint))
        return dependencies

    def _parse_lockfile(self, content: str) -> list[tuple[str, str]]:
        """Parse ``group:artifact:version=configurations`` lines."""
        coordinates: list[tuple[str, str]] = []
        for line in content.splitlines():
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            parts = line.split("=", 1)[0].split(":")
            if len(parts) >= 2:
                coordinates.append((parts[0], parts[1]))
        return coordinates
