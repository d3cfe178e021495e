"""Node ecosystem scanner for package.json, package-lock.json and pnpm-lock.yaml."""

import re
from pathlib import Path
from typing import Any, ClassVar

import yaml

from thanks_stars.core.models import Dependency, Ecosystem
from thanks_stars.errors import ManifestParseError
from thanks_stars.scanners.base import (
    BaseScanner,
    is_github_url,
    read_json,
    repository_field,
)
from thanks_stars.utils.logging import get_logger

logger = get_logger(__name__)

DEPENDENCY_SECTIONS = (
    "dependencies",
    "devDependencies",
    "peerDependencies",
    "optionalDependencies",
)

# "owner/repo" or "owner/repo#ref", as accepted by npm for GitHub dependencies
GITHUB_SHORTHAND = re.compile(r"^[A-Za-z0-9][\w.-]*/[\w.-]+(#.*)?$")


class NpmScanner(BaseScanner):
    """Scanner for Node manifests and lockfiles."""

    manifest_files: ClassVar[list[str]] = [
        "package.json",
        "package-lock.json",
        "pnpm-lock.yaml",
    ]

    @property
    def ecosystem(self) -> Ecosystem:
        """Return the Node ecosystem."""
        return Ecosystem.NODE

    def parse_file(self, path: Path) -> list[Dependency]:
        """Parse a Node manifest or lockfile.

        Args:
            path: Path to the file.

        Returns:
            List of dependencies with repository hints.

        Raises:
            ManifestParseError: If the file format is invalid.
        """
        filename = path.name

        if filename == "package.json":
            return self._parse_package_json(path)
        elif filename == "package-lock.json":
            return self._parse_package_lock(path)
        elif filename == "pnpm-lock.yaml":
            return self._parse_pnpm_lock(path)
        else:
            raise ManifestParseError(str(path), f"unknown Node file format: {filename}")

    def _parse_package_json(self, path: Path) -> list[Dependency]:
        """Parse package.json.

        The project's own ``repository`` comes first. Each declared
        dependency uses its version spec when that names a GitHub repository,
        otherwise the ``repository`` or ``homepage`` of the installed copy
        under ``node_modules``.
        """
        data = read_json(path)
        if not isinstance(data, dict):
            raise ManifestParseError(str(path), "expected a JSON object")

        dependencies: list[Dependency] = []

        own = repository_field(data.get("repository"))
        if own:
            dependencies.append(self.dependency(str(data.get("name", "")), path, own))

        specs: dict[str, Any] = {}
        for section in DEPENDENCY_SECTIONS:
            declared = data.get(section)
            if isinstance(declared, dict):
                for name, spec in declared.items():
                    specs.setdefault(name, spec)

        for name, spec in specs.items():
            hint = self._hint_from_spec(spec) or self._hint_from_installed(path.parent, name)
            if hint:
                dependencies.append(self.dependency(name, path, hint))
            else:
                logger.debug("No repository metadata for %s", name)

        return dependencies

    def _hint_from_spec(self, spec: Any) -> str | None:
        if not isinstance(spec, str):
            return None
        spec = spec.strip()
        if spec.startswith(("file:", "link:", "workspace:", "npm:")):
            return None
        if is_github_url(spec):
            return spec
        if GITHUB_SHORTHAND.match(spec):
            return spec
        return None

    def _hint_from_installed(self, project_root: Path, name: str) -> str | None:
        manifest = project_root.joinpath("node_modules", *name.split("/"), "package.json")
        try:
            data = read_json(manifest)
        except (OSError, UnicodeDecodeError, ManifestParseError):
            return None
        if not isinstance(data, dict):
            return None

        hint = repository_field(data.get("repository"))
        if hint:
            return hint
        homepage = data.get("homepage")
        if isinstance(homepage, str) and homepage.strip():
            return homepage.strip()
        return None

    def _parse_package_lock(self, path: Path) -> list[Dependency]:
        """Parse package-lock.json (v1, v2 and v3 formats).

        Only packages resolved from git carry a repository hint.
        """
        data = read_json(path)
        if not isinstance(data, dict):
            raise ManifestParseError(str(path), "expected a JSON object")

        dependencies: list[Dependency] = []

        packages = data.get("packages")
        if isinstance(packages, dict):
            for pkg_path, info in packages.items():
                if not pkg_path or not isinstance(info, dict):
                    continue
                name = info.get("name")
                if not isinstance(name, str) or not name:
                    name = pkg_path.rsplit("node_modules/", 1)[-1]
                resolved = info.get("resolved")
                if isinstance(resolved, str) and is_github_url(resolved):
                    dependencies.append(self.dependency(name, path, resolved))
            return dependencies

        self._walk_v1(data.get("dependencies"), path, dependencies)
        return dependencies

    def _walk_v1(self, deps: Any, path: Path, out: list[Dependency]) -> None:
        if not isinstance(deps, dict):
            return
        for name, info in deps.items():
            if not isinstance(info, dict):
                continue
            for key in ("resolved", "version"):
                value = info.get(key)
                if isinstance(value, str) and is_github_url(value):
                    out.append(self.dependency(name, path, value))
                    break
            self._walk_v1(info.get("dependencies"), path, out)

    def _parse_pnpm_lock(self, path: Path) -> list[Dependency]:
        """Parse pnpm-lock.yaml ``resolution.tarball`` / ``resolution.repo`` entries."""
        content = path.read_text(encoding="utf-8")
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ManifestParseError(str(path), f"invalid YAML: {e}") from e

        if not isinstance(data, dict):
            return []

        dependencies: list[Dependency] = []
        packages = data.get("packages") or {}
        if not isinstance(packages, dict):
            return dependencies

        for key, info in packages.items():
            if not isinstance(info, dict):
                continue
            resolution = info.get("resolution")
            if not isinstance(resolution, dict):
                continue
            for field in ("repo", "tarball"):
                value = resolution.get(field)
                if not isinstance(value, str):
                    continue
                value = _github_tarball_repo(value)
                if is_github_url(value):
                    name = info.get("name")
                    if not isinstance(name, str) or not name:
                        name = str(key).lstrip("/")
                    dependencies.append(self.dependency(name, path, value))
                    break

        return dependencies


def _github_tarball_repo(url: str) -> str:
    """Reduce ``codeload``-style tarball URLs to the repository URL."""
    match = re.match(r"^https?://codeload\.github\.com/([^/]+)/([^/]+)/", url)
    if match:
        return f"https://github.com/{match.group(1)}/{match.group(2)}"
    return url
