"""Dart ecosystem scanner for pubspec.yaml and pubspec.lock."""

import json
from pathlib import Path
from typing import Any, ClassVar
from urllib.parse import unquote, urlsplit

import yaml

from thanks_stars.core.models import Dependency, Ecosystem
from thanks_stars.errors import ManifestParseError
from thanks_stars.scanners.base import BaseScanner, is_github_url
from thanks_stars.utils.logging import get_logger

logger = get_logger(__name__)

DEPENDENCY_SECTIONS = (
    "dependencies",
    "dev_dependencies",
    "dependency_overrides",
)

# pubspec fields that may link to the source repository, in preference order
REPOSITORY_FIELDS = ("repository", "homepage", "issue_tracker")


class DartScanner(BaseScanner):
    """Scanner for Dart and Flutter pub files.

    Git dependencies carry their own URL. Hosted dependencies are looked up
    through ``.dart_tool/package_config.json`` in the pub cache, using the
    ``repository``, ``homepage`` or ``issue_tracker`` of the installed
    package's pubspec.
    """

    manifest_files: ClassVar[list[str]] = [
        "pubspec.yaml",
        "pubspec.lock",
    ]

    @property
    def ecosystem(self) -> Ecosystem:
        """Return the Dart ecosystem."""
        return Ecosystem.DART

    def parse_file(self, path: Path) -> list[Dependency]:
        """Parse a pubspec or its lockfile.

        Args:
            path: Path to the file.

        Returns:
            List of dependencies with repository hints.

        Raises:
            ManifestParseError: If the file format is invalid.
        """
        data = _load_yaml(path)

        if path.name == "pubspec.lock":
            return self._parse_pubspec_lock(data, path)
        return self._parse_pubspec(data, path)

    def _parse_pubspec(self, data: dict[str, Any], path: Path) -> list[Dependency]:
        dependencies: list[Dependency] = []

        own = repository_from_pubspec(data)
        if own:
            name = data.get("name")
            dependencies.append(self.dependency(name if isinstance(name, str) else "", path, own))

        specs: dict[str, Any] = {}
        for section in DEPENDENCY_SECTIONS:
            declared = data.get(section)
            if isinstance(declared, dict):
                for name, spec in declared.items():
                    specs.setdefault(str(name), spec)

        installed: dict[str, Path] | None = None
        for name, spec in specs.items():
            if isinstance(spec, dict) and ("path" in spec or "sdk" in spec):
                continue

            if isinstance(spec, dict) and "git" in spec:
                url = git_url(spec["git"])
                if url and is_github_url(url):
                    dependencies.append(self.dependency(name, path, url))
                continue

            if installed is None:
                installed = package_roots(path.parent)
            hint = self._hint_from_installed(installed.get(name))
            if hint:
                dependencies.append(self.dependency(name, path, hint))
            else:
                logger.debug("No repository metadata for %s", name)

        return dependencies

    def _parse_pubspec_lock(self, data: dict[str, Any], path: Path) -> list[Dependency]:
        """Collect ``source: git`` packages from pubspec.lock."""
        packages = data.get("packages")
        if not isinstance(packages, dict):
            return []

        dependencies: list[Dependency] = []
        for name, info in packages.items():
            if not isinstance(info, dict) or info.get("source") != "git":
                continue
            url = git_url(info.get("description"))
            if url and is_github_url(url):
                dependencies.append(self.dependency(str(name), path, url))

        return dependencies

    def _hint_from_installed(self, root: Path | None) -> str | None:
        if root is None:
            return None
        try:
            data = _load_yaml(root / "pubspec.yaml")
        except (OSError, UnicodeDecodeError, ManifestParseError):
            return None
        return repository_from_pubspec(data)


def _load_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ManifestParseError(str(path), f"invalid YAML: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ManifestParseError(str(path), "expected a YAML mapping")
    return data


def git_url(value: Any) -> str | None:
    """URL of a ``git:`` dependency, given as a string or ``{url: ...}``."""
    if isinstance(value, str) and value.strip():
        return value.strip()
    if isinstance(value, dict):
        url = value.get("url")
        if isinstance(url, str) and url.strip():
            return url.strip()
    return None


def repository_from_pubspec(data: dict[str, Any]) -> str | None:
    """First GitHub link among a pubspec's repository fields."""
    for field in REPOSITORY_FIELDS:
        value = data.get(field)
        if isinstance(value, str) and is_github_url(value):
            return value.strip()
    return None


def package_roots(project_root: Path) -> dict[str, Path]:
    """Map package names to their directories using package_config.json."""
    config = project_root / ".dart_tool" / "package_config.json"
    try:
        data = json.loads(config.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError):
        return {}
    if not isinstance(data, dict) or not isinstance(data.get("packages"), list):
        return {}

    roots: dict[str, Path] = {}
    for package in data["packages"]:
        if not isinstance(package, dict):
            continue
        name, root_uri = package.get("name"), package.get("rootUri")
        if not isinstance(name, str) or not isinstance(root_uri, str):
            continue
        if root_uri.startswith("file:"):
            roots[name] = Path(unquote(urlsplit(root_uri).path))
        else:
            # relative URIs are resolved against the .dart_tool directory
            roots[name] = config.parent / unquote(root_uri)
    logger.debug("Found %d pub packages under %s", len(roots), project_root)
    return roots
