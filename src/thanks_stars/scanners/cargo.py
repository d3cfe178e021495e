"""Rust/Cargo ecosystem scanner for Cargo.toml and Cargo.lock."""

import json
import subprocess
from collections.abc import Callable
from pathlib import Path
from typing import Any, ClassVar

import toml

from thanks_stars.core.models import (
    Dependency,
    Ecosystem,
    ParseResult,
    ScanWarning,
    WarningKind,
)
from thanks_stars.errors import ManifestParseError
from thanks_stars.scanners.base import BaseScanner
from thanks_stars.utils.logging import get_logger

logger = get_logger(__name__)

MetadataFetcher = Callable[[Path], str]

DEPENDENCY_TABLES = ("dependencies", "dev-dependencies", "build-dependencies")


def run_cargo_metadata(project_root: Path) -> str:
    """Run ``cargo metadata`` in ``project_root`` and return its JSON output.

    Raises:
        ManifestParseError: If cargo is missing or exits with an error.
    """
    try:
        completed = subprocess.run(
            ["cargo", "metadata", "--format-version", "1"],
            cwd=project_root,
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as e:
        raise ManifestParseError("cargo metadata", f"failed to execute cargo: {e}") from e

    if completed.returncode != 0:
        raise ManifestParseError("cargo metadata", completed.stderr.strip() or "cargo exited with an error")
    return completed.stdout


class CargoScanner(BaseScanner):
    """Scanner for Rust/Cargo manifests and lockfiles."""

    manifest_files: ClassVar[list[str]] = [
        "Cargo.toml",
        "Cargo.lock",
    ]

    def __init__(
        self,
        use_metadata: bool = False,
        metadata_fetcher: MetadataFetcher = run_cargo_metadata,
    ) -> None:
        """Initialize the Cargo scanner.

        Args:
            use_metadata: Also resolve direct dependencies through
                ``cargo metadata``.
            metadata_fetcher: Produces ``cargo metadata`` JSON for a root.
        """
        self.use_metadata = use_metadata
        self._fetch_metadata = metadata_fetcher

    @property
    def ecosystem(self) -> Ecosystem:
        """Return the Cargo ecosystem."""
        return Ecosystem.CARGO

    def parse_file(self, path: Path) -> list[Dependency]:
        """Parse a Cargo manifest or lockfile.

        Args:
            path: Path to Cargo.toml or Cargo.lock.

        Returns:
            List of dependencies with repository hints.

        Raises:
            ManifestParseError: If the file format is invalid.
        """
        try:
            data = toml.loads(path.read_text(encoding="utf-8"))
        except toml.TomlDecodeError as e:
            raise ManifestParseError(str(path), f"invalid TOML: {e}") from e

        if path.name == "Cargo.lock":
            return self._parse_cargo_lock(data, path)
        return self._parse_cargo_toml(data, path)

    def parse(self, paths: list[Path]) -> ParseResult:
        """Parse detected files, then add ``cargo metadata`` results if enabled."""
        result = super().parse(paths)

        manifest = next((path for path in paths if path.name == "Cargo.toml"), None)
        if self.use_metadata and manifest is not None:
            try:
                result.dependencies.extend(self._parse_metadata(manifest))
            except ManifestParseError as e:
                logger.debug("cargo metadata unavailable: %s", e.reason)
                result.warnings.append(
                    ScanWarning(
                        kind=WarningKind.PARSE,
                        ecosystem=self.ecosystem,
                        path=str(manifest),
                        message=e.reason,
                    )
                )

        return result

    def _parse_cargo_toml(self, data: dict[str, Any], path: Path) -> list[Dependency]:
        """Collect the package's own repository and git dependencies."""
        dependencies: list[Dependency] = []

        package = data.get("package")
        if isinstance(package, dict):
            repository = package.get("repository")
            if isinstance(repository, str):
                dependencies.append(self.dependency(str(package.get("name", "")), path, repository))

        workspace = data.get("workspace")
        if isinstance(workspace, dict):
            workspace_package = workspace.get("package")
            if isinstance(workspace_package, dict) and isinstance(workspace_package.get("repository"), str):
                dependencies.append(self.dependency("workspace", path, workspace_package["repository"]))
            dependencies.extend(self._git_dependencies(workspace.get("dependencies"), path))

        for table in DEPENDENCY_TABLES:
            dependencies.extend(self._git_dependencies(data.get(table), path))

        targets = data.get("target")
        if isinstance(targets, dict):
            for target in targets.values():
                if not isinstance(target, dict):
                    continue
                for table in DEPENDENCY_TABLES:
                    dependencies.extend(self._git_dependencies(target.get(table), path))

        return dependencies

    def _git_dependencies(self, table: Any, path: Path) -> list[Dependency]:
        if not isinstance(table, dict):
            return []

        dependencies: list[Dependency] = []
        for name, spec in table.items():
            if isinstance(spec, dict) and isinstance(spec.get("git"), str):
                dependencies.append(self.dependency(name, path, spec["git"]))
        return dependencies

    def _parse_cargo_lock(self, data: dict[str, Any], path: Path) -> list[Dependency]:
        """Collect ``git+`` package sources from Cargo.lock.

        Sources look like ``git+https://github.com/o/r?branch=main#<sha>``;
        the query and fragment are left for the resolver to strip.
        """
        packages = data.get("package", [])
        if not isinstance(packages, list):
            return []

        dependencies: list[Dependency] = []
        for pkg in packages:
            if not isinstance(pkg, dict):
                continue
            source = pkg.get("source")
            name = pkg.get("name")
            if isinstance(source, str) and source.startswith("git+") and isinstance(name, str) and name:
                dependencies.append(self.dependency(name, path, source))

        return dependencies

    def _parse_metadata(self, manifest: Path) -> list[Dependency]:
        """Resolve direct dependencies of workspace members via cargo metadata."""
        try:
            metadata = json.loads(self._fetch_metadata(manifest.parent))
        except json.JSONDecodeError as e:
            raise ManifestParseError("cargo metadata", f"invalid JSON: {e}") from e

        packages = {pkg.get("id"): pkg for pkg in metadata.get("packages", []) if isinstance(pkg, dict)}
        nodes = {node.get("id"): node for node in (metadata.get("resolve") or {}).get("nodes", [])}

        direct_ids: list[str] = []
        for member in metadata.get("workspace_members", []):
            for dep in nodes.get(member, {}).get("deps", []):
                pkg_id = dep.get("pkg")
                if pkg_id and pkg_id not in direct_ids:
                    direct_ids.append(pkg_id)

        dependencies: list[Dependency] = []
        for pkg_id in direct_ids:
            package = packages.get(pkg_id)
            if package and isinstance(package.get("repository"), str):
                dependencies.append(self.dependency(package.get("name", pkg_id), manifest, package["repository"]))

        logger.debug("cargo metadata resolved %d direct dependencies", len(dependencies))
        return dependencies
