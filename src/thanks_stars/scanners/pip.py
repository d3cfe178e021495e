"""Python ecosystem scanner for requirements, pyproject, Pipfile, uv and poetry files."""

import json
import re
from pathlib import Path
from typing import Any, ClassVar
from urllib.parse import urlsplit

import toml

from thanks_stars.core.models import Dependency, Ecosystem
from thanks_stars.errors import ManifestParseError
from thanks_stars.scanners.base import BaseScanner, is_github_url
from thanks_stars.utils.logging import get_logger

logger = get_logger(__name__)

VENV_DIRS = (".venv", "venv")

REQUIREMENT_NAME = re.compile(r"^([A-Za-z0-9][A-Za-z0-9._-]*)")
DIRECT_REFERENCE = re.compile(r"^([A-Za-z0-9][A-Za-z0-9._-]*)\s*(?:\[[^\]]*\])?\s*@\s*(\S+)")
EGG_FRAGMENT = re.compile(r"#egg=([A-Za-z0-9._-]+)")


def normalize_name(name: str) -> str:
    """Normalize a distribution name (PEP 503)."""
    return re.sub(r"[-_.]+", "-", name).lower()


def strip_vcs_revision(url: str) -> str:
    """Drop pip's ``@<rev>`` suffix from a VCS URL path.

    ``git+https://github.com/o/r.git@v1.0#egg=r`` becomes
    ``git+https://github.com/o/r.git#egg=r``.
    """
    if "://" not in url:
        return url
    parts = urlsplit(url)
    path = re.sub(r"@[^/]*$", "", parts.path)
    rebuilt = f"{parts.scheme}://{parts.netloc}{path}"
    if parts.fragment:
        rebuilt += f"#{parts.fragment}"
    return rebuilt


class PipScanner(BaseScanner):
    """Scanner for Python dependency files.

    Direct references (VCS URLs, ``name @ url``) carry their own repository
    hint. Plain registry requirements are looked up in a virtual environment
    under the project root, using the ``Home-page`` and ``Project-URL``
    fields of the installed distribution's metadata.
    """

    manifest_files: ClassVar[list[str]] = [
        "pyproject.toml",
        "requirements*.txt",
        "Pipfile",
        "Pipfile.lock",
        "uv.lock",
        "poetry.lock",
    ]

    def __init__(self) -> None:
        self._metadata_index: dict[Path, dict[str, Path]] = {}

    @property
    def ecosystem(self) -> Ecosystem:
        """Return the Python ecosystem."""
        return Ecosystem.PYTHON

    def parse_file(self, path: Path) -> list[Dependency]:
        """Parse a Python dependency file.

        Args:
            path: Path to the file.

        Returns:
            List of dependencies with repository hints.

        Raises:
            ManifestParseError: If the file format is invalid.
        """
        filename = path.name

        if filename.startswith("requirements") and filename.endswith(".txt"):
            entries = self._parse_requirements_txt(path)
        elif filename == "pyproject.toml":
            entries = self._parse_pyproject(self._load_toml(path))
        elif filename == "Pipfile":
            entries = self._parse_pipfile(self._load_toml(path))
        elif filename == "Pipfile.lock":
            entries = self._parse_pipfile_lock(path)
        elif filename in ("uv.lock", "poetry.lock"):
            entries = self._parse_lock_packages(self._load_toml(path))
        else:
            raise ManifestParseError(str(path), f"unknown Python file format: {filename}")

        dependencies: list[Dependency] = []
        for name, hint in entries:
            if hint is None:
                hint = self._installed_hint(path.parent, name)
            if hint:
                dependencies.append(self.dependency(name, path, hint))
            else:
                logger.debug("No repository metadata for %s", name)
        return dependencies

    def _load_toml(self, path: Path) -> dict[str, Any]:
        try:
            return toml.loads(path.read_text(encoding="utf-8"))
        except toml.TomlDecodeError as e:
            raise ManifestParseError(str(path), f"invalid TOML: {e}") from e

    def _parse_requirements_txt(self, path: Path) -> list[tuple[str, str | None]]:
        """Parse a requirements file.

        Handles:
        - Plain requirements: package==1.0.0, package[extra]>=2
        - Editable VCS installs: -e git+https://github.com/o/r.git#egg=r
        - Bare VCS URLs: git+https://github.com/o/r.git@v1
        - Direct references: package @ git+https://github.com/o/r
        - Other options (-r, -c, --index-url) are skipped
        """
        entries: list[tuple[str, str | None]] = []
        content = path.read_text(encoding="utf-8")

        for raw_line in content.splitlines():
            line = re.split(r"(?:^|\s)#", raw_line, maxsplit=1)[0].strip()
            if not line:
                continue

            if line.startswith(("-e ", "--editable ")):
                line = line.split(None, 1)[1].strip()
            elif line.startswith("-"):
                continue

            entry = self._parse_requirement(line)
            if entry:
                entries.append(entry)

        return entries

    def _parse_requirement(self, requirement: str) -> tuple[str, str | None] | None:
        """Parse one PEP 508 requirement or VCS URL into (name, hint)."""
        requirement = requirement.split(";", 1)[0].strip()
        if not requirement:
            return None

        direct = DIRECT_REFERENCE.match(requirement)
        if direct:
            url = strip_vcs_revision(direct.group(2))
            return direct.group(1), url if is_github_url(url) else None

        if re.match(r"^[a-z+]+://", requirement) or requirement.startswith("git@"):
            url = strip_vcs_revision(requirement)
            if not is_github_url(url):
                return None
            egg = EGG_FRAGMENT.search(url)
            name = egg.group(1) if egg else url.rstrip("/").rsplit("/", 1)[-1].removesuffix(".git")
            return name, url

        match = REQUIREMENT_NAME.match(requirement)
        if match:
            return match.group(1), None
        return None

    def _parse_pyproject(self, data: dict[str, Any]) -> list[tuple[str, str | None]]:
        """Parse ``[project]`` and ``[tool.poetry]`` dependency declarations."""
        entries: list[tuple[str, str | None]] = []

        project = data.get("project", {})
        if isinstance(project, dict):
            declared = project.get("dependencies") or []
            requirements = list(declared) if isinstance(declared, list) else []
            optional = project.get("optional-dependencies") or {}
            if isinstance(optional, dict):
                for group in optional.values():
                    if isinstance(group, list):
                        requirements.extend(group)
            for requirement in requirements:
                if isinstance(requirement, str):
                    entry = self._parse_requirement(requirement)
                    if entry:
                        entries.append(entry)

        tool = data.get("tool")
        poetry = tool.get("poetry") if isinstance(tool, dict) else None
        if isinstance(poetry, dict):
            tables = [poetry.get("dependencies"), poetry.get("dev-dependencies")]
            groups = poetry.get("group", {})
            if isinstance(groups, dict):
                tables.extend(group.get("dependencies") for group in groups.values() if isinstance(group, dict))
            for table in tables:
                entries.extend(self._parse_spec_table(table, skip=("python",)))

        return entries

    def _parse_pipfile(self, data: dict[str, Any]) -> list[tuple[str, str | None]]:
        """Parse Pipfile ``[packages]`` and ``[dev-packages]``."""
        entries: list[tuple[str, str | None]] = []
        for section in ("packages", "dev-packages"):
            entries.extend(self._parse_spec_table(data.get(section)))
        return entries

    def _parse_spec_table(
        self, table: Any, skip: tuple[str, ...] = ()
    ) -> list[tuple[str, str | None]]:
        """Parse a ``name = spec`` table where specs may be ``{git = "..."}`` tables."""
        if not isinstance(table, dict):
            return []

        entries: list[tuple[str, str | None]] = []
        for name, spec in table.items():
            if name in skip:
                continue
            if isinstance(spec, dict) and isinstance(spec.get("git"), str):
                git = spec["git"]
                entries.append((name, git if is_github_url(git) else None))
            elif isinstance(spec, dict) and (spec.get("path") or spec.get("file")):
                continue
            else:
                entries.append((name, None))
        return entries

    def _parse_pipfile_lock(self, path: Path) -> list[tuple[str, str | None]]:
        """Parse Pipfile.lock ``default`` and ``develop`` sections."""
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ManifestParseError(str(path), f"invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ManifestParseError(str(path), "expected a JSON object")

        entries: list[tuple[str, str | None]] = []
        for section in ("default", "develop"):
            entries.extend(self._parse_spec_table(data.get(section)))
        return entries

    def _parse_lock_packages(self, data: dict[str, Any]) -> list[tuple[str, str | None]]:
        """Parse ``[[package]]`` entries of uv.lock or poetry.lock.

        uv records git packages as ``source = { git = "<url>?rev=..#sha" }``
        and registry packages as ``source = { registry = "..." }``; poetry
        uses ``[package.source]`` with ``type = "git"`` and ``url``. The
        project itself (uv ``editable``/``virtual`` sources) is skipped.
        """
        packages = data.get("package", [])
        if not isinstance(packages, list):
            return []

        entries: list[tuple[str, str | None]] = []
        for pkg in packages:
            if not isinstance(pkg, dict) or not isinstance(pkg.get("name"), str) or not pkg["name"]:
                continue
            name = pkg["name"]
            source = pkg.get("source") or {}
            if not isinstance(source, dict):
                source = {}

            if source.get("editable") or source.get("virtual") or source.get("directory"):
                continue

            url = source.get("git")
            if url is None and source.get("type") == "git":
                url = source.get("url")

            if isinstance(url, str):
                entries.append((name, url if is_github_url(url) else None))
            else:
                entries.append((name, None))

        return entries

    def _installed_hint(self, project_root: Path, name: str) -> str | None:
        """Find a GitHub URL in the installed distribution's metadata."""
        metadata = self._index_for(project_root).get(normalize_name(name))
        if metadata is None:
            return None
        try:
            content = metadata.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            logger.debug("Unable to read %s: %s", metadata, e)
            return None
        return repository_from_metadata(content)

    def _index_for(self, project_root: Path) -> dict[str, Path]:
        if project_root not in self._metadata_index:
            self._metadata_index[project_root] = build_metadata_index(project_root)
        return self._metadata_index[project_root]


def repository_from_metadata(metadata: str) -> str | None:
    """Return the first GitHub URL among ``Home-page`` and ``Project-URL`` headers."""
    for line in metadata.splitlines():
        if not line.strip():
            # headers end at the first blank line
            break
        if line.startswith(("Home-page:", "Project-URL:")):
            index = line.find("http")
            if index == -1:
                continue
            url = line[index:].strip()
            if is_github_url(url):
                return url
    return None


def find_site_packages(project_root: Path) -> list[Path]:
    """Locate site-packages directories of virtual environments under a root."""
    environments: list[Path] = []
    for name in VENV_DIRS:
        candidate = project_root / name
        if candidate.is_dir():
            environments.append(candidate)

    try:
        children = sorted(project_root.iterdir())
    except OSError:
        children = []
    for child in children:
        if child not in environments and (child / "pyvenv.cfg").is_file():
            environments.append(child)

    site_packages: list[Path] = []
    for env in environments:
        site_packages.extend(sorted(env.glob("lib/python*/site-packages")))
        site_packages.extend(sorted(env.glob("lib64/python*/site-packages")))
        windows = env / "Lib" / "site-packages"
        if windows.is_dir():
            site_packages.append(windows)
    return site_packages


def build_metadata_index(project_root: Path) -> dict[str, Path]:
    """Map normalized distribution names to their METADATA/PKG-INFO files."""
    index: dict[str, Path] = {}
    for base in find_site_packages(project_root):
        for info_dir in sorted(base.glob("*.dist-info")) + sorted(base.glob("*.egg-info")):
            stem = info_dir.name.rsplit(".", 1)[0]
            name = normalize_name(stem.split("-", 1)[0])
            metadata = info_dir / ("METADATA" if info_dir.suffix == ".dist-info" else "PKG-INFO")
            if name not in index and metadata.is_file():
                index[name] = metadata
    logger.debug("Indexed %d installed distributions under %s", len(index), project_root)
    return index
