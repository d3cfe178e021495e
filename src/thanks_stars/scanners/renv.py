"""R ecosystem scanner for renv.lock."""

import re
from pathlib import Path
from typing import Any, ClassVar

from thanks_stars.core.models import Dependency, Ecosystem
from thanks_stars.errors import ManifestParseError
from thanks_stars.scanners.base import BaseScanner, is_github_url, read_json

API_REPOS = re.compile(r"^https?://api\.github\.com/repos/([^/]+)/([^/?#]+)", re.IGNORECASE)
CODELOAD = re.compile(r"^https?://codeload\.github\.com/([^/]+)/([^/?#]+)", re.IGNORECASE)

OWNER_FIELDS = ("RemoteUsername", "RemoteOwner", "RemoteUser")
URL_FIELDS = ("RemoteUrl", "Repository")
LINK_FIELDS = ("URL", "BugReports")


class RenvScanner(BaseScanner):
    """Scanner for renv lockfiles.

    Only packages installed from GitHub are reported. ``renv.lock`` records
    them with ``RemoteType: github`` and ``RemoteUsername``/``RemoteRepo``;
    older or hand-edited entries may instead carry a ``RemoteUrl`` or a
    GitHub link in the DESCRIPTION ``URL``/``BugReports`` fields.
    """

    manifest_files: ClassVar[list[str]] = ["renv.lock"]

    @property
    def ecosystem(self) -> Ecosystem:
        """Return the R ecosystem."""
        return Ecosystem.R

    def parse_file(self, path: Path) -> list[Dependency]:
        data = read_json(path)
        if not isinstance(data, dict):
            raise ManifestParseError(str(path), "expected a JSON object")

        packages = data.get("Packages") or {}
        if not isinstance(packages, dict):
            raise ManifestParseError(str(path), "Packages must be an object")

        dependencies: list[Dependency] = []
        for name in sorted(packages):
            package = packages[name]
            if not isinstance(package, dict) or not is_github_package(package):
                continue
            hint = github_hint(package)
            if hint:
                dependencies.append(self.dependency(str(package.get("Package") or name), path, hint))

        return dependencies


def _text(package: dict[str, Any], field: str) -> str:
    value = package.get(field)
    return value.strip() if isinstance(value, str) else ""


def is_github_package(package: dict[str, Any]) -> bool:
    """Whether a lockfile entry was installed from, or links to, GitHub."""
    if _text(package, "RemoteType").lower() == "github" or _text(package, "Source").lower() == "github":
        return True
    fields = ("RemoteHost",) + URL_FIELDS + LINK_FIELDS
    return any("github.com" in _text(package, field) for field in fields)


def github_hint(package: dict[str, Any]) -> str | None:
    """Repository hint for a GitHub package entry.

    Remote fields win over URLs; ``URL`` and ``BugReports`` may hold several
    links separated by commas or semicolons.
    """
    repo = _text(package, "RemoteRepo").removesuffix(".git")
    if repo:
        owner = next((_text(package, field) for field in OWNER_FIELDS if _text(package, field)), "")
        if owner:
            return f"github:{owner}/{repo}"
        if "/" in repo:
            return f"github:{repo}"

    for field in URL_FIELDS:
        hint = _github_link(_text(package, field))
        if hint:
            return hint

    for field in LINK_FIELDS:
        for candidate in re.split(r"[,;]", _text(package, field)):
            hint = _github_link(candidate.strip())
            if hint:
                return hint

    return None


def _github_link(url: str) -> str | None:
    if not url:
        return None
    for pattern in (API_REPOS, CODELOAD):
        match = pattern.match(url)
        if match:
            return f"https://github.com/{match.group(1)}/{match.group(2)}"
    return url if is_github_url(url) else None
