"""Deno ecosystem scanner for deno.json(c) imports and deno.lock."""

import re
from pathlib import Path
from typing import Any, ClassVar

from thanks_stars.core.models import Dependency, Ecosystem
from thanks_stars.scanners.base import BaseScanner, is_github_url, read_jsonc
from thanks_stars.utils.logging import get_logger

logger = get_logger(__name__)

# hosts serving files straight out of a GitHub repository: /<owner>/<repo>/...
RAW_HOSTS = re.compile(r"^https?://(?:raw\.githubusercontent\.com|codeload\.github\.com)/([^/]+)/([^/?#]+)")


def github_url_hint(value: str) -> str | None:
    """Return a repository hint for GitHub, raw or codeload URLs."""
    raw = RAW_HOSTS.match(value)
    if raw:
        return f"https://github.com/{raw.group(1)}/{raw.group(2)}"
    if value.startswith(("http://", "https://")) and is_github_url(value):
        return value
    return None


def collect_strings(value: Any) -> list[str]:
    """Every string value of a JSON document, depth first, keys included."""
    found: list[str] = []
    if isinstance(value, str):
        found.append(value)
    elif isinstance(value, list):
        for item in value:
            found.extend(collect_strings(item))
    elif isinstance(value, dict):
        for key, item in value.items():
            found.append(key)
            found.extend(collect_strings(item))
    return found


class DenoScanner(BaseScanner):
    """Scanner for Deno configuration and lockfiles."""

    manifest_files: ClassVar[list[str]] = [
        "deno.json",
        "deno.jsonc",
        "deno.lock",
    ]

    @property
    def ecosystem(self) -> Ecosystem:
        """Return the Deno ecosystem."""
        return Ecosystem.DENO

    def parse_file(self, path: Path) -> list[Dependency]:
        """Parse deno.json(c) ``imports`` or every string in deno.lock.

        Args:
            path: Path to the file.

        Returns:
            Dependencies imported from GitHub-hosted URLs.

        Raises:
            ManifestParseError: If the file is not valid JSON/JSONC.
        """
        data = read_jsonc(path)

        if path.name == "deno.lock":
            values = collect_strings(data)
        else:
            imports = data.get("imports") if isinstance(data, dict) else None
            values = [v for v in imports.values() if isinstance(v, str)] if isinstance(imports, dict) else []

        dependencies: list[Dependency] = []
        seen: set[str] = set()
        for value in values:
            hint = github_url_hint(value)
            if hint and hint not in seen:
                seen.add(hint)
                dependencies.append(self.dependency(value, path, hint))
        return dependencies
