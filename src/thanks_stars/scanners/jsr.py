"""JSR ecosystem scanner for jsr.json and jsr.jsonc."""

from pathlib import Path
from typing import ClassVar

from thanks_stars.core.models import Dependency, Ecosystem
from thanks_stars.errors import ManifestParseError
from thanks_stars.scanners.base import BaseScanner, read_jsonc, repository_field
from thanks_stars.scanners.deno import github_url_hint
from thanks_stars.utils.logging import get_logger

logger = get_logger(__name__)


def jsr_package_name(specifier: str) -> str | None:
    """Package name of a ``jsr:@scope/name@^1`` specifier, without the version."""
    if not specifier.startswith("jsr:"):
        return None
    name = specifier[len("jsr:") :].strip().lstrip("/")
    if not name:
        return None
    index = name.rfind("@")
    if index > 0 and "/" not in name[index + 1 :]:
        name = name[:index]
    return name


class JsrScanner(BaseScanner):
    """Scanner for JSR package manifests.

    Only repositories named in the manifest itself are resolved; ``jsr:``
    imports would need the JSR registry and are reported at debug level.
    """

    manifest_files: ClassVar[list[str]] = [
        "jsr.json",
        "jsr.jsonc",
    ]

    @property
    def ecosystem(self) -> Ecosystem:
        """Return the JSR ecosystem."""
        return Ecosystem.JSR

    def parse_file(self, path: Path) -> list[Dependency]:
        """Parse a JSR manifest.

        Args:
            path: Path to jsr.json or jsr.jsonc.

        Returns:
            The package's own repository and GitHub-hosted imports.

        Raises:
            ManifestParseError: If the file is not valid JSON/JSONC.
        """
        data = read_jsonc(path)
        if not isinstance(data, dict):
            raise ManifestParseError(str(path), "expected a JSON object")

        dependencies: list[Dependency] = []

        own = repository_field(data.get("repository"))
        if own:
            dependencies.append(self.dependency(str(data.get("name", "")), path, own))

        imports = data.get("imports")
        if not isinstance(imports, dict):
            return dependencies

        unresolved: list[str] = []
        for alias, target in imports.items():
            if not isinstance(target, str):
                continue
            package = jsr_package_name(target)
            if package:
                unresolved.append(package)
                continue
            hint = github_url_hint(target)
            if hint:
                dependencies.append(self.dependency(alias, path, hint))

        if unresolved:
            logger.debug("Skipping JSR registry packages without repository metadata: %s", ", ".join(unresolved))

        return dependencies
