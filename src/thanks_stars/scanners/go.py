"""Go ecosystem scanner for go.mod and go.sum."""

import re
from pathlib import Path
from typing import ClassVar

from thanks_stars.core.models import Dependency, Ecosystem
from thanks_stars.scanners.base import BaseScanner
from thanks_stars.utils.logging import get_logger

logger = get_logger(__name__)

GITHUB_MODULE = re.compile(r"^github\.com/([^/\s]+)/([^/\s]+)")


def github_module_hint(module: str) -> str | None:
    """Map ``github.com/<owner>/<repo>[/...]`` module paths to ``github.com/<owner>/<repo>``.

    Major-version suffixes (``/v2``) and subpackages are dropped with the
    rest of the path.
    """
    match = GITHUB_MODULE.match(module.strip())
    if not match:
        return None
    return f"github.com/{match.group(1)}/{match.group(2)}"


class GoScanner(BaseScanner):
    """Scanner for Go module files."""

    manifest_files: ClassVar[list[str]] = [
        "go.mod",
        "go.sum",
    ]

    @property
    def ecosystem(self) -> Ecosystem:
        """Return the Go ecosystem."""
        return Ecosystem.GO

    def parse_file(self, path: Path) -> list[Dependency]:
        """Parse go.mod or go.sum.

        Args:
            path: Path to the file.

        Returns:
            List of dependencies hosted on GitHub.
        """
        content = path.read_text(encoding="utf-8")

        if path.name == "go.sum":
            modules = self._parse_go_sum(content)
        else:
            modules = self._parse_go_mod(content)

        dependencies: list[Dependency] = []
        for module in modules:
            hint = github_module_hint(module)
            if hint:
                dependencies.append(self.dependency(module, path, hint))
        return dependencies

    def _parse_go_mod(self, content: str) -> list[str]:
        """Collect module paths from go.mod.

        Supports:
        - require directives (single and block)
        - replace directives (the replacement module)
        - comments (stripped)
        """
        modules: list[str] = []
        block: str | None = None

        for raw_line in content.splitlines():
            line = raw_line.split("//", 1)[0].strip()
            if not line:
                continue

            if block:
                if line == ")":
                    block = None
                    continue
                self._add_directive(block, line, modules)
                continue

            directive, _, rest = line.partition(" ")
            rest = rest.strip()
            if directive in ("require", "replace"):
                if rest == "(":
                    block = directive
                else:
                    self._add_directive(directive, rest, modules)

        return modules

    def _add_directive(self, directive: str, line: str, modules: list[str]) -> None:
        if directive == "replace":
            if "=>" not in line:
                return
            target = line.split("=>", 1)[1].split()
            if not target:
                return
            module = target[0]
        else:
            parts = line.split()
            if not parts:
                return
            module = parts[0]

        if module not in modules:
            modules.append(module)

    def _parse_go_sum(self, content: str) -> list[str]:
        """Collect module paths from go.sum (``<module> <version>[/go.mod] <hash>``)."""
        modules: list[str] = []
        for line in content.splitlines():
            parts = line.split()
            if len(parts) >= 2 and parts[0] not in modules:
                modules.append(parts[0])
        return modules
