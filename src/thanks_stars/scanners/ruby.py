"""Ruby ecosystem scanner for Gemfile and Gemfile.lock."""

import re
from pathlib import Path
from typing import ClassVar

from thanks_stars.core.models import Dependency, Ecosystem
from thanks_stars.scanners.base import BaseScanner
from thanks_stars.utils.logging import get_logger

logger = get_logger(__name__)

GEM_LINE = re.compile(r"""^\s*gem\s+['"]([^'"]+)['"](.*)$""")
GITHUB_OPTION = re.compile(r"""(?::github\s*=>|\bgithub:)\s*['"]([^'"]+)['"]""")
GIT_OPTION = re.compile(r"""(?::git\s*=>|\bgit:)\s*['"]([^'"]+)['"]""")


class RubyScanner(BaseScanner):
    """Scanner for Ruby/Bundler files."""

    manifest_files: ClassVar[list[str]] = [
        "Gemfile",
        "Gemfile.lock",
    ]

    @property
    def ecosystem(self) -> Ecosystem:
        """Return the Ruby ecosystem."""
        return Ecosystem.RUBY

    def parse_file(self, path: Path) -> list[Dependency]:
        """Parse a Gemfile or Gemfile.lock.

        Args:
            path: Path to the file.

        Returns:
            List of dependencies with repository hints.
        """
        content = path.read_text(encoding="utf-8")

        if path.name == "Gemfile.lock":
            return self._parse_gemfile_lock(content, path)
        return self._parse_gemfile(content, path)

    def _parse_gemfile_lock(self, content: str, path: Path) -> list[Dependency]:
        """Parse the ``remote:`` of each ``GIT`` section.

        Format::

            GIT
              remote: https://github.com/rails/rails.git
              revision: abc123
              specs:
                rails (7.1.0)
        """
        dependencies: list[Dependency] = []
        in_git_section = False

        for line in content.splitlines():
            stripped = line.strip()

            if not line.startswith(" "):
                in_git_section = stripped == "GIT"
                continue

            if in_git_section and stripped.startswith("remote:"):
                remote = stripped[len("remote:") :].strip()
                name = remote.rstrip("/").rsplit("/", 1)[-1].removesuffix(".git")
                dependencies.append(self.dependency(name, path, remote))

        return dependencies

    def _parse_gemfile(self, content: str, path: Path) -> list[Dependency]:
        """Parse ``gem`` lines carrying ``github:`` or ``git:`` options."""
        dependencies: list[Dependency] = []

        for line in content.splitlines():
            line = strip_comment(line)
            match = GEM_LINE.match(line)
            if not match:
                continue

            name, options = match.group(1), match.group(2)
            github = GITHUB_OPTION.search(options)
            if github:
                repo = github.group(1)
                if "/" not in repo:
                    # bundler expands `github: "rails"` to rails/rails
                    repo = f"{repo}/{repo}"
                dependencies.append(self.dependency(name, path, f"github:{repo}"))
                continue

            git = GIT_OPTION.search(options)
            if git:
                dependencies.append(self.dependency(name, path, git.group(1)))

        return dependencies


def strip_comment(line: str) -> str:
    """Drop a trailing ``#`` comment, keeping ``#`` inside quoted strings."""
    quote = None
    for index, char in enumerate(line):
        if quote:
            if char == quote:
                quote = None
        elif char in "'\"":
            quote = char
        elif char == "#":
            return line[:index]
    return line
