"""Canonicalization and deduplication of repository hints."""

import re

from thanks_stars.core.models import (
    Dependency,
    RepositoryReference,
    ResolutionResult,
    ResolvedTarget,
    ScanWarning,
    Source,
    WarningKind,
)
from thanks_stars.utils.logging import get_logger

logger = get_logger(__name__)

SCHEME = re.compile(r"^(?:git\+)?(?:https?|ssh|git)://", re.IGNORECASE)
USERINFO = re.compile(r"^[^@/]+@")
SCP_GITHUB = re.compile(r"^(?:git\+)?git@github\.com:", re.IGNORECASE)
GITHUB_HOST = re.compile(r"^(?:www\.)?github\.com(?::\d+)?/", re.IGNORECASE)

OWNER = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?$")
REPO = re.compile(r"^[A-Za-z0-9._-]+$")


def _strip_suffixes(path: str) -> str:
    path = path.rstrip("/")
    if path.lower().endswith(".git"):
        path = path[: -len(".git")]
    return path.rstrip("/")


def canonicalize(hint: str) -> RepositoryReference | None:
    """Normalize a repository hint to a GitHub owner/repo reference.

    Accepts URLs in the common forms found in manifests::

        https://github.com/Foo/Bar.git
        git+ssh://git@github.com/foo/bar.git
        git@github.com:foo/bar.git
        github:foo/bar
        github.com/foo/bar/
        foo/bar

    URLs on github.com are cut to their first two path segments, so links
    to a tree, blob or release page resolve to the repository.

    Args:
        hint: Raw hint as found in a manifest.

    Returns:
        RepositoryReference, or None when the hint is not a GitHub repository.
    """
    value = hint.strip()
    value = re.split(r"[#?]", value, maxsplit=1)[0]

    if value.lower().startswith("github:"):
        value = value[len("github:") :]
        on_github = False
    elif SCP_GITHUB.match(value):
        value = SCP_GITHUB.sub("", value)
        on_github = True
    else:
        has_scheme = bool(SCHEME.match(value))
        value = SCHEME.sub("", value)
        if has_scheme:
            value = USERINFO.sub("", value)

        if GITHUB_HOST.match(value):
            value = GITHUB_HOST.sub("", value)
            on_github = True
        elif has_scheme:
            return None
        else:
            on_github = False

    segments = _strip_suffixes(value).split("/")
    if on_github:
        segments = [segment for segment in segments if segment][:2]

    if len(segments) != 2:
        return None

    owner, repo = segments[0], _strip_suffixes(segments[1])
    if not OWNER.match(owner) or not REPO.match(repo) or repo in (".", ".."):
        return None

    return RepositoryReference(
        owner=owner,
        repo=repo,
        canonical_key=f"{owner}/{repo}".lower(),
    )


class RepositoryResolver:
    """Turns dependencies into a deduplicated, first-seen ordered target list."""

    def resolve(self, dependencies: list[Dependency]) -> ResolutionResult:
        """Resolve and merge dependencies by canonical repository key.

        Args:
            dependencies: Dependencies from every ecosystem, in scan order.

        Returns:
            ResolutionResult with one target per repository and a warning for
            every hint that is not a GitHub repository.
        """
        result = ResolutionResult()
        targets: dict[str, ResolvedTarget] = {}

        for dependency in dependencies:
            if not dependency.raw_repo_hint:
                continue

            reference = canonicalize(dependency.raw_repo_hint)
            if reference is None:
                logger.debug(
                    "Ignoring %s from %s: '%s' is not a GitHub repository",
                    dependency.name,
                    dependency.manifest_name,
                    dependency.raw_repo_hint,
                )
                result.warnings.append(
                    ScanWarning(
                        kind=WarningKind.RESOLUTION,
                        ecosystem=dependency.ecosystem,
                        path=str(dependency.manifest_path),
                        message=f"{dependency.name}: '{dependency.raw_repo_hint}' is not a GitHub repository",
                    )
                )
                continue

            source = Source(ecosystem=dependency.ecosystem, manifest_path=dependency.manifest_path)
            target = targets.get(reference.canonical_key)
            if target is None:
                target = ResolvedTarget(reference=reference, sources=[source])
                targets[reference.canonical_key] = target
                result.targets.append(target)
            else:
                target.add_source(source)

        logger.debug(
            "Resolved %d dependencies to %d repositories",
            len(dependencies),
            len(result.targets),
        )
        return result
