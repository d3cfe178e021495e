"""Core data models for thanks-stars."""

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class Ecosystem(str, Enum):
    """Supported package ecosystems."""

    NODE = "node"
    DENO = "deno"
    JSR = "jsr"
    CARGO = "cargo"
    GO = "go"
    COMPOSER = "composer"
    RUBY = "ruby"
    PYTHON = "python"
    GRADLE = "gradle"
    DART = "dart"
    R = "r"


class ErrorKind(str, Enum):
    """Reason a repository could not be processed."""

    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    NETWORK = "network"
    AUTH = "auth"
    API = "api"


class OutcomeKind(str, Enum):
    """Terminal state of a repository within a run."""

    STARRED = "starred"
    ALREADY_STARRED = "already_starred"
    WOULD_STAR = "would_star"
    WOULD_SKIP_ALREADY_STARRED = "would_skip_already_starred"
    FAILED = "failed"


class WarningKind(str, Enum):
    """Category of a soft, non-fatal problem found during discovery."""

    SCAN = "scan"
    PARSE = "parse"
    RESOLUTION = "resolution"


class Dependency(BaseModel):
    """A single dependency parsed from a manifest or lockfile."""

    model_config = ConfigDict(frozen=True)

    ecosystem: Ecosystem = Field(..., description="Package ecosystem")
    name: str = Field(..., description="Package name")
    manifest_path: Path = Field(..., description="Path to the file declaring this dependency")
    raw_repo_hint: str | None = Field(
        default=None, description="Repository URL or shorthand as found in the manifest"
    )

    @property
    def manifest_name(self) -> str:
        """File name of the declaring manifest."""
        return self.manifest_path.name


class RepositoryReference(BaseModel):
    """A GitHub repository identified by owner and name."""

    model_config = ConfigDict(frozen=True)

    owner: str
    repo: str
    canonical_key: str = Field(..., description="Lowercase owner/repo")

    @property
    def full_name(self) -> str:
        """Owner and repository joined with a slash."""
        return f"{self.owner}/{self.repo}"

    @property
    def url(self) -> str:
        """Browser URL of the repository."""
        return f"https://github.com/{self.owner}/{self.repo}"


class Source(BaseModel):
    """A manifest that named a repository."""

    model_config = ConfigDict(frozen=True)

    ecosystem: Ecosystem
    manifest_path: Path

    @property
    def manifest_name(self) -> str:
        """File name of the manifest."""
        return self.manifest_path.name


class ResolvedTarget(BaseModel):
    """A unique repository together with every manifest that referenced it."""

    reference: RepositoryReference
    sources: list[Source] = Field(default_factory=list)

    @property
    def via(self) -> str:
        """Manifest name the repository is attributed to (first seen)."""
        if not self.sources:
            return "unknown source"
        return self.sources[0].manifest_name

    def add_source(self, source: Source) -> None:
        """Record another manifest referencing this repository."""
        if source not in self.sources:
            self.sources.append(source)


class StarOutcome(BaseModel):
    """Terminal result for one resolved repository."""

    model_config = ConfigDict(frozen=True)

    target: ResolvedTarget
    kind: OutcomeKind
    reason: ErrorKind | None = None
    message: str = ""

    @property
    def failed(self) -> bool:
        """Whether the repository ended in the Failed state."""
        return self.kind == OutcomeKind.FAILED


class RunSummary(BaseModel):
    """Aggregated result of a run."""

    model_config = ConfigDict(frozen=True)

    dry_run: bool = False
    outcomes: list[StarOutcome] = Field(default_factory=list)
    total_targets: int = 0
    interrupted: bool = False
    aborted: bool = False
    fatal_error: str | None = None

    def count(self, kind: OutcomeKind) -> int:
        """Number of outcomes of the given kind."""
        return sum(1 for outcome in self.outcomes if outcome.kind == kind)

    @property
    def counts(self) -> dict[OutcomeKind, int]:
        """Outcome counts for every kind, including zeroes."""
        return {kind: self.count(kind) for kind in OutcomeKind}

    @property
    def starred(self) -> int:
        return self.count(OutcomeKind.STARRED)

    @property
    def already_starred(self) -> int:
        return self.count(OutcomeKind.ALREADY_STARRED) + self.count(
            OutcomeKind.WOULD_SKIP_ALREADY_STARRED
        )

    @property
    def would_star(self) -> int:
        return self.count(OutcomeKind.WOULD_STAR)

    @property
    def failures(self) -> list[StarOutcome]:
        """Outcomes that ended in the Failed state."""
        return [outcome for outcome in self.outcomes if outcome.failed]

    @property
    def pending(self) -> int:
        """Targets never processed because the run stopped early."""
        return max(self.total_targets - len(self.outcomes), 0)

    @property
    def success(self) -> bool:
        """Whether the run should exit with status 0."""
        return not self.failures and not self.aborted and not self.interrupted


class ScanWarning(BaseModel):
    """A soft warning raised while scanning, parsing or resolving."""

    model_config = ConfigDict(frozen=True)

    kind: WarningKind
    ecosystem: Ecosystem | None = None
    path: str | None = None
    message: str


class Detection(BaseModel):
    """Files found for one ecosystem directly under the project root."""

    ecosystem: Ecosystem
    paths: list[Path] = Field(default_factory=list)


class ScanResult(BaseModel):
    """Result of probing a project root for manifests."""

    root: Path
    detections: list[Detection] = Field(default_factory=list)
    warnings: list[ScanWarning] = Field(default_factory=list)

    @property
    def ecosystems(self) -> list[Ecosystem]:
        return [detection.ecosystem for detection in self.detections]


class ParseResult(BaseModel):
    """Dependencies extracted from a set of manifests, with soft warnings."""

    dependencies: list[Dependency] = Field(default_factory=list)
    warnings: list[ScanWarning] = Field(default_factory=list)
    files_parsed: list[str] = Field(default_factory=list)


class ResolutionResult(BaseModel):
    """Deduplicated repositories produced by the resolver."""

    targets: list[ResolvedTarget] = Field(default_factory=list)
    warnings: list[ScanWarning] = Field(default_factory=list)
