"""Core module containing data models, repository resolution and run orchestration."""

from thanks_stars.core.models import (
    Dependency,
    Ecosystem,
    ErrorKind,
    OutcomeKind,
    RepositoryReference,
    ResolvedTarget,
    RunSummary,
    Source,
    StarOutcome,
)

__all__ = [
    "Dependency",
    "Ecosystem",
    "ErrorKind",
    "OutcomeKind",
    "RepositoryReference",
    "ResolvedTarget",
    "RunSummary",
    "Source",
    "StarOutcome",
]
