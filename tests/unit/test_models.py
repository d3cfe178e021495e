"""Tests for core data models."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from thanks_stars.core.models import (
    Dependency,
    Ecosystem,
    ErrorKind,
    OutcomeKind,
    RunSummary,
    Source,
    StarOutcome,
)
from thanks_stars.errors import (
    AuthError,
    GitHubApiError,
    ManifestParseError,
    NetworkError,
    NotFoundError,
    RateLimitedError,
)


class TestEcosystem:
    """Tests for Ecosystem enum."""

    def test_all_ecosystems_defined(self) -> None:
        """Verify all expected ecosystems are defined."""
        expected = {"node", "deno", "jsr", "cargo", "go", "composer", "ruby", "python", "gradle", "dart", "r"}
        actual = {e.value for e in Ecosystem}
        assert actual == expected

    def test_ecosystem_string_values(self) -> None:
        """Verify ecosystem values are lowercase strings."""
        for eco in Ecosystem:
            assert eco.value == eco.value.lower()


class TestDependency:
    """Tests for Dependency model."""

    def test_create_dependency(self) -> None:
        """Test creating a dependency."""
        dep = Dependency(
            ecosystem=Ecosystem.CARGO,
            name="serde",
            manifest_path=Path("/project/Cargo.toml"),
            raw_repo_hint="https://github.com/serde-rs/serde",
        )
        assert dep.manifest_name == "Cargo.toml"
        assert dep.raw_repo_hint == "https://github.com/serde-rs/serde"

    def test_dependency_is_frozen(self) -> None:
        """Test that dependencies are immutable."""
        dep = Dependency(ecosystem=Ecosystem.GO, name="x", manifest_path=Path("go.mod"))
        with pytest.raises(ValidationError):
            dep.name = "y"


class TestResolvedTarget:
    """Tests for ResolvedTarget."""

    def test_via_is_first_source(self, make_target) -> None:
        """Test that attribution uses the first manifest."""
        target = make_target("a", "b", manifest="Cargo.toml")
        target.add_source(Source(ecosystem=Ecosystem.NODE, manifest_path=Path("/project/package.json")))

        assert target.via == "Cargo.toml"
        assert len(target.sources) == 2

    def test_add_source_ignores_duplicates(self, make_target) -> None:
        """Test that the same manifest is recorded once."""
        target = make_target("a", "b")
        target.add_source(Source(ecosystem=Ecosystem.NODE, manifest_path=Path("/project/package.json")))

        assert len(target.sources) == 1


class TestRunSummary:
    """Tests for RunSummary aggregation."""

    def test_counts(self, make_target) -> None:
        """Test per-kind counters and pending."""
        summary = RunSummary(
            outcomes=[
                StarOutcome(target=make_target("a", "b"), kind=OutcomeKind.STARRED),
                StarOutcome(target=make_target("c", "d"), kind=OutcomeKind.ALREADY_STARRED),
                StarOutcome(
                    target=make_target("e", "f"),
                    kind=OutcomeKind.FAILED,
                    reason=ErrorKind.RATE_LIMITED,
                ),
            ],
            total_targets=4,
        )

        assert summary.starred == 1
        assert summary.already_starred == 1
        assert summary.counts[OutcomeKind.WOULD_STAR] == 0
        assert [o.target.reference.canonical_key for o in summary.failures] == ["e/f"]
        assert summary.pending == 1
        assert not summary.success

    def test_empty_summary_is_success(self) -> None:
        """Test that a run without outcomes succeeds."""
        assert RunSummary().success


class TestErrors:
    """Tests for error classification."""

    @pytest.mark.parametrize(
        "error,kind,retryable",
        [
            (AuthError(401), ErrorKind.AUTH, False),
            (NotFoundError("a/b"), ErrorKind.NOT_FOUND, False),
            (RateLimitedError(5), ErrorKind.RATE_LIMITED, True),
            (NetworkError(), ErrorKind.NETWORK, True),
            (GitHubApiError(422), ErrorKind.API, False),
        ],
    )
    def test_kinds(self, error, kind: ErrorKind, retryable: bool) -> None:
        """Test the failure reason and retryability of each error."""
        assert error.kind == kind
        assert error.retryable is retryable

    def test_hint_in_str(self) -> None:
        """Test that hints are included in the string form."""
        assert "Hint:" in str(AuthError(401))

    def test_manifest_parse_error(self) -> None:
        """Test ManifestParseError message and reason."""
        error = ManifestParseError("/p/package.json", "invalid JSON")

        assert error.reason == "invalid JSON"
        assert error.message == "Failed to parse /p/package.json: invalid JSON"
