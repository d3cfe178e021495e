"""Pytest configuration and fixtures for thanks-stars tests."""

import tempfile
from collections.abc import Callable, Generator
from pathlib import Path

import pytest

from thanks_stars.core.models import (
    Ecosystem,
    RepositoryReference,
    ResolvedTarget,
    Source,
)


class FakeClock:
    """Deterministic clock whose sleep advances time instead of waiting."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def time(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    @property
    def slept(self) -> float:
        return sum(self.sleeps)


def _make_target(owner: str, repo: str, manifest: str = "package.json") -> ResolvedTarget:
    return ResolvedTarget(
        reference=RepositoryReference(
            owner=owner,
            repo=repo,
            canonical_key=f"{owner}/{repo}".lower(),
        ),
        sources=[Source(ecosystem=Ecosystem.NODE, manifest_path=Path("/project") / manifest)],
    )


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def make_target() -> Callable[..., ResolvedTarget]:
    """Factory for resolved targets attributed to a single manifest."""
    return _make_target


@pytest.fixture
def clock() -> FakeClock:
    """Provide a fake clock."""
    return FakeClock()


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep tests away from the real token, config directory and API."""
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    monkeypatch.delenv("THANKS_STARS_API_BASE", raising=False)
    monkeypatch.delenv("THANKS_STARS_WORKERS", raising=False)
    monkeypatch.setenv("THANKS_STARS_CONFIG_DIR", str(tmp_path / "config"))
