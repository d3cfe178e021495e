"""GitHub integration: the starring API client."""

from thanks_stars.github.client import (
    DEFAULT_API_URL,
    GitHubClient,
    GitHubConfig,
)

__all__ = [
    "DEFAULT_API_URL",
    "GitHubClient",
    "GitHubConfig",
]
