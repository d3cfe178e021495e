"""Configuration management for thanks-stars."""

import os
from pathlib import Path
from typing import Any

import toml
from pydantic import BaseModel, Field, ValidationError, field_validator

from thanks_stars.errors import ConfigurationError
from thanks_stars.github.client import API_BASE_ENV, DEFAULT_API_URL
from thanks_stars.utils.http import RetryPolicy
from thanks_stars.utils.logging import get_logger

logger = get_logger(__name__)

CONFIG_DIR_ENV = "THANKS_STARS_CONFIG_DIR"
WORKERS_ENV = "THANKS_STARS_WORKERS"
TOKEN_ENV = "GITHUB_TOKEN"
CONFIG_FILE_NAME = "config.toml"


class RetryConfig(BaseModel):
    """Backoff settings for GitHub requests."""

    max_attempts: int = Field(default=4, ge=1, le=10, description="Attempts per request")
    base_delay: float = Field(default=1.0, ge=0, description="First backoff delay in seconds")
    max_delay: float = Field(default=60.0, gt=0, description="Upper bound for a backoff delay")

    def to_policy(self) -> RetryPolicy:
        """Build the RetryPolicy used by the HTTP client."""
        return RetryPolicy(
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
        )


class ThanksStarsConfig(BaseModel):
    """Settings read from the config file and environment."""

    api_url: str = Field(default=DEFAULT_API_URL, description="GitHub API base URL")
    workers: int = Field(default=4, ge=1, le=32, description="Concurrent repository workers")
    request_timeout: float = Field(default=30.0, gt=0, description="Per-request timeout in seconds")
    run_timeout: float | None = Field(default=None, gt=0, description="Overall run deadline in seconds")
    retry: RetryConfig = Field(default_factory=RetryConfig)

    @field_validator("api_url")
    @classmethod
    def validate_api_url(cls, v: str) -> str:
        """Validate the API base URL."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("api_url must be an http(s) URL")
        return v.rstrip("/")


def default_config_dir() -> Path:
    """Directory holding config.toml (``THANKS_STARS_CONFIG_DIR`` wins)."""
    override = os.environ.get(CONFIG_DIR_ENV)
    if override:
        return Path(override)
    return Path.home() / ".config" / "thanks-stars"


class ConfigManager:
    """Reads and writes the thanks-stars config file.

    The file is TOML and holds the token next to optional settings::

        token = "ghp_..."
        workers = 8

        [retry]
        max_attempts = 5
    """

    def __init__(self, base_dir: Path | None = None) -> None:
        """Initialize the config manager.

        Args:
            base_dir: Config directory (defaults to ``default_config_dir()``).
        """
        self.base_dir = base_dir or default_config_dir()

    @property
    def config_file(self) -> Path:
        return self.base_dir / CONFIG_FILE_NAME

    def _read(self) -> dict[str, Any]:
        if not self.config_file.exists():
            return {}
        try:
            return toml.loads(self.config_file.read_text(encoding="utf-8"))
        except toml.TomlDecodeError as e:
            raise ConfigurationError(
                f"Invalid config file {self.config_file}: {e}",
                "Fix the file or run `thanks-stars auth` to rewrite it.",
            ) from e

    def save_token(self, token: str) -> Path:
        """Store the token, keeping any other settings in the file.

        Args:
            token: GitHub personal access token.

        Returns:
            Path of the written config file.
        """
        token = token.strip()
        if not token:
            raise ConfigurationError("Token must not be empty")

        data = self._read()
        data["token"] = token

        self.base_dir.mkdir(parents=True, exist_ok=True)
        if self.config_file.exists():
            try:
                self.config_file.chmod(0o600)
            except OSError as e:
                logger.debug("Unable to restrict permissions on %s: %s", self.config_file, e)

        fd = os.open(self.config_file, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(toml.dumps(data))

        logger.debug("Saved token to %s", self.config_file)
        return self.config_file

    def load_token(self) -> str | None:
        """Token stored in the config file, if any."""
        token = self._read().get("token")
        if isinstance(token, str) and token.strip():
            return token.strip()
        return None

    def get_token(self) -> str | None:
        """Token from ``GITHUB_TOKEN``, falling back to the config file."""
        env_token = os.environ.get(TOKEN_ENV)
        if env_token and env_token.strip():
            return env_token.strip()
        return self.load_token()

    def load_settings(self) -> ThanksStarsConfig:
        """Load settings from file and environment variables.

        Priority (highest to lowest):
        1. Environment variables
        2. Config file
        3. Defaults

        Returns:
            Loaded settings.

        Raises:
            ConfigurationError: If the file or an override is invalid.
        """
        config_data = {key: value for key, value in self._read().items() if key != "token"}

        api_base = os.environ.get(API_BASE_ENV)
        if api_base:
            config_data["api_url"] = api_base

        workers = os.environ.get(WORKERS_ENV)
        if workers:
            try:
                config_data["workers"] = int(workers)
            except ValueError as e:
                raise ConfigurationError(f"{WORKERS_ENV} must be an integer, got '{workers}'") from e

        try:
            return ThanksStarsConfig(**config_data)
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid configuration: {e}",
                f"Check {self.config_file} and the THANKS_STARS_* environment variables.",
            ) from e
