"""Custom exceptions for thanks-stars with user-friendly error messages."""

from thanks_stars.core.models import ErrorKind


class ThanksStarsError(Exception):
    """Base exception with user-friendly message and optional hint.

    Attributes:
        message: The main error message.
        hint: Optional hint for resolving the error.
    """

    def __init__(self, message: str, hint: str = "") -> None:
        """Initialize the exception.

        Args:
            message: The main error message.
            hint: Optional hint for resolving the error.
        """
        self.message = message
        self.hint = hint
        super().__init__(message)

    def __str__(self) -> str:
        """Return string representation."""
        if self.hint:
            return f"{self.message}\nHint: {self.hint}"
        return self.message


class GitHubError(ThanksStarsError):
    """Error raised by the GitHub client for a single API interaction."""

    kind: ErrorKind = ErrorKind.API
    retryable: bool = False


class AuthError(GitHubError):
    """GitHub rejected the token. Fatal for the whole run."""

    kind = ErrorKind.AUTH

    def __init__(
        self,
        status: int | None = None,
        message: str = "",
        hint: str = "",
    ) -> None:
        if not message:
            message = "GitHub authentication failed"
            if status:
                message += f" (HTTP {status})"
        if not hint:
            hint = (
                "The token is invalid, expired or lacks the 'public_repo' scope. "
                "Run `thanks-stars auth` or set GITHUB_TOKEN."
            )
        self.status = status
        super().__init__(message, hint)


class NotFoundError(GitHubError):
    """Repository (or API endpoint) not found."""

    kind = ErrorKind.NOT_FOUND

    def __init__(
        self,
        repo: str = "",
        message: str = "",
        hint: str = "",
    ) -> None:
        if not message:
            message = f"GitHub repository '{repo}' not found" if repo else "GitHub resource not found"
        if not hint:
            hint = "The repository may have been renamed, deleted or made private."
        self.repo = repo
        super().__init__(message, hint)


class RateLimitedError(GitHubError):
    """GitHub primary or secondary rate limit exceeded."""

    kind = ErrorKind.RATE_LIMITED
    retryable = True

    def __init__(
        self,
        retry_after: float | None = None,
        message: str = "",
        hint: str = "",
    ) -> None:
        if not message:
            if retry_after:
                message = f"GitHub rate limit exceeded. Retry after {retry_after:.0f} seconds."
            else:
                message = "GitHub rate limit exceeded."
        if not hint:
            hint = "Wait before retrying or check your rate limit status at https://api.github.com/rate_limit"
        self.retry_after = retry_after
        super().__init__(message, hint)


class NetworkError(GitHubError):
    """Network connectivity issue or server-side failure."""

    kind = ErrorKind.NETWORK
    retryable = True

    def __init__(
        self,
        service: str = "GitHub",
        original_error: Exception | None = None,
        message: str = "",
        hint: str = "",
    ) -> None:
        if not message:
            message = f"Failed to reach {service}"
            if original_error:
                message += f": {original_error}"
        if not hint:
            hint = "Check your internet connection and firewall settings."
        super().__init__(message, hint)


class GitHubApiError(GitHubError):
    """GitHub answered with a status the client does not expect."""

    kind = ErrorKind.API

    def __init__(self, status: int, body: str = "", message: str = "", hint: str = "") -> None:
        if not message:
            message = f"GitHub API responded with status {status}"
            if body:
                message += f": {body[:200]}"
        self.status = status
        self.body = body
        super().__init__(message, hint)


class ConfigurationError(ThanksStarsError):
    """Invalid configuration."""

    pass


class MissingTokenError(ConfigurationError):
    """No GitHub token is configured."""

    def __init__(self, message: str = "", hint: str = "") -> None:
        if not message:
            message = "GitHub token not found"
        if not hint:
            hint = "Run `thanks-stars auth --token <token>` or set GITHUB_TOKEN."
        super().__init__(message, hint)


class ManifestParseError(ThanksStarsError):
    """A manifest or lockfile could not be read or parsed."""

    def __init__(self, path: str, reason: str = "", hint: str = "") -> None:
        message = f"Failed to parse {path}"
        if reason:
            message += f": {reason}"
        self.path = path
        self.reason = reason
        super().__init__(message, hint)


class ProjectRootError(ThanksStarsError):
    """The project root does not exist or is not a directory."""

    def __init__(self, root: str) -> None:
        super().__init__(
            f"Project root '{root}' is not a directory",
            "Pass an existing project directory with --path.",
        )


class NoManifestsError(ThanksStarsError):
    """No supported dependency manifest was found in the project root."""

    def __init__(self, root: str) -> None:
        super().__init__(
            f"No supported dependency definitions found in {root}",
            "Supported ecosystems: cargo, node, go, composer, ruby, python, gradle, deno, jsr, dart, r.",
        )
