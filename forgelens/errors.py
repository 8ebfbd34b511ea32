"""Centralized exception hierarchy for ForgeLens.

This module defines all custom exceptions used throughout ForgeLens,
organized in a hierarchy so callers can catch as broadly or as narrowly
as they need. The core never renders user-facing text; these exceptions
carry structured details and the CLI formats them.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence


class ForgeLensError(Exception):
    """Base exception for all ForgeLens errors.

    Attributes:
        message: Human-readable error message.
        code: Optional error code for programmatic handling.
        details: Optional dictionary with additional error context.
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "details": self.details,
        }


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(ForgeLensError):
    """Raised when there's a configuration problem."""
    pass


class InvalidConfigError(ConfigurationError):
    """Raised when configuration values are invalid."""

    def __init__(self, field: str, value: Any, reason: str):
        super().__init__(
            message=f"Invalid configuration for '{field}': {reason}",
            code="INVALID_CONFIG",
            details={"field": field, "value": str(value)[:100], "reason": reason},
        )


# =============================================================================
# Repository Resolution Errors
# =============================================================================

class RepositoryError(ForgeLensError):
    """Raised when a repository resolution step fails.

    Attributes:
        operation: The step that failed ("validate", "extract", "parse").
        path: The filesystem path or value involved.
        cause: The underlying exception, if any.
    """

    def __init__(
        self,
        operation: str,
        path: str,
        cause: Optional[BaseException] = None,
        message: Optional[str] = None,
        code: str = "REPOSITORY_ERROR",
        details: Optional[dict[str, Any]] = None,
    ):
        if message is None:
            message = f"repository {operation} failed for {path}"
            if cause is not None:
                message += f": {cause}"
        details = details or {}
        details.update({"operation": operation, "path": path})
        if cause is not None:
            details["cause"] = str(cause)
            details["cause_type"] = type(cause).__name__
        super().__init__(message, code, details)
        self.operation = operation
        self.path = path
        self.cause = cause


class DirectoryNotFoundError(RepositoryError):
    """Raised when the directory to resolve does not exist."""

    def __init__(self, path: str):
        super().__init__(
            operation="validate",
            path=path,
            message=f"directory does not exist: {path}",
            code="DIRECTORY_NOT_FOUND",
        )


class NotGitRepositoryError(RepositoryError):
    """Raised when a directory has no usable .git directory."""

    def __init__(self, path: str, reason: str):
        super().__init__(
            operation="validate",
            path=path,
            message=f"not a git repository: {path} ({reason})",
            code="NOT_GIT_REPOSITORY",
            details={"reason": reason},
        )
        self.reason = reason


class NoRemotesConfiguredError(RepositoryError):
    """Raised when no remote in .git/config carries a URL."""

    def __init__(self, path: str):
        super().__init__(
            operation="extract",
            path=path,
            message=f"no configured remotes in {path}",
            code="NO_REMOTES_CONFIGURED",
        )


class InvalidRemoteURLError(RepositoryError):
    """Raised when a remote URL cannot be parsed into owner/repo."""

    def __init__(self, url: str):
        super().__init__(
            operation="parse",
            path=url,
            message=f"failed to parse remote URL: {url}",
            code="INVALID_REMOTE_URL",
            details={"url": url},
        )
        self.url = url


class InvalidRepositoryNameError(RepositoryError):
    """Raised when a repository identifier is not in owner/repo form."""

    def __init__(self, repository: str):
        super().__init__(
            operation="parse",
            path=repository,
            message=f"repository must be in format 'owner/repo': {repository!r}",
            code="INVALID_REPOSITORY_NAME",
        )
        self.repository = repository


# =============================================================================
# Git Command Errors
# =============================================================================

class GitCommandError(ForgeLensError):
    """Raised when a git subprocess fails in a way we don't recognize."""

    def __init__(
        self,
        message: str,
        args: Sequence[str] = (),
        returncode: Optional[int] = None,
        stderr: Optional[str] = None,
        code: str = "GIT_COMMAND_ERROR",
    ):
        details: dict[str, Any] = {"args": list(args)}
        if returncode is not None:
            details["returncode"] = returncode
        if stderr:
            details["stderr"] = stderr[:500]  # Truncate for safety
        super().__init__(message, code, details)
        self.git_args = list(args)
        self.returncode = returncode
        self.stderr = stderr


class GitCommandTimeoutError(GitCommandError):
    """Raised when a git subprocess exceeds its timeout and is killed."""

    def __init__(self, args: Sequence[str], timeout: float):
        super().__init__(
            message=f"git {' '.join(args)} timed out after {timeout}s",
            args=args,
            code="GIT_COMMAND_TIMEOUT",
        )
        self.details["timeout_seconds"] = timeout
        self.timeout = timeout
