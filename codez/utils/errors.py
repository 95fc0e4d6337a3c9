"""
Error taxonomy for a Codez run.

Every failure that can end a run maps onto one of these types, so the
orchestrator can turn it into a single user-facing notification and a
``FAILED`` outcome with a stable reason.
"""

from typing import Optional


class CodezError(Exception):
    """Base exception for all Codez errors."""

    reason = "unexpected"


class ConfigurationError(CodezError):
    """Configuration inputs are missing or invalid."""

    reason = "configuration"


class ParseError(CodezError):
    """Input data (event payload, agent output, JSON) could not be parsed."""

    reason = "parse"


class GitHostError(CodezError):
    """A GitHub API call or repository operation failed."""

    reason = "git_host"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class CliError(CodezError):
    """An external command exited with a non-zero status."""

    reason = "cli"

    def __init__(self, message: str, exit_code: Optional[int] = None, stderr: str = ""):
        super().__init__(message)
        self.exit_code = exit_code
        self.stderr = stderr


class TimeoutExceededError(CodezError):
    """The run or one of its steps ran past its deadline."""

    reason = "timeout"


def to_error_message(error: BaseException) -> str:
    """Render an exception as a single human-readable message."""
    message = str(error)
    return message if message else type(error).__name__


def failure_reason(error: BaseException) -> str:
    """Map an exception onto a ``RunOutcome`` failure reason."""
    if isinstance(error, CodezError):
        return error.reason
    return CodezError.reason
