"""
Utility modules for Codez.
"""

from codez.utils.errors import (
    CodezError,
    ConfigurationError,
    ParseError,
    GitHostError,
    CliError,
    TimeoutExceededError,
    to_error_message,
)
from codez.utils.logging import (
    get_logger,
    setup_logging,
    log_step_transition,
    log_api_call,
)
from codez.utils.metrics import (
    RunMetrics,
    track_step,
    track_api_call,
)
from codez.utils.resilience import (
    Deadline,
    best_effort,
    retry_with_backoff,
)

__all__ = [
    "CodezError",
    "ConfigurationError",
    "ParseError",
    "GitHostError",
    "CliError",
    "TimeoutExceededError",
    "to_error_message",
    "get_logger",
    "setup_logging",
    "log_step_transition",
    "log_api_call",
    "RunMetrics",
    "track_step",
    "track_api_call",
    "Deadline",
    "best_effort",
    "retry_with_backoff",
]
