"""External agents: the Codex CLI and the commit-message model."""

from codez.agents.codex_runner import CodexRunner, build_cli_args, parse_agent_output
from codez.agents.commit_message import CommitMessageGenerator, fallback_commit_message

__all__ = [
    "CodexRunner",
    "build_cli_args",
    "parse_agent_output",
    "CommitMessageGenerator",
    "fallback_commit_message",
]
