"""Run outcome data models."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class OutcomeKind(str, Enum):
    """Terminal result of a run."""

    PULL_REQUEST_CREATED = "pull_request_created"
    COMMIT_PUSHED = "commit_pushed"
    COMMENT_POSTED = "comment_posted"
    ISSUES_CREATED = "issues_created"
    SKIPPED = "skipped"
    FAILED = "failed"


class RunOutcome(BaseModel):
    """
    The single terminal value of a run.

    ``reason`` is set only for FAILED outcomes and is one of
    ``configuration``, ``parse``, ``git_host``, ``cli``, ``timeout`` or
    ``unexpected``.
    """

    model_config = ConfigDict(frozen=True)

    kind: OutcomeKind
    reason: Optional[str] = None
    message: str = ""
    url: Optional[str] = None
    branch: Optional[str] = None
    issue_numbers: List[int] = Field(default_factory=list)
    changed_files: List[str] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.kind != OutcomeKind.FAILED

    @classmethod
    def failed(cls, reason: str, message: str) -> "RunOutcome":
        return cls(kind=OutcomeKind.FAILED, reason=reason, message=message)
