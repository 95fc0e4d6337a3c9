"""Data models for the Codez orchestration engine."""

from .api_response import ContentItem, FeaturePlanItem, PublishResult, ThreadContents
from .command import ParsedCommand, ProcessedEvent
from .event import (
    AgentEvent,
    EventType,
    IssueCommentCreatedEvent,
    IssuesAssignedEvent,
    IssuesOpenedEvent,
    PullRequestCommentCreatedEvent,
    PullRequestOpenedEvent,
    PullRequestReviewCommentCreatedEvent,
    PullRequestSynchronizeEvent,
)
from .file_change import ChangeType, FileChange, categorize_changes
from .outcome import OutcomeKind, RunOutcome

__all__ = [
    # Event models
    "AgentEvent",
    "EventType",
    "IssuesOpenedEvent",
    "IssuesAssignedEvent",
    "IssueCommentCreatedEvent",
    "PullRequestCommentCreatedEvent",
    "PullRequestReviewCommentCreatedEvent",
    "PullRequestOpenedEvent",
    "PullRequestSynchronizeEvent",
    # Command models
    "ParsedCommand",
    "ProcessedEvent",
    # File change models
    "ChangeType",
    "FileChange",
    "categorize_changes",
    # Outcome models
    "OutcomeKind",
    "RunOutcome",
    # API response models
    "ContentItem",
    "ThreadContents",
    "FeaturePlanItem",
    "PublishResult",
]
