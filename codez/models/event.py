"""Webhook payload and agent event data models."""

from enum import Enum
from typing import Any, ClassVar, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict


class EventType(str, Enum):
    """The closed set of webhook deliveries Codez acts on."""

    ISSUES_OPENED = "issuesOpened"
    ISSUES_ASSIGNED = "issuesAssigned"
    ISSUE_COMMENT_CREATED = "issueCommentCreated"
    PULL_REQUEST_COMMENT_CREATED = "pullRequestCommentCreated"
    PULL_REQUEST_REVIEW_COMMENT_CREATED = "pullRequestReviewCommentCreated"
    PULL_REQUEST_OPENED = "pullRequestOpened"
    PULL_REQUEST_SYNCHRONIZE = "pullRequestSynchronize"


class _Payload(BaseModel):
    """Base for raw payload fragments; unknown keys are kept."""

    model_config = ConfigDict(extra="allow")


class GitHubUser(_Payload):
    login: str


class RepositoryInfo(_Payload):
    full_name: Optional[str] = None
    clone_url: Optional[str] = None
    default_branch: Optional[str] = None


class IssueInfo(_Payload):
    number: int
    title: str = ""
    body: Optional[str] = None
    pull_request: Optional[Dict[str, Any]] = None


class CommentInfo(_Payload):
    id: int
    body: Optional[str] = None
    user: Optional[GitHubUser] = None


class ReviewCommentInfo(CommentInfo):
    path: str
    in_reply_to_id: Optional[int] = None
    position: Optional[int] = None
    line: Optional[int] = None


class BranchInfo(_Payload):
    ref: str
    sha: Optional[str] = None


class PullRequestInfo(_Payload):
    number: int
    title: Optional[str] = None
    body: Optional[str] = None
    head: Optional[BranchInfo] = None
    base: Optional[BranchInfo] = None


class IssuePayload(_Payload):
    """Payload of an ``issues`` delivery."""

    action: str
    issue: IssueInfo
    repository: Optional[RepositoryInfo] = None


class IssueAssignedPayload(IssuePayload):
    assignee: GitHubUser


class IssueCommentPayload(IssuePayload):
    """Payload of an ``issue_comment`` delivery (issue or PR conversation)."""

    comment: CommentInfo


class ReviewCommentPayload(_Payload):
    """Payload of a ``pull_request_review_comment`` delivery."""

    action: str
    pull_request: PullRequestInfo
    comment: ReviewCommentInfo
    repository: Optional[RepositoryInfo] = None


class PullRequestPayload(_Payload):
    """Payload of a ``pull_request`` delivery."""

    action: str
    pull_request: PullRequestInfo
    repository: Optional[RepositoryInfo] = None


class _AgentEventBase(BaseModel):
    """Shared accessors for agent event variants."""

    model_config = ConfigDict(frozen=True)

    # True when the thread is an issue or a PR conversation (``issue`` key)
    is_issue_thread: ClassVar[bool] = True
    # True when a run on this event should open a new pull request
    opens_pull_request: ClassVar[bool] = False

    @property
    def number(self) -> int:
        return self.github.issue.number

    @property
    def title(self) -> str:
        return self.github.issue.title or ""

    @property
    def body(self) -> str:
        return self.github.issue.body or ""

    @property
    def comment(self) -> Optional[CommentInfo]:
        return getattr(self.github, "comment", None)

    @property
    def repository(self) -> Optional[RepositoryInfo]:
        return self.github.repository

    @property
    def has_thread(self) -> bool:
        """False for synthetic events that have no issue or PR to talk to."""
        return self.number > 0


class IssuesOpenedEvent(_AgentEventBase):
    type: Literal[EventType.ISSUES_OPENED] = EventType.ISSUES_OPENED
    github: IssuePayload

    opens_pull_request: ClassVar[bool] = True


class IssuesAssignedEvent(_AgentEventBase):
    type: Literal[EventType.ISSUES_ASSIGNED] = EventType.ISSUES_ASSIGNED
    github: IssueAssignedPayload

    opens_pull_request: ClassVar[bool] = True


class IssueCommentCreatedEvent(_AgentEventBase):
    type: Literal[EventType.ISSUE_COMMENT_CREATED] = EventType.ISSUE_COMMENT_CREATED
    github: IssueCommentPayload

    opens_pull_request: ClassVar[bool] = True


class PullRequestCommentCreatedEvent(_AgentEventBase):
    type: Literal[EventType.PULL_REQUEST_COMMENT_CREATED] = EventType.PULL_REQUEST_COMMENT_CREATED
    github: IssueCommentPayload


class PullRequestReviewCommentCreatedEvent(_AgentEventBase):
    type: Literal[EventType.PULL_REQUEST_REVIEW_COMMENT_CREATED] = EventType.PULL_REQUEST_REVIEW_COMMENT_CREATED
    github: ReviewCommentPayload

    is_issue_thread: ClassVar[bool] = False

    @property
    def number(self) -> int:
        return self.github.pull_request.number

    @property
    def title(self) -> str:
        return self.github.pull_request.title or ""

    @property
    def body(self) -> str:
        return self.github.pull_request.body or ""

    @property
    def reply_target_id(self) -> int:
        """Id of the thread root that replies must attach to."""
        comment = self.github.comment
        return comment.in_reply_to_id if comment.in_reply_to_id is not None else comment.id


class _PullRequestEvent(_AgentEventBase):
    github: PullRequestPayload

    is_issue_thread: ClassVar[bool] = False

    @property
    def number(self) -> int:
        return self.github.pull_request.number

    @property
    def title(self) -> str:
        return self.github.pull_request.title or ""

    @property
    def body(self) -> str:
        return self.github.pull_request.body or ""


class PullRequestOpenedEvent(_PullRequestEvent):
    type: Literal[EventType.PULL_REQUEST_OPENED] = EventType.PULL_REQUEST_OPENED


class PullRequestSynchronizeEvent(_PullRequestEvent):
    type: Literal[EventType.PULL_REQUEST_SYNCHRONIZE] = EventType.PULL_REQUEST_SYNCHRONIZE


AgentEvent = Union[
    IssuesOpenedEvent,
    IssuesAssignedEvent,
    IssueCommentCreatedEvent,
    PullRequestCommentCreatedEvent,
    PullRequestReviewCommentCreatedEvent,
    PullRequestOpenedEvent,
    PullRequestSynchronizeEvent,
]
