"""
Event classification.

Maps an arbitrary webhook payload onto exactly one AgentEvent variant, or
None when the delivery is not something Codez acts on. Classification is a
single ordered table of structural predicates; the first match wins and the
payload is then validated against that variant's schema.
"""

from typing import Any, Callable, Dict, List, Optional, Tuple, Type

from pydantic import ValidationError

from codez.models.event import (
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
from codez.utils.logging import get_logger

logger = get_logger(__name__)


def _present(payload: Dict[str, Any], key: str) -> bool:
    return payload.get(key) is not None


def _issue_is_pull_request(payload: Dict[str, Any]) -> bool:
    issue = payload.get("issue")
    return isinstance(issue, dict) and bool(issue.get("pull_request"))


def _comment_has_path(payload: Dict[str, Any]) -> bool:
    comment = payload.get("comment")
    return isinstance(comment, dict) and comment.get("path") is not None


def _is_issues_opened(p: Dict[str, Any]) -> bool:
    return p.get("action") == "opened" and _present(p, "issue") and not _issue_is_pull_request(p)


def _is_issues_assigned(p: Dict[str, Any]) -> bool:
    return (
        p.get("action") == "assigned"
        and _present(p, "issue")
        and not _issue_is_pull_request(p)
        and _present(p, "assignee")
    )


def _is_issue_comment(p: Dict[str, Any]) -> bool:
    return (
        p.get("action") == "created"
        and _present(p, "issue")
        and not _issue_is_pull_request(p)
        and _present(p, "comment")
    )


def _is_pull_request_comment(p: Dict[str, Any]) -> bool:
    return (
        p.get("action") == "created"
        and _present(p, "issue")
        and _issue_is_pull_request(p)
        and _present(p, "comment")
    )


def _is_review_comment(p: Dict[str, Any]) -> bool:
    return (
        p.get("action") == "created"
        and _present(p, "pull_request")
        and not _present(p, "issue")
        and _comment_has_path(p)
    )


def _is_pull_request_action(action: str) -> Callable[[Dict[str, Any]], bool]:
    def predicate(p: Dict[str, Any]) -> bool:
        return (
            p.get("action") == action
            and _present(p, "pull_request")
            and not _present(p, "issue")
            and not _present(p, "comment")
        )
    return predicate


# Evaluated in order; the first predicate that holds decides the variant
CLASSIFIERS: List[Tuple[Callable[[Dict[str, Any]], bool], Type[AgentEvent]]] = [
    (_is_issues_opened, IssuesOpenedEvent),
    (_is_issues_assigned, IssuesAssignedEvent),
    (_is_issue_comment, IssueCommentCreatedEvent),
    (_is_pull_request_comment, PullRequestCommentCreatedEvent),
    (_is_review_comment, PullRequestReviewCommentCreatedEvent),
    (_is_pull_request_action("opened"), PullRequestOpenedEvent),
    (_is_pull_request_action("synchronize"), PullRequestSynchronizeEvent),
]


def classify_event(payload: Any) -> Optional[AgentEvent]:
    """
    Classify a raw webhook payload.

    Args:
        payload: Parsed JSON of any shape

    Returns:
        The matching AgentEvent, or None if no variant matches or the
        payload does not satisfy the matched variant's schema
    """
    if not isinstance(payload, dict):
        logger.info("Ignoring non-object event payload")
        return None

    for predicate, event_cls in CLASSIFIERS:
        if not predicate(payload):
            continue
        try:
            return event_cls(github=payload)
        except ValidationError as e:
            logger.warning(
                f"Event payload matched {event_cls.__name__} but failed validation: {e.error_count()} error(s)",
                extra={"validation_errors": str(e)},
            )
            return None

    logger.info(
        f"Unsupported event (action={payload.get('action')!r}); nothing to do",
    )
    return None


def extract_text(event: AgentEvent, trigger_phrase: str) -> str:
    """
    Pick the free text that may carry a trigger command.

    Comment events use the comment body. Issue and pull request events use
    whichever of body or title starts with the trigger, with the other one
    appended after a blank line; if neither does, the body is returned.
    """
    if event.type in (
        EventType.ISSUE_COMMENT_CREATED,
        EventType.PULL_REQUEST_COMMENT_CREATED,
        EventType.PULL_REQUEST_REVIEW_COMMENT_CREATED,
    ):
        return event.comment.body or ""

    title = event.title
    body = event.body
    if body.startswith(trigger_phrase):
        return f"{body}\n\n{title}"
    if title.startswith(trigger_phrase):
        return f"{title}\n\n{body}"
    return body
