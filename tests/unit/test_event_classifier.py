"""
Unit tests for webhook event classification.
"""

import pytest

from codez.models.event import (
    EventType,
    IssueCommentCreatedEvent,
    PullRequestReviewCommentCreatedEvent,
)
from codez.services.event_classifier import classify_event, extract_text


def issue_payload(action="opened", **extra):
    payload = {
        "action": action,
        "issue": {"number": 7, "title": "Crash on start", "body": "Stack trace attached"},
        "repository": {"full_name": "octo/widgets", "default_branch": "main"},
    }
    payload.update(extra)
    return payload


def pr_issue(number=9):
    return {"number": number, "title": "Add cache", "body": "", "pull_request": {"url": "https://api.github.com/x"}}


def review_payload(**comment):
    return {
        "action": "created",
        "pull_request": {"number": 9, "title": "Add cache", "head": {"ref": "feature/cache"}},
        "comment": {"id": 501, "body": "/codex rename this", "path": "src/cache.py", "line": 12, **comment},
    }


def test_issues_opened():
    event = classify_event(issue_payload())

    assert event.type == EventType.ISSUES_OPENED
    assert event.number == 7
    assert event.title == "Crash on start"
    assert event.opens_pull_request is True


def test_issues_assigned():
    event = classify_event(issue_payload("assigned", assignee={"login": "codez-bot"}))

    assert event.type == EventType.ISSUES_ASSIGNED
    assert event.github.assignee.login == "codez-bot"


def test_assigned_without_assignee_is_ignored():
    assert classify_event(issue_payload("assigned")) is None


def test_issue_comment_created():
    event = classify_event(issue_payload("created", comment={"id": 11, "body": "/codex fix it"}))

    assert isinstance(event, IssueCommentCreatedEvent)
    assert event.comment.id == 11


def test_pull_request_comment_created():
    payload = {"action": "created", "issue": pr_issue(), "comment": {"id": 12, "body": "/codex"}}

    event = classify_event(payload)

    assert event.type == EventType.PULL_REQUEST_COMMENT_CREATED
    assert event.opens_pull_request is False
    assert event.number == 9


def test_review_comment_created():
    event = classify_event(review_payload(in_reply_to_id=400))

    assert isinstance(event, PullRequestReviewCommentCreatedEvent)
    assert event.number == 9
    assert event.reply_target_id == 400


def test_review_comment_reply_target_defaults_to_comment():
    event = classify_event(review_payload())

    assert event.reply_target_id == 501


@pytest.mark.parametrize("action,expected", [
    ("opened", EventType.PULL_REQUEST_OPENED),
    ("synchronize", EventType.PULL_REQUEST_SYNCHRONIZE),
])
def test_pull_request_actions(action, expected):
    payload = {"action": action, "pull_request": {"number": 3, "title": "WIP", "body": "/codex tidy"}}

    event = classify_event(payload)

    assert event.type == expected
    assert event.body == "/codex tidy"


@pytest.mark.parametrize("payload", [
    None,
    [],
    "issues",
    {},
    {"action": "closed", "issue": {"number": 1}},
    {"action": "opened", "issue": pr_issue()},
    {"action": "edited", "pull_request": {"number": 3}},
    {"action": "created", "pull_request": {"number": 3}, "comment": {"id": 1, "body": "no path"}},
    {"action": "opened", "pull_request": {"number": 3}, "comment": {"id": 1}},
])
def test_unsupported_payloads(payload):
    assert classify_event(payload) is None


def test_matching_shape_with_invalid_schema_returns_none():
    """Test a payload that matches a predicate but not the variant schema."""
    payload = issue_payload("created", comment={"body": "missing id"})

    assert classify_event(payload) is None


def test_extract_text_for_comments():
    event = classify_event(issue_payload("created", comment={"id": 11, "body": "/codex fix it"}))

    assert extract_text(event, "/codex") == "/codex fix it"


def test_extract_text_prefers_body_with_trigger():
    event = classify_event(issue_payload(issue={"number": 7, "title": "Crash", "body": "/codex fix it"}))

    assert extract_text(event, "/codex") == "/codex fix it\n\nCrash"


def test_extract_text_falls_back_to_title():
    event = classify_event(issue_payload(issue={"number": 7, "title": "/codex add docs", "body": "details"}))

    assert extract_text(event, "/codex") == "/codex add docs\n\ndetails"


def test_extract_text_without_trigger_returns_body():
    event = classify_event(issue_payload())

    assert extract_text(event, "/codex") == "Stack trace attached"
