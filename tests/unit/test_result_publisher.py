"""
Unit tests for result publication.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from codez.models.command import ProcessedEvent
from codez.models.outcome import OutcomeKind
from codez.services.event_classifier import classify_event
from codez.services.event_processor import direct_prompt_event
from codez.services.result_publisher import (
    ResultPublisher,
    build_branch_name,
    filter_excluded,
    get_branch_type,
    slugify,
)
from codez.utils.errors import CliError, GitHostError


def issue_comment_event():
    return classify_event({
        "action": "created",
        "issue": {"number": 4, "title": "Broken build", "body": ""},
        "comment": {"id": 11, "body": "/codex fix"},
    })


def issue_opened_event():
    return classify_event({
        "action": "opened",
        "issue": {"number": 6, "title": "Add docs", "body": "/codex add docs"},
    })


def pr_comment_event():
    return classify_event({
        "action": "created",
        "issue": {"number": 9, "title": "Add cache", "pull_request": {"url": "x"}},
        "comment": {"id": 12, "body": "/codex tidy"},
    })


def mock_git(status="M README.md"):
    git = MagicMock()
    for name in ("configure_identity", "checkout", "add_all", "commit", "push",
                 "restore_from_head", "clean_untracked"):
        setattr(git, name, AsyncMock())
    git.status_porcelain = AsyncMock(return_value=status)
    git.diff = AsyncMock(return_value="-old\n+new\n")
    git.current_branch = AsyncMock(return_value="feature/cache")
    return git


def mock_github():
    github = MagicMock()
    github.owner = "octo"
    github.repo = "widgets"
    github.create_pull_request = AsyncMock(return_value={"number": 50, "html_url": "https://github.com/octo/widgets/pull/50"})
    github.get_pull_request = AsyncMock(return_value={"head": {"ref": "feature/cache"}})
    github.graphql = AsyncMock(return_value={"repository": {"issue": {"id": "I_4"}, "pullRequest": {"id": "PR_50"}}})
    return github


def mock_comments():
    comments = MagicMock()
    comments.upsert = AsyncMock(return_value=99)
    comments.render = MagicMock(side_effect=lambda body: body)
    return comments


def mock_commit_messages(message="fix: repair broken build"):
    generator = MagicMock()
    generator.generate = AsyncMock(return_value=message)
    return generator


def make_publisher(tmp_path, git=None, github=None, comments=None, commit_messages=None):
    return ResultPublisher(
        github or mock_github(),
        git or mock_git(),
        comments or mock_comments(),
        commit_messages or mock_commit_messages(),
        workspace=str(tmp_path),
        default_branch="main",
    )


@pytest.mark.parametrize("message,expected", [
    ("feat(auth): add login", "feat"),
    ("fix: null pointer", "fix"),
    ("docs: update readme", "docs"),
    ("style: format code", "styles"),
    ("refactor: split module", "chore"),
    ("Add login page", "feat"),
    ("Resolve crash on start", "fix"),
    ("Update the documentation", "docs"),
    ("Lint everything", "styles"),
    ("Bump version", "chore"),
])
def test_get_branch_type(message, expected):
    assert get_branch_type(message) == expected


def test_slugify():
    assert slugify("Fix: the Login -- page!") == "fix-the-login-page"


def test_build_branch_name():
    assert build_branch_name("fix: repair broken build", 4) == "codez-fix-4-repair-broken-build"
    assert build_branch_name("fix: repair broken build", 4, comment_id=11) == "codez-fix-4-repair-broken-build-11"
    assert build_branch_name("Add login page", 7) == "codez-feat-7-add-login-page"


def test_filter_excluded():
    paths = {"src/app.py", ".github/workflows/ci.yml", "codex-comment-images/a.png", ".github/CODEOWNERS"}

    assert filter_excluded(paths) == [".github/CODEOWNERS", "src/app.py"]


@pytest.mark.asyncio
async def test_no_changes_posts_output(tmp_path):
    git = mock_git()
    comments = mock_comments()
    publisher = make_publisher(tmp_path, git=git, comments=comments)
    processed = ProcessedEvent(agent_event=issue_comment_event(), user_prompt="explain")

    outcome = await publisher.publish(processed, "Here is the explanation", set(), comment_id=99)

    assert outcome.kind == OutcomeKind.COMMENT_POSTED
    comments.upsert.assert_awaited_once_with(99, "Here is the explanation")
    git.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_workflow_only_change_is_reverted_and_commented(tmp_path):
    """Test that a change set touching only workflows publishes a comment and no commit."""
    git = mock_git()
    comments = mock_comments()
    publisher = make_publisher(tmp_path, git=git, comments=comments)
    processed = ProcessedEvent(agent_event=issue_comment_event(), user_prompt="edit ci")

    outcome = await publisher.publish(processed, "Updated CI", {".github/workflows/ci.yml"}, comment_id=99)

    assert outcome.kind == OutcomeKind.COMMENT_POSTED
    git.restore_from_head.assert_awaited_once_with(".github/workflows")
    git.clean_untracked.assert_awaited_once_with(".github/workflows")
    git.commit.assert_not_awaited()
    git.push.assert_not_awaited()
    comments.upsert.assert_awaited_once_with(99, "Updated CI")


@pytest.mark.asyncio
async def test_workflow_revert_failure_is_tolerated(tmp_path):
    git = mock_git()
    git.restore_from_head = AsyncMock(side_effect=CliError("pathspec did not match"))
    publisher = make_publisher(tmp_path, git=git)
    processed = ProcessedEvent(agent_event=issue_comment_event(), user_prompt="edit ci")

    outcome = await publisher.publish(processed, "out", {".github/workflows/new.yml"}, comment_id=None)

    assert outcome.kind == OutcomeKind.COMMENT_POSTED


@pytest.mark.asyncio
async def test_images_directory_is_removed(tmp_path):
    images = tmp_path / "codex-comment-images"
    images.mkdir()
    (images / "a.png").write_bytes(b"img")
    publisher = make_publisher(tmp_path)
    processed = ProcessedEvent(agent_event=issue_comment_event(), user_prompt="look")

    outcome = await publisher.publish(processed, "out", {"codex-comment-images/a.png"}, comment_id=1)

    assert outcome.kind == OutcomeKind.COMMENT_POSTED
    assert not images.exists()


@pytest.mark.asyncio
async def test_no_pr_posts_diff(tmp_path):
    git = mock_git()
    comments = mock_comments()
    publisher = make_publisher(tmp_path, git=git, comments=comments)
    processed = ProcessedEvent(agent_event=issue_comment_event(), user_prompt="fix", no_pr=True)

    outcome = await publisher.publish(processed, "Done", {"b.py", "a.py"}, comment_id=99)

    assert outcome.kind == OutcomeKind.COMMENT_POSTED
    git.diff.assert_awaited_once_with(["a.py", "b.py"])
    comments.upsert.assert_awaited_once_with(
        99, "Done\n\n**Proposed changes:**\n```diff\n-old\n+new\n\n```"
    )
    git.checkout.assert_not_awaited()


@pytest.mark.asyncio
async def test_issue_comment_opens_pull_request(tmp_path):
    """Test the full branch, commit, push, PR and link sequence for issue threads."""
    git = mock_git()
    github = mock_github()
    comments = mock_comments()
    commit_messages = mock_commit_messages()
    publisher = make_publisher(tmp_path, git=git, github=github, comments=comments, commit_messages=commit_messages)
    processed = ProcessedEvent(agent_event=issue_comment_event(), user_prompt="fix the build")

    outcome = await publisher.publish(processed, "Fixed it", {"src/app.py"}, comment_id=99)

    assert outcome.kind == OutcomeKind.PULL_REQUEST_CREATED
    assert outcome.url == "https://github.com/octo/widgets/pull/50"
    assert outcome.branch == "codez-fix-4-repair-broken-build-11"
    commit_messages.generate.assert_awaited_once_with(["src/app.py"], "fix the build", pr_number=None, issue_number=4)
    git.checkout.assert_awaited_once_with("codez-fix-4-repair-broken-build-11", create=True)
    git.commit.assert_awaited_once_with("fix: repair broken build")
    git.push.assert_awaited_once_with("codez-fix-4-repair-broken-build-11", force=True)
    pr_kwargs = github.create_pull_request.await_args.kwargs
    assert pr_kwargs["base"] == "main"
    assert pr_kwargs["body"].startswith("Closes #4\n\nApplied changes based on Issue #4.\n\nFixed it")
    comments.upsert.assert_awaited_once_with(99, "Created Pull Request: https://github.com/octo/widgets/pull/50")
    assert github.graphql.await_count == 2
    assert github.graphql.await_args_list[1].args[1] == {"issueId": "I_4", "pullRequestId": "PR_50"}


@pytest.mark.asyncio
async def test_issue_opened_branch_has_no_comment_suffix(tmp_path):
    publisher = make_publisher(tmp_path, commit_messages=mock_commit_messages("docs: add usage guide"))
    processed = ProcessedEvent(agent_event=issue_opened_event(), user_prompt="add docs")

    outcome = await publisher.publish(processed, "Docs added", {"docs/usage.md"}, comment_id=None)

    assert outcome.branch == "codez-docs-6-add-usage-guide"


@pytest.mark.asyncio
async def test_link_failure_does_not_fail_publication(tmp_path):
    github = mock_github()
    github.graphql = AsyncMock(side_effect=GitHostError("GraphQL error: forbidden"))
    publisher = make_publisher(tmp_path, github=github)
    processed = ProcessedEvent(agent_event=issue_comment_event(), user_prompt="fix")

    outcome = await publisher.publish(processed, "out", {"a.py"}, comment_id=99)

    assert outcome.kind == OutcomeKind.PULL_REQUEST_CREATED


@pytest.mark.asyncio
async def test_direct_prompt_pull_request_has_plain_body(tmp_path):
    github = mock_github()
    publisher = make_publisher(tmp_path, github=github)
    processed = direct_prompt_event("refactor utils")

    outcome = await publisher.publish(processed, "Refactored", {"utils.py"}, comment_id=None)

    assert outcome.kind == OutcomeKind.PULL_REQUEST_CREATED
    assert github.create_pull_request.await_args.kwargs["body"] == "Refactored"
    github.graphql.assert_not_awaited()


@pytest.mark.asyncio
async def test_nothing_staged_posts_output(tmp_path):
    git = mock_git(status="")
    comments = mock_comments()
    publisher = make_publisher(tmp_path, git=git, comments=comments)
    processed = ProcessedEvent(agent_event=issue_comment_event(), user_prompt="fix")

    outcome = await publisher.publish(processed, "out", {"a.py"}, comment_id=99)

    assert outcome.kind == OutcomeKind.COMMENT_POSTED
    git.commit.assert_not_awaited()
    comments.upsert.assert_awaited_once_with(99, "out")


@pytest.mark.asyncio
async def test_push_failure_raises_git_host_error(tmp_path):
    git = mock_git()
    git.push = AsyncMock(side_effect=CliError("rejected", exit_code=1))
    publisher = make_publisher(tmp_path, git=git)
    processed = ProcessedEvent(agent_event=issue_comment_event(), user_prompt="fix")

    with pytest.raises(GitHostError, match="Failed to create Pull Request: rejected"):
        await publisher.publish(processed, "out", {"a.py"}, comment_id=99)


@pytest.mark.asyncio
async def test_pull_request_comment_pushes_to_head(tmp_path):
    """Test pull request threads get a commit on the head branch, not a new PR."""
    git = mock_git()
    github = mock_github()
    comments = mock_comments()
    commit_messages = mock_commit_messages("refactor: tidy cache")
    publisher = make_publisher(tmp_path, git=git, github=github, comments=comments, commit_messages=commit_messages)
    processed = ProcessedEvent(agent_event=pr_comment_event(), user_prompt="tidy")

    outcome = await publisher.publish(processed, "Tidied", {"cache.py"}, comment_id=99)

    assert outcome.kind == OutcomeKind.COMMIT_PUSHED
    assert outcome.branch == "feature/cache"
    commit_messages.generate.assert_awaited_once_with(["cache.py"], "tidy", pr_number=9, issue_number=None)
    git.checkout.assert_awaited_once_with("feature/cache")
    git.push.assert_awaited_once_with("feature/cache")
    github.create_pull_request.assert_not_awaited()
    comments.upsert.assert_awaited_once_with(99, "Tidied")


@pytest.mark.asyncio
async def test_pull_request_branch_falls_back_to_current(tmp_path):
    git = mock_git()
    github = mock_github()
    github.get_pull_request = AsyncMock(side_effect=GitHostError("404"))
    publisher = make_publisher(tmp_path, git=git, github=github)
    processed = ProcessedEvent(agent_event=pr_comment_event(), user_prompt="tidy")

    outcome = await publisher.publish(processed, "Tidied", {"cache.py"}, comment_id=99)

    assert outcome.branch == "feature/cache"
    git.current_branch.assert_awaited_once()


@pytest.mark.asyncio
async def test_pull_request_push_failure(tmp_path):
    git = mock_git()
    git.commit = AsyncMock(side_effect=CliError("hook failed"))
    publisher = make_publisher(tmp_path, git=git)
    processed = ProcessedEvent(agent_event=pr_comment_event(), user_prompt="tidy")

    with pytest.raises(GitHostError, match="Failed to apply changes to this PR"):
        await publisher.publish(processed, "Tidied", {"cache.py"}, comment_id=99)
