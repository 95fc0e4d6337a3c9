"""
Retrieval of issue and pull request conversations for prompt assembly.
"""

from typing import List

from codez.models.api_response import ContentItem, ThreadContents
from codez.models.event import AgentEvent, EventType
from codez.services.github_client import GitHubClient
from codez.utils.errors import GitHostError
from codez.utils.logging import get_logger

logger = get_logger(__name__)

THREAD_QUERY = """
query($owner: String!, $repo: String!, $number: Int!) {
  repository(owner: $owner, name: $repo) {
    %s(number: $number) {
      number
      title
      body
      author { login }
      comments(first: 100) {
        nodes { body author { login } }
      }
    }
  }
}
"""

_ISSUE_NODES = {
    EventType.ISSUES_OPENED: "issue",
    EventType.ISSUES_ASSIGNED: "issue",
    EventType.ISSUE_COMMENT_CREATED: "issue",
    EventType.PULL_REQUEST_COMMENT_CREATED: "pullRequest",
    EventType.PULL_REQUEST_OPENED: "pullRequest",
    EventType.PULL_REQUEST_SYNCHRONIZE: "pullRequest",
}


def _login(author) -> str:
    return (author or {}).get("login", "") if isinstance(author, dict) else ""


async def fetch_thread_node(github: GitHubClient, node_type: str, number: int) -> ThreadContents:
    """
    Fetch an issue or pull request and its first 100 comments via GraphQL.

    Raises:
        GitHostError: If the thread cannot be retrieved
    """
    label = "issue" if node_type == "issue" else "pull request"
    logger.info(f"Fetching data for {label} #{number} via GraphQL")
    try:
        data = await github.graphql(
            THREAD_QUERY % node_type,
            {"owner": github.owner, "repo": github.repo, "number": number},
        )
        node = data["repository"][node_type]
    except (GitHostError, KeyError, TypeError) as e:
        raise GitHostError(f"Could not retrieve data for {label} #{number}: {e}") from e

    comments = [
        ContentItem(body=c.get("body") or "", login=_login(c.get("author")))
        for c in (node.get("comments") or {}).get("nodes", [])
    ]
    logger.info(f"Fetched {len(comments)} comments for {label} #{number}")
    return ThreadContents(
        number=node["number"],
        title=node.get("title") or "",
        content=ContentItem(body=node.get("body") or "", login=_login(node.get("author"))),
        comments=comments,
    )


async def fetch_review_thread(github: GitHubClient, pull_number: int, target_comment_id: int) -> ThreadContents:
    """
    Fetch a pull request and the review comments of one review thread.

    Only the thread root (``target_comment_id``) and its replies are kept.
    """
    try:
        pr = await github.get_pull_request(pull_number)
        review_comments = await github.list_review_comments(pull_number)
    except GitHostError as e:
        raise GitHostError(
            f"Could not retrieve data for pull request review comments #{pull_number}: {e}"
        ) from e

    comments = [
        ContentItem(body=c.get("body") or "", login=_login(c.get("user")) or "anonymous")
        for c in review_comments
        if c.get("id") == target_comment_id or c.get("in_reply_to_id") == target_comment_id
    ]
    logger.info(f"Fetched {len(review_comments)} review comments for PR #{pull_number}")
    return ThreadContents(
        number=pr["number"],
        title=pr.get("title") or "",
        content=ContentItem(body=pr.get("body") or "", login=_login(pr.get("user")) or "anonymous"),
        comments=comments,
    )


async def get_contents_data(github: GitHubClient, event: AgentEvent) -> ThreadContents:
    """Retrieve the conversation the event belongs to."""
    if event.type == EventType.PULL_REQUEST_REVIEW_COMMENT_CREATED:
        return await fetch_review_thread(github, event.number, event.reply_target_id)
    return await fetch_thread_node(github, _ISSUE_NODES[event.type], event.number)


async def get_changed_files(github: GitHubClient, event: AgentEvent) -> List[str]:
    """List the files changed by the pull request the event belongs to."""
    if event.type not in (
        EventType.PULL_REQUEST_COMMENT_CREATED,
        EventType.PULL_REQUEST_REVIEW_COMMENT_CREATED,
    ):
        raise GitHostError(f"Cannot get changed files for event type: {event.type.value}")
    return await github.list_pull_request_files(event.number)
