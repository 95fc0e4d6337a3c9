"""
Comment publishing on the event's thread.

Issue and pull request conversations get issue comments; review comment
events get a reply in the review thread. Every body is masked and truncated
before it leaves the process.
"""

from typing import Iterable, Optional, Set

from codez.constants import MAX_COMMENT_LENGTH, TRUNCATION_NOTICE
from codez.models.event import AgentEvent, EventType
from codez.services.github_client import GitHubClient
from codez.utils.errors import GitHostError
from codez.utils.logging import get_logger
from codez.utils.security import mask_sensitive_info

logger = get_logger(__name__)


def truncate_output(text: str, limit: int = MAX_COMMENT_LENGTH) -> str:
    """Cap ``text`` at ``limit`` characters, marking the cut."""
    if len(text) <= limit:
        return text
    return text[: limit - len(TRUNCATION_NOTICE)] + TRUNCATION_NOTICE


class CommentService:
    """Posts and updates comments on the thread an event belongs to."""

    def __init__(self, github: GitHubClient, event: AgentEvent, secrets: Iterable[str] = ()):
        self.github = github
        self.event = event
        self.secrets = list(secrets)
        self.in_review_thread = event.type == EventType.PULL_REQUEST_REVIEW_COMMENT_CREATED
        # Review-thread events fall back to issue comments; remember which ids those are
        self._issue_comment_ids: Set[int] = set()

    def render(self, body: str) -> str:
        return truncate_output(mask_sensitive_info(body, self.secrets))

    async def post(self, body: str) -> Optional[int]:
        """
        Create a new comment on the thread.

        Returns:
            The new comment id, or None when the event has no thread
        """
        event = self.event
        if not event.has_thread:
            logger.info("No issue or pull request to comment on; skipping comment")
            return None

        text = self.render(body)
        if self.in_review_thread:
            comment_id = await self._post_review_reply(text)
        else:
            data = await self.github.create_issue_comment(event.number, text)
            comment_id = data["id"]
            self._issue_comment_ids.add(comment_id)
        logger.info(f"Posted comment {comment_id} on #{event.number}")
        return comment_id

    async def _post_review_reply(self, text: str) -> int:
        event = self.event
        reply_to = event.reply_target_id
        try:
            data = await self.github.create_review_comment_reply(event.number, reply_to, text)
            return data["id"]
        except GitHostError as e:
            logger.warning(f"Failed to reply to review comment {reply_to}, posting issue comment instead: {e}")
            data = await self.github.create_issue_comment(event.number, text)
            self._issue_comment_ids.add(data["id"])
            return data["id"]

    async def update(self, comment_id: int, body: str) -> None:
        text = self.render(body)
        if self.in_review_thread and comment_id not in self._issue_comment_ids:
            await self.github.update_review_comment(comment_id, text)
        else:
            await self.github.update_issue_comment(comment_id, text)

    async def upsert(self, comment_id: Optional[int], body: str) -> Optional[int]:
        """
        Update the tracking comment when one exists, otherwise post a new one.

        Returns:
            The id of the comment that now holds ``body``
        """
        if comment_id is not None:
            await self.update(comment_id, body)
            logger.info(f"Updated comment {comment_id}")
            return comment_id
        return await self.post(body)
