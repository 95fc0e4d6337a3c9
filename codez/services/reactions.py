"""
Thread status signalling: reactions on the triggering item and WIP/Done titles.
"""

import re
from typing import Optional

from codez.constants import BOT_LOGIN
from codez.models.event import AgentEvent, EventType
from codez.services.github_client import GitHubClient
from codez.utils.logging import get_logger

logger = get_logger(__name__)

EYES = "eyes"
THUMBS_UP = "+1"

TITLE_PREFIX_RE = re.compile(r"^\[(?:WIP|Done)\]\s*")


def labelled_title(title: str, label: str) -> str:
    """Replace any existing ``[WIP]``/``[Done]`` prefix with ``[label]``."""
    return f"[{label}] {TITLE_PREFIX_RE.sub('', title, count=1)}"


def reactions_path(github: GitHubClient, event: AgentEvent) -> Optional[str]:
    """REST path of the reactions collection for the item that triggered the run."""
    if not event.has_thread:
        return None
    if event.type in (EventType.ISSUE_COMMENT_CREATED, EventType.PULL_REQUEST_COMMENT_CREATED):
        return f"{github.repo_path}/issues/comments/{event.comment.id}/reactions"
    if event.type == EventType.PULL_REQUEST_REVIEW_COMMENT_CREATED:
        return f"{github.repo_path}/pulls/comments/{event.comment.id}/reactions"
    return f"{github.repo_path}/issues/{event.number}/reactions"


class ThreadStatus:
    """
    Marks the triggering thread as in progress or done.

    In progress: an ``eyes`` reaction and a ``[WIP]`` title prefix.
    Done: the bot's ``eyes`` reaction swapped for ``+1`` and a ``[Done]`` prefix.
    Every method raises on failure; callers treat them as best effort.
    """

    def __init__(self, github: GitHubClient, event: AgentEvent):
        self.github = github
        self.event = event
        self.path = reactions_path(github, event)

    async def add_reaction(self, content: str) -> None:
        if self.path is None:
            return
        await self.github.create_reaction(self.path, content)
        logger.info(f"Added '{content}' reaction on #{self.event.number}")

    async def remove_bot_reaction(self, content: str) -> None:
        if self.path is None:
            return
        reactions = await self.github.list_reactions(self.path)
        for reaction in reactions:
            if reaction.get("content") == content and (reaction.get("user") or {}).get("login") == BOT_LOGIN:
                await self.github.delete_reaction(self.path, reaction["id"])
                logger.info(f"Removed '{content}' reaction on #{self.event.number}")

    async def update_title(self, label: str) -> None:
        if not self.event.has_thread:
            return
        new_title = labelled_title(self.event.title, label)
        logger.info(f"Updating issue/PR #{self.event.number} title to '{new_title}'")
        await self.github.update_issue(self.event.number, title=new_title)

    async def finalize_reactions(self) -> None:
        """Swap the bot's ``eyes`` reaction for ``+1``."""
        await self.remove_bot_reaction(EYES)
        await self.add_reaction(THUMBS_UP)
