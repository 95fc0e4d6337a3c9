"""
Prompt assembly.

Combines the user's request with the conversation it came from, the files
of the pull request, and the optional extras requested through flags
(fetched URLs, CI logs, a feature-plan instruction). Images referenced in
the prompt are downloaded and replaced with placeholders.
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

import httpx

from codez.constants import IMAGES_DIR, PROGRESS_TITLE, URL_FETCH_TIMEOUT_SECONDS, URL_READER_PREFIX
from codez.models.command import ProcessedEvent
from codez.models.event import AgentEvent, EventType
from codez.prompts import (
    CHANGED_FILES_LABEL,
    CONTEXT_LABEL,
    CREATE_ISSUES_INSTRUCTION,
    FETCHED_URLS_TEMPLATE,
    FIX_BUILD_TEMPLATE,
    HISTORY_LABEL,
    PROMPT_SEPARATOR,
    TITLE_LABEL,
)
from codez.services.build_logs import fetch_latest_failed_workflow_logs
from codez.services.contents import get_changed_files, get_contents_data
from codez.services.github_client import GitHubClient
from codez.services.images import localize_images
from codez.utils.contents import format_bot_content, format_full_content
from codez.utils.errors import to_error_message
from codez.utils.logging import get_logger

logger = get_logger(__name__)

URL_RE = re.compile(r"(https?://[^\s)]+)")


@dataclass
class PreparedPrompt:
    """Final agent prompt and the image files to attach to it."""

    prompt: str
    image_files: List[str] = field(default_factory=list)


async def generate_prompt(
    github: GitHubClient,
    event: AgentEvent,
    user_prompt: str,
    include_full_history: bool,
) -> str:
    """
    Build the agent prompt from the event's conversation and the user request.

    Sections (each only when non-empty): ``[Title]`` for issue threads,
    ``[History]`` with quoted comments, ``[Context]`` with the file and line
    of a review comment, ``[Changed Files]`` for pull request comments.
    The user request follows a ``---`` separator.
    """
    contents = await get_contents_data(github, event)
    comments = [c for c in contents.comments if not c.body.strip().startswith(PROGRESS_TITLE)]

    changed_files: List[str] = []
    context_info = ""
    if event.type in (EventType.PULL_REQUEST_COMMENT_CREATED, EventType.PULL_REQUEST_REVIEW_COMMENT_CREATED):
        changed_files = await get_changed_files(github, event)
    if event.type == EventType.PULL_REQUEST_REVIEW_COMMENT_CREATED:
        comment = event.github.comment
        context_info = f"Comment on file: {comment.path}"
        if comment.line:
            context_info += f", line: {comment.line}"

    formatter = format_full_content if include_full_history else format_bot_content
    history = formatter(contents.content) + "".join(formatter(c) for c in comments)

    prompt = ""
    if event.type in (EventType.ISSUES_OPENED, EventType.ISSUE_COMMENT_CREATED):
        prompt += f"{TITLE_LABEL}\n{contents.title}\n\n"
    if history:
        prompt += f"{HISTORY_LABEL}\n{history}\n\n"
    if context_info:
        prompt += f"{CONTEXT_LABEL}\n{context_info}\n\n"
    if changed_files:
        prompt += f"{CHANGED_FILES_LABEL}\n" + "\n".join(changed_files) + "\n\n"

    if prompt:
        return f"{prompt}{PROMPT_SEPARATOR}\n\n{user_prompt}"
    return user_prompt


async def fetch_url_contents(prompt: str, http_client: httpx.AsyncClient) -> str:
    """Prepend the readable contents of every URL in ``prompt``; failures are inlined."""
    urls = URL_RE.findall(prompt)
    logger.info(f"Matched URLs for --fetch: {', '.join(urls)}")
    if not urls:
        logger.info("No URLs found to fetch for --fetch flag")
        return prompt

    parts = []
    for url in urls:
        try:
            response = await http_client.get(f"{URL_READER_PREFIX}{url}", timeout=URL_FETCH_TIMEOUT_SECONDS)
            response.raise_for_status()
            parts.append(f"=== {url} ===\n{response.text}")
        except httpx.HTTPError as e:
            parts.append(f"Failed to fetch {url}: {to_error_message(e)}")
    return FETCHED_URLS_TEMPLATE.format(contents="\n\n".join(parts), prompt=prompt)


async def prepare_prompt(
    github: GitHubClient,
    processed: ProcessedEvent,
    workspace: str,
    http_client: httpx.AsyncClient,
) -> PreparedPrompt:
    """
    Produce the final agent prompt for a processed event.

    Args:
        github: Client for the repository
        processed: The processed event
        workspace: Workspace directory (images are downloaded below it)
        http_client: Client for URL fetches and image downloads

    Returns:
        PreparedPrompt with the prompt text and downloaded image paths
    """
    user_prompt = processed.user_prompt

    if processed.include_fetch:
        logger.info("Fetching contents of URLs for --fetch flag")
        user_prompt = await fetch_url_contents(user_prompt, http_client)

    if processed.include_fix_build:
        logger.info("Fetching latest failed CI build logs for --fix-build flag")
        try:
            logs = await fetch_latest_failed_workflow_logs(github)
        except Exception as e:
            logger.warning(f"Failed to fetch build logs: {e}")
            logs = f"Failed to fetch logs: {to_error_message(e)}"
        user_prompt = FIX_BUILD_TEMPLATE.format(logs=logs)
    elif processed.create_issues:
        user_prompt = f"{CREATE_ISSUES_INSTRUCTION}{user_prompt}"

    event = processed.agent_event
    if event.has_thread:
        prompt = await generate_prompt(github, event, user_prompt, processed.include_full_history)
    else:
        prompt = user_prompt

    prompt, image_files = await localize_images(prompt, str(Path(workspace) / IMAGES_DIR), http_client)
    return PreparedPrompt(prompt=prompt, image_files=image_files)
