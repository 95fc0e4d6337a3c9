"""
Event processing: turns the configured event source into a ProcessedEvent.
"""

import asyncio
import json
from typing import Any, Dict, Optional

from codez.config import Settings
from codez.models.command import ProcessedEvent
from codez.models.event import EventType, IssuePayload, IssueInfo, IssuesOpenedEvent
from codez.services.event_classifier import classify_event, extract_text
from codez.utils.errors import ParseError
from codez.utils.flags import (
    FLAG_CREATE_ISSUES,
    FLAG_FETCH,
    FLAG_FIX_BUILD,
    FLAG_FULL_HISTORY,
    FLAG_NO_PR,
    extract_prompt_flags,
)
from codez.utils.logging import get_logger

logger = get_logger(__name__)


def _read_json(path: str) -> Any:
    with open(path, "r", encoding="utf-8") as fh:
        return json.load(fh)


async def load_event_payload(path: str) -> Dict[str, Any]:
    """
    Read and decode the webhook payload file.

    Raises:
        ParseError: If the file cannot be read, is not JSON, or is not an object
    """
    try:
        payload = await asyncio.to_thread(_read_json, path)
    except (OSError, ValueError) as e:
        raise ParseError(f"Failed to read or parse event payload at {path}: {e}") from e

    if not isinstance(payload, dict):
        raise ParseError(f"Event payload at {path} is not a JSON object")
    return payload


def direct_prompt_event(direct_prompt: str) -> ProcessedEvent:
    """Build a ProcessedEvent for a prompt given directly in configuration."""
    command = extract_prompt_flags(direct_prompt, is_direct=True)
    event = IssuesOpenedEvent(
        github=IssuePayload(
            action="opened",
            issue=IssueInfo(number=0, title="", body="", pull_request=None),
        )
    )
    return ProcessedEvent(
        agent_event=event,
        user_prompt=command.prompt_text,
        include_fix_build=command.flag(FLAG_FIX_BUILD),
        include_fetch=command.flag(FLAG_FETCH),
    )


async def process_event(settings: Settings) -> Optional[ProcessedEvent]:
    """
    Resolve the event that triggered this run.

    Args:
        settings: Run settings

    Returns:
        ProcessedEvent, or None when the event carries no actionable command

    Raises:
        ParseError: If the event payload cannot be read
    """
    if settings.direct_prompt:
        logger.info("Direct prompt provided. Bypassing GitHub event trigger.")
        return direct_prompt_event(settings.direct_prompt)

    payload = await load_event_payload(settings.github_event_path)
    agent_event = classify_event(payload)
    if agent_event is None:
        return None

    logger.info(f"Detected event type: {agent_event.type.value}", extra={"event_type": agent_event.type.value})

    if agent_event.type == EventType.ISSUES_ASSIGNED:
        assignee = agent_event.github.assignee.login
        if assignee not in settings.assignee_triggers:
            logger.info(f"Issue assigned to '{assignee}', not in assignee-trigger list. Skipping.")
            return None
        logger.info(f"Assignee-trigger matched for '{assignee}'.")
        return ProcessedEvent(
            agent_event=agent_event,
            user_prompt=f"{agent_event.title.strip()}\n\n{agent_event.body.strip()}",
        )

    trigger = settings.trigger_phrase
    text = extract_text(agent_event, trigger)
    if not text or not text.startswith(trigger):
        logger.info(f'Command "{trigger}" not found in the event text.')
        return None

    args = text.replace(trigger, "", 1).strip()
    command = extract_prompt_flags(args, is_direct=False)

    user_prompt = command.prompt_text
    if agent_event.title:
        user_prompt = f"{agent_event.title.strip()}\n\n{user_prompt}"

    if not user_prompt.strip():
        logger.info(f'No prompt found after "{trigger}" command.')
        return None

    return ProcessedEvent(
        agent_event=agent_event,
        user_prompt=user_prompt,
        include_full_history=command.flag(FLAG_FULL_HISTORY),
        create_issues=command.flag(FLAG_CREATE_ISSUES),
        no_pr=command.flag(FLAG_NO_PR),
        include_fix_build=command.flag(FLAG_FIX_BUILD),
        include_fetch=command.flag(FLAG_FETCH),
    )
