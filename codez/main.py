"""
Command-line entry point.

Loads settings, resolves the triggering event and hands it to the
RunOrchestrator. The process exit code is 0 for completed or skipped runs
and 1 for failures.
"""

import asyncio
import sys
from typing import Optional

import httpx
import openai

from codez.agents.codex_runner import CodexRunner
from codez.agents.commit_message import CommitMessageGenerator
from codez.config import Settings, load_settings
from codez.models.outcome import OutcomeKind, RunOutcome
from codez.services.comments import CommentService
from codez.services.event_processor import process_event
from codez.services.github_client import GitHubClient, RequestCache
from codez.services.run_orchestrator import RunOrchestrator
from codez.utils.errors import ConfigurationError, ParseError
from codez.utils.logging import get_logger, setup_logging
from codez.utils.metrics import RunMetrics
from codez.utils.resilience import best_effort
from codez.utils.security import check_permission

logger = get_logger(__name__)


async def run(settings: Optional[Settings] = None) -> int:
    """
    Execute one Codez run.

    Args:
        settings: Preloaded settings (loaded from the environment if None)

    Returns:
        Process exit code
    """
    if settings is None:
        try:
            settings = load_settings()
        except ConfigurationError as e:
            setup_logging()
            logger.error(str(e))
            return 1

    setup_logging(settings.log_level, settings.secrets)
    metrics = RunMetrics(run_id=settings.github_run_id or "local")
    metrics.start()

    try:
        processed = await process_event(settings)
    except ParseError as e:
        logger.error(str(e))
        metrics.complete(OutcomeKind.FAILED.value, str(e))
        return 1

    if processed is None:
        logger.info("No action required for this event.")
        metrics.complete(OutcomeKind.SKIPPED.value)
        return 0

    event = processed.agent_event
    metrics.event_type = event.type.value

    async with GitHubClient(
        token=settings.github_token,
        owner=settings.owner,
        repo=settings.repo,
        api_url=settings.github_api_url,
        cache=RequestCache(),
        metrics=metrics,
    ) as github, httpx.AsyncClient(follow_redirects=True) as http_client:
        if not settings.direct_prompt and not await check_permission(github, settings.github_actor):
            logger.info(f"User '{settings.github_actor}' lacks write permission. Skipping.")
            metrics.complete(OutcomeKind.SKIPPED.value)
            return 0

        commit_messages = CommitMessageGenerator(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            base_url=settings.openai_base_url,
        )
        try:
            await commit_messages.verify_model_access()
        except openai.OpenAIError as e:
            message = f'OPENAI_API_KEY invalid or no access to model "{settings.openai_model}": {e}'
            logger.error(message)
            comments = CommentService(github, event, settings.secrets)
            await best_effort("post model access error", comments.post(message))
            metrics.complete(OutcomeKind.FAILED.value, message)
            return 1

        orchestrator = RunOrchestrator(
            settings=settings,
            github=github,
            agent=CodexRunner(
                api_key=settings.openai_api_key,
                model=settings.openai_model,
                base_url=settings.openai_base_url,
                extra_env=settings.codex_env_vars,
                codex_bin=settings.codex_bin,
            ),
            commit_messages=commit_messages,
            http_client=http_client,
            metrics=metrics,
        )
        outcome: RunOutcome = await orchestrator.run(processed)

    metrics.complete(outcome.reason or outcome.kind.value, outcome.message if not outcome.succeeded else None)
    return 0 if outcome.succeeded else 1


def cli() -> None:
    """Console script entry point."""
    sys.exit(asyncio.run(run()))


if __name__ == "__main__":
    cli()
