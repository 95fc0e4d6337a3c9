"""
Unit tests for the command-line entry point.
"""

import os
from unittest.mock import AsyncMock, MagicMock, patch

import openai
import pytest

from codez import main
from codez.config import Settings
from codez.models.command import ProcessedEvent
from codez.models.outcome import OutcomeKind, RunOutcome
from codez.services.event_classifier import classify_event
from codez.utils.errors import ConfigurationError, ParseError


@pytest.fixture
def settings():
    with patch.dict(os.environ, {}, clear=True):
        return Settings(
            github_token="ghs_token",
            github_repository="octo/widgets",
            github_event_path="/tmp/event.json",
            github_actor="octocat",
            openai_api_key="sk-test",
        )


@pytest.fixture
def processed():
    event = classify_event({
        "action": "created",
        "issue": {"number": 4, "title": "Broken build"},
        "comment": {"id": 11, "body": "/codex fix"},
    })
    return ProcessedEvent(agent_event=event, user_prompt="fix")


@pytest.fixture
def github_client():
    with patch("codez.main.GitHubClient") as client_cls:
        github = MagicMock()
        github.create_issue_comment = AsyncMock(return_value={"id": 1})
        client_cls.return_value.__aenter__ = AsyncMock(return_value=github)
        client_cls.return_value.__aexit__ = AsyncMock(return_value=False)
        yield github


@pytest.fixture
def commit_messages():
    with patch("codez.main.CommitMessageGenerator") as generator_cls:
        generator = generator_cls.return_value
        generator.verify_model_access = AsyncMock()
        yield generator


@pytest.mark.asyncio
async def test_configuration_error_exits_with_failure():
    with patch("codez.main.load_settings", side_effect=ConfigurationError("Invalid configuration: github_token")):
        assert await main.run() == 1


@pytest.mark.asyncio
async def test_unreadable_event_exits_with_failure(settings):
    with patch("codez.main.process_event", new=AsyncMock(side_effect=ParseError("Failed to read event"))):
        assert await main.run(settings) == 1


@pytest.mark.asyncio
async def test_event_without_command_is_skipped(settings):
    with patch("codez.main.process_event", new=AsyncMock(return_value=None)):
        assert await main.run(settings) == 0


@pytest.mark.asyncio
async def test_actor_without_permission_is_skipped(settings, processed, github_client, commit_messages):
    with patch("codez.main.process_event", new=AsyncMock(return_value=processed)), \
            patch("codez.main.check_permission", new=AsyncMock(return_value=False)), \
            patch("codez.main.RunOrchestrator") as orchestrator_cls:
        assert await main.run(settings) == 0

    orchestrator_cls.assert_not_called()
    commit_messages.verify_model_access.assert_not_awaited()


@pytest.mark.asyncio
async def test_model_access_failure_is_reported(settings, processed, github_client, commit_messages):
    """Test an invalid OpenAI key is reported on the thread before any work starts."""
    commit_messages.verify_model_access = AsyncMock(side_effect=openai.OpenAIError("invalid api key"))

    with patch("codez.main.process_event", new=AsyncMock(return_value=processed)), \
            patch("codez.main.check_permission", new=AsyncMock(return_value=True)), \
            patch("codez.main.RunOrchestrator") as orchestrator_cls:
        assert await main.run(settings) == 1

    orchestrator_cls.assert_not_called()
    body = github_client.create_issue_comment.await_args.args[1]
    assert body == 'OPENAI_API_KEY invalid or no access to model "o4-mini": invalid api key'


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "outcome,exit_code",
    [
        (RunOutcome(kind=OutcomeKind.PULL_REQUEST_CREATED, url="https://github.com/octo/widgets/pull/5"), 0),
        (RunOutcome.failed("cli", "codex exited with code 2"), 1),
    ],
)
async def test_exit_code_follows_outcome(settings, processed, github_client, commit_messages, outcome, exit_code):
    with patch("codez.main.process_event", new=AsyncMock(return_value=processed)), \
            patch("codez.main.check_permission", new=AsyncMock(return_value=True)), \
            patch("codez.main.RunOrchestrator") as orchestrator_cls:
        orchestrator_cls.return_value.run = AsyncMock(return_value=outcome)

        assert await main.run(settings) == exit_code

    orchestrator_cls.return_value.run.assert_awaited_once_with(processed)


@pytest.mark.asyncio
async def test_direct_prompt_skips_permission_check(processed, github_client, commit_messages):
    with patch.dict(os.environ, {}, clear=True):
        settings = Settings(
            github_token="ghs_token",
            github_repository="octo/widgets",
            openai_api_key="sk-test",
            direct_prompt="add a README",
        )
    check = AsyncMock(return_value=False)

    with patch("codez.main.process_event", new=AsyncMock(return_value=processed)), \
            patch("codez.main.check_permission", new=check), \
            patch("codez.main.RunOrchestrator") as orchestrator_cls:
        orchestrator_cls.return_value.run = AsyncMock(return_value=RunOutcome(kind=OutcomeKind.COMMENT_POSTED))
        assert await main.run(settings) == 0

    check.assert_not_awaited()
