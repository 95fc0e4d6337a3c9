"""
Unit tests for commit message generation.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from codez.agents.commit_message import CommitMessageGenerator, build_user_content, fallback_commit_message


def completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def make_generator(create):
    client = MagicMock()
    client.chat.completions.create = create
    client.models.retrieve = AsyncMock()
    return CommitMessageGenerator(api_key="sk-test", model="o4-mini", client=client), client


@pytest.mark.parametrize("files,pr,issue,expected", [
    (["a.py"], 5, None, "chore: apply changes for PR #5"),
    (["a.py"], None, 8, "chore: apply changes for Issue #8"),
    (["a.py"], None, None, "chore: apply changes to 1 file"),
    (["a.py", "b.py"], None, None, "chore: apply changes to 2 files"),
])
def test_fallback_commit_message(files, pr, issue, expected):
    assert fallback_commit_message(files, pr_number=pr, issue_number=issue) == expected


def test_build_user_content():
    content = build_user_content(["a.py", "b.py"], "fix login", issue_number=3)

    assert content == (
        "User Request:\nfix login\n\nfiles changed:\n```\na.py\nb.py\n```"
        "\n\nThis change is related to Issue #3."
    )


@pytest.mark.asyncio
async def test_generate_uses_first_line():
    create = AsyncMock(return_value=completion("feat(auth): add login redirect\n\nextra explanation"))
    generator, _ = make_generator(create)

    message = await generator.generate(["auth.py"], "add redirect", issue_number=3)

    assert message == "feat(auth): add login redirect"
    kwargs = create.await_args.kwargs
    assert kwargs["model"] == "o4-mini"
    assert kwargs["max_completion_tokens"] == 1024
    assert kwargs["messages"][0]["role"] == "system"
    assert "Issue #3" in kwargs["messages"][1]["content"]


@pytest.mark.asyncio
async def test_generate_falls_back_on_api_error():
    generator, _ = make_generator(AsyncMock(side_effect=RuntimeError("rate limited")))

    assert await generator.generate(["a.py"], "x", pr_number=12) == "chore: apply changes for PR #12"


@pytest.mark.asyncio
@pytest.mark.parametrize("content", ["", "   ", None, "feat: " + "x" * 100])
async def test_generate_falls_back_on_unusable_answer(content):
    generator, _ = make_generator(AsyncMock(return_value=completion(content)))

    assert await generator.generate(["a.py", "b.py"], "x") == "chore: apply changes to 2 files"


@pytest.mark.asyncio
async def test_generate_falls_back_without_choices():
    generator, _ = make_generator(AsyncMock(return_value=SimpleNamespace(choices=[])))

    assert await generator.generate(["a.py"], "x", issue_number=1) == "chore: apply changes for Issue #1"


@pytest.mark.asyncio
async def test_verify_model_access():
    generator, client = make_generator(AsyncMock())

    await generator.verify_model_access()

    client.models.retrieve.assert_awaited_once_with("o4-mini")
