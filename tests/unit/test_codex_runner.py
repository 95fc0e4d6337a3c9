"""
Unit tests for the Codex CLI runner.
"""

import json
import os
import stat
import sys

import pytest

from codez.agents.codex_runner import CodexRunner, build_cli_args, parse_agent_output
from codez.utils.errors import CliError, ParseError, TimeoutExceededError

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="uses POSIX shell scripts")

FINAL_MESSAGE = json.dumps({"type": "message", "content": [{"text": "All done"}, {"text": "ignored"}]})


def fake_codex(tmp_path, script):
    """Write an executable shell script standing in for the agent binary."""
    path = tmp_path / "codex"
    path.write_text("#!/bin/sh\n" + script)
    path.chmod(path.stat().st_mode | stat.S_IEXEC)
    return str(path)


def test_build_cli_args():
    args = build_cli_args("fix it", "o4-mini", images=["/w/a.png", "/w/b.png"])

    assert args == [
        "-i", "/w/a.png",
        "-i", "/w/b.png",
        "--model", "o4-mini",
        "exec", "--dangerously-bypass-approvals-and-sandbox",
        "fix it",
    ]


def test_parse_agent_output_uses_last_line():
    stdout = '{"type": "reasoning"}\n' + FINAL_MESSAGE + "\n\n"

    assert parse_agent_output(stdout) == "All done"


@pytest.mark.parametrize("stdout", [
    "",
    "not json",
    '{"type": "reasoning"}',
    '{"type": "message", "content": []}',
    '{"type": "message", "content": [{"image": "x"}]}',
    '[1, 2]',
])
def test_parse_agent_output_rejects_invalid(stdout):
    with pytest.raises(ParseError):
        parse_agent_output(stdout)


def test_build_env():
    runner = CodexRunner("sk-test", "o4-mini", base_url="https://llm/v1", extra_env={"FOO": "bar"})

    env = runner.build_env()

    assert env["OPENAI_API_KEY"] == "sk-test"
    assert env["OPENAI_BASE_URL"] == "https://llm/v1"
    assert env["CODEX_QUIET_MODE"] == "1"
    assert env["FOO"] == "bar"


def test_build_env_without_base_url():
    with pytest.MonkeyPatch.context() as mp:
        mp.delenv("OPENAI_BASE_URL", raising=False)
        env = CodexRunner("sk-test", "o4-mini").build_env()

    assert "OPENAI_BASE_URL" not in env


@pytest.mark.asyncio
async def test_run_returns_final_message(tmp_path):
    script = f"echo '{{\"type\": \"status\"}}'\necho '{FINAL_MESSAGE}'\n"
    runner = CodexRunner("sk-test", "o4-mini", codex_bin=fake_codex(tmp_path, script))

    assert await runner.run("prompt", str(tmp_path), timeout=10) == "All done"


@pytest.mark.asyncio
async def test_run_passes_arguments_and_env(tmp_path):
    script = (
        'echo "$@" > args.txt\n'
        'echo "$OPENAI_API_KEY $FOO" > env.txt\n'
        f"echo '{FINAL_MESSAGE}'\n"
    )
    runner = CodexRunner("sk-test", "gpt-x", extra_env={"FOO": "bar"}, codex_bin=fake_codex(tmp_path, script))

    await runner.run("do work", str(tmp_path), timeout=10, images=["img.png"])

    assert (tmp_path / "args.txt").read_text().strip() == (
        "-i img.png --model gpt-x exec --dangerously-bypass-approvals-and-sandbox do work"
    )
    assert (tmp_path / "env.txt").read_text().strip() == "sk-test bar"


@pytest.mark.asyncio
async def test_run_non_zero_exit(tmp_path):
    runner = CodexRunner("sk-test", "o4-mini", codex_bin=fake_codex(tmp_path, "echo 'bad model' >&2\nexit 3\n"))

    with pytest.raises(CliError) as exc_info:
        await runner.run("prompt", str(tmp_path), timeout=10)

    assert exc_info.value.exit_code == 3
    assert "bad model" in str(exc_info.value)


@pytest.mark.asyncio
async def test_run_invalid_output(tmp_path):
    runner = CodexRunner("sk-test", "o4-mini", codex_bin=fake_codex(tmp_path, "echo 'plain text'\n"))

    with pytest.raises(ParseError):
        await runner.run("prompt", str(tmp_path), timeout=10)


@pytest.mark.asyncio
async def test_run_timeout_kills_process(tmp_path):
    runner = CodexRunner("sk-test", "o4-mini", codex_bin=fake_codex(tmp_path, "exec sleep 30\n"))

    with pytest.raises(TimeoutExceededError):
        await runner.run("prompt", str(tmp_path), timeout=0.2)


@pytest.mark.asyncio
async def test_run_missing_binary(tmp_path):
    runner = CodexRunner("sk-test", "o4-mini", codex_bin=os.path.join(str(tmp_path), "does-not-exist"))

    with pytest.raises(CliError):
        await runner.run("prompt", str(tmp_path), timeout=10)
