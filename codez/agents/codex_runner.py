"""
Codex agent CLI invocation.

The agent runs as a subprocess in the workspace. Its stdout is a stream of
JSON lines; the last non-empty line must be the final message
``{"type": "message", "content": [{"text": ...}, ...]}`` and the text of its
first content block is the run's output.
"""

import asyncio
import json
import os
from typing import Dict, List, Optional, Sequence

from codez.utils.errors import CliError, ParseError, TimeoutExceededError
from codez.utils.logging import get_logger
from codez.utils.process import kill_process

logger = get_logger(__name__)


def build_cli_args(prompt: str, model: str, images: Sequence[str] = ()) -> List[str]:
    """Arguments for one non-interactive agent run."""
    args: List[str] = []
    for image in images:
        args.extend(["-i", image])
    args.extend(["--model", model, "exec", "--dangerously-bypass-approvals-and-sandbox", prompt])
    return args


def parse_agent_output(stdout: str) -> str:
    """
    Extract the final message text from the agent's JSON-lines stdout.

    Raises:
        ParseError: If the last line is not a JSON message with text content
    """
    lines = [line for line in stdout.splitlines() if line.strip()]
    if not lines:
        raise ParseError("Failed to parse JSON output: agent produced no output")

    last = lines[-1]
    try:
        message = json.loads(last)
    except ValueError as e:
        raise ParseError(f"Failed to parse JSON output: {e}") from e

    if not isinstance(message, dict) or message.get("type") != "message":
        raise ParseError("Failed to parse JSON output: final line is not a message")
    content = message.get("content")
    if not isinstance(content, list) or not content or not isinstance(content[0], dict):
        raise ParseError("Failed to parse JSON output: message has no content")
    text = content[0].get("text")
    if not isinstance(text, str):
        raise ParseError("Failed to parse JSON output: first content block has no text")
    return text


class CodexRunner:
    """Runs the Codex CLI with the run's model and credentials."""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str = "",
        extra_env: Optional[Dict[str, str]] = None,
        codex_bin: str = "codex",
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.extra_env = extra_env or {}
        self.codex_bin = codex_bin

    def build_env(self) -> Dict[str, str]:
        env = dict(os.environ)
        env.update({
            "OPENAI_API_KEY": self.api_key,
            "CODEX_QUIET_MODE": "1",
        })
        env.update(self.extra_env)
        if self.base_url:
            env["OPENAI_BASE_URL"] = self.base_url
        return env

    async def run(
        self,
        prompt: str,
        workspace: str,
        timeout: float,
        images: Sequence[str] = (),
    ) -> str:
        """
        Run the agent once and return its final message.

        Args:
            prompt: Prompt text
            workspace: Directory the agent edits
            timeout: Hard limit in seconds; the process is killed when it elapses
            images: Image files to attach

        Raises:
            CliError: If the process cannot start or exits non-zero
            ParseError: If the final stdout line is not a valid message
            TimeoutExceededError: If the process outlives ``timeout``
        """
        args = build_cli_args(prompt, self.model, images)
        logger.info(
            f"Executing Codex CLI in {workspace} with timeout {timeout:.0f}s",
            extra={"model": self.model, "images": len(images)},
        )
        try:
            process = await asyncio.create_subprocess_exec(
                self.codex_bin,
                *args,
                cwd=workspace,
                env=self.build_env(),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise CliError(f"Failed to execute Codex command: {e}") from e

        try:
            stdout_b, stderr_b = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            await kill_process(process)
            raise TimeoutExceededError(f"Codex command timed out after {timeout:.0f} seconds.")
        except asyncio.CancelledError:
            await kill_process(process)
            raise

        stdout = stdout_b.decode("utf-8", errors="replace")
        stderr = stderr_b.decode("utf-8", errors="replace")
        logger.info(f"Codex CLI exited with code {process.returncode}")

        if process.returncode != 0:
            detail = f"Stderr: {stderr}" if stderr else f"Stdout: {stdout}"
            raise CliError(
                f"Codex command failed with exit code {process.returncode}. {detail}",
                exit_code=process.returncode,
                stderr=stderr,
            )
        if stderr:
            logger.warning(f"Codex command exited successfully but produced stderr: {stderr}")

        return parse_agent_output(stdout)
