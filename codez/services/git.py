"""
Thin async wrapper around the ``git`` CLI.
"""

import asyncio
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from codez.constants import BOT_EMAIL, BOT_LOGIN
from codez.utils.errors import CliError
from codez.utils.logging import get_logger
from codez.utils.process import kill_process
from codez.utils.security import mask_sensitive_info

logger = get_logger(__name__)


@dataclass
class CommandResult:
    """Exit status and captured output of one command."""

    returncode: int
    stdout: str
    stderr: str


class GitCli:
    """
    Runs git commands in a working directory.

    Every command is awaited to completion; a non-zero exit raises CliError
    with secrets masked out of the message.
    """

    def __init__(self, cwd: str, secrets: Iterable[str] = (), git_bin: str = "git"):
        self.cwd = cwd
        self.secrets = list(secrets)
        self.git_bin = git_bin

    async def run(self, *args: str, check: bool = True) -> CommandResult:
        """
        Run ``git <args>`` in the working directory.

        Raises:
            CliError: If the command exits non-zero and ``check`` is set
        """
        display = mask_sensitive_info(" ".join(args), self.secrets)
        logger.debug(f"Running git {display}", extra={"cwd": self.cwd})
        try:
            process = await asyncio.create_subprocess_exec(
                self.git_bin,
                *args,
                cwd=self.cwd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise CliError(f"Failed to start git {display}: {e}") from e

        try:
            stdout, stderr = await process.communicate()
        except asyncio.CancelledError:
            await kill_process(process)
            raise
        result = CommandResult(
            returncode=process.returncode,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )
        if check and result.returncode != 0:
            detail = mask_sensitive_info(result.stderr.strip() or result.stdout.strip(), self.secrets)
            raise CliError(
                f"git {display} failed with exit code {result.returncode}: {detail}",
                exit_code=result.returncode,
                stderr=detail,
            )
        return result

    async def clone(self, url: str, branch: str) -> None:
        await self.run("clone", "--depth", "1", "--branch", branch, url, ".")

    async def configure_identity(self, name: str = BOT_LOGIN, email: str = BOT_EMAIL) -> None:
        await self.run("config", "user.name", name)
        await self.run("config", "user.email", email)

    async def checkout(self, branch: str, create: bool = False) -> None:
        if create:
            await self.run("checkout", "-b", branch)
        else:
            await self.run("checkout", branch)

    async def add_all(self) -> None:
        await self.run("add", "-A")

    async def status_porcelain(self) -> str:
        result = await self.run("status", "--porcelain")
        return result.stdout.strip()

    async def commit(self, message: str) -> None:
        await self.run("commit", "-m", message)

    async def push(self, branch: str, force: bool = False) -> None:
        args = ["push", "origin", branch]
        if force:
            args.append("--force")
        await self.run(*args)

    async def diff(self, paths: Sequence[str]) -> str:
        result = await self.run("diff", "HEAD", "--", *paths)
        return result.stdout

    async def current_branch(self) -> str:
        result = await self.run("rev-parse", "--abbrev-ref", "HEAD")
        return result.stdout.strip()

    async def restore_from_head(self, path: str) -> None:
        await self.run("checkout", "HEAD", "--", path)

    async def clean_untracked(self, path: str) -> None:
        await self.run("clean", "-fd", "--", path)


def _reset_workspace(workspace: Path) -> None:
    shutil.rmtree(workspace, ignore_errors=True)
    workspace.mkdir(parents=True, exist_ok=True)


def authenticated_clone_url(clone_url: str, token: str) -> str:
    return clone_url.replace("https://", f"https://x-access-token:{token}@", 1)


async def clone_repository(
    workspace: str,
    clone_url: str,
    branch: str,
    token: str,
    secrets: Optional[List[str]] = None,
) -> GitCli:
    """
    Wipe the workspace and shallow-clone ``branch`` into it.

    Returns:
        A GitCli bound to the fresh workspace

    Raises:
        CliError: If the clone fails
    """
    path = Path(workspace)
    await asyncio.to_thread(_reset_workspace, path)
    git = GitCli(workspace, secrets=secrets or [token])
    logger.info(f"Cloning repository {clone_url} branch {branch} into {workspace}")
    await git.clone(authenticated_clone_url(clone_url, token), branch)
    logger.info("Repository cloned successfully.")
    return git
