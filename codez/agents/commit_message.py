"""
Commit message generation with the OpenAI API.
"""

from typing import Optional, Sequence

from openai import AsyncOpenAI

from codez.prompts import CONVENTIONAL_COMMITS_SYSTEM_PROMPT
from codez.utils.errors import ParseError
from codez.utils.logging import get_logger

logger = get_logger(__name__)

MAX_COMMIT_HEADER_LENGTH = 100


def fallback_commit_message(
    changed_files: Sequence[str],
    pr_number: Optional[int] = None,
    issue_number: Optional[int] = None,
) -> str:
    if pr_number:
        return f"chore: apply changes for PR #{pr_number}"
    if issue_number:
        return f"chore: apply changes for Issue #{issue_number}"
    count = len(changed_files)
    return f"chore: apply changes to {count} file{'s' if count != 1 else ''}"


def build_user_content(
    changed_files: Sequence[str],
    user_prompt: str,
    pr_number: Optional[int] = None,
    issue_number: Optional[int] = None,
) -> str:
    files = "\n".join(changed_files)
    content = f"User Request:\n{user_prompt}\n\nfiles changed:\n```\n{files}\n```"
    if pr_number:
        content += f"\n\nThis change is related to PR #{pr_number}."
    if issue_number:
        content += f"\n\nThis change is related to Issue #{issue_number}."
    return content


class CommitMessageGenerator:
    """Wrapper for the OpenAI chat API that writes Conventional Commits headers."""

    def __init__(self, api_key: str, model: str, base_url: str = "", client: Optional[AsyncOpenAI] = None):
        """Initialize the OpenAI client, honouring a custom base URL."""
        if client is None:
            client = AsyncOpenAI(api_key=api_key, base_url=base_url or None)
        self.client = client
        self.model = model

    async def verify_model_access(self) -> None:
        """
        Check that the API key is valid and the model is reachable.

        Raises:
            openai.OpenAIError: If the key is rejected or the model is unavailable
        """
        await self.client.models.retrieve(self.model)

    async def generate(
        self,
        changed_files: Sequence[str],
        user_prompt: str,
        pr_number: Optional[int] = None,
        issue_number: Optional[int] = None,
    ) -> str:
        """
        Generate a single-line commit header for the change.

        Never raises: any API failure or unusable answer falls back to a
        ``chore: apply changes ...`` header.

        Args:
            changed_files: Paths included in the commit
            user_prompt: The user's request
            pr_number: Pull request the change belongs to, if any
            issue_number: Issue the change belongs to, if any

        Returns:
            Commit message header of at most 100 characters
        """
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                max_completion_tokens=1024,
                messages=[
                    {"role": "system", "content": CONVENTIONAL_COMMITS_SYSTEM_PROMPT},
                    {"role": "user", "content": build_user_content(changed_files, user_prompt, pr_number, issue_number)},
                ],
            )
            content = (response.choices[0].message.content or "").strip() if response.choices else ""
            message = content.split("\n")[0].strip()
            if not message or len(message) > MAX_COMMIT_HEADER_LENGTH:
                raise ParseError(f"Generated commit message invalid: {message!r}")
        except Exception as e:
            logger.warning(f"Error generating commit message with OpenAI: {e}. Using fallback.")
            return fallback_commit_message(changed_files, pr_number, issue_number)

        logger.info(f"Generated commit message: {message}")
        return message
