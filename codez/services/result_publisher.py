"""
Result publication.

Decides how a finished agent run is published back to GitHub:

- no effective changes: the output replaces the tracking comment
- ``--no-pr``: the output and a diff of the changes replace the tracking comment
- issue threads: a new branch, a commit, a pull request linked to the issue
- pull request threads: a commit pushed to the pull request's head branch

Workflow files and downloaded images are never published.
"""

import asyncio
import re
import shutil
from pathlib import Path
from typing import Iterable, List, Optional, Set

from codez.agents.commit_message import CommitMessageGenerator
from codez.constants import EXCLUDED_PREFIXES, IMAGES_DIR, WORKFLOWS_DIR
from codez.models.command import ProcessedEvent
from codez.models.event import AgentEvent, EventType
from codez.models.outcome import OutcomeKind, RunOutcome
from codez.services.comments import CommentService, truncate_output
from codez.services.git import GitCli
from codez.services.github_client import GitHubClient
from codez.utils.errors import CliError, GitHostError, to_error_message
from codez.utils.logging import get_logger
from codez.utils.resilience import best_effort

logger = get_logger(__name__)

CONVENTIONAL_HEADER_RE = re.compile(r"^([a-z]+)(\([^)]*\))?!?:")
_CONVENTIONAL_BRANCH_TYPES = {"feat": "feat", "fix": "fix", "docs": "docs", "style": "styles"}

LINK_IDS_QUERY = """
query($owner: String!, $repo: String!, $issueNumber: Int!, $prNumber: Int!) {
  repository(owner: $owner, name: $repo) {
    issue(number: $issueNumber) { id }
    pullRequest(number: $prNumber) { id }
  }
}
"""

LINK_PULL_REQUEST_MUTATION = """
mutation($issueId: ID!, $pullRequestId: ID!) {
  linkPullRequest(input: { issueId: $issueId, pullRequestId: $pullRequestId }) { clientMutationId }
}
"""


def get_branch_type(commit_message: str) -> str:
    """Infer a branch category (feat, fix, docs, styles, chore) from a commit header."""
    message = commit_message.lower()
    header = CONVENTIONAL_HEADER_RE.match(message)
    if header and header.group(1) in _CONVENTIONAL_BRANCH_TYPES:
        return _CONVENTIONAL_BRANCH_TYPES[header.group(1)]
    if re.match(r"(add|create|implement|introduce)", message):
        return "feat"
    if re.match(r"(fix|correct|resolve|patch|repair)", message):
        return "fix"
    if re.search(r"(docs?|documentation)", message):
        return "docs"
    if re.match(r"(style|format|lint)", message):
        return "styles"
    return "chore"


def slugify(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


def build_branch_name(commit_message: str, issue_number: int, comment_id: Optional[int] = None) -> str:
    """
    Name the branch for an issue run.

    Comment-triggered runs append the comment id; re-running the same trigger
    reuses the name and the push overwrites the previous attempt.
    """
    branch_type = get_branch_type(commit_message)
    slug = slugify(commit_message)
    if slug.startswith(f"{branch_type}-"):
        slug = slug[len(branch_type) + 1:]
    name = f"codez-{branch_type}-{issue_number}-{slug}"
    if comment_id is not None:
        name = f"{name}-{comment_id}"
    return name


def filter_excluded(paths: Iterable[str]) -> List[str]:
    """Drop workflow files and downloaded images, keeping the rest sorted."""
    return sorted(p for p in paths if not p.startswith(EXCLUDED_PREFIXES))


class ResultPublisher:
    """Publishes agent output and workspace changes for one run."""

    def __init__(
        self,
        github: GitHubClient,
        git: GitCli,
        comments: CommentService,
        commit_messages: CommitMessageGenerator,
        workspace: str,
        default_branch: str,
    ):
        self.github = github
        self.git = git
        self.comments = comments
        self.commit_messages = commit_messages
        self.workspace = workspace
        self.default_branch = default_branch

    async def publish(
        self,
        processed: ProcessedEvent,
        output: str,
        changed_files: Set[str],
        comment_id: Optional[int],
    ) -> RunOutcome:
        """
        Publish the result of a run.

        Args:
            processed: The processed event
            output: Masked agent output
            changed_files: Paths changed by the agent
            comment_id: Tracking comment id, if one was created

        Returns:
            RunOutcome describing what was published

        Raises:
            GitHostError: If committing, pushing or opening the pull request fails
        """
        event = processed.agent_event
        effective = await self._discard_excluded(changed_files)

        if not effective:
            await self.comments.upsert(comment_id, output)
            return RunOutcome(kind=OutcomeKind.COMMENT_POSTED, message="No file changes to publish")

        logger.info(f"Detected changes in {len(effective)} files:\n" + "\n".join(effective))

        if processed.no_pr:
            logger.info("Flag --no-pr detected; posting diff in comment instead of opening a pull request.")
            return await self._post_diff(output, effective, comment_id)

        commit_message = await self.commit_messages.generate(
            effective,
            processed.user_prompt,
            pr_number=None if event.opens_pull_request else event.number,
            issue_number=event.number if event.opens_pull_request else None,
        )

        if event.opens_pull_request:
            return await self.create_pull_request(event, commit_message, output, effective, comment_id)
        return await self.commit_and_push(event, commit_message, output, effective, comment_id)

    async def _discard_excluded(self, changed_files: Set[str]) -> List[str]:
        workflow_files = sorted(p for p in changed_files if p.startswith(f"{WORKFLOWS_DIR}/"))
        if workflow_files:
            logger.warning(f"Ignoring changes to workflow files: {', '.join(workflow_files)}")
            try:
                await self.git.restore_from_head(WORKFLOWS_DIR)
            except CliError as e:
                # Fails when HEAD has no workflows directory at all
                logger.warning(f"Failed to revert workflow changes: {e}")
            await self.git.clean_untracked(WORKFLOWS_DIR)

        image_files = sorted(p for p in changed_files if p.startswith(f"{IMAGES_DIR}/"))
        images_dir = Path(self.workspace) / IMAGES_DIR
        if image_files or images_dir.exists():
            await asyncio.to_thread(shutil.rmtree, images_dir, True)
            logger.info(f"Removed image artifacts directory: {images_dir}")

        return filter_excluded(changed_files)

    async def _post_diff(self, output: str, files: List[str], comment_id: Optional[int]) -> RunOutcome:
        try:
            diff = await self.git.diff(files)
        except CliError as e:
            logger.warning(f"Failed to generate diff for comment: {e}")
            diff = ""
        body = f"{output}\n\n**Proposed changes:**\n```diff\n{diff}\n```"
        await self.comments.upsert(comment_id, body)
        return RunOutcome(kind=OutcomeKind.COMMENT_POSTED, changed_files=files, message="Posted proposed changes")

    async def _stage_changes(self) -> bool:
        """Configure the bot identity and stage everything; False when nothing is staged."""
        await self.git.configure_identity()
        await self.git.add_all()
        return bool(await self.git.status_porcelain())

    async def create_pull_request(
        self,
        event: AgentEvent,
        commit_message: str,
        output: str,
        files: List[str],
        comment_id: Optional[int],
    ) -> RunOutcome:
        """Commit to a new branch, open a pull request and link it to the issue."""
        issue_number = event.number
        comment = event.comment if event.type == EventType.ISSUE_COMMENT_CREATED else None
        branch = build_branch_name(commit_message, issue_number, comment.id if comment else None)

        try:
            logger.info(f"Creating new branch: {branch}")
            await self.git.configure_identity()
            await self.git.checkout(branch, create=True)
            await self.git.add_all()
            if not await self.git.status_porcelain():
                logger.info("No changes to commit. Skipping pull request creation.")
                await self.comments.upsert(comment_id, output)
                return RunOutcome(kind=OutcomeKind.COMMENT_POSTED, message="Nothing to commit")

            await self.git.commit(commit_message)
            logger.info(f"Pushing changes to origin/{branch}")
            await self.git.push(branch, force=True)

            body = truncate_output(self.comments.render(output))
            if event.has_thread:
                body = f"Closes #{issue_number}\n\nApplied changes based on Issue #{issue_number}.\n\n{body}"
            pr = await self.github.create_pull_request(
                title=commit_message,
                head=branch,
                base=self.default_branch,
                body=body,
            )
        except (CliError, GitHostError) as e:
            logger.error(f"Error creating Pull Request: {e}")
            raise GitHostError(f"Failed to create Pull Request: {to_error_message(e)}") from e

        url = pr.get("html_url")
        logger.info(f"Pull Request created: {url}")
        await best_effort(
            "report the pull request",
            self.comments.upsert(comment_id, f"Created Pull Request: {url}"),
        )
        if event.has_thread:
            await best_effort("link the pull request to the issue", self.link_pull_request(issue_number, pr["number"]))

        return RunOutcome(
            kind=OutcomeKind.PULL_REQUEST_CREATED,
            url=url,
            branch=branch,
            changed_files=files,
            message=commit_message,
        )

    async def link_pull_request(self, issue_number: int, pr_number: int) -> None:
        """Link a pull request to an issue in the issue's development panel."""
        ids = await self.github.graphql(
            LINK_IDS_QUERY,
            {"owner": self.github.owner, "repo": self.github.repo, "issueNumber": issue_number, "prNumber": pr_number},
        )
        repository = ids["repository"]
        await self.github.graphql(
            LINK_PULL_REQUEST_MUTATION,
            {"issueId": repository["issue"]["id"], "pullRequestId": repository["pullRequest"]["id"]},
            use_cache=False,
        )
        logger.info(f"Linked PR #{pr_number} to Issue #{issue_number} in development panel")

    async def _pull_request_branch(self, pr_number: int) -> str:
        try:
            pr = await self.github.get_pull_request(pr_number)
            branch = pr["head"]["ref"]
            logger.info(f"Checked out PR branch: {branch}")
        except (GitHostError, KeyError, TypeError) as e:
            logger.warning(f"Could not get PR branch from API, attempting to use current branch: {e}")
            branch = await self.git.current_branch()
        await self.git.checkout(branch)
        return branch

    async def commit_and_push(
        self,
        event: AgentEvent,
        commit_message: str,
        output: str,
        files: List[str],
        comment_id: Optional[int],
    ) -> RunOutcome:
        """Commit to the pull request's head branch and push."""
        try:
            branch = await self._pull_request_branch(event.number)
            if not await self._stage_changes():
                logger.info("No changes to commit.")
                await self.comments.upsert(comment_id, output)
                return RunOutcome(kind=OutcomeKind.COMMENT_POSTED, message="Nothing to commit")

            await self.git.commit(commit_message)
            logger.info(f"Pushing changes to origin/{branch}")
            await self.git.push(branch)
            logger.info("Changes committed and pushed.")
            await self.comments.upsert(comment_id, output)
        except (CliError, GitHostError) as e:
            logger.error(f"Error committing and pushing changes: {e}")
            raise GitHostError(f"Failed to apply changes to this PR: {to_error_message(e)}") from e

        return RunOutcome(
            kind=OutcomeKind.COMMIT_PUSHED,
            branch=branch,
            changed_files=files,
            message=commit_message,
        )
