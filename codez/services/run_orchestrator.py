"""
Run orchestration.

One run takes a processed event from checkout to publication:

1. Mark the thread in progress and create the tracking comment
2. Clone the relevant branch and snapshot the workspace
3. Assemble the prompt and invoke the agent
4. Diff the workspace and publish the result
5. Mark the thread done

Everything from the checkout onwards runs under a single Deadline, which is
also checked before the snapshot, agent and publish stages start. Cosmetic
side effects (reactions, titles, progress) go through ``best_effort`` and
never change the outcome; any other failure is reported once on the thread
and becomes a FAILED outcome.
"""

from typing import Awaitable, Callable, List, Optional, Tuple

import httpx

from codez.agents.codex_runner import CodexRunner
from codez.agents.commit_message import CommitMessageGenerator
from codez.config import Settings
from codez.models.command import ProcessedEvent
from codez.models.event import AgentEvent, EventType
from codez.models.outcome import OutcomeKind, RunOutcome
from codez.services.comments import CommentService
from codez.services.feature_issues import create_issues_from_feature_plan
from codez.services.file_state import capture_file_state, detect_changes
from codez.services.git import GitCli, clone_repository
from codez.services.github_client import GitHubClient
from codez.services.progress import ProgressTracker
from codez.services.prompt_builder import prepare_prompt
from codez.services.reactions import EYES, ThreadStatus
from codez.services.result_publisher import ResultPublisher
from codez.utils.errors import CliError, CodezError, ParseError, TimeoutExceededError, failure_reason, to_error_message
from codez.utils.logging import get_logger, log_step_transition
from codez.utils.metrics import RunMetrics, track_step
from codez.utils.resilience import Deadline, best_effort
from codez.utils.security import mask_sensitive_info

logger = get_logger(__name__)

CloneFn = Callable[..., Awaitable[GitCli]]

# Progress milestones reached after each pipeline stage
MILESTONE_CONTEXT = 1
MILESTONE_PLANNING = 2
MILESTONE_EDITS = 3
MILESTONE_TESTING = 4


class RunOrchestrator:
    """
    Executes one run end to end and returns exactly one RunOutcome.

    Collaborators are injected so the pipeline can run against fakes.
    """

    def __init__(
        self,
        settings: Settings,
        github: GitHubClient,
        agent: CodexRunner,
        commit_messages: CommitMessageGenerator,
        http_client: httpx.AsyncClient,
        metrics: Optional[RunMetrics] = None,
        clone: CloneFn = clone_repository,
    ):
        self.settings = settings
        self.github = github
        self.agent = agent
        self.commit_messages = commit_messages
        self.http_client = http_client
        self.metrics = metrics
        self.clone = clone

    async def run(self, processed: ProcessedEvent) -> RunOutcome:
        """
        Run the pipeline for ``processed``.

        Never raises for pipeline failures; they are reported on the thread
        and returned as a FAILED outcome.
        """
        event = processed.agent_event
        log = logger.with_context(event_type=event.type.value, issue_number=event.number)
        comments = CommentService(self.github, event, self.settings.secrets)
        status = ThreadStatus(self.github, event)
        progress = ProgressTracker(comments, self.settings.run_url)

        await best_effort("add eyes reaction", status.add_reaction(EYES))
        await best_effort("mark title as WIP", status.update_title("WIP"))
        await best_effort("create progress comment", progress.start())

        deadline = Deadline(self.settings.timeout_seconds)
        try:
            outcome = await deadline.run(
                self._pipeline(processed, comments, status, progress, deadline),
                step="run",
            )
        except TimeoutExceededError as e:
            log.error(f"Run timed out: {e}")
            await best_effort("post timeout notification", comments.upsert(progress.comment_id, to_error_message(e)))
            outcome = RunOutcome.failed(e.reason, to_error_message(e))
        except CodezError as e:
            log.error(f"Run failed: {e}")
            await best_effort("post failure notification", comments.upsert(progress.comment_id, to_error_message(e)))
            outcome = RunOutcome.failed(e.reason, to_error_message(e))
        except Exception as e:
            log.exception(f"Unexpected error during run: {e}")
            message = f"An unexpected error occurred: {to_error_message(e)}"
            await best_effort("post failure notification", comments.upsert(progress.comment_id, message))
            outcome = RunOutcome.failed(failure_reason(e), message)

        log.info(f"Run finished with outcome {outcome.kind.value}", extra={"reason": outcome.reason})
        return outcome

    async def _pipeline(
        self,
        processed: ProcessedEvent,
        comments: CommentService,
        status: ThreadStatus,
        progress: ProgressTracker,
        deadline: Deadline,
    ) -> RunOutcome:
        event = processed.agent_event
        workspace = self.settings.workspace

        async with track_step(self.metrics, "checkout"):
            clone_url, branch, default_branch = await self.resolve_checkout(event)
            git = await self.clone(workspace, clone_url, branch, self.settings.github_token, self.settings.secrets)

        deadline.check("snapshot")
        async with track_step(self.metrics, "snapshot"):
            snapshot = await capture_file_state(workspace)

        async with track_step(self.metrics, "prompt"):
            prepared = await prepare_prompt(self.github, processed, workspace, self.http_client)
        await best_effort("update progress", progress.advance(MILESTONE_CONTEXT))

        images: List[str] = [*self.settings.image_paths, *prepared.image_files]
        deadline.check("agent")
        log_step_transition(logger, "agent", "started")
        try:
            async with track_step(self.metrics, "agent"):
                raw_output = await self.agent.run(prepared.prompt, workspace, deadline.remaining(), images)
        except (CliError, ParseError, TimeoutExceededError) as e:
            log_step_transition(logger, "agent", "failed")
            logger.error(f"Codex execution failed: {e}")
            await best_effort(
                "post agent failure",
                comments.upsert(progress.comment_id, f"CLI execution failed: {to_error_message(e)}"),
            )
            await best_effort("finalize reactions", status.finalize_reactions())
            return RunOutcome.failed(e.reason, to_error_message(e))
        log_step_transition(logger, "agent", "completed")

        output = mask_sensitive_info(raw_output, self.settings.secrets)
        await best_effort("update progress", progress.advance(MILESTONE_PLANNING))

        if processed.create_issues:
            async with track_step(self.metrics, "create_issues"):
                result = await create_issues_from_feature_plan(self.github, comments, output, progress.comment_id)
            await self._mark_done(status)
            if result.error_message:
                return RunOutcome.failed(ParseError.reason, result.error_message)
            return RunOutcome(
                kind=OutcomeKind.ISSUES_CREATED,
                issue_numbers=result.issue_numbers,
                message=f"Created {result.published_count} issues",
            )

        async with track_step(self.metrics, "diff"):
            changed_files = await detect_changes(workspace, snapshot)
        if self.metrics:
            self.metrics.record_files_changed(len(changed_files))
        await best_effort("update progress", progress.advance(MILESTONE_EDITS))
        await best_effort("update progress", progress.advance(MILESTONE_TESTING))

        deadline.check("publish")
        publisher = ResultPublisher(
            self.github,
            git,
            comments,
            self.commit_messages,
            workspace=workspace,
            default_branch=default_branch,
        )
        async with track_step(self.metrics, "publish"):
            outcome = await publisher.publish(processed, output, changed_files, progress.comment_id)

        await self._mark_done(status)
        return outcome

    async def _mark_done(self, status: ThreadStatus) -> None:
        await best_effort("mark title as Done", status.update_title("Done"))
        await best_effort("finalize reactions", status.finalize_reactions())

    async def resolve_checkout(self, event: AgentEvent) -> Tuple[str, str, str]:
        """
        Work out what to clone.

        Returns:
            Tuple of (clone URL, branch to check out, default branch)

        Raises:
            GitHostError: If the repository or pull request lookup fails
        """
        repository = event.repository
        default_branch = repository.default_branch if repository else None
        if not default_branch:
            default_branch = (await self.github.get_repository())["default_branch"]

        clone_url = repository.clone_url if repository else None
        if not clone_url:
            clone_url = f"{self.settings.github_server_url}/{self.settings.owner}/{self.settings.repo}.git"

        branch = default_branch
        if event.type in (EventType.PULL_REQUEST_OPENED, EventType.PULL_REQUEST_SYNCHRONIZE,
                          EventType.PULL_REQUEST_REVIEW_COMMENT_CREATED):
            head = event.github.pull_request.head
            branch = head.ref if head else (await self.github.get_pull_request(event.number))["head"]["ref"]
        elif event.type == EventType.PULL_REQUEST_COMMENT_CREATED:
            branch = (await self.github.get_pull_request(event.number))["head"]["ref"]

        logger.info(f"Checking out branch {branch} (default: {default_branch})")
        return clone_url, branch, default_branch
