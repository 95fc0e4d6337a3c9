"""
Tracking comment rendering and milestone updates.
"""

import random
from typing import Callable, Optional, Sequence

from codez.constants import LOADING_PHRASES, PROGRESS_BAR_BLOCKS, PROGRESS_STEPS, PROGRESS_TITLE, SPINNER_HTML
from codez.services.comments import CommentService
from codez.utils.logging import get_logger

logger = get_logger(__name__)


def render_progress(
    steps: Sequence[str],
    completed: int,
    run_url: Optional[str] = None,
    phrase_picker: Callable[[Sequence[str]], str] = random.choice,
) -> str:
    """
    Render the tracking comment body.

    Args:
        steps: Milestone labels
        completed: Number of milestones done (0..len(steps))
        run_url: Link to the job run, if any
        phrase_picker: Chooses the loading phrase
    """
    total = len(steps)
    if completed == 0:
        bar_line = f"Progress: [{'░' * PROGRESS_BAR_BLOCKS}] 0%"
    else:
        filled = round(completed / total * PROGRESS_BAR_BLOCKS)
        percent = round(completed / total * 100)
        bar = "█" * filled + "░" * (PROGRESS_BAR_BLOCKS - filled)
        bar_line = f"Progress: {bar} {percent}%" + (" ✅" if percent == 100 else "")

    step_lines = []
    for index, step in enumerate(steps):
        line = f"- [{'x' if index < completed else ' '}] {step}"
        if index == completed:
            line += SPINNER_HTML
        step_lines.append(line)

    lines = [PROGRESS_TITLE, "", bar_line, "", phrase_picker(LOADING_PHRASES), "", *step_lines, ""]
    if run_url:
        lines.extend([f"[View job run]({run_url})", ""])
    return "\n".join(lines)


class ProgressTracker:
    """
    Owns the tracking comment and reports milestones on it.

    Milestones only move forward; a request to report fewer completed steps
    than already reported is ignored.
    """

    def __init__(self, comments: CommentService, run_url: Optional[str] = None, steps: Sequence[str] = PROGRESS_STEPS):
        self.comments = comments
        self.run_url = run_url
        self.steps = tuple(steps)
        self.comment_id: Optional[int] = None
        self.completed = 0

    async def start(self) -> Optional[int]:
        """Create the tracking comment with no milestone completed."""
        self.comment_id = await self.comments.post(render_progress(self.steps, 0, self.run_url))
        if self.comment_id is not None:
            logger.info(f"Created progress comment with id: {self.comment_id}")
        return self.comment_id

    async def advance(self, completed: int) -> None:
        """Report that the first ``completed`` milestones are done."""
        if self.comment_id is None or completed <= self.completed:
            return
        completed = min(completed, len(self.steps))
        await self.comments.update(self.comment_id, render_progress(self.steps, completed, self.run_url))
        self.completed = completed
