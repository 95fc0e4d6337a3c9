"""
Retrieval of CI logs for ``--fix-build``.
"""

import io
import zipfile

from codez.services.github_client import GitHubClient
from codez.utils.errors import GitHostError
from codez.utils.logging import get_logger

logger = get_logger(__name__)

NO_FAILED_RUNS = "No failed workflow runs found."
NO_LOG_FILES = "No log files found in the logs archive."


def render_log_archive(data: bytes) -> str:
    """
    Flatten a workflow log archive into one text block.

    Each entry is rendered as ``=== name ===`` followed by its content.

    Raises:
        GitHostError: If the archive cannot be opened
    """
    try:
        archive = zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile as e:
        raise GitHostError(f"Invalid logs archive: {e}") from e

    with archive:
        entries = [info for info in archive.infolist() if not info.is_dir()]
        if not entries:
            return NO_LOG_FILES
        parts = []
        for info in entries:
            content = archive.read(info).decode("utf-8", errors="replace")
            parts.append(f"=== {info.filename} ===\n{content}")
    return "\n\n".join(parts)


async def fetch_latest_failed_workflow_logs(github: GitHubClient) -> str:
    """
    Download the logs of the most recent failed workflow run.

    Returns:
        Log text, or an informational message when there is nothing to show

    Raises:
        GitHostError: If the runs or the archive cannot be fetched
    """
    try:
        runs = await github.list_failed_workflow_runs(per_page=1)
        if not runs:
            return NO_FAILED_RUNS
        run_id = runs[0]["id"]
        logger.info(f"Downloading logs for workflow run {run_id}")
        data = await github.download_run_logs(run_id)
    except GitHostError as e:
        raise GitHostError(f"Error fetching workflow runs: {e}") from e
    return render_log_archive(data)
