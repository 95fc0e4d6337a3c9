"""
Issue creation from a feature plan (``--create-issues``).
"""

import json
import re
from typing import Any, List, Optional

from pydantic import TypeAdapter, ValidationError

from codez.models.api_response import FeaturePlanItem, PublishResult
from codez.services.comments import CommentService
from codez.services.github_client import GitHubClient
from codez.utils.errors import GitHostError, ParseError
from codez.utils.logging import get_logger

logger = get_logger(__name__)

JSON_ARRAY_RE = re.compile(r"\[[\s\S]*\]")

_FEATURE_LIST = TypeAdapter(List[FeaturePlanItem])


def parse_features(output: str) -> Any:
    """
    Decode the agent output as JSON, falling back to the first ``[...]`` block.

    Raises:
        ParseError: If no JSON can be decoded
    """
    try:
        return json.loads(output)
    except ValueError as e:
        match = JSON_ARRAY_RE.search(output)
        if not match:
            raise ParseError(f"Failed to parse feature plan JSON: {e}") from e
        try:
            return json.loads(match.group(0))
        except ValueError as inner:
            raise ParseError(f"Failed to parse feature plan JSON: {inner}") from inner


def validate_features(data: Any) -> List[FeaturePlanItem]:
    """
    Check that ``data`` is a list of ``{title, description}`` string objects.

    Raises:
        ParseError: Describing the first offending entry
    """
    if not isinstance(data, list):
        raise ParseError("Feature plan JSON is not an array. Please output an array of feature objects.")
    try:
        return _FEATURE_LIST.validate_python(data)
    except ValidationError as e:
        index = e.errors()[0]["loc"][0] if e.errors() and e.errors()[0]["loc"] else "?"
        raise ParseError(
            f"Invalid feature format at index {index}. Each feature must be an object "
            "with 'title' (string) and 'description' (string)."
        ) from e


async def create_issues_from_feature_plan(
    github: GitHubClient,
    comments: CommentService,
    output: str,
    tracking_comment_id: Optional[int] = None,
) -> PublishResult:
    """
    Create one issue per planned feature and report each on the thread.

    The first confirmation replaces the tracking comment; later ones are new
    comments. A malformed plan is reported as a comment and nothing is created.

    Returns:
        PublishResult with the created issue numbers and per-feature errors
    """
    try:
        features = validate_features(parse_features(output))
    except ParseError as e:
        logger.warning(f"Feature plan rejected: {e}")
        await comments.upsert(tracking_comment_id, str(e))
        return PublishResult(success=False, published_count=0, failed_count=0, error_message=str(e))

    issue_numbers: List[int] = []
    errors: List[str] = []
    for index, feature in enumerate(features):
        try:
            issue = await github.create_issue(feature.title, feature.description)
            number = issue["number"]
            logger.info(f"Created feature issue #{number}: {feature.title}")
            body = f'Created new feature issue #{number} for "{feature.title}"'
            if index == 0 and tracking_comment_id is not None:
                await comments.upsert(tracking_comment_id, body)
            else:
                await comments.post(body)
            issue_numbers.append(number)
        except GitHostError as e:
            logger.warning(f'Failed to create issue for feature "{feature.title}": {e}')
            errors.append(f"{feature.title}: {e}")

    return PublishResult(
        success=not errors,
        published_count=len(issue_numbers),
        failed_count=len(errors),
        issue_numbers=issue_numbers,
        errors=errors,
    )
