"""
Security helpers: secret masking and permission checks.
"""

from typing import Iterable

from codez.utils.logging import MASK, get_logger

logger = get_logger(__name__)

ALLOWED_PERMISSIONS = ("admin", "write")


def mask_sensitive_info(text: str, secrets: Iterable[str]) -> str:
    """Replace every occurrence of each non-empty secret with ``***``."""
    for secret in secrets:
        if secret:
            text = text.replace(secret, MASK)
    return text


async def check_permission(github, actor: str) -> bool:
    """
    Check that ``actor`` may trigger runs on the repository.

    Args:
        github: GitHubClient for the repository
        actor: Login of the user that triggered the event

    Returns:
        True if the actor has admin or write permission, False otherwise
        (including when the lookup fails)
    """
    if not actor:
        logger.warning("Actor not found. Permission check failed.")
        return False

    try:
        permission = await github.get_collaborator_permission(actor)
    except Exception as e:
        logger.warning(f"Error checking user permission: {e}")
        return False

    logger.info(f"User permission level: {permission}", extra={"actor": actor})
    return permission in ALLOWED_PERMISSIONS
