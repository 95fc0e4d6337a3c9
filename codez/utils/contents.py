"""
Formatting of issue and comment bodies into the prompt history.
"""

from codez.constants import BOT_LOGIN
from codez.models.api_response import ContentItem


def _quote(body: str) -> str:
    return "\n".join(f"> {line}" for line in body.split("\n")) + "\n\n"


def format_bot_content(item: ContentItem) -> str:
    """Quote the body if it was written by the bot, otherwise return nothing."""
    body = item.body.strip()
    if not body or item.login.strip() != BOT_LOGIN:
        return ""
    return _quote(body)


def format_full_content(item: ContentItem) -> str:
    """Quote the body regardless of author."""
    body = item.body.strip()
    if not body:
        return ""
    return _quote(body)
