"""
Flag parsing for trigger commands.

A flag is a standalone ``--name`` token whose name belongs to the allowed
vocabulary for the invocation context. Recognised flags are removed from the
text; every other token, unknown ``--x`` tokens included, is kept in order.
"""

from typing import Dict, Iterable, Tuple

from codez.models.command import ParsedCommand

FLAG_FULL_HISTORY = "full-history"
FLAG_CREATE_ISSUES = "create-issues"
FLAG_NO_PR = "no-pr"
FLAG_FIX_BUILD = "fix-build"
FLAG_FETCH = "fetch"

DIRECT_FLAGS: Tuple[str, ...] = (FLAG_FIX_BUILD, FLAG_FETCH)
TRIGGER_FLAGS: Tuple[str, ...] = (
    FLAG_FULL_HISTORY,
    FLAG_CREATE_ISSUES,
    FLAG_NO_PR,
    FLAG_FIX_BUILD,
    FLAG_FETCH,
)


def parse_flags(text: str, flag_names: Iterable[str]) -> ParsedCommand:
    """
    Split recognised ``--flag`` tokens out of free text.

    Args:
        text: Raw command text
        flag_names: Flag names allowed in this context

    Returns:
        ParsedCommand with one entry per allowed flag and the remaining text
        joined with single spaces
    """
    allowed = list(flag_names)
    flags: Dict[str, bool] = {name: False for name in allowed}
    rest = []
    for token in text.split():
        name = token[2:] if token.startswith("--") else None
        if name is not None and name in flags:
            flags[name] = True
        else:
            rest.append(token)
    return ParsedCommand(flags=flags, prompt_text=" ".join(rest))


def extract_prompt_flags(text: str, is_direct: bool) -> ParsedCommand:
    """Parse flags using the vocabulary of a direct or trigger-based invocation."""
    return parse_flags(text, DIRECT_FLAGS if is_direct else TRIGGER_FLAGS)
