"""Parsed command and processed event data models."""

from typing import Dict

from pydantic import BaseModel, ConfigDict, Field

from codez.models.event import AgentEvent


class ParsedCommand(BaseModel):
    """Flags and remaining prompt text split out of a trigger command."""

    model_config = ConfigDict(frozen=True)

    flags: Dict[str, bool] = Field(default_factory=dict)
    prompt_text: str = ""

    def flag(self, name: str) -> bool:
        return self.flags.get(name, False)


class ProcessedEvent(BaseModel):
    """
    An agent event together with its resolved flags and final prompt.

    Derived once at the start of a run and never mutated.
    """

    model_config = ConfigDict(frozen=True)

    agent_event: AgentEvent = Field(discriminator="type")
    user_prompt: str
    include_full_history: bool = False
    create_issues: bool = False
    no_pr: bool = False
    include_fix_build: bool = False
    include_fetch: bool = False
