"""
Run configuration management.
"""

from typing import Dict, List, Optional

from pydantic import AliasChoices, Field, ValidationError, model_validator
from pydantic_settings import BaseSettings

from codez.constants import DEFAULT_TRIGGER_PHRASE
from codez.utils.errors import ConfigurationError


def _codez_env(name: str) -> AliasChoices:
    return AliasChoices(f"CODEZ_{name.upper()}", name)


def parse_env_input(value: str) -> Dict[str, str]:
    """
    Parse extra environment variables for the agent CLI.

    Multi-line input is read as ``KEY: value`` lines (surrounding quotes are
    stripped); single-line input as comma-separated ``KEY=value`` pairs.
    """
    result: Dict[str, str] = {}
    if not value:
        return result
    if "\n" in value:
        for line in value.splitlines():
            line = line.strip()
            if not line or ":" not in line:
                continue
            key, _, val = line.partition(":")
            key, val = key.strip(), val.strip()
            if len(val) >= 2 and val[0] == val[-1] and val[0] in ("'", '"'):
                val = val[1:-1]
            if key:
                result[key] = val
    else:
        for part in value.split(","):
            key, _, val = part.partition("=")
            key = key.strip()
            if key:
                result[key] = val.strip()
    return result


def _split_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """Run settings loaded from environment variables."""

    # GitHub
    github_token: str
    github_repository: str
    github_event_path: Optional[str] = None
    github_api_url: str = "https://api.github.com"
    github_server_url: str = "https://github.com"
    github_run_id: str = ""
    github_actor: str = ""

    # OpenAI
    openai_api_key: str
    openai_base_url: str = ""
    openai_model: str = "o4-mini"

    # Run
    workspace: str = Field("/workspace/app", validation_alias=_codez_env("workspace"))
    timeout_seconds: int = Field(600, gt=0, validation_alias=_codez_env("timeout_seconds"))
    direct_prompt: str = Field("", validation_alias=_codez_env("direct_prompt"))
    trigger_phrase: str = Field(DEFAULT_TRIGGER_PHRASE, validation_alias=_codez_env("trigger_phrase"))
    assignee_trigger: str = Field("", validation_alias=_codez_env("assignee_trigger"))
    codex_env: str = Field("", validation_alias=_codez_env("codex_env"))
    codex_bin: str = Field("codex", validation_alias=_codez_env("codex_bin"))
    images: str = Field("", validation_alias=_codez_env("images"))

    # Application
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"

    @model_validator(mode="after")
    def _check_event_source(self) -> "Settings":
        if not self.direct_prompt and not self.github_event_path:
            raise ValueError("GitHub event path is missing.")
        if "/" not in self.github_repository:
            raise ValueError("GITHUB_REPOSITORY must be in the form owner/repo.")
        return self

    @property
    def owner(self) -> str:
        return self.github_repository.split("/", 1)[0]

    @property
    def repo(self) -> str:
        return self.github_repository.split("/", 1)[1]

    @property
    def assignee_triggers(self) -> List[str]:
        return _split_list(self.assignee_trigger)

    @property
    def image_paths(self) -> List[str]:
        return _split_list(self.images)

    @property
    def codex_env_vars(self) -> Dict[str, str]:
        return parse_env_input(self.codex_env)

    @property
    def run_url(self) -> Optional[str]:
        """Link to the job run, when running inside GitHub Actions."""
        if not self.github_run_id:
            return None
        return f"{self.github_server_url}/{self.github_repository}/actions/runs/{self.github_run_id}"

    @property
    def secrets(self) -> List[str]:
        """Values that must be masked in every comment and log record."""
        return [s for s in (self.github_token, self.openai_api_key, self.openai_base_url) if s]


def load_settings(**overrides) -> Settings:
    """
    Load settings from the environment.

    Raises:
        ConfigurationError: If a required value is missing or invalid
    """
    try:
        return Settings(**overrides)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'settings'}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigurationError(f"Invalid configuration: {problems}") from e
