"""Action configuration using pydantic-settings.

This module defines the ActionSettings class that reads configuration from
the environment a GitHub Actions step provides. Action inputs arrive as
INPUT_* variables; workflow context (repository, event name, event payload
path, output file) arrives as GITHUB_* variables and is mapped through
explicit aliases.

Empty variables are ignored so that unset action inputs (which GitHub passes
as empty strings) fall back to their defaults.
"""

from typing import Dict, List, Optional

import yaml
from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.action.events.models import EventKind

DEFAULT_PIPE_PATH = "/tmp/claude_prompt_pipe"
DEFAULT_EXECUTION_FILE = "/tmp/claude-execution-output.json"
DEFAULT_PROMPT_DIR = "/tmp/claude-prompts"

MAX_TIMEOUT_MINUTES = 360
MAX_TURNS_LIMIT = 100


def parse_key_value_block(text: Optional[str]) -> Dict[str, str]:
    """Parse a block of ``KEY: value`` lines into a string mapping.

    The block is read as YAML so comments and quoting behave the way
    workflow authors expect. Scalar values are coerced to strings
    (booleans as lowercase ``true``/``false``, nulls as empty strings).

    Args:
        text: Raw multi-line input, possibly empty.

    Returns:
        Mapping of keys to string values. Empty input yields an empty dict.

    Raises:
        ValueError: If the block is not valid YAML or not a mapping.
    """
    if text is None or not text.strip():
        return {}

    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ValueError(f"invalid KEY: value block: {exc}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ValueError("expected one 'KEY: value' pair per line")

    parsed: Dict[str, str] = {}
    for key, value in loaded.items():
        if value is None:
            value = ""
        elif isinstance(value, bool):
            value = "true" if value else "false"
        parsed[str(key)] = str(value)
    return parsed


class ActionSettings(BaseSettings):
    """Dispatcher configuration from environment variables.

    Action inputs use the INPUT_ prefix (e.g., INPUT_TRIGGER_PHRASE).
    Workflow context fields use explicit GITHUB_* aliases.

    Required fields:
    - repository: "owner/repo" of the repository that produced the event
    - event_name: GitHub event name (issue_comment, issues, ...)

    At least one authentication method must be configured: an Anthropic API
    key, a Claude Code OAuth token, a GitHub token, or a cloud provider.
    """

    model_config = SettingsConfigDict(
        env_prefix="INPUT_",
        case_sensitive=False,
        env_ignore_empty=True,
        populate_by_name=True,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # GitHub workflow context
    # -------------------------------------------------------------------------
    repository: str = Field(validation_alias=AliasChoices("GITHUB_REPOSITORY"))

    event_name: str = Field(validation_alias=AliasChoices("GITHUB_EVENT_NAME"))

    event_path: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("GITHUB_EVENT_PATH")
    )

    event_action: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("GITHUB_EVENT_ACTION")
    )

    # Checkout directory that git commands run in
    workspace: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("GITHUB_WORKSPACE")
    )

    api_url: str = Field(
        default="https://api.github.com",
        validation_alias=AliasChoices("GITHUB_API_URL"),
    )

    # File the action appends its name=value outputs to
    output_path: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("GITHUB_OUTPUT")
    )

    github_token: str = Field(
        default="",
        validation_alias=AliasChoices("INPUT_GITHUB_TOKEN", "GITHUB_TOKEN"),
    )

    # Token with actions:read scope for the CI results server
    actions_token: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("ACTIONS_TOKEN")
    )

    oidc_request_url: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("ACTIONS_ID_TOKEN_REQUEST_URL")
    )

    oidc_request_token: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("ACTIONS_ID_TOKEN_REQUEST_TOKEN"),
    )

    app_token_exchange_url: str = (
        "https://api.anthropic.com/api/github/github-app-token-exchange"
    )

    # -------------------------------------------------------------------------
    # Trigger configuration
    # -------------------------------------------------------------------------
    trigger_phrase: str = "@claude"
    assignee_trigger: Optional[str] = None
    label_trigger: Optional[str] = "claude"
    direct_prompt: Optional[str] = None

    # -------------------------------------------------------------------------
    # Branch configuration
    # -------------------------------------------------------------------------
    base_branch: Optional[str] = None
    branch_prefix: str = "claude/"

    # -------------------------------------------------------------------------
    # Assistant configuration
    # -------------------------------------------------------------------------
    anthropic_api_key: Optional[str] = None
    claude_code_oauth_token: Optional[str] = None

    model: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("INPUT_MODEL", "INPUT_ANTHROPIC_MODEL"),
    )

    fallback_model: Optional[str] = None
    custom_instructions: Optional[str] = None
    allowed_tools: Optional[str] = None
    disallowed_tools: Optional[str] = None

    # Additional MCP configuration (JSON) merged over the built-in servers
    mcp_config: Optional[str] = None

    # "KEY: value" lines, e.g. "actions: read"
    additional_permissions: Optional[str] = None

    # "KEY: value" lines passed to the assistant environment
    claude_env: Optional[str] = None

    use_bedrock: bool = False
    use_vertex: bool = False

    # -------------------------------------------------------------------------
    # Execution configuration
    # -------------------------------------------------------------------------
    max_turns: Optional[int] = None
    timeout_minutes: int = 30
    use_commit_signing: bool = False

    claude_executable: str = "claude"
    prompt_pipe_path: str = DEFAULT_PIPE_PATH
    execution_file: str = DEFAULT_EXECUTION_FILE
    prompt_dir: str = DEFAULT_PROMPT_DIR

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------
    @field_validator("repository")
    @classmethod
    def validate_repository(cls, v: str) -> str:
        """Validate repository is in owner/repo format."""
        parts = v.split("/")
        if len(parts) != 2 or not parts[0] or not parts[1]:
            raise ValueError(
                f"Invalid repository format: {v}. Expected format: owner/repo"
            )
        return v

    @field_validator("event_name")
    @classmethod
    def validate_event_name(cls, v: str) -> str:
        """Validate the event is one the dispatcher understands."""
        supported = [kind.value for kind in EventKind]
        if v not in supported:
            raise ValueError(
                f"Unsupported event type: {v}. "
                f"Supported events: {', '.join(supported)}"
            )
        return v

    @field_validator("timeout_minutes")
    @classmethod
    def validate_timeout(cls, v: int) -> int:
        """Validate that the timeout is within the allowed window."""
        if not 1 <= v <= MAX_TIMEOUT_MINUTES:
            raise ValueError(
                f"Invalid timeout: {v}. Must be between 1 and "
                f"{MAX_TIMEOUT_MINUTES} minutes"
            )
        return v

    @field_validator("max_turns")
    @classmethod
    def validate_max_turns(cls, v: Optional[int]) -> Optional[int]:
        """Validate max turns when provided."""
        if v is not None and not 1 <= v <= MAX_TURNS_LIMIT:
            raise ValueError(
                f"Invalid max turns: {v}. Must be between 1 and {MAX_TURNS_LIMIT}"
            )
        return v

    @field_validator("additional_permissions", "claude_env")
    @classmethod
    def validate_key_value_block(cls, v: Optional[str]) -> Optional[str]:
        """Validate that KEY: value blocks parse."""
        parse_key_value_block(v)
        return v

    @model_validator(mode="after")
    def validate_authentication(self) -> "ActionSettings":
        """Validate provider exclusivity and that some auth is configured."""
        if self.use_bedrock and self.use_vertex:
            raise ValueError("Cannot use both Bedrock and Vertex AI simultaneously")

        has_auth = any(
            [
                self.anthropic_api_key,
                self.claude_code_oauth_token,
                self.github_token,
                self.use_bedrock,
                self.use_vertex,
            ]
        )
        if not has_auth:
            raise ValueError(
                "No authentication method provided. Please set one of: "
                "INPUT_ANTHROPIC_API_KEY, INPUT_CLAUDE_CODE_OAUTH_TOKEN, "
                "GITHUB_TOKEN, or enable cloud provider authentication"
            )
        return self

    # -------------------------------------------------------------------------
    # Derived values
    # -------------------------------------------------------------------------
    @property
    def owner(self) -> str:
        return self.repository.split("/")[0]

    @property
    def repo(self) -> str:
        return self.repository.split("/")[1]

    @property
    def allowed_tool_names(self) -> List[str]:
        """Allowed tools as a list, split on commas."""
        if not self.allowed_tools:
            return []
        return [tool.strip() for tool in self.allowed_tools.split(",") if tool.strip()]

    @property
    def permissions(self) -> Dict[str, str]:
        """Parsed additional permissions, e.g. {"actions": "read"}."""
        return parse_key_value_block(self.additional_permissions)

    @property
    def custom_env(self) -> Dict[str, str]:
        """Parsed custom environment for the assistant process."""
        return parse_key_value_block(self.claude_env)


def get_settings() -> ActionSettings:
    """Create and return an ActionSettings instance.

    Returns:
        ActionSettings: Configured settings instance.

    Raises:
        pydantic.ValidationError: If required fields are missing or invalid.
    """
    return ActionSettings()
