"""Capability configuration models.

The assistant discovers auxiliary tool services from a JSON document whose
``mcpServers`` object maps a service name to the command that launches it.
These models describe that document and the inputs used to build it.
"""

import json
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from src.action.events.models import EventContext

# Service names the dispatcher provides
COMMENT_SERVICE = "github_comment"
FILE_OPS_SERVICE = "github_file_ops"
CI_SERVICE = "github_ci"
GITHUB_SERVICE = "github"

GITHUB_TOOL_PREFIX = "mcp__github__"


class CapabilityProbeWarning(Exception):
    """Raised by a permission probe when a scope cannot be confirmed."""

    pass


class ConfigMergeWarning(Exception):
    """Raised when a caller-supplied override document cannot be used."""

    pass


class ServiceDescriptor(BaseModel):
    """How to launch one auxiliary tool service."""

    model_config = ConfigDict(frozen=True)

    command: str
    args: List[str] = Field(default_factory=list)
    env: Dict[str, str] = Field(default_factory=dict)


class CapabilityConfig(BaseModel):
    """The merged capability document handed to the assistant.

    Top-level keys other than ``mcpServers`` that an override supplies are
    kept as extra fields and serialized back out unchanged. Service entries
    from an override are kept verbatim, so they are plain mappings rather
    than ServiceDescriptor instances.
    """

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    service_descriptors: Dict[str, Any] = Field(
        default_factory=dict, alias="mcpServers"
    )

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "CapabilityConfig":
        return cls.model_validate(document)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")

    def to_json(self) -> str:
        """Serialize once for the assistant's --mcp-config argument."""
        return json.dumps(self.to_document(), indent=2)


class CapabilityRequest(BaseModel):
    """Inputs for one capability merge.

    Attributes:
        github_token: Credential exported to every GitHub service.
        owner: Repository owner.
        repo: Repository name.
        branch: Working branch, used by the file-ops service.
        comment_id: Tracking comment the status service edits.
        allowed_tools: Allowed tool names as configured.
        context: The event being handled.
        use_commit_signing: Whether commits go through the API.
        additional_permissions: Extra scopes declared by the workflow.
        additional_config: Raw override JSON, possibly blank.
        actions_token: Token dedicated to the CI results service.
    """

    model_config = ConfigDict(frozen=True)

    github_token: str
    owner: str
    repo: str
    branch: str
    comment_id: Optional[str] = None
    allowed_tools: List[str] = Field(default_factory=list)
    context: EventContext
    use_commit_signing: bool = False
    additional_permissions: Dict[str, str] = Field(default_factory=dict)
    additional_config: Optional[str] = None
    actions_token: Optional[str] = None

    @property
    def repository(self) -> str:
        return f"{self.owner}/{self.repo}"
