"""GitHub event models for the dispatcher.

This module defines the normalized event context and the trigger decision
that gates every assistant run. Both are immutable once constructed; the
raw payload is carried along untouched so that downstream components can
query it on demand.

The models use Pydantic for validation, consistent with config.py.
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class EventKind(str, Enum):
    """GitHub event names that can trigger the assistant.

    Attributes:
        ISSUE_COMMENT: Comment on an issue or on a pull request conversation.
            The two are told apart by the issue's ``pull_request`` field.
        PULL_REQUEST_REVIEW_COMMENT: Inline comment on a pull request diff.
        PULL_REQUEST_REVIEW: A submitted pull request review.
        ISSUES: Issue opened, assigned or labeled.
        PULL_REQUEST: Pull request lifecycle event.
    """

    ISSUE_COMMENT = "issue_comment"
    PULL_REQUEST_REVIEW_COMMENT = "pull_request_review_comment"
    PULL_REQUEST_REVIEW = "pull_request_review"
    ISSUES = "issues"
    PULL_REQUEST = "pull_request"


class RepositoryRef(BaseModel):
    """Owner and name of the repository an event belongs to."""

    model_config = ConfigDict(frozen=True)

    owner: str = Field(..., min_length=1)
    repo: str = Field(..., min_length=1)

    @property
    def full_name(self) -> str:
        """Repository path in format "{owner}/{repo}"."""
        return f"{self.owner}/{self.repo}"


class EventContext(BaseModel):
    """Immutable snapshot of the event that started this invocation.

    Attributes:
        repository: Repository the event belongs to.
        event_kind: Which GitHub event produced the payload.
        event_action: Optional sub-action (opened, labeled, assigned, ...).
        entity_number: Issue or pull request number.
        is_pull_request: True when the entity is a pull request.
        actor: Username that produced the event.
        payload: Raw event document, never mutated.
    """

    model_config = ConfigDict(frozen=True)

    repository: RepositoryRef
    event_kind: EventKind
    event_action: Optional[str] = None
    entity_number: int = Field(..., gt=0)
    is_pull_request: bool
    actor: str = Field(..., min_length=1)
    payload: Dict[str, Any] = Field(default_factory=dict)

    @property
    def entity_type(self) -> str:
        """Short entity label used in branch names: "pr" or "issue"."""
        return "pr" if self.is_pull_request else "issue"


class TriggerRules(BaseModel):
    """Configured conditions under which the assistant runs."""

    model_config = ConfigDict(frozen=True)

    trigger_phrase: str = "@claude"
    assignee_trigger: Optional[str] = None
    label_trigger: Optional[str] = None
    direct_instruction: Optional[str] = None


class TriggerDecision(BaseModel):
    """Outcome of trigger evaluation.

    When ``matched`` is False every other field is None; the validator
    rejects any other combination.

    Attributes:
        matched: Whether the event should start the assistant.
        matched_text: Comment, body or title that matched, or the direct
            instruction.
        triggering_user: User credited with the trigger.
        source_comment_id: Comment id, only when a specific comment matched.
    """

    model_config = ConfigDict(frozen=True)

    matched: bool = False
    matched_text: Optional[str] = None
    triggering_user: Optional[str] = None
    source_comment_id: Optional[str] = None

    @model_validator(mode="after")
    def check_unmatched_is_empty(self) -> "TriggerDecision":
        if not self.matched and any(
            value is not None
            for value in (
                self.matched_text,
                self.triggering_user,
                self.source_comment_id,
            )
        ):
            raise ValueError("an unmatched decision cannot carry trigger details")
        return self

    @classmethod
    def no_match(cls) -> "TriggerDecision":
        return cls(matched=False)
