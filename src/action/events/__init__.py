"""GitHub event handling for the dispatcher.

This module normalizes GitHub Actions event payloads and decides whether
they trigger the assistant. Supported events:
- issue_comment - Comment on an issue or pull request
- pull_request_review_comment - Inline review comment
- pull_request_review - Submitted review
- issues - Issue opened, assigned or labeled
- pull_request - Pull request lifecycle
"""

from .handler import (
    EventNormalizer,
    MalformedEventError,
    UnsupportedEventError,
    load_event_payload,
)
from .models import (
    EventContext,
    EventKind,
    RepositoryRef,
    TriggerDecision,
    TriggerRules,
)
from .trigger import evaluate_trigger

__all__ = [
    "EventContext",
    "EventKind",
    "EventNormalizer",
    "MalformedEventError",
    "RepositoryRef",
    "TriggerDecision",
    "TriggerRules",
    "UnsupportedEventError",
    "evaluate_trigger",
    "load_event_payload",
]
