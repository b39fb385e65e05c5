"""GitHub event normalization for the dispatcher.

This module provides the EventNormalizer class that turns a raw GitHub
event payload into an EventContext. Each supported event kind has its own
set of required sub-objects; a payload missing any of them is rejected with
MalformedEventError rather than silently producing a partial context.

GitHub Payload Structure (issue_comment event on a pull request):
{
  "action": "created",
  "issue": {
    "number": 123,
    "pull_request": {"url": "..."},
    "user": {"login": "author"}
  },
  "comment": {
    "id": 456,
    "body": "@claude please fix the bug",
    "user": {"login": "commenter"}
  },
  "repository": {
    "name": "repo-name",
    "full_name": "owner-name/repo-name",
    "owner": {"login": "owner-name"}
  }
}
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from pydantic import ValidationError

from src.action.events.models import EventContext, EventKind, RepositoryRef

logger = logging.getLogger(__name__)


class MalformedEventError(Exception):
    """Raised when an event payload lacks fields required for its kind."""

    pass


class UnsupportedEventError(MalformedEventError):
    """Raised for GitHub event names the dispatcher does not handle."""

    def __init__(self, event_name: str):
        self.event_name = event_name
        supported = ", ".join(kind.value for kind in EventKind)
        super().__init__(
            f"Unsupported event type: {event_name}. Supported events: {supported}"
        )


# (entity object, actor object) per event kind
_REQUIRED_OBJECTS: Dict[EventKind, Tuple[str, str]] = {
    EventKind.ISSUE_COMMENT: ("issue", "comment"),
    EventKind.PULL_REQUEST_REVIEW_COMMENT: ("pull_request", "comment"),
    EventKind.PULL_REQUEST_REVIEW: ("pull_request", "review"),
    EventKind.ISSUES: ("issue", "issue"),
    EventKind.PULL_REQUEST: ("pull_request", "pull_request"),
}


def load_event_payload(event_path: Optional[str]) -> Dict[str, Any]:
    """Read and decode the event document written by the Actions runner.

    Args:
        event_path: Path from GITHUB_EVENT_PATH.

    Returns:
        The decoded payload.

    Raises:
        MalformedEventError: If the path is missing, unreadable, not JSON,
            or not a JSON object.
    """
    if not event_path:
        raise MalformedEventError("GITHUB_EVENT_PATH not found")

    try:
        raw = Path(event_path).read_text(encoding="utf-8")
        payload = json.loads(raw)
    except (OSError, json.JSONDecodeError) as exc:
        logger.error("Failed to parse GitHub event payload: %s", exc)
        raise MalformedEventError("Invalid GitHub event payload") from exc

    if not isinstance(payload, dict):
        raise MalformedEventError(
            f"Invalid GitHub event payload: expected object, got {type(payload).__name__}"
        )
    return payload


class EventNormalizer:
    """Normalizes raw GitHub event payloads into EventContext records.

    The normalizer has no side effects. It does not decide whether the
    event should trigger the assistant; that is the trigger evaluator's
    job.
    """

    def normalize(
        self,
        payload: Dict[str, Any],
        event_name: str,
        repository: Optional[str] = None,
        event_action: Optional[str] = None,
    ) -> EventContext:
        """Build an EventContext from a raw payload.

        Args:
            payload: The raw event document.
            event_name: GitHub event name (e.g. "issue_comment").
            repository: Optional "owner/repo"; read from the payload if absent.
            event_action: Optional sub-action; read from payload["action"]
                if absent.

        Returns:
            The normalized, immutable event context.

        Raises:
            UnsupportedEventError: For event names outside EventKind.
            MalformedEventError: When required fields are absent.
        """
        if not isinstance(payload, dict):
            raise MalformedEventError(
                f"Invalid payload: expected dict, got {type(payload).__name__}"
            )

        kind = self._parse_kind(event_name)
        entity_key, actor_key = _REQUIRED_OBJECTS[kind]

        entity = self._require_object(payload, entity_key, kind)
        actor_source = self._require_object(payload, actor_key, kind)

        entity_number = entity.get("number")
        if not isinstance(entity_number, int) or isinstance(entity_number, bool) or entity_number <= 0:
            raise MalformedEventError(
                f"{kind.value} event has invalid {entity_key}.number: {entity_number!r}"
            )

        actor = self._extract_login(actor_source.get("user"))
        if actor is None:
            raise MalformedEventError(
                f"{kind.value} event is missing {actor_key}.user.login"
            )

        if kind == EventKind.ISSUE_COMMENT:
            # Only the pull_request linkage distinguishes PR conversation comments
            is_pull_request = bool(entity.get("pull_request"))
        else:
            is_pull_request = kind != EventKind.ISSUES

        action = event_action or payload.get("action")
        if action is not None and not isinstance(action, str):
            action = None

        try:
            context = EventContext(
                repository=self._resolve_repository(payload, repository),
                event_kind=kind,
                event_action=action,
                entity_number=entity_number,
                is_pull_request=is_pull_request,
                actor=actor,
                payload=payload,
            )
        except ValidationError as exc:
            raise MalformedEventError(f"Invalid {kind.value} event: {exc}") from exc

        logger.debug(
            "Parsed GitHub context: %s #%d by %s",
            kind.value,
            entity_number,
            actor,
        )
        return context

    def _parse_kind(self, event_name: str) -> EventKind:
        try:
            return EventKind(event_name)
        except ValueError as exc:
            raise UnsupportedEventError(event_name) from exc

    def _require_object(
        self, payload: Dict[str, Any], key: str, kind: EventKind
    ) -> Dict[str, Any]:
        value = payload.get(key)
        if not isinstance(value, dict):
            raise MalformedEventError(
                f"{kind.value} event is missing required '{key}' object"
            )
        return value

    def _extract_login(self, user_data: Any) -> Optional[str]:
        """Extract the login field from a user object.

        Returns:
            The login string if valid, None otherwise.
        """
        if not isinstance(user_data, dict):
            return None
        login = user_data.get("login")
        if not isinstance(login, str) or not login.strip():
            return None
        return login.strip()

    def _resolve_repository(
        self, payload: Dict[str, Any], repository: Optional[str]
    ) -> RepositoryRef:
        """Determine the repository from the explicit value or the payload.

        Raises:
            MalformedEventError: If no usable repository can be found.
        """
        full_name = repository
        repo_data = payload.get("repository")

        if not full_name and isinstance(repo_data, dict):
            full_name = repo_data.get("full_name")
            if not isinstance(full_name, str) or not full_name:
                owner = self._extract_login(repo_data.get("owner"))
                name = repo_data.get("name")
                if owner and isinstance(name, str) and name:
                    full_name = f"{owner}/{name}"

        if not isinstance(full_name, str) or not full_name:
            raise MalformedEventError("Event does not identify a repository")

        parts = full_name.split("/")
        if len(parts) != 2 or not parts[0] or not parts[1]:
            raise MalformedEventError(
                f"Invalid repository format: {full_name}. Expected format: owner/repo"
            )
        return RepositoryRef(owner=parts[0], repo=parts[1])
