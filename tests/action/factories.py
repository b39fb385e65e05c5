"""Payload and settings builders shared by dispatcher tests."""

from typing import Any, Dict, Optional

from src.action.config import ActionSettings
from src.action.events.handler import EventNormalizer
from src.action.events.models import EventContext


def make_settings(**overrides: Any) -> ActionSettings:
    values: Dict[str, Any] = {
        "repository": "octo-org/widgets",
        "event_name": "issue_comment",
        "github_token": "ghs_test_token",
    }
    values.update(overrides)
    return ActionSettings(**values)


def issue_comment_payload(
    body: str = "@claude please fix the bug",
    number: int = 42,
    commenter: str = "alice",
    comment_id: int = 9001,
    on_pull_request: bool = False,
) -> Dict[str, Any]:
    issue: Dict[str, Any] = {
        "number": number,
        "title": "Widget crashes",
        "body": "Steps to reproduce...",
        "user": {"login": "reporter"},
    }
    if on_pull_request:
        issue["pull_request"] = {"url": f"https://api.github.com/pulls/{number}"}
    return {
        "action": "created",
        "issue": issue,
        "comment": {"id": comment_id, "body": body, "user": {"login": commenter}},
        "repository": {
            "name": "widgets",
            "full_name": "octo-org/widgets",
            "owner": {"login": "octo-org"},
        },
    }


def issues_payload(
    action: str = "opened",
    title: str = "Widget crashes",
    body: Optional[str] = "Steps to reproduce...",
    number: int = 7,
    author: str = "reporter",
    **extra: Any,
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "action": action,
        "issue": {
            "number": number,
            "title": title,
            "body": body,
            "user": {"login": author},
        },
        "repository": {"full_name": "octo-org/widgets"},
    }
    payload.update(extra)
    return payload


def pull_request_payload(
    state: str = "open",
    number: int = 15,
    body: Optional[str] = "Adds a feature",
    head_ref: str = "feature/login",
    base_ref: str = "main",
    commits: Optional[int] = 3,
    merged: bool = False,
) -> Dict[str, Any]:
    pr: Dict[str, Any] = {
        "number": number,
        "state": state,
        "merged": merged,
        "body": body,
        "user": {"login": "contributor"},
        "head": {"ref": head_ref},
        "base": {"ref": base_ref},
    }
    if commits is not None:
        pr["commits"] = commits
    return {
        "action": "opened",
        "pull_request": pr,
        "repository": {"full_name": "octo-org/widgets"},
    }


def review_payload(body: Optional[str] = "@claude address this") -> Dict[str, Any]:
    payload = pull_request_payload()
    payload["action"] = "submitted"
    payload["review"] = {"id": 77, "body": body, "user": {"login": "reviewer"}}
    return payload


def normalize(payload: Dict[str, Any], event_name: str) -> EventContext:
    return EventNormalizer().normalize(payload, event_name)
