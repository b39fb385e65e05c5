"""Unit tests for the tracking comment."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from src.action.github.client import GitHubAPIError
from src.action.github.comments import (
    INITIAL_COMMENT_BODY,
    SPINNER_HTML,
    TrackingComment,
    TrackingCommentError,
    create_tracking_comment,
)

from tests.action.factories import issue_comment_payload, normalize


def run_async(coro):
    return asyncio.run(coro)


@pytest.fixture
def context():
    return normalize(issue_comment_payload(number=42), "issue_comment")


def test_posts_spinner_comment(context):
    client = AsyncMock()
    client.create_comment.return_value = {"id": 123, "user": {"login": "claude[bot]"}}

    comment = run_async(create_tracking_comment(client, context))

    assert comment == TrackingComment(id=123, user_login="claude[bot]")
    client.create_comment.assert_awaited_once_with(
        "octo-org", "widgets", 42, INITIAL_COMMENT_BODY
    )
    assert INITIAL_COMMENT_BODY.endswith(SPINNER_HTML)


def test_missing_author_defaults(context):
    client = AsyncMock()
    client.create_comment.return_value = {"id": 5}

    assert run_async(create_tracking_comment(client, context)).user_login == "claude"


def test_api_failure(context):
    client = AsyncMock()
    client.create_comment.side_effect = GitHubAPIError("locked", status_code=403)

    with pytest.raises(TrackingCommentError, match="locked"):
        run_async(create_tracking_comment(client, context))
