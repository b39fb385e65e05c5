"""Tracking comment for a dispatched run.

Every triggered run posts one comment on the issue or pull request before
any work starts. The assistant later rewrites that comment's body through
its status-update service; the dispatcher itself never posts a second one.
"""

import logging
from dataclasses import dataclass

from src.action.events.models import EventContext
from src.action.github.client import GitHubAPIError, GitHubClient

logger = logging.getLogger(__name__)

SPINNER_HTML = (
    '<img src="https://github.com/user-attachments/assets/'
    '5ac382c7-e004-429b-8e35-7feb3e8f9c6f" width="14px" height="14px" '
    'style="vertical-align: middle; margin-left: 4px;" />'
)

INITIAL_COMMENT_BODY = f"Claude is working on this... {SPINNER_HTML}"

DEFAULT_COMMENT_USER = "claude"


class TrackingCommentError(Exception):
    """Raised when the tracking comment cannot be created."""

    pass


@dataclass(frozen=True)
class TrackingComment:
    """The comment the assistant keeps updated.

    Attributes:
        id: GitHub comment id.
        user_login: Account that authored the comment; also used as the git
            committer identity.
    """

    id: int
    user_login: str


async def create_tracking_comment(
    client: GitHubClient,
    context: EventContext,
) -> TrackingComment:
    """Post the initial spinner comment on the event's issue or PR.

    Raises:
        TrackingCommentError: If GitHub rejects the request.
    """
    entity_label = "PR" if context.is_pull_request else "issue"
    logger.info(
        "Creating initial tracking comment for %s #%d",
        entity_label,
        context.entity_number,
    )

    try:
        data = await client.create_comment(
            context.repository.owner,
            context.repository.repo,
            context.entity_number,
            INITIAL_COMMENT_BODY,
        )
    except GitHubAPIError as exc:
        raise TrackingCommentError(
            f"Failed to create tracking comment: {exc}"
        ) from exc

    user = data.get("user") or {}
    comment = TrackingComment(
        id=int(data["id"]),
        user_login=user.get("login") or DEFAULT_COMMENT_USER,
    )
    logger.info("Created tracking comment with ID: %d", comment.id)
    return comment
