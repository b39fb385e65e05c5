"""GitHub integration for the dispatcher.

This module provides:
- An async REST client with retry and rate-limit handling
- Bearer credential acquisition (explicit token or OIDC exchange)
- The tracking comment posted at the start of every run
"""

from src.action.github.auth import (
    CredentialError,
    GitHubTokenProvider,
    retry_with_backoff,
)
from src.action.github.client import (
    GitHubAPIError,
    GitHubClient,
    RateLimitError,
)
from src.action.github.comments import (
    INITIAL_COMMENT_BODY,
    TrackingComment,
    TrackingCommentError,
    create_tracking_comment,
)

__all__ = [
    "CredentialError",
    "GitHubAPIError",
    "GitHubClient",
    "GitHubTokenProvider",
    "INITIAL_COMMENT_BODY",
    "RateLimitError",
    "TrackingComment",
    "TrackingCommentError",
    "create_tracking_comment",
    "retry_with_backoff",
]
