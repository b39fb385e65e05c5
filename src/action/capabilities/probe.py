"""Permission probes for optional capabilities."""

import logging
from typing import Callable, Protocol

import httpx

from src.action.capabilities.models import CapabilityProbeWarning
from src.action.github.client import GitHubAPIError, GitHubClient

logger = logging.getLogger(__name__)


class PermissionProbe(Protocol):
    async def confirm_actions_read(self, owner: str, repo: str, token: str) -> None:
        """Return normally if ``token`` holds the scope, else raise CapabilityProbeWarning."""
        ...


class ActionsReadProbe:
    """Confirms actions:read by listing a single workflow run.

    The probe opens its own client for the credential under test, which
    may differ from the token driving the rest of the run.
    """

    def __init__(self, client_factory: Callable[[str], GitHubClient]):
        self.client_factory = client_factory

    async def confirm_actions_read(self, owner: str, repo: str, token: str) -> None:
        try:
            async with self.client_factory(token) as client:
                await client.list_workflow_runs(owner, repo, per_page=1)
        except (GitHubAPIError, httpx.HTTPError, ValueError) as exc:
            logger.debug(
                "Failed to check actions permission",
                extra={
                    "status_code": getattr(exc, "status_code", None),
                    "error": str(exc),
                },
            )
            raise CapabilityProbeWarning(
                "The github_ci service requires 'actions: read' permission. "
                "Please ensure your GitHub token has this permission. See: "
                "https://docs.github.com/en/actions/security-guides/"
                "automatic-token-authentication#permissions-for-the-github_token"
            ) from exc
