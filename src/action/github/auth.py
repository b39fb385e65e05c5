"""GitHub credential acquisition.

Resolves the bearer token used for every GitHub call:

1. An explicitly configured token is used as is.
2. Otherwise an OIDC identity token is requested from the Actions runtime
   and exchanged for a GitHub App installation token.

Each network step is retried with capped exponential backoff. When the
retries run out a CredentialError is raised with guidance for the workflow
author.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

import httpx

logger = logging.getLogger(__name__)

T = TypeVar("T")

OIDC_AUDIENCE = "claude-code-github-action"
DEFAULT_TOKEN_EXCHANGE_URL = (
    "https://api.anthropic.com/api/github/github-app-token-exchange"
)


class CredentialError(Exception):
    """Raised when no bearer credential could be obtained."""

    pass


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run an async operation, retrying failures with doubling delays.

    The delay before attempt ``n + 1`` is ``base_delay * 2 ** (n - 1)``,
    capped at ``max_delay``. The last failure is re-raised unchanged.

    Args:
        operation: Zero-argument coroutine factory.
        max_attempts: Total attempts, including the first.
        base_delay: Delay in seconds after the first failure.
        max_delay: Upper bound for any single delay.
        sleep: Awaitable sleep, injectable for tests.
    """
    for attempt in range(1, max_attempts + 1):
        try:
            return await operation()
        except Exception as exc:
            logger.warning(
                "Attempt %d/%d failed: %s",
                attempt,
                max_attempts,
                exc,
                extra={"attempt": attempt, "max_attempts": max_attempts},
            )
            if attempt >= max_attempts:
                raise
            delay = min(base_delay * (2 ** (attempt - 1)), max_delay)
            logger.info("Retrying in %.1fs...", delay)
            await sleep(delay)

    raise CredentialError("retry_with_backoff requires at least one attempt")


class GitHubTokenProvider:
    """Obtains the GitHub bearer credential for this run.

    Attributes:
        github_token: Explicit token; skips the OIDC exchange when set.
        oidc_request_url: ACTIONS_ID_TOKEN_REQUEST_URL from the runner.
        oidc_request_token: ACTIONS_ID_TOKEN_REQUEST_TOKEN from the runner.
        exchange_url: Endpoint that trades an OIDC token for an app token.
    """

    def __init__(
        self,
        github_token: Optional[str] = None,
        oidc_request_url: Optional[str] = None,
        oidc_request_token: Optional[str] = None,
        exchange_url: str = DEFAULT_TOKEN_EXCHANGE_URL,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.github_token = github_token
        self.oidc_request_url = oidc_request_url
        self.oidc_request_token = oidc_request_token
        self.exchange_url = exchange_url
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._transport = transport
        self._sleep = sleep

    async def get_bearer_credential(self) -> str:
        """Return a token usable as ``Authorization: Bearer``.

        Raises:
            CredentialError: If the OIDC request or the exchange keeps failing.
        """
        if self.github_token:
            logger.info("Using provided GITHUB_TOKEN for authentication")
            return self.github_token

        try:
            async with httpx.AsyncClient(
                timeout=30.0, transport=self._transport
            ) as http:
                logger.info("Requesting OIDC token...")
                oidc_token = await retry_with_backoff(
                    lambda: self._request_oidc_token(http),
                    max_attempts=self.max_attempts,
                    base_delay=self.base_delay,
                    sleep=self._sleep,
                )
                logger.info("OIDC token successfully obtained")

                logger.info("Exchanging OIDC token for app token...")
                app_token = await retry_with_backoff(
                    lambda: self._exchange_for_app_token(http, oidc_token),
                    max_attempts=self.max_attempts,
                    base_delay=self.base_delay,
                    sleep=self._sleep,
                )
                logger.info("App token successfully obtained")
                return app_token
        except (CredentialError, httpx.HTTPError) as exc:
            message = (
                f"Failed to setup GitHub token: {exc}.\n\n"
                "If you instead wish to use this action with a custom GitHub "
                "token or custom GitHub app, provide a `github_token` in the "
                "action inputs."
            )
            logger.error(message)
            raise CredentialError(message) from exc

    async def _request_oidc_token(self, http: httpx.AsyncClient) -> str:
        if not self.oidc_request_url or not self.oidc_request_token:
            raise CredentialError(
                "Could not fetch an OIDC token. Did you remember to add "
                "`id-token: write` to your workflow permissions?"
            )

        response = await http.get(
            self.oidc_request_url,
            params={"audience": OIDC_AUDIENCE},
            headers={"Authorization": f"Bearer {self.oidc_request_token}"},
        )
        if response.status_code >= 400:
            raise CredentialError(
                f"OIDC token request failed with status {response.status_code}"
            )

        value = self._json_body(response).get("value")
        if not value:
            raise CredentialError("OIDC token response did not contain a value")
        return value

    async def _exchange_for_app_token(
        self, http: httpx.AsyncClient, oidc_token: str
    ) -> str:
        response = await http.post(
            self.exchange_url,
            headers={"Authorization": f"Bearer {oidc_token}"},
        )
        body = self._json_body(response)

        if response.status_code >= 400:
            error = body.get("error")
            message = "Unknown error"
            if isinstance(error, dict) and error.get("message"):
                message = error["message"]
            logger.error(
                "App token exchange failed: %s - %s",
                response.status_code,
                message,
            )
            raise CredentialError(message)

        app_token = body.get("token") or body.get("app_token")
        if not app_token:
            raise CredentialError("App token not found in response")
        return app_token

    @staticmethod
    def _json_body(response: httpx.Response) -> dict:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}
