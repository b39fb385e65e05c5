"""GitHub REST client for the dispatcher.

This module provides an async wrapper around the GitHub API for:
- Reading repository metadata (default branch, refs, pull requests)
- Creating branches from a base ref
- Creating and updating the tracking comment
- Probing the actions:read scope through workflow runs

Transient failures (408, 429 and 5xx, timeouts, connection errors) are
retried with exponential backoff and full jitter. Rate-limit responses are
surfaced as RateLimitError rather than retried.
"""

import asyncio
import logging
import random
import time
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)


class GitHubAPIError(Exception):
    """Raised when a GitHub API request fails.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status code from the response.
        response_body: Response body from GitHub API.
        request_url: The URL that was requested.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        request_url: Optional[str] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.response_body = response_body
        self.request_url = request_url
        super().__init__(message)


class RateLimitError(GitHubAPIError):
    """Raised when GitHub API rate limit is exceeded.

    Attributes:
        reset_at: Unix timestamp when the rate limit resets.
        retry_after: Seconds to wait before retrying.
    """

    def __init__(
        self,
        message: str,
        reset_at: Optional[int] = None,
        retry_after: Optional[int] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.reset_at = reset_at
        self.retry_after = retry_after


class GitHubClient:
    """Async GitHub API client with retry on transient failures.

    Attributes:
        token: Installation or personal access token.
        base_url: API root; GITHUB_API_URL on Enterprise Server.
        max_retries: Retries after the first attempt.
        base_delay: Base delay in seconds for exponential backoff.
        max_delay: Cap on a single backoff delay.
        timeout: Per-request timeout in seconds.

    Example:
        >>> async with GitHubClient(token="ghs_xxx") as client:
        ...     branch = await client.get_default_branch("owner", "repo")
    """

    RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}

    def __init__(
        self,
        token: str,
        base_url: str = "https://api.github.com",
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the GitHub client.

        Args:
            token: GitHub API token for authentication.
            base_url: Base URL for GitHub API.
            max_retries: Maximum number of retry attempts.
            base_delay: Base delay in seconds for exponential backoff.
            max_delay: Maximum delay in seconds between retries.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport, used by tests to stub
                the network.
        """
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        """The underlying httpx client, created lazily."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._default_headers(),
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    def _default_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "claude-action-dispatcher/1.0",
        }

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------
    def _calculate_backoff(self, attempt: int) -> float:
        """Full-jitter delay for a zero-indexed retry attempt."""
        capped_delay = min(self.base_delay * (2 ** attempt), self.max_delay)
        return random.uniform(0, capped_delay)

    @staticmethod
    def _int_header(headers: httpx.Headers, name: str) -> Optional[int]:
        value = headers.get(name)
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            return None

    def _is_rate_limited(self, response: httpx.Response) -> bool:
        if response.status_code == 429:
            return True
        return (
            response.status_code == 403
            and self._int_header(response.headers, "x-ratelimit-remaining") == 0
        )

    def _rate_limit_error(self, response: httpx.Response) -> RateLimitError:
        """Build a RateLimitError from X-RateLimit-* and Retry-After headers."""
        reset_at = self._int_header(response.headers, "x-ratelimit-reset")
        retry_after = self._int_header(response.headers, "retry-after")
        if retry_after is None and reset_at is not None:
            retry_after = max(0, reset_at - int(time.time()))

        logger.warning(
            "GitHub API rate limit exceeded",
            extra={
                "reset_at": reset_at,
                "retry_after": retry_after,
                "limit": self._int_header(response.headers, "x-ratelimit-limit"),
            },
        )
        return RateLimitError(
            message="GitHub API rate limit exceeded",
            status_code=response.status_code,
            reset_at=reset_at,
            retry_after=retry_after,
            request_url=str(response.url),
        )

    async def _request(
        self,
        method: str,
        path: str,
        json_data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """Send a request, retrying transient failures.

        Raises:
            RateLimitError: If the rate limit is exhausted.
            GitHubAPIError: On a non-retryable error status, or once
                retries run out.
        """
        last_error: Optional[str] = None

        for attempt in range(self.max_retries + 1):
            can_retry = attempt < self.max_retries
            try:
                response = await self.client.request(
                    method=method,
                    url=path,
                    json=json_data,
                    params=params,
                )
            except httpx.RequestError as exc:
                # TimeoutException is a RequestError subclass
                last_error = f"{type(exc).__name__}: {exc}"
                if not can_retry:
                    break
                delay = self._calculate_backoff(attempt)
                logger.warning(
                    "Request error, retrying",
                    extra={
                        "error": last_error,
                        "attempt": attempt + 1,
                        "delay": delay,
                        "path": path,
                    },
                )
                await asyncio.sleep(delay)
                continue

            if self._is_rate_limited(response):
                raise self._rate_limit_error(response)

            if response.status_code in self.RETRYABLE_STATUS_CODES and can_retry:
                delay = self._calculate_backoff(attempt)
                logger.warning(
                    "Retryable error from GitHub API",
                    extra={
                        "status_code": response.status_code,
                        "attempt": attempt + 1,
                        "delay": delay,
                        "path": path,
                    },
                )
                await asyncio.sleep(delay)
                continue

            if response.status_code >= 400:
                error_body = response.text
                logger.error(
                    "GitHub API error",
                    extra={
                        "status_code": response.status_code,
                        "path": path,
                        "method": method,
                        "response_body": error_body[:500],
                    },
                )
                raise GitHubAPIError(
                    message=f"GitHub API error: {response.status_code} {method} {path}",
                    status_code=response.status_code,
                    response_body=error_body,
                    request_url=str(response.url),
                )

            return response

        logger.error(
            "GitHub API request failed after all retries",
            extra={"path": path, "method": method, "last_error": last_error},
        )
        raise GitHubAPIError(
            message=f"Request failed after {self.max_retries} retries: {last_error}",
            request_url=f"{self.base_url}{path}",
        )

    # -------------------------------------------------------------------------
    # Repository and refs
    # -------------------------------------------------------------------------
    async def get_default_branch(self, owner: str, repo: str) -> str:
        """Return the repository's default branch name."""
        response = await self._request("GET", f"/repos/{owner}/{repo}")
        default_branch = response.json().get("default_branch")
        if not default_branch:
            raise GitHubAPIError(
                message=f"Repository {owner}/{repo} has no default branch",
                request_url=f"{self.base_url}/repos/{owner}/{repo}",
            )
        return default_branch

    async def get_ref_sha(self, owner: str, repo: str, ref: str) -> str:
        """Resolve a ref such as "heads/main" to its commit SHA.

        Args:
            owner: Repository owner.
            repo: Repository name.
            ref: Ref path without the "refs/" prefix.

        Returns:
            The object SHA the ref points at.
        """
        response = await self._request("GET", f"/repos/{owner}/{repo}/git/ref/{ref}")
        sha = response.json().get("object", {}).get("sha")
        if not sha:
            raise GitHubAPIError(
                message=f"Ref {ref} in {owner}/{repo} has no object SHA",
                request_url=f"{self.base_url}/repos/{owner}/{repo}/git/ref/{ref}",
            )
        return sha

    async def create_ref(
        self, owner: str, repo: str, ref: str, sha: str
    ) -> Dict[str, Any]:
        """Create a ref (e.g. "refs/heads/claude/issue-1-...") at a SHA."""
        logger.info(
            "Creating ref",
            extra={"owner": owner, "repo": repo, "ref": ref, "sha": sha},
        )
        response = await self._request(
            "POST",
            f"/repos/{owner}/{repo}/git/refs",
            json_data={"ref": ref, "sha": sha},
        )
        return response.json()

    async def get_pull_request(
        self, owner: str, repo: str, pr_number: int
    ) -> Dict[str, Any]:
        """Get pull request details."""
        logger.debug(
            "Getting pull request details",
            extra={"owner": owner, "repo": repo, "pr_number": pr_number},
        )
        response = await self._request(
            "GET", f"/repos/{owner}/{repo}/pulls/{pr_number}"
        )
        return response.json()

    # -------------------------------------------------------------------------
    # Comments
    # -------------------------------------------------------------------------
    async def create_comment(
        self,
        owner: str,
        repo: str,
        issue_number: int,
        body: str,
    ) -> Dict[str, Any]:
        """Create a comment on an issue or pull request conversation.

        Args:
            owner: Repository owner (user or organization).
            repo: Repository name.
            issue_number: Issue or PR number to comment on.
            body: Comment body in markdown format.

        Returns:
            The created comment data from GitHub API.

        Raises:
            GitHubAPIError: If the request fails.
        """
        logger.info(
            "Creating comment",
            extra={
                "owner": owner,
                "repo": repo,
                "issue_number": issue_number,
                "body_length": len(body),
            },
        )

        response = await self._request(
            "POST",
            f"/repos/{owner}/{repo}/issues/{issue_number}/comments",
            json_data={"body": body},
        )

        result = response.json()
        logger.info(
            "Comment created successfully",
            extra={"issue_number": issue_number, "comment_id": result.get("id")},
        )
        return result

    async def update_comment(
        self,
        owner: str,
        repo: str,
        comment_id: int,
        body: str,
    ) -> Dict[str, Any]:
        """Replace the body of an existing issue comment."""
        logger.info(
            "Updating comment",
            extra={"owner": owner, "repo": repo, "comment_id": comment_id},
        )
        response = await self._request(
            "PATCH",
            f"/repos/{owner}/{repo}/issues/comments/{comment_id}",
            json_data={"body": body},
        )
        return response.json()

    # -------------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------------
    async def list_workflow_runs(
        self, owner: str, repo: str, per_page: int = 1
    ) -> Dict[str, Any]:
        """List workflow runs for the repository.

        Used as a permission probe: the call only succeeds when the token
        carries the actions:read scope.
        """
        response = await self._request(
            "GET",
            f"/repos/{owner}/{repo}/actions/runs",
            params={"per_page": per_page},
        )
        return response.json()
