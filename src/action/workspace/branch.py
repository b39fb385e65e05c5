"""Branch coordination for dispatched runs.

Chooses and checks out the branch the assistant works on:

- Open pull request: reuse the PR's head branch. The fetch depth covers the
  PR's commits (at least 20) so the assistant can inspect history.
- Closed or merged pull request, or an issue: mint a fresh branch named
  ``<prefix><pr|issue>-<number>-<YYYYMMDD_HHMMSS>`` from the configured base
  branch, or from the repository's default branch, then check it out
  with a shallow fetch.

Every failure, local or remote, is surfaced as BranchOperationError.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel, ConfigDict

from src.action.events.models import EventContext
from src.action.github.client import GitHubAPIError, GitHubClient
from src.action.workspace.git import GitCommandError, GitCommandRunner

logger = logging.getLogger(__name__)

MIN_PR_FETCH_DEPTH = 20
BRANCH_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"


class BranchOperationError(Exception):
    """Raised when a branch cannot be resolved, created or checked out."""

    pass


class BranchState(BaseModel):
    """The branch the assistant works on.

    Attributes:
        base_branch: Branch the work is relative to.
        working_branch: Branch checked out in the workspace.
        is_newly_created: True when the branch was minted for this run.
    """

    model_config = ConfigDict(frozen=True)

    base_branch: str
    working_branch: str
    is_newly_created: bool


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def build_branch_name(
    prefix: str, entity_type: str, entity_number: int, now: datetime
) -> str:
    """Compose a working branch name, e.g. "claude/issue-7-20250101_000000"."""
    timestamp = now.astimezone(timezone.utc).strftime(BRANCH_TIMESTAMP_FORMAT)
    return f"{prefix}{entity_type}-{entity_number}-{timestamp}"


class BranchCoordinator:
    """Resolves and checks out the working branch for an event.

    Attributes:
        github_client: REST client for default branch and ref operations.
        git: Runner for local git commands.
        owner: Repository owner.
        repo: Repository name.
        clock: Returns the current time; injectable so names are
            deterministic in tests.
    """

    def __init__(
        self,
        github_client: GitHubClient,
        git: GitCommandRunner,
        owner: str,
        repo: str,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.github_client = github_client
        self.git = git
        self.owner = owner
        self.repo = repo
        self.clock = clock

    async def resolve_branch(
        self,
        context: EventContext,
        base_branch_override: Optional[str] = None,
        branch_prefix: str = "claude/",
    ) -> BranchState:
        """Pick, create if needed, and check out the working branch.

        Args:
            context: The normalized event.
            base_branch_override: Source branch for new branches; the
                repository default branch is used when absent.
            branch_prefix: Prefix for minted branch names.

        Returns:
            BranchState whose working branch is checked out.

        Raises:
            BranchOperationError: On any git or API failure.
        """
        try:
            if context.is_pull_request:
                pr_data = await self._pull_request_data(context)
                if self._is_open(pr_data):
                    return await self._checkout_pr_branch(context, pr_data)
                logger.info(
                    "PR #%d is closed or merged, creating new branch from source...",
                    context.entity_number,
                )
            return await self._create_working_branch(
                context, base_branch_override, branch_prefix
            )
        except (GitCommandError, GitHubAPIError) as exc:
            logger.error("Branch setup failed: %s", exc)
            raise BranchOperationError(f"Failed to set up branch: {exc}") from exc
        except (KeyError, TypeError) as exc:
            raise BranchOperationError(
                f"Pull request data is incomplete: {exc}"
            ) from exc

    async def _pull_request_data(self, context: EventContext) -> Dict[str, Any]:
        pr_data = context.payload.get("pull_request")
        if isinstance(pr_data, dict) and pr_data.get("head"):
            return pr_data

        # issue_comment events on a PR only carry the issue
        logger.debug(
            "Fetching pull request details",
            extra={"pr_number": context.entity_number},
        )
        return await self.github_client.get_pull_request(
            self.owner, self.repo, context.entity_number
        )

    @staticmethod
    def _is_open(pr_data: Dict[str, Any]) -> bool:
        if pr_data.get("merged") is True:
            return False
        return pr_data.get("state") not in ("closed", "merged")

    async def _checkout_pr_branch(
        self, context: EventContext, pr_data: Dict[str, Any]
    ) -> BranchState:
        branch_name = pr_data["head"]["ref"]
        commit_count = pr_data.get("commits") or 1
        fetch_depth = max(commit_count, MIN_PR_FETCH_DEPTH)

        logger.info(
            "PR #%d: %d commits, using fetch depth %d",
            context.entity_number,
            commit_count,
            fetch_depth,
        )

        await self.git.fetch(branch_name, depth=fetch_depth)
        await self.git.checkout(branch_name)

        logger.info(
            "Checked out PR branch",
            extra={"pr_number": context.entity_number, "branch": branch_name},
        )
        return BranchState(
            base_branch=pr_data["base"]["ref"],
            working_branch=branch_name,
            is_newly_created=False,
        )

    async def _create_working_branch(
        self,
        context: EventContext,
        base_branch_override: Optional[str],
        branch_prefix: str,
    ) -> BranchState:
        source_branch = base_branch_override or await self.github_client.get_default_branch(
            self.owner, self.repo
        )
        new_branch = build_branch_name(
            branch_prefix,
            context.entity_type,
            context.entity_number,
            self.clock(),
        )

        logger.info(
            "Creating new branch for %s #%d from source branch: %s",
            context.entity_type,
            context.entity_number,
            source_branch,
        )

        sha = await self.github_client.get_ref_sha(
            self.owner, self.repo, f"heads/{source_branch}"
        )
        await self.github_client.create_ref(
            self.owner, self.repo, f"refs/heads/{new_branch}", sha
        )

        await self.git.fetch(new_branch, depth=1)
        await self.git.checkout(new_branch)

        logger.info("Created and checked out new branch: %s", new_branch)
        return BranchState(
            base_branch=source_branch,
            working_branch=new_branch,
            is_newly_created=True,
        )
