"""Unit tests for branch coordination.

Tests PR branch reuse, fresh branch creation for issues and closed PRs,
deterministic naming, and error wrapping.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, call

import pytest
from hypothesis import given, settings, strategies as st

from src.action.github.client import GitHubAPIError
from src.action.workspace.branch import (
    BranchCoordinator,
    BranchOperationError,
    build_branch_name,
)
from src.action.workspace.git import GitCommandError

from tests.action.factories import (
    issue_comment_payload,
    issues_payload,
    normalize,
    pull_request_payload,
)

FIXED_NOW = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def run_async(coro):
    return asyncio.run(coro)


@pytest.fixture
def github_client():
    client = AsyncMock()
    client.get_default_branch.return_value = "main"
    client.get_ref_sha.return_value = "abc123"
    client.create_ref.return_value = {"ref": "refs/heads/x"}
    return client


@pytest.fixture
def git():
    return AsyncMock()


@pytest.fixture
def coordinator(github_client, git):
    return BranchCoordinator(
        github_client=github_client,
        git=git,
        owner="octo-org",
        repo="widgets",
        clock=lambda: FIXED_NOW,
    )


class TestOpenPullRequest:
    def test_reuses_head_branch(self, coordinator, git, github_client):
        context = normalize(pull_request_payload(commits=3), "pull_request")

        state = run_async(coordinator.resolve_branch(context))

        assert state.working_branch == "feature/login"
        assert state.base_branch == "main"
        assert state.is_newly_created is False
        git.fetch.assert_awaited_once_with("feature/login", depth=20)
        git.checkout.assert_awaited_once_with("feature/login")
        github_client.create_ref.assert_not_awaited()

    def test_fetch_depth_covers_long_prs(self, coordinator, git):
        context = normalize(pull_request_payload(commits=57), "pull_request")

        run_async(coordinator.resolve_branch(context))

        git.fetch.assert_awaited_once_with("feature/login", depth=57)

    def test_missing_commit_count_defaults(self, coordinator, git):
        context = normalize(pull_request_payload(commits=None), "pull_request")

        run_async(coordinator.resolve_branch(context))

        git.fetch.assert_awaited_once_with("feature/login", depth=20)

    def test_comment_on_pr_fetches_pr_data(self, coordinator, github_client, git):
        github_client.get_pull_request.return_value = pull_request_payload()[
            "pull_request"
        ]
        context = normalize(
            issue_comment_payload(on_pull_request=True, number=15), "issue_comment"
        )

        state = run_async(coordinator.resolve_branch(context))

        github_client.get_pull_request.assert_awaited_once_with(
            "octo-org", "widgets", 15
        )
        assert state.working_branch == "feature/login"


class TestNewBranch:
    def test_issue_gets_fresh_branch_from_default(self, coordinator, github_client, git):
        context = normalize(issues_payload(number=7), "issues")

        state = run_async(coordinator.resolve_branch(context, branch_prefix="claude/"))

        assert state.working_branch == "claude/issue-7-20250101_120000"
        assert state.base_branch == "main"
        assert state.is_newly_created is True
        github_client.get_ref_sha.assert_awaited_once_with(
            "octo-org", "widgets", "heads/main"
        )
        github_client.create_ref.assert_awaited_once_with(
            "octo-org", "widgets", "refs/heads/claude/issue-7-20250101_120000", "abc123"
        )
        assert git.mock_calls == [
            call.fetch("claude/issue-7-20250101_120000", depth=1),
            call.checkout("claude/issue-7-20250101_120000"),
        ]

    def test_base_branch_override(self, coordinator, github_client):
        context = normalize(issues_payload(), "issues")

        state = run_async(
            coordinator.resolve_branch(context, base_branch_override="develop")
        )

        assert state.base_branch == "develop"
        github_client.get_default_branch.assert_not_awaited()

    def test_closed_pr_gets_fresh_branch(self, coordinator):
        context = normalize(pull_request_payload(state="closed"), "pull_request")

        state = run_async(coordinator.resolve_branch(context))

        assert state.working_branch == "claude/pr-15-20250101_120000"
        assert state.is_newly_created is True

    def test_merged_pr_gets_fresh_branch(self, coordinator):
        context = normalize(pull_request_payload(merged=True), "pull_request")

        state = run_async(coordinator.resolve_branch(context))

        assert state.is_newly_created is True


class TestErrors:
    def test_git_failure_is_wrapped(self, coordinator, git):
        git.fetch.side_effect = GitCommandError(("fetch",), "no such ref")
        context = normalize(issues_payload(), "issues")

        with pytest.raises(BranchOperationError):
            run_async(coordinator.resolve_branch(context))

    def test_api_failure_is_wrapped(self, coordinator, github_client):
        github_client.create_ref.side_effect = GitHubAPIError("conflict", status_code=422)
        context = normalize(issues_payload(), "issues")

        with pytest.raises(BranchOperationError):
            run_async(coordinator.resolve_branch(context))


class TestBranchNames:
    def test_names_differ_only_by_timestamp(self):
        first = build_branch_name(
            "claude/", "issue", 7, datetime(2025, 1, 1, tzinfo=timezone.utc)
        )
        second = build_branch_name(
            "claude/", "issue", 7, datetime(2025, 1, 1, 0, 0, 1, tzinfo=timezone.utc)
        )

        assert first == "claude/issue-7-20250101_000000"
        assert second == "claude/issue-7-20250101_000001"

    @given(
        number=st.integers(min_value=1, max_value=10**6),
        offset=st.integers(min_value=1, max_value=10**6),
    )
    @settings(max_examples=100)
    def test_distinct_seconds_give_distinct_names(self, number, offset):
        later = FIXED_NOW + timedelta(seconds=offset)

        first = build_branch_name("claude/", "pr", number, FIXED_NOW)
        second = build_branch_name("claude/", "pr", number, later)

        assert first != second
        assert first.rsplit("-", 1)[0] == second.rsplit("-", 1)[0]
