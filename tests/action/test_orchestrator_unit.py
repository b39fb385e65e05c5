"""Unit tests for ActionOrchestrator.

Collaborators with side effects (credentials, GitHub, git, the assistant
process) are mocked; event loading, trigger evaluation, prompt generation
and the capability merge run for real against temporary directories.
"""

import asyncio
import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, Mock

import pytest

from src.action.github.client import GitHubAPIError
from src.action.orchestrator import (
    CONCLUSION_FAILURE,
    CONCLUSION_SKIPPED,
    CONCLUSION_SUCCESS,
    ActionOrchestrator,
)
from src.action.runner.claude import ExecutionResult

from tests.action.factories import issue_comment_payload, make_settings

FIXED_NOW = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
EXPECTED_BRANCH = "claude/issue-42-20250101_120000"


def run_async(coro):
    return asyncio.run(coro)


@pytest.fixture
def github_client():
    client = AsyncMock()
    client.__aenter__.return_value = client
    client.__aexit__.return_value = False
    client.create_comment.return_value = {"id": 555, "user": {"login": "claude[bot]"}}
    client.get_default_branch.return_value = "main"
    client.get_ref_sha.return_value = "abc123"
    client.create_ref.return_value = {"ref": f"refs/heads/{EXPECTED_BRANCH}"}
    return client


@pytest.fixture
def token_provider():
    provider = AsyncMock()
    provider.get_bearer_credential.return_value = "ghs_run"
    return provider


@pytest.fixture
def runner():
    runner = AsyncMock()
    runner.run.return_value = ExecutionResult(
        succeeded=True, exit_code=0, artifact_path="/tmp/claude-execution-output.json"
    )
    return runner


@pytest.fixture
def git():
    return AsyncMock()


@pytest.fixture
def build(tmp_path, event_file, github_client, token_provider, runner, git):
    """Build an orchestrator for a payload with optional settings overrides."""

    def _build(payload=None, **overrides):
        settings = make_settings(
            event_path=event_file(payload or issue_comment_payload()),
            prompt_dir=str(tmp_path / "prompts"),
            **overrides,
        )
        return ActionOrchestrator(
            settings=settings,
            token_provider=token_provider,
            client_factory=Mock(return_value=github_client),
            git=git,
            runner=runner,
            clock=lambda: FIXED_NOW,
            base_env={"PATH": "/usr/bin"},
            home=tmp_path / "home",
        )

    return _build


class TestSkippedRuns:
    def test_no_trigger_skips_before_credentials(self, build, token_provider, runner):
        orchestrator = build(issue_comment_payload(body="thanks, looks good"))

        outcome = run_async(orchestrator.run())

        assert outcome.conclusion == CONCLUSION_SKIPPED
        assert outcome.exit_code == 0
        token_provider.get_bearer_credential.assert_not_awaited()
        orchestrator.client_factory.assert_not_called()
        runner.run.assert_not_awaited()


class TestSuccessfulRun:
    def test_issue_comment_end_to_end(
        self, build, tmp_path, github_client, git, runner
    ):
        orchestrator = build()

        outcome = run_async(orchestrator.run())

        assert outcome.conclusion == CONCLUSION_SUCCESS
        assert outcome.exit_code == 0
        assert outcome.execution_file == "/tmp/claude-execution-output.json"

        orchestrator.client_factory.assert_called_once_with("ghs_run")
        github_client.create_comment.assert_awaited_once()
        github_client.create_ref.assert_awaited_once_with(
            "octo-org", "widgets", f"refs/heads/{EXPECTED_BRANCH}", "abc123"
        )
        git.configure_auth.assert_awaited_once_with("ghs_run", "claude[bot]")

        prompt_path, arguments, env, timeout = runner.run.await_args.args
        assert prompt_path == tmp_path / "prompts" / "claude-prompt.txt"
        assert "<claude_comment_id>555</claude_comment_id>" in prompt_path.read_text()
        assert EXPECTED_BRANCH in prompt_path.read_text()
        mcp_config = json.loads(arguments[arguments.index("--mcp-config") + 1])
        assert list(mcp_config["mcpServers"]) == ["github_comment"]
        assert mcp_config["mcpServers"]["github_comment"]["env"]["GITHUB_COMMENT_ID"] == "555"
        assert env["PATH"] == "/usr/bin"
        assert timeout == 30

        settings_file = tmp_path / "home" / ".claude" / "settings.json"
        assert json.loads(settings_file.read_text())["enableAllProjectMcpServers"] is True

    def test_commit_signing_skips_git_auth(self, build, git, runner):
        orchestrator = build(use_commit_signing=True)

        outcome = run_async(orchestrator.run())

        assert outcome.conclusion == CONCLUSION_SUCCESS
        git.configure_auth.assert_not_awaited()
        arguments = runner.run.await_args.args[1]
        mcp_config = json.loads(arguments[arguments.index("--mcp-config") + 1])
        assert "github_file_ops" in mcp_config["mcpServers"]


class TestFailures:
    def test_assistant_timeout_is_propagated(self, build, runner):
        runner.run.return_value = ExecutionResult(
            succeeded=False,
            exit_code=124,
            timed_out=True,
            artifact_path="/tmp/claude-execution-output.json",
        )

        outcome = run_async(build().run())

        assert outcome.conclusion == CONCLUSION_FAILURE
        assert outcome.exit_code == 124
        assert outcome.execution_file == "/tmp/claude-execution-output.json"
        assert outcome.error is None

    def test_step_exception_becomes_failure(self, build, github_client, runner):
        github_client.create_comment.side_effect = GitHubAPIError(
            "issue is locked", status_code=403
        )

        outcome = run_async(build().run())

        assert outcome.conclusion == CONCLUSION_FAILURE
        assert outcome.exit_code == 1
        assert "issue is locked" in outcome.error
        runner.run.assert_not_awaited()
        github_client.__aexit__.assert_awaited_once()

    def test_credential_failure(self, build, token_provider, runner):
        token_provider.get_bearer_credential.side_effect = RuntimeError("no OIDC")

        outcome = run_async(build().run())

        assert outcome.exit_code == 1
        assert outcome.error == "no OIDC"
        runner.run.assert_not_awaited()

    def test_missing_event_file(self, tmp_path, token_provider, runner, git):
        settings = make_settings(event_path=str(tmp_path / "missing.json"))
        orchestrator = ActionOrchestrator(
            settings=settings,
            token_provider=token_provider,
            client_factory=Mock(),
            git=git,
            runner=runner,
            base_env={},
        )

        outcome = run_async(orchestrator.run())

        assert outcome.conclusion == CONCLUSION_FAILURE
        assert outcome.exit_code == 1
        token_provider.get_bearer_credential.assert_not_awaited()
