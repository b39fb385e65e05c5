"""Command-line entry point for the dispatcher.

Usage:
    python -m src.action.main [--validate-config]

Reads configuration from the step environment, runs the orchestrator and
writes the ``conclusion`` / ``execution_file`` step outputs. The process
exit code is 0 for success or skip, the assistant's exit code when it
fails (124 on timeout), and 1 for any other failure.
"""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from src.action.config import ActionSettings, get_settings
from src.action.github.auth import GitHubTokenProvider
from src.action.github.client import GitHubClient
from src.action.orchestrator import (
    CONCLUSION_FAILURE,
    ActionOrchestrator,
    ActionOutcome,
)
from src.action.outputs import ActionOutputs
from src.action.runner.claude import ClaudeRunner
from src.action.workspace.git import GitCommandRunner

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    level = logging.DEBUG if os.environ.get("RUNNER_DEBUG") == "1" else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _redact_secret(value: Optional[str], visible_chars: int = 4) -> str:
    """Redact a secret value, showing only the first few characters."""
    if not value:
        return "(not set)"
    if len(value) <= visible_chars:
        return "*" * len(value)
    return value[:visible_chars] + "*" * (len(value) - visible_chars)


def log_configuration(settings: ActionSettings) -> None:
    """Log configuration values with secrets redacted."""
    logger.info("Action configuration:")
    logger.info(f"  Repository: {settings.repository}")
    logger.info(f"  Event: {settings.event_name}")
    logger.info(f"  Trigger Phrase: {settings.trigger_phrase}")
    logger.info(f"  Assignee Trigger: {settings.assignee_trigger or '(not set)'}")
    logger.info(f"  Label Trigger: {settings.label_trigger or '(not set)'}")
    logger.info(f"  Direct Prompt: {'set' if settings.direct_prompt else '(not set)'}")
    logger.info(f"  Base Branch: {settings.base_branch or '(default branch)'}")
    logger.info(f"  Branch Prefix: {settings.branch_prefix}")
    logger.info(f"  Model: {settings.model or '(default)'}")
    logger.info(f"  Fallback Model: {settings.fallback_model or '(not set)'}")
    logger.info(f"  Allowed Tools: {settings.allowed_tools or '(not set)'}")
    logger.info(f"  Disallowed Tools: {settings.disallowed_tools or '(not set)'}")
    logger.info(f"  Max Turns: {settings.max_turns or '(unlimited)'}")
    logger.info(f"  Timeout Minutes: {settings.timeout_minutes}")
    logger.info(f"  Commit Signing: {settings.use_commit_signing}")
    logger.info(f"  Bedrock: {settings.use_bedrock}")
    logger.info(f"  Vertex: {settings.use_vertex}")
    logger.info(f"  GitHub Token: {_redact_secret(settings.github_token)}")
    logger.info(f"  Anthropic API Key: {_redact_secret(settings.anthropic_api_key)}")
    logger.info(
        f"  Claude Code OAuth Token: {_redact_secret(settings.claude_code_oauth_token)}"
    )
    if settings.custom_env:
        logger.info(f"  Custom Environment Keys: {', '.join(settings.custom_env)}")


def build_orchestrator(settings: ActionSettings) -> ActionOrchestrator:
    """Wire production dependencies into an ActionOrchestrator."""
    token_provider = GitHubTokenProvider(
        github_token=settings.github_token or None,
        oidc_request_url=settings.oidc_request_url,
        oidc_request_token=settings.oidc_request_token,
        exchange_url=settings.app_token_exchange_url,
    )

    def client_factory(token: str) -> GitHubClient:
        return GitHubClient(token=token, base_url=settings.api_url)

    runner = ClaudeRunner(
        executable=settings.claude_executable,
        pipe_path=settings.prompt_pipe_path,
        execution_file=settings.execution_file,
    )

    workspace = Path(settings.workspace) if settings.workspace else None

    return ActionOrchestrator(
        settings=settings,
        token_provider=token_provider,
        client_factory=client_factory,
        git=GitCommandRunner(cwd=workspace),
        runner=runner,
        base_env=dict(os.environ),
    )


def report_outcome(outcome: ActionOutcome, outputs: ActionOutputs) -> int:
    """Write step outputs for an outcome and return the exit code."""
    outputs.set_output("conclusion", outcome.conclusion)
    if outcome.execution_file:
        outputs.set_output("execution_file", outcome.execution_file)

    if outcome.conclusion == CONCLUSION_FAILURE and outcome.error:
        outputs.set_failed(f"Action failed with error: {outcome.error}")

    return outcome.exit_code


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="claude-action",
        description="Dispatch a GitHub event to the Claude coding assistant.",
    )
    parser.add_argument(
        "--validate-config",
        action="store_true",
        help="validate and log the configuration, then exit",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging()
    outputs = ActionOutputs.from_environment()

    try:
        settings = get_settings()
    except ValidationError as exc:
        logger.error("Invalid configuration: %s", exc)
        outputs.set_failed(f"Action failed with error: {exc}")
        outputs.set_output("conclusion", CONCLUSION_FAILURE)
        return 1

    log_configuration(settings)

    if args.validate_config:
        logger.info("Configuration validation completed successfully")
        return 0

    if settings.output_path:
        outputs.output_path = settings.output_path

    outcome = asyncio.run(build_orchestrator(settings).run())
    return report_outcome(outcome, outputs)


if __name__ == "__main__":
    sys.exit(main())
