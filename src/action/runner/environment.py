"""Command-line arguments and environment for the assistant process."""

import logging
from typing import Dict, List, Mapping, Optional

from src.action.config import ActionSettings

logger = logging.getLogger(__name__)

BASE_ARGS = ["-p", "--verbose", "--output-format", "stream-json"]


def build_claude_arguments(
    settings: ActionSettings,
    mcp_config_json: Optional[str] = None,
) -> List[str]:
    """Compose the assistant's command-line arguments.

    Args:
        settings: Action configuration.
        mcp_config_json: Serialized capability document.

    Returns:
        The argument list, starting with the fixed streaming flags.
    """
    arguments = list(BASE_ARGS)

    if settings.allowed_tools:
        arguments += ["--allowedTools", settings.allowed_tools]
    if settings.disallowed_tools:
        arguments += ["--disallowedTools", settings.disallowed_tools]
    if settings.max_turns:
        arguments += ["--max-turns", str(settings.max_turns)]
    if mcp_config_json:
        arguments += ["--mcp-config", mcp_config_json]
    if settings.custom_instructions:
        arguments += ["--append-system-prompt", settings.custom_instructions]
    if settings.fallback_model:
        arguments += ["--fallback-model", settings.fallback_model]

    return arguments


def build_claude_environment(
    settings: ActionSettings,
    base_env: Mapping[str, str],
) -> Dict[str, str]:
    """Compose the assistant's environment.

    Provider credentials and flags are layered over ``base_env``; the
    custom ``claude_env`` block is applied last and wins.

    Args:
        settings: Action configuration.
        base_env: Inherited environment, passed explicitly.

    Returns:
        A new environment mapping.
    """
    env = dict(base_env)

    if settings.model:
        env["ANTHROPIC_MODEL"] = settings.model

    if settings.anthropic_api_key:
        env["ANTHROPIC_API_KEY"] = settings.anthropic_api_key
        logger.info("Using Anthropic API key for authentication")

    if settings.claude_code_oauth_token:
        env["CLAUDE_CODE_OAUTH_TOKEN"] = settings.claude_code_oauth_token
        logger.info("Using Claude Code OAuth token for authentication")

    if settings.use_bedrock:
        env["CLAUDE_CODE_USE_BEDROCK"] = "1"
        logger.info("Using AWS Bedrock for authentication")

    if settings.use_vertex:
        env["CLAUDE_CODE_USE_VERTEX"] = "1"
        logger.info("Using Google Vertex AI for authentication")

    custom_env = settings.custom_env
    if custom_env:
        env.update(custom_env)
        logger.info("Custom environment variables: %s", ", ".join(custom_env))

    return env
