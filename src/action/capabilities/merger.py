"""Capability configuration merge.

Builds the document that tells the assistant which auxiliary services it
may launch, then reconciles it with an optional caller override:

- github_comment is always present (status updates on the tracking comment)
- github_file_ops is added when commits are signed through the API
- github_ci is added for pull requests when actions:read is declared and
  the token actually carries it
- github (the full GitHub tool server) is added when any allowed tool uses
  the mcp__github__ prefix

The override merges at two levels: top-level keys are replaced, and
service entries are merged by name with the override winning.
"""

import json
import logging
from typing import Any, Dict, Optional

from src.action.capabilities.models import (
    CI_SERVICE,
    COMMENT_SERVICE,
    FILE_OPS_SERVICE,
    GITHUB_SERVICE,
    GITHUB_TOOL_PREFIX,
    CapabilityConfig,
    CapabilityProbeWarning,
    CapabilityRequest,
    ConfigMergeWarning,
    ServiceDescriptor,
)
from src.action.capabilities.probe import PermissionProbe

logger = logging.getLogger(__name__)

SERVERS_KEY = "mcpServers"

GITHUB_SERVICE_PACKAGE = "@anthropic-ai/mcp-server-github"
GITHUB_SERVER_IMAGE = "ghcr.io/github/github-mcp-server:sha-721fd3e"


def _npx_service(env: Dict[str, str]) -> ServiceDescriptor:
    return ServiceDescriptor(
        command="npx",
        args=["-y", GITHUB_SERVICE_PACKAGE],
        env=env,
    )


def build_base_document(
    request: CapabilityRequest,
    include_ci: bool = False,
) -> Dict[str, Any]:
    """Build the built-in capability document without touching the network.

    Args:
        request: Merge inputs.
        include_ci: Whether the CI results service was confirmed.

    Returns:
        A document of the form {"mcpServers": {name: descriptor}}.
    """
    services: Dict[str, ServiceDescriptor] = {}

    comment_env = {
        "GITHUB_PERSONAL_ACCESS_TOKEN": request.github_token,
        "GITHUB_REPOSITORY": request.repository,
    }
    if request.comment_id:
        comment_env["GITHUB_COMMENT_ID"] = request.comment_id
    services[COMMENT_SERVICE] = _npx_service(comment_env)

    if request.use_commit_signing:
        services[FILE_OPS_SERVICE] = _npx_service(
            {
                "GITHUB_PERSONAL_ACCESS_TOKEN": request.github_token,
                "GITHUB_REPOSITORY": request.repository,
                "GITHUB_BRANCH": request.branch,
            }
        )

    if include_ci:
        services[CI_SERVICE] = _npx_service(
            {
                "GITHUB_PERSONAL_ACCESS_TOKEN": request.actions_token
                or request.github_token,
                "GITHUB_REPOSITORY": request.repository,
            }
        )

    if any(tool.startswith(GITHUB_TOOL_PREFIX) for tool in request.allowed_tools):
        services[GITHUB_SERVICE] = ServiceDescriptor(
            command="docker",
            args=[
                "run",
                "-i",
                "--rm",
                "-e",
                "GITHUB_PERSONAL_ACCESS_TOKEN",
                GITHUB_SERVER_IMAGE,
            ],
            env={"GITHUB_PERSONAL_ACCESS_TOKEN": request.github_token},
        )

    return {
        SERVERS_KEY: {
            name: descriptor.model_dump() for name, descriptor in services.items()
        }
    }


def parse_override(raw: Optional[str]) -> Optional[Dict[str, Any]]:
    """Decode an override document.

    Returns:
        The decoded object, or None for blank input.

    Raises:
        ConfigMergeWarning: If the input is not JSON, its top level is not an
            object, or its mcpServers entry is not an object.
    """
    if raw is None or not raw.strip():
        return None

    try:
        document = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigMergeWarning(f"invalid JSON: {exc}") from exc

    if not isinstance(document, dict):
        raise ConfigMergeWarning("MCP config must be a valid JSON object")

    servers = document.get(SERVERS_KEY)
    if servers is not None and not isinstance(servers, dict):
        raise ConfigMergeWarning(f"'{SERVERS_KEY}' must be a JSON object")

    return document


def merge_config_documents(
    base: Dict[str, Any], override: Dict[str, Any]
) -> Dict[str, Any]:
    """Merge two capability documents.

    Top-level keys from ``override`` replace those in ``base``; the
    ``mcpServers`` objects are merged key by key with ``override`` winning.
    Neither input is modified.
    """
    merged = {**base, **override}
    merged[SERVERS_KEY] = {
        **(base.get(SERVERS_KEY) or {}),
        **(override.get(SERVERS_KEY) or {}),
    }
    return merged


class CapabilityConfigMerger:
    """Produces the CapabilityConfig for a run.

    Attributes:
        probe: Confirms optional scopes before a service is offered.
    """

    def __init__(self, probe: PermissionProbe):
        self.probe = probe

    async def merge(self, request: CapabilityRequest) -> CapabilityConfig:
        include_ci = await self._ci_service_allowed(request)
        document = build_base_document(request, include_ci=include_ci)

        try:
            override = parse_override(request.additional_config)
        except ConfigMergeWarning as warning:
            logger.warning(
                "Failed to parse additional MCP config: %s. Using base config only.",
                warning,
            )
            override = None

        if override is not None:
            logger.info(
                "Merging additional MCP server configuration with built-in servers"
            )
            document = merge_config_documents(document, override)

        config = CapabilityConfig.from_document(document)
        logger.info(
            "Capability configuration prepared",
            extra={"services": sorted(config.service_descriptors)},
        )
        return config

    async def _ci_service_allowed(self, request: CapabilityRequest) -> bool:
        if not request.context.is_pull_request:
            return False
        if request.additional_permissions.get("actions") != "read":
            return False

        try:
            await self.probe.confirm_actions_read(
                request.owner,
                request.repo,
                request.actions_token or request.github_token,
            )
        except CapabilityProbeWarning as warning:
            logger.warning("%s", warning)
            return False
        return True
