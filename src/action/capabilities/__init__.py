"""Tool-capability configuration for the assistant."""

from src.action.capabilities.merger import (
    CapabilityConfigMerger,
    build_base_document,
    merge_config_documents,
    parse_override,
)
from src.action.capabilities.models import (
    CapabilityConfig,
    CapabilityProbeWarning,
    CapabilityRequest,
    ConfigMergeWarning,
    ServiceDescriptor,
)
from src.action.capabilities.probe import ActionsReadProbe, PermissionProbe

__all__ = [
    "ActionsReadProbe",
    "CapabilityConfig",
    "CapabilityConfigMerger",
    "CapabilityProbeWarning",
    "CapabilityRequest",
    "ConfigMergeWarning",
    "PermissionProbe",
    "ServiceDescriptor",
    "build_base_document",
    "merge_config_documents",
    "parse_override",
]
