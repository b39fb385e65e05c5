"""Assistant CLI execution.

This module provides:
- ClaudeRunner: FIFO-fed subprocess execution with timeout and artifact capture
- Argument and environment composition for the assistant process
- Settings file bootstrap
"""

from src.action.runner.claude import (
    TIMEOUT_EXIT_CODE,
    ClaudeRunner,
    ExecutionResult,
    SpawnError,
)
from src.action.runner.environment import (
    BASE_ARGS,
    build_claude_arguments,
    build_claude_environment,
)
from src.action.runner.settings_file import setup_claude_settings
from src.action.runner.transforms import LineTransform, pretty_json_line

__all__ = [
    "BASE_ARGS",
    "ClaudeRunner",
    "ExecutionResult",
    "LineTransform",
    "SpawnError",
    "TIMEOUT_EXIT_CODE",
    "build_claude_arguments",
    "build_claude_environment",
    "pretty_json_line",
    "setup_claude_settings",
]
