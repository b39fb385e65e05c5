"""Workspace branch management.

Resolves the working branch for a run and wraps the git commands used to
fetch, check out and authenticate it.
"""

from src.action.workspace.branch import (
    BranchCoordinator,
    BranchOperationError,
    BranchState,
    build_branch_name,
)
from src.action.workspace.git import GitCommandError, GitCommandRunner

__all__ = [
    "BranchCoordinator",
    "BranchOperationError",
    "BranchState",
    "GitCommandError",
    "GitCommandRunner",
    "build_branch_name",
]
