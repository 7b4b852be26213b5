"""Tool integrations used by the run coordinator."""

from .apply import ApplyRecord, applied_records, apply_operation, apply_operations
from .context import sample_repository_context
from .github import ChangeRequest, GitHubClient, GitHubError, GitHubVersionControl, PullRequestInfo
from .vcs import GitError, GitRepository, work_branch_name

__all__ = [
    "ApplyRecord",
    "ChangeRequest",
    "GitError",
    "GitHubClient",
    "GitHubError",
    "GitHubVersionControl",
    "GitRepository",
    "PullRequestInfo",
    "applied_records",
    "apply_operation",
    "apply_operations",
    "sample_repository_context",
    "work_branch_name",
]
