"""Version control integration."""

from sleepship.vcs.git import GitRepository, branch_name_for, sanitize_branch_name

__all__ = ["GitRepository", "branch_name_for", "sanitize_branch_name"]
