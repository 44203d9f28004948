"""Git operations.

Usage:
    from pubflow.git import Repository

    repo = Repository(Path("."))
    branch = repo.current_branch()
"""

from pubflow.git.repository import GitError, GitStatus, Repository, StatusEntry

__all__ = ["GitError", "GitStatus", "Repository", "StatusEntry"]
