"""Commit source adapter for the GitHub REST API."""

from coderecall.github.client import GitHubClient, GitHubFetchError
from coderecall.github.models import Commit, FileChange, FileStatus, RepositoryRef

__all__ = [
    "Commit",
    "FileChange",
    "FileStatus",
    "GitHubClient",
    "GitHubFetchError",
    "RepositoryRef",
]
