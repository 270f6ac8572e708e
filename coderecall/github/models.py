"""
Module: models
Purpose: Immutable commit data as returned by the commit source.

Commits are fetched fresh per request and never cached beyond the selector's
per-call memo, so these are frozen dataclasses built straight from the
GitHub JSON payloads.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class FileStatus(str, Enum):
    """Change status of a file within a commit."""

    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"
    RENAMED = "renamed"

    @classmethod
    def parse(cls, value: str | None) -> FileStatus:
        # GitHub also reports "copied", "changed", "unchanged"; fold those into modified
        try:
            return cls((value or "").lower())
        except ValueError:
            return cls.MODIFIED


@dataclass(frozen=True)
class FileChange:
    """One changed file in a commit."""

    filename: str
    status: FileStatus
    additions: int = 0
    deletions: int = 0
    patch: str | None = None
    raw_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "filename": self.filename,
            "status": self.status.value,
            "additions": self.additions,
            "deletions": self.deletions,
            "patch": self.patch,
            "raw_url": self.raw_url,
        }

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> FileChange:
        return cls(
            filename=data["filename"],
            status=FileStatus.parse(data.get("status")),
            additions=int(data.get("additions") or 0),
            deletions=int(data.get("deletions") or 0),
            patch=data.get("patch"),
            raw_url=data.get("raw_url"),
        )


@dataclass(frozen=True)
class Commit:
    """
    A commit summary or detail.

    ``files`` is empty for summaries from the list endpoint and populated for
    details from the single-commit endpoint.
    """

    sha: str
    message: str
    authored_at: str | None = None
    author_name: str | None = None
    files: tuple[FileChange, ...] = field(default_factory=tuple)

    @property
    def short_sha(self) -> str:
        return self.sha[:7]

    @property
    def headline(self) -> str:
        return self.message.split("\n", 1)[0]

    def to_dict(self) -> dict[str, Any]:
        return {
            "sha": self.sha,
            "message": self.message,
            "authoredAt": self.authored_at,
            "authorName": self.author_name,
            "files": [f.to_dict() for f in self.files],
        }

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Commit:
        commit_info = data.get("commit") or {}
        author = commit_info.get("author") or {}
        return cls(
            sha=data["sha"],
            message=commit_info.get("message", ""),
            authored_at=author.get("date"),
            author_name=author.get("name"),
            files=tuple(FileChange.from_api(f) for f in data.get("files") or []),
        )


_SIMPLE_REF_RE = re.compile(r"^([A-Za-z0-9_.-]+)/([A-Za-z0-9_.-]+)(?:@([A-Za-z0-9/_.-]+))?$")
_URL_REF_RE = re.compile(r"github\.com/([A-Za-z0-9_.-]+)/([A-Za-z0-9_.-]+?)(?:\.git)?(?:@([A-Za-z0-9/_.-]+))?$")


@dataclass(frozen=True)
class RepositoryRef:
    """An already-resolved repository and optional branch."""

    owner: str
    name: str
    branch: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    @classmethod
    def parse(cls, value: str, branch: str | None = None) -> RepositoryRef:
        """
        Parse ``owner/repo``, ``owner/repo@branch``, or a github.com URL.

        An explicit ``branch`` argument wins over one embedded in ``value``.

        Raises:
            ValueError: If the value is not a recognizable repository reference
        """
        cleaned = (value or "").strip().rstrip("/")
        match = _SIMPLE_REF_RE.match(cleaned) or _URL_REF_RE.search(cleaned)
        if not match:
            raise ValueError(f"Invalid repository reference: {value!r}")
        owner, name, embedded_branch = match.groups()
        return cls(owner=owner, name=name, branch=branch or embedded_branch or None)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"fullName": self.full_name}
        if self.branch:
            data["branch"] = self.branch
        return data
