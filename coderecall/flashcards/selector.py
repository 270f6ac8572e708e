"""
Content selection for one lookback window.

Markdown first: the newest commit that touches a markdown file wins and the
file's full text becomes the card answer. Otherwise the first commit that
changed any files is rendered as a diff summary. Commit details are memoized
for the duration of one select() call only.
"""

from __future__ import annotations

from coderecall.config import MARKDOWN_EXTENSIONS
from coderecall.flashcards.models import ContentType, SelectedContent, SourceFile
from coderecall.github.client import GitHubClient
from coderecall.github.models import Commit, FileChange, FileStatus, RepositoryRef
from coderecall.observability.logging import get_logger

logger = get_logger(__name__)


def is_markdown_file(change: FileChange) -> bool:
    return change.status != FileStatus.REMOVED and change.filename.lower().endswith(MARKDOWN_EXTENSIONS)


def render_code_diff(commit: Commit) -> str:
    """
    Deterministic diff summary of one commit.

    Layout::

        ## <commit message>
        Commit: <short sha>

        ### <filename>
        **Status**: <status> | **Changes**: +<added> -<removed>
        ```diff
        <patch>
        ```
    """
    parts = [f"## {commit.message}\n", f"Commit: {commit.short_sha}\n"]
    for change in commit.files:
        parts.append(f"\n### {change.filename}")
        parts.append(f"**Status**: {change.status.value} | **Changes**: +{change.additions} -{change.deletions}\n")
        if change.patch:
            parts.append("```diff")
            parts.append(change.patch)
            parts.append("```\n")
    return "\n".join(parts)


def render_commit_summary(commit: Commit, max_files: int = 5, max_previews: int = 2, preview_chars: int = 400) -> str:
    """Short change summary for demo cards: headline, first files, and a clipped patch preview."""
    if commit.files:
        files_info = "\n".join(
            f"- `{c.filename}` (+{c.additions} -{c.deletions})" for c in commit.files[:max_files]
        )
    else:
        files_info = "_No file information_"

    previews = [
        f"### {c.filename}\n```diff\n{c.patch[:preview_chars]}\n```"
        for c in [c for c in commit.files if c.patch][:max_previews]
    ]
    summary = f"## {commit.headline}\n\n**Changed files:**\n{files_info}"
    if previews:
        summary += "\n\n**Code change preview:**\n\n" + "\n\n".join(previews)
    return summary


def infer_content_type(text: str) -> ContentType:
    """Guess the content type of free text submitted without one."""
    stripped = text.lstrip()
    if "```diff" in text or stripped.startswith("diff --git") or "\n@@ " in text or stripped.startswith("@@ "):
        return ContentType.CODE_DIFF
    return ContentType.MARKDOWN


class ContentSelector:
    """
    Picks the single most useful artifact from a window's commits.

    Args:
        source: Commit source adapter (GitHubClient or a test double)
        repo: Repository the commits belong to
    """

    def __init__(self, source: GitHubClient, repo: RepositoryRef) -> None:
        self.source = source
        self.repo = repo

    async def select(self, commits: list[Commit]) -> SelectedContent | None:
        """
        Select content from commits ordered newest first.

        Returns:
            SelectedContent, or None when the window has no commits or no
            commit changed any files

        Raises:
            GitHubFetchError: If a detail or file fetch fails
        """
        if not commits:
            return None

        details: dict[str, Commit] = {}

        async def detail_for(commit: Commit) -> Commit:
            if commit.sha not in details:
                details[commit.sha] = await self.source.get_commit_detail(self.repo, commit.sha)
            return details[commit.sha]

        for commit in commits:
            detail = await detail_for(commit)
            markdown = next((f for f in detail.files if is_markdown_file(f)), None)
            if markdown is None:
                continue
            text = await self.source.get_file_content(self.repo, path=markdown.filename, ref=detail.sha)
            logger.debug("Selected markdown %s from %s", markdown.filename, detail.short_sha)
            return SelectedContent(
                content=text,
                content_type=ContentType.MARKDOWN,
                commit_sha=detail.sha,
                commit_message=detail.message,
                filename=markdown.filename,
            )

        for commit in commits:
            detail = await detail_for(commit)
            if not detail.files:
                continue
            logger.debug("Selected diff of %s (%d files)", detail.short_sha, len(detail.files))
            return SelectedContent(
                content=render_code_diff(detail),
                content_type=ContentType.CODE_DIFF,
                commit_sha=detail.sha,
                commit_message=detail.message,
                source_files=[SourceFile(filename=f.filename, raw_url=f.raw_url) for f in detail.files],
            )

        return None
