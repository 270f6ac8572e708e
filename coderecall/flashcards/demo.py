"""
Demo flashcards for anonymous visitors.

Cards are built from the most recent commits of a public repository and are
never persisted. A failed AI call for one commit falls back to a
deterministic question/answer for that commit instead of failing the request.
"""

from __future__ import annotations

import asyncio
from datetime import datetime

from coderecall.config import DEMO_COMMIT_COUNT
from coderecall.flashcards.models import CardMetadata, ContentType, FlashCard, SourceFile
from coderecall.flashcards.selector import render_code_diff, render_commit_summary
from coderecall.github.client import GitHubClient, GitHubFetchError
from coderecall.github.models import Commit, RepositoryRef
from coderecall.llm.base import AIGenerationError, GenerationClient, normalize
from coderecall.observability.logging import get_logger
from coderecall.observability.telemetry import counter

logger = get_logger(__name__)


def default_raw_url(repo: RepositoryRef, sha: str, filename: str) -> str:
    return f"https://raw.githubusercontent.com/{repo.owner}/{repo.name}/{sha}/{filename}"


def fallback_question(commit: Commit) -> str:
    when = ""
    if commit.authored_at:
        try:
            when = datetime.fromisoformat(commit.authored_at.replace("Z", "+00:00")).strftime("%B %d, %Y") + "\n\n"
        except ValueError:
            when = ""
    return f'{when}"{commit.headline}"\n\nWhat changed in this commit?'


def fallback_answer(commit: Commit) -> str:
    files = ", ".join(c.filename for c in commit.files[:5]) if commit.files else "No file information"
    return f"Commit message: {commit.headline}\nChanged files: {files}"


async def _detail_or_summary(source: GitHubClient, repo: RepositoryRef, commit: Commit) -> Commit:
    try:
        return await source.get_commit_detail(repo, commit.sha)
    except GitHubFetchError as e:
        logger.info("Demo detail fetch failed for %s, using summary: %s", commit.short_sha, e)
        return commit


async def _card_for(commit: Commit, repo: RepositoryRef, generator: GenerationClient) -> FlashCard:
    summary = render_commit_summary(commit)
    try:
        items = normalize(await generator.generate(summary, ContentType.CODE_DIFF), summary)
    except AIGenerationError as e:
        counter("demo.ai.fallback")
        logger.warning("Demo AI call failed for %s: %s", commit.short_sha, type(e).__name__)
        items = []

    if items:
        question, answer = items[0].question, items[0].answer
    else:
        question, answer = fallback_question(commit), fallback_answer(commit)

    metadata = CardMetadata(
        commit_message=commit.headline,
        raw_diff=render_code_diff(commit) if commit.files else None,
        source_files=[
            SourceFile(filename=c.filename, raw_url=c.raw_url or default_raw_url(repo, commit.sha, c.filename))
            for c in commit.files
        ]
        or None,
        repository_full_name=repo.full_name,
    )
    return FlashCard(question=question, answer=answer, metadata=metadata)


async def generate_demo_flashcards(
    repo: RepositoryRef,
    source: GitHubClient,
    generator: GenerationClient,
    commit_count: int = DEMO_COMMIT_COUNT,
) -> list[FlashCard]:
    """
    One card per recent commit, newest first.

    Returns:
        Cards (empty when the repository has no commits)

    Raises:
        GitHubFetchError: If the commit list cannot be fetched
    """
    commits = (await source.list_commits(repo, per_page=commit_count))[:commit_count]
    if not commits:
        return []

    detailed = await asyncio.gather(*(_detail_or_summary(source, repo, c) for c in commits))
    cards = await asyncio.gather(*(_card_for(c, repo, generator) for c in detailed))
    counter("demo.cards.generated", len(cards))
    return list(cards)
