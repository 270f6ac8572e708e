"""Unit tests for demo flashcards

Tests cover:
- One card per recent commit, newest first
- Per-commit fallback when the AI call fails
- Detail fetch failures and malformed details fall back to the commit summary
- Source file links default to raw.githubusercontent.com
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime

from coderecall.flashcards.demo import fallback_answer, fallback_question, generate_demo_flashcards
from coderecall.github.client import GitHubClient
from coderecall.github.models import Commit, FileChange, FileStatus, RepositoryRef
from coderecall.llm.base import AIUpstreamError

REPO = RepositoryRef("octo", "public")
FULL = "octo/public"


def _file(name, patch="@@ -1 +1 @@\n-a\n+b"):
    return {"filename": name, "status": "modified", "additions": 1, "deletions": 1, "patch": patch}


def _seed(github_stub, count=4):
    for i in range(count):
        github_stub.add_commit(
            FULL, f"{i:07d}abc", f"Commit {i}\n\nbody", datetime(2025, 3, 1 + i, tzinfo=UTC),
            files=[_file(f"src/mod{i}.py")],
        )


def _generate(http_client, generator):
    return asyncio.run(generate_demo_flashcards(REPO, GitHubClient(http_client), generator))


def test_one_card_per_recent_commit(github_stub, http_client, generator):
    _seed(github_stub)

    cards = _generate(http_client, generator)

    assert [c.metadata.commit_message for c in cards] == ["Commit 3", "Commit 2", "Commit 1"]
    assert cards[0].question == "What does this change do?"
    assert cards[0].answer.startswith("## Commit 3")
    assert "### src/mod3.py" in cards[0].metadata.raw_diff
    assert cards[0].metadata.repository_full_name == FULL
    assert cards[0].metadata.source_files[0].raw_url == (
        "https://raw.githubusercontent.com/octo/public/0000003abc/src/mod3.py"
    )


def test_ai_failure_uses_fallback_card(github_stub, http_client, generator):
    _seed(github_stub, count=2)
    generator.failures["src/mod1.py"] = AIUpstreamError("down", status_code=500)

    cards = _generate(http_client, generator)

    assert cards[0].question.endswith("What changed in this commit?")
    assert '"Commit 1"' in cards[0].question
    assert cards[0].answer == "Commit message: Commit 1\nChanged files: src/mod1.py"
    assert cards[1].question == "What does this change do?"


def test_detail_failure_uses_summary(github_stub, http_client, generator):
    _seed(github_stub, count=1)
    github_stub.status_overrides["/repos/octo/public/commits/0000000abc"] = 500

    cards = _generate(http_client, generator)

    assert len(cards) == 1
    assert cards[0].metadata.raw_diff is None
    assert cards[0].metadata.source_files is None
    assert "_No file information_" in cards[0].answer


def test_malformed_detail_uses_summary(github_stub, http_client, generator):
    _seed(github_stub, count=2)
    github_stub.body_overrides["/repos/octo/public/commits/0000001abc"] = "<html>proxy error</html>"

    cards = _generate(http_client, generator)

    assert [c.metadata.commit_message for c in cards] == ["Commit 1", "Commit 0"]
    assert cards[0].metadata.raw_diff is None
    assert cards[1].metadata.raw_diff is not None



def test_no_commits(http_client, generator):
    assert _generate(http_client, generator) == []
    assert generator.calls == []


class TestFallbacks:
    def test_question_includes_date_and_headline(self):
        commit = Commit(sha="abc", message="Fix it\n\ndetails", authored_at="2025-03-09T01:00:00Z")
        assert fallback_question(commit) == 'March 09, 2025\n\n"Fix it"\n\nWhat changed in this commit?'

    def test_question_without_date(self):
        assert fallback_question(Commit(sha="abc", message="Fix it")) == '"Fix it"\n\nWhat changed in this commit?'

    def test_answer_without_files(self):
        assert fallback_answer(Commit(sha="abc", message="Fix it")) == (
            "Commit message: Fix it\nChanged files: No file information"
        )

    def test_answer_lists_at_most_five_files(self):
        files = tuple(FileChange(filename=f"f{i}.py", status=FileStatus.MODIFIED) for i in range(7))
        answer = fallback_answer(Commit(sha="abc", message="Big", files=files))
        assert answer.endswith("f0.py, f1.py, f2.py, f3.py, f4.py")
