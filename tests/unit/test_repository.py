"""Unit tests for day-set and user persistence

Tests cover:
- Create-if-absent keeps the first writer's set
- Empty sets are stored and distinguishable from missing ones
- In-place question updates leave answers and metadata untouched
- User profiles default to free tier and round-trip repositories
"""

from __future__ import annotations

from coderecall.flashcards.models import CardMetadata, FlashCard
from coderecall.flashcards.quota import Tier
from coderecall.flashcards.repository import DailyFlashcardRepository, UserRepository
from coderecall.github.models import RepositoryRef


def _card(question, answer="answer text"):
    return FlashCard(
        question=question,
        answer=answer,
        highlights=["answer"],
        metadata=CardMetadata(commit_message="Fix bug", repository_full_name="octo/notes"),
    )


class TestDailyFlashcardRepository:
    def test_get_missing_is_none(self, pool):
        assert DailyFlashcardRepository(pool).get("user-1", "2025-03-10") is None

    def test_first_writer_wins(self, pool):
        repo = DailyFlashcardRepository(pool)

        assert repo.create_if_absent("user-1", "2025-03-10", [_card("first?")]) is True
        assert repo.create_if_absent("user-1", "2025-03-10", [_card("second?")]) is False

        cards = repo.get("user-1", "2025-03-10")
        assert [c.question for c in cards] == ["first?"]

    def test_empty_set_is_stored(self, pool):
        repo = DailyFlashcardRepository(pool)
        repo.create_if_absent("user-1", "2025-03-10", [])

        assert repo.get("user-1", "2025-03-10") == []

    def test_sets_are_per_user_and_date(self, pool):
        repo = DailyFlashcardRepository(pool)
        repo.create_if_absent("user-1", "2025-03-10", [_card("a?")])
        repo.create_if_absent("user-1", "2025-03-09", [_card("b?")])
        repo.create_if_absent("user-2", "2025-03-10", [_card("c?")])

        assert repo.list_dates("user-1") == ["2025-03-10", "2025-03-09"]
        assert repo.get("user-2", "2025-03-10")[0].question == "c?"

    def test_delete(self, pool):
        repo = DailyFlashcardRepository(pool)
        repo.create_if_absent("user-1", "2025-03-10", [_card("a?")])

        assert repo.delete("user-1", "2025-03-10") is True
        assert repo.delete("user-1", "2025-03-10") is False
        assert repo.get("user-1", "2025-03-10") is None

    def test_update_question_in_place(self, pool):
        repo = DailyFlashcardRepository(pool)
        repo.create_if_absent("user-1", "2025-03-10", [_card("a?"), _card("b?", answer="second answer")])

        assert repo.update_card_question("user-1", "2025-03-10", 1, "new b?", ["second"]) is True

        cards = repo.get("user-1", "2025-03-10")
        assert cards[0].question == "a?"
        assert cards[1].question == "new b?"
        assert cards[1].highlights == ["second"]
        assert cards[1].answer == "second answer"
        assert cards[1].metadata.commit_message == "Fix bug"

    def test_update_out_of_range_or_missing(self, pool):
        repo = DailyFlashcardRepository(pool)
        repo.create_if_absent("user-1", "2025-03-10", [_card("a?")])

        assert repo.update_card_question("user-1", "2025-03-10", 5, "x?", []) is False
        assert repo.update_card_question("user-1", "2025-03-09", 0, "x?", []) is False
        assert repo.get("user-1", "2025-03-10")[0].question == "a?"


class TestUserRepository:
    def test_get_or_create_defaults_to_free(self, pool):
        users = UserRepository(pool)

        profile = users.get_or_create("user-1")

        assert profile.tier is Tier.FREE
        assert profile.regenerate_count_today == 0
        assert profile.repositories == []
        assert users.get("user-2") is None

    def test_repositories_round_trip(self, pool):
        users = UserRepository(pool)
        users.set_repositories("user-1", [RepositoryRef("octo", "notes", branch="dev"), RepositoryRef("octo", "api")])

        profile = users.get("user-1")

        assert [r.full_name for r in profile.repositories] == ["octo/notes", "octo/api"]
        assert profile.repositories[0].branch == "dev"

    def test_set_subscription_tier(self, pool):
        users = UserRepository(pool)
        users.set_subscription_tier("user-1", Tier.PRO)

        assert users.get_or_create("user-1").tier is Tier.PRO
