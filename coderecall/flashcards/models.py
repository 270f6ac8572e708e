"""
Module: models
Purpose: Flashcard domain types shared by the pipeline, storage, and API.

FlashCard is persisted as JSON inside a day set and returned to clients
unchanged, so field names serialize in camelCase (``commitMessage``,
``sourceFiles``, ``rawDiff``, ``repositoryFullName``).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ContentType(str, Enum):
    MARKDOWN = "markdown"
    CODE_DIFF = "code-diff"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SourceFile(_CamelModel):
    filename: str
    raw_url: str | None = None


class CardMetadata(_CamelModel):
    """Where a card's answer came from. All fields optional."""

    filename: str | None = None
    commit_message: str | None = None
    source_files: list[SourceFile] | None = None
    raw_diff: str | None = None
    repository_full_name: str | None = None


class FlashCard(_CamelModel):
    """
    One question/answer pair.

    ``highlights`` are verbatim substrings of ``answer`` (or of the card's
    source diff) that justify the question.
    """

    question: str
    answer: str
    highlights: list[str] = Field(default_factory=list)
    metadata: CardMetadata | None = None

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


def cards_to_json_list(cards: list[FlashCard]) -> list[dict[str, Any]]:
    return [card.to_dict() for card in cards]


def cards_from_json_list(items: list[dict[str, Any]]) -> list[FlashCard]:
    return [FlashCard.model_validate(item) for item in items]


@dataclass
class SelectedContent:
    """The artifact chosen for one lookback window."""

    content: str
    content_type: ContentType
    commit_sha: str
    commit_message: str
    filename: str | None = None
    source_files: list[SourceFile] = field(default_factory=list)

    def to_metadata(self, repository_full_name: str | None = None) -> CardMetadata:
        if self.content_type == ContentType.MARKDOWN:
            return CardMetadata(
                filename=self.filename,
                commit_message=self.commit_message,
                repository_full_name=repository_full_name,
            )
        return CardMetadata(
            commit_message=self.commit_message,
            source_files=list(self.source_files),
            raw_diff=self.content,
            repository_full_name=repository_full_name,
        )
