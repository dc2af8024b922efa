"""Core data models for the Kioku study engine."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel
from sqlalchemy import Column, Date, Float, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase

MIN_EASE_FACTOR = 1.3
MAX_EASE_FACTOR = 3.0
DEFAULT_EASE_FACTOR = 2.5


class MemorizationStatus(str, Enum):
    """User-set memorization state of a card."""

    MEMORIZED = "memorized"
    NOT_MEMORIZED = "not_memorized"
    UNSET = "unset"


class DifficultyLevel(str, Enum):
    """Card difficulty, set by content authors and adjustable by learners."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    SUPER_HARD = "super_hard"
    UNSET = "unset"


class JLPTLevel(str, Enum):
    """Japanese-Language Proficiency Test levels."""

    N5 = "N5"
    N4 = "N4"
    N3 = "N3"
    N2 = "N2"
    N1 = "N1"


class ReviewRating(int, Enum):
    """Learner's recall rating, valued by its SM-2 quality score."""

    AGAIN = 0
    HARD = 3
    GOOD = 4
    EASY = 5


# update_card(card_id, fields) as provided by the host application
CardUpdater = Callable[[str, dict[str, Any]], None]


def clamp_ease_factor(value: float) -> float:
    """Clamp an ease factor into the supported range."""
    return min(MAX_EASE_FACTOR, max(MIN_EASE_FACTOR, value))


def _coerce_date(value: Any) -> Any:
    """Convert epoch milliseconds and ISO datetime strings to a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, bool):
        return value
    if isinstance(value, int | float):
        return datetime.fromtimestamp(value / 1000).date()
    if isinstance(value, str) and len(value) > 10:
        return value[:10]
    return value


def _as_list(value: Any) -> list[Any]:
    if value is None or value == "":
        return []
    if isinstance(value, list | tuple):
        return list(value)
    return [value]


def normalize_card_record(data: dict[str, Any]) -> dict[str, Any]:
    """Convert a raw card record into the canonical shape.

    Older records carry a single ``jlptLevel``/``lessonId`` instead of the
    list-shaped fields, numeric ids, and review dates stored as epoch
    milliseconds or full ISO timestamps. All of that is resolved here, once,
    so nothing downstream has to care about legacy shapes.

    Args:
        data: Raw record with camelCase or snake_case keys

    Returns:
        New dict ready for ``Flashcard`` validation
    """
    record = dict(data)

    if "id" in record and not isinstance(record["id"], str):
        record["id"] = str(record["id"])

    for single, plural in (
        ("jlptLevel", "jlptLevels"),
        ("jlpt_level", "jlpt_levels"),
        ("lessonId", "lessonIds"),
        ("lesson_id", "lesson_ids"),
    ):
        if single in record:
            legacy = record.pop(single)
            if not record.get(plural) and not record.get(to_camel(plural)):
                record[plural] = _as_list(legacy)

    for key in ("jlptLevels", "jlpt_levels"):
        if key in record:
            record[key] = [
                level.upper() if isinstance(level, str) else level
                for level in _as_list(record[key])
            ]
    for key in ("lessonIds", "lesson_ids"):
        if key in record:
            record[key] = [str(lesson) for lesson in _as_list(record[key])]

    for key in ("nextReviewDate", "next_review_date", "lastReviewed", "last_reviewed"):
        if key in record:
            if record[key] is None and key.startswith("next"):
                del record[key]
            else:
                record[key] = _coerce_date(record[key])

    for key in ("difficultyLevel", "difficulty_level", "memorizationStatus", "memorization_status"):
        if key in record and record[key] in (None, ""):
            del record[key]

    return record


class Flashcard(BaseModel):
    """A flashcard with its spaced-repetition metadata.

    Cards are owned by the host application; the engine reads them and
    pushes partial updates back through a ``CardUpdater``.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, use_enum_values=False
    )

    id: str
    word: str = ""
    reading: str = ""
    meaning: str = ""

    ease_factor: float = DEFAULT_EASE_FACTOR
    interval: int = Field(default=0, ge=0)
    repetitions: int = Field(default=0, ge=0)
    next_review_date: date = Field(default_factory=date.today)
    last_reviewed: date | None = None

    memorization_status: MemorizationStatus = MemorizationStatus.UNSET
    difficulty_level: DifficultyLevel = DifficultyLevel.UNSET
    original_difficulty_level: DifficultyLevel | None = None

    jlpt_levels: list[JLPTLevel] = Field(default_factory=list)
    lesson_ids: list[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _normalize_legacy(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return normalize_card_record(data)
        return data

    @field_validator("ease_factor")
    @classmethod
    def _clamp_ease(cls, value: float) -> float:
        return clamp_ease_factor(value)

    @property
    def is_new(self) -> bool:
        """Whether the card has never been successfully reviewed."""
        return self.repetitions == 0

    def to_record(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


@dataclass
class StudyStats:
    """Running statistics for one study session."""

    total_cards: int = 0
    cards_studied: int = 0
    correct_count: int = 0
    again_count: int = 0

    @property
    def accuracy(self) -> float:
        """Percentage of studied cards answered correctly."""
        if self.cards_studied == 0:
            return 0.0
        return round(self.correct_count / self.cards_studied * 100, 1)


class DailyWordsSession(BaseModel):
    """One calendar day's word quota and its progress."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    session_date: date = Field(alias="date")
    target_words: int
    word_ids: list[str] = Field(default_factory=list)
    learned_word_ids: list[str] = Field(default_factory=list)
    completed_words: int = 0
    is_completed: bool = False
    completed_at: datetime | None = None


class DailyWordsState(BaseModel):
    """Persisted daily-words progress across days."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    current_session: DailyWordsSession | None = None
    today_words: list[str] = Field(default_factory=list)
    history: list[DailyWordsSession] = Field(default_factory=list)
    streak: int = 0
    longest_streak: int = 0
    notification_dismissed_date: date | None = None

    def to_record(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


@dataclass
class DailyProgress:
    """Progress of today's daily-words quota."""

    completed: int
    target: int

    @property
    def percent(self) -> int:
        """Completion percentage, rounded to the nearest integer."""
        if self.target <= 0:
            return 0
        return round(self.completed / self.target * 100)


# ============================================================================
# Storage Models (SQLite)
# ============================================================================


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class FlashcardRecord(Base):
    """Stored flashcard with its review metadata."""

    __tablename__ = "flashcards"

    id = Column(String(64), primary_key=True)
    word = Column(Text, nullable=False, default="")
    reading = Column(Text, nullable=False, default="")
    meaning = Column(Text, nullable=False, default="")

    # SM-2 state
    ease_factor = Column(Float, nullable=False, default=DEFAULT_EASE_FACTOR)
    interval = Column(Integer, nullable=False, default=0)  # days
    repetitions = Column(Integer, nullable=False, default=0)
    next_review_date = Column(Date, nullable=False, default=date.today)
    last_reviewed = Column(Date)

    # Learner state
    memorization_status = Column(String(20), nullable=False, default="unset")
    difficulty_level = Column(String(20), nullable=False, default="unset")
    original_difficulty_level = Column(String(20))

    # Scope
    jlpt_levels = Column(Text, nullable=False, default="[]")  # JSON array
    lesson_ids = Column(Text, nullable=False, default="[]")  # JSON array

    __table_args__ = (
        Index("idx_flashcards_next_review", "next_review_date"),
        {"extend_existing": True},
    )


class ProgressRecord(Base):
    """Key-value storage for learner progress documents."""

    __tablename__ = "progress"

    key = Column(String(64), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(
        Float, nullable=False, default=lambda: datetime.now(UTC).timestamp()
    )
