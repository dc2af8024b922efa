"""Selection of the cards due for study."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date

from kioku.core.errors import ValidationError
from kioku.core.models import DifficultyLevel, Flashcard, JLPTLevel, MemorizationStatus
from kioku.core.sm2_scheduler import is_due

ALL = "all"


@dataclass(frozen=True)
class DueCardFilter:
    """Scope filters for the due-set.

    Every field accepts ``"all"`` (or None) as a wildcard. Active filters
    are combined with AND.
    """

    jlpt_level: JLPTLevel | str | None = ALL
    memorization_status: MemorizationStatus | str | None = ALL
    difficulty_level: DifficultyLevel | str | None = ALL
    lesson_id: str | None = ALL

    def __post_init__(self) -> None:
        for name, enum_type in (
            ("jlpt_level", JLPTLevel),
            ("memorization_status", MemorizationStatus),
            ("difficulty_level", DifficultyLevel),
        ):
            value = getattr(self, name)
            if not self._active(value):
                continue
            try:
                enum_type(value)
            except ValueError as e:
                raise ValidationError(f"Unknown {name} filter: {value!r}", name) from e

    @staticmethod
    def _active(value: object) -> bool:
        return value is not None and value != ALL

    def matches(self, card: Flashcard) -> bool:
        """Whether the card passes every active filter."""
        if self._active(self.jlpt_level) and JLPTLevel(self.jlpt_level) not in card.jlpt_levels:
            return False
        if (
            self._active(self.memorization_status)
            and card.memorization_status != MemorizationStatus(self.memorization_status)
        ):
            return False
        if (
            self._active(self.difficulty_level)
            and card.difficulty_level != DifficultyLevel(self.difficulty_level)
        ):
            return False
        if self._active(self.lesson_id) and self.lesson_id not in card.lesson_ids:
            return False
        return True


def select_due_cards(
    cards: Iterable[Flashcard],
    filters: DueCardFilter | None = None,
    today: date | None = None,
) -> list[Flashcard]:
    """Return the cards due today that pass the filters, in input order.

    Args:
        cards: Full card collection
        filters: Optional scope filters
        today: Reference date (defaults to the local date)

    Returns:
        Due cards matching every active filter
    """
    filters = filters or DueCardFilter()
    today = today or date.today()
    return [card for card in cards if is_due(card, today) and filters.matches(card)]
