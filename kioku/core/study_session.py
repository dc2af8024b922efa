"""Study session state machine.

A session walks the learner through the due-set one card at a time. It owns
the traversal state (position, flip state, optional shuffle order, the
click-to-advance counter) and the running statistics, and pushes card
changes to the host through a ``CardUpdater``.

Every operation is synchronous and is a silent no-op when there is no card
to act on, so callers render an empty state instead of handling errors.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum
from typing import Any

from kioku.core.due_cards import ALL, DueCardFilter, select_due_cards
from kioku.core.errors import ValidationError
from kioku.core.models import (
    CardUpdater,
    DifficultyLevel,
    Flashcard,
    JLPTLevel,
    MemorizationStatus,
    ReviewRating,
    StudyStats,
)
from kioku.core.sm2_scheduler import ReviewSchedule, ReviewScheduler

logger = logging.getLogger(__name__)

DEFAULT_CLICKS_TO_ADVANCE = 3


class SessionPhase(str, Enum):
    """Lifecycle phases of a study session."""

    SELECTING_SCOPE = "selecting_scope"
    STUDYING = "studying"
    COMPLETE = "complete"


@dataclass
class ResetReport:
    """Outcome of a bulk reset; each card is reset independently."""

    reset_ids: list[str] = field(default_factory=list)
    failed_ids: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed_ids


class StudySession:
    """Traversal and statistics for one study view."""

    def __init__(
        self,
        cards: Iterable[Flashcard],
        update_card: CardUpdater,
        filters: DueCardFilter | None = None,
        auto_advance: bool = True,
        clicks_to_advance: int = DEFAULT_CLICKS_TO_ADVANCE,
        clock: Callable[[], date] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize study session.

        Args:
            cards: Card collection to study from
            update_card: Collaborator persisting partial card updates
            filters: Initial scope filters
            auto_advance: Whether repeated flips advance to the next card
            clicks_to_advance: Flip count that triggers the advance
            clock: Callable returning today's date
            rng: Random source for shuffling
        """
        if clicks_to_advance < 1:
            raise ValidationError("clicks_to_advance must be at least 1", "clicks_to_advance")

        self.update_card = update_card
        self.filters = filters or DueCardFilter()
        self.auto_advance = auto_advance
        self.clicks_to_advance = clicks_to_advance
        self.clock = clock or date.today
        self.rng = rng or random.Random()
        self.scheduler = ReviewScheduler(self._apply_update, clock=self.clock)

        self._cards: dict[str, Flashcard] = {}
        self.set_cards(cards)

        self.phase = SessionPhase.SELECTING_SCOPE
        self.current_index = 0
        self.is_flipped = False
        self.is_shuffled = False
        self.shuffled_order: list[str] = []
        self.click_count = 0
        self.stats = StudyStats()
        self.is_session_complete = False

    # ------------------------------------------------------------------
    # Card collection and derived views
    # ------------------------------------------------------------------

    def set_cards(self, cards: Iterable[Flashcard]) -> None:
        """Replace the card collection, e.g. after the host reloads it."""
        self._cards = {card.id: card for card in cards}

    @property
    def cards(self) -> list[Flashcard]:
        return list(self._cards.values())

    @property
    def filtered_due_cards(self) -> list[Flashcard]:
        """Due cards passing the filters, in natural order."""
        return select_due_cards(self._cards.values(), self.filters, self.clock())

    @property
    def due_cards(self) -> list[Flashcard]:
        """Due cards in traversal order (shuffled when shuffle is active)."""
        filtered = self.filtered_due_cards
        if not self.is_shuffled or not self.shuffled_order:
            return filtered
        by_id = {card.id: card for card in filtered}
        return [by_id[card_id] for card_id in self.shuffled_order if card_id in by_id]

    @property
    def current_card(self) -> Flashcard | None:
        due = self.due_cards
        if 0 <= self.current_index < len(due):
            return due[self.current_index]
        return None

    @property
    def total_due_cards(self) -> int:
        return len(self.due_cards)

    @property
    def can_go_next(self) -> bool:
        return self.current_index < self.total_due_cards - 1

    @property
    def can_go_prev(self) -> bool:
        return self.current_index > 0

    @property
    def has_cards_to_study(self) -> bool:
        return self.total_due_cards > 0

    # ------------------------------------------------------------------
    # Scope and lifecycle
    # ------------------------------------------------------------------

    def set_filters(self, filters: DueCardFilter) -> None:
        """Change the scope filters and rewind to the first card."""
        self.filters = filters
        self._reset_position()

    def select_scope(
        self,
        jlpt_level: JLPTLevel | str | None = ALL,
        lesson_id: str | None = ALL,
    ) -> None:
        """Choose the JLPT level and lesson to study and start the session."""
        self.filters = replace(self.filters, jlpt_level=jlpt_level, lesson_id=lesson_id)
        self.start_session()

    def start_session(self) -> None:
        """Start (or restart) studying the current due-set."""
        self._reset_position()
        self.is_session_complete = False
        self.phase = SessionPhase.STUDYING
        self.stats = StudyStats(total_cards=self.total_due_cards)
        logger.info(f"Study session started with {self.stats.total_cards} due cards")

    def _reset_position(self) -> None:
        self.current_index = 0
        self.is_flipped = False
        self.click_count = 0

    def _complete(self) -> None:
        self.is_session_complete = True
        self.phase = SessionPhase.COMPLETE
        logger.info(
            f"Study session complete: {self.stats.cards_studied} studied, "
            f"{self.stats.correct_count} correct, {self.stats.again_count} again"
        )

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def _move_to_next_card(self) -> None:
        if self.can_go_next:
            self.current_index += 1
        else:
            self._complete()
        self.is_flipped = False
        self.click_count = 0

    def flip_card(self) -> None:
        """Flip the current card, advancing instead once the click threshold is hit."""
        if self.current_card is None:
            return

        self.click_count += 1
        if self.auto_advance and self.click_count >= self.clicks_to_advance:
            self._move_to_next_card()
            return

        self.is_flipped = not self.is_flipped

    def go_to_next(self) -> None:
        if self.can_go_next:
            self.current_index += 1
            self.is_flipped = False
            self.click_count = 0

    def go_to_prev(self) -> None:
        if self.can_go_prev:
            self.current_index -= 1
            self.is_flipped = False
            self.click_count = 0

    # ------------------------------------------------------------------
    # Card mutations
    # ------------------------------------------------------------------

    def _apply_update(self, card_id: str, fields: dict[str, Any]) -> None:
        """Write the change to the host, then update the in-memory card.

        A failed write leaves the local copy untouched so the change can be
        retried.
        """
        self.update_card(card_id, fields)
        card = self._cards.get(card_id)
        if card is not None:
            self._cards[card_id] = card.model_copy(update=fields)

    def set_memorization_status(self, status: MemorizationStatus | str) -> None:
        """Mark the current card as memorized or not and count it.

        Repeated calls on the same card count it again; callers navigate
        between calls.
        """
        card = self.current_card
        if card is None:
            return

        status = MemorizationStatus(status)
        self._apply_update(card.id, {"memorization_status": status})

        self.stats.cards_studied += 1
        if status == MemorizationStatus.MEMORIZED:
            self.stats.correct_count += 1
        elif status == MemorizationStatus.NOT_MEMORIZED:
            self.stats.again_count += 1

    def set_difficulty_level(self, level: DifficultyLevel | str) -> None:
        """Change the current card's difficulty, keeping the author's value on first change."""
        card = self.current_card
        if card is None:
            return

        update: dict[str, Any] = {"difficulty_level": DifficultyLevel(level)}
        if card.original_difficulty_level is None:
            update["original_difficulty_level"] = card.difficulty_level
        self._apply_update(card.id, update)

    def rate_card(self, rating: ReviewRating | str) -> ReviewSchedule | None:
        """Review the current card with SM-2 and move on.

        A rated card is rescheduled into the future and drops out of the
        due-set, so the following card slides into the current position.
        Rating the last remaining card completes the session.
        """
        card = self.current_card
        if card is None:
            return None

        schedule = self.scheduler.review_card(card, rating)

        self.stats.cards_studied += 1
        if schedule.repetitions == 0:
            self.stats.again_count += 1
        else:
            self.stats.correct_count += 1

        due_ids = [due.id for due in self.due_cards]
        if card.id in due_ids:
            self._move_to_next_card()
            return schedule

        if self.current_index >= len(due_ids):
            self.current_index = max(len(due_ids) - 1, 0)
            self._complete()
        self.is_flipped = False
        self.click_count = 0
        return schedule

    # ------------------------------------------------------------------
    # Ordering and bulk reset
    # ------------------------------------------------------------------

    def shuffle_cards(self) -> None:
        """Traverse the due-set in a random order until reset."""
        order = [card.id for card in self.filtered_due_cards]
        self.rng.shuffle(order)  # Fisher-Yates
        self.shuffled_order = order
        self.is_shuffled = True
        self._reset_position()
        logger.debug(f"Shuffled {len(order)} cards")

    def reset_order(self) -> None:
        """Return to the natural order."""
        self.is_shuffled = False
        self.shuffled_order = []
        self._reset_position()

    def reset_all(self) -> ResetReport:
        """Unshuffle and restore every due card to its author-set state.

        Each card is written independently; a failed write is logged and
        reported so the caller can retry that card.
        """
        due = self.due_cards
        self.reset_order()

        report = ResetReport()
        for card in due:
            original = card.original_difficulty_level
            needs_reset = card.memorization_status != MemorizationStatus.UNSET or (
                original is not None and card.difficulty_level != original
            )
            if not needs_reset:
                continue

            fields = {
                "memorization_status": MemorizationStatus.UNSET,
                "difficulty_level": original or DifficultyLevel.UNSET,
            }
            try:
                self._apply_update(card.id, fields)
            except Exception as e:
                logger.error(f"Failed to reset card {card.id}: {e}")
                report.failed_ids.append(card.id)
            else:
                report.reset_ids.append(card.id)

        logger.info(
            f"Reset {len(report.reset_ids)} cards ({len(report.failed_ids)} failed)"
        )
        return report

    def summary(self) -> dict[str, Any]:
        """Return summary statistics for the session."""
        return {
            "phase": self.phase.value,
            "total_cards": self.stats.total_cards,
            "cards_studied": self.stats.cards_studied,
            "correct_count": self.stats.correct_count,
            "again_count": self.stats.again_count,
            "accuracy_percentage": self.stats.accuracy,
            "is_complete": self.is_session_complete,
        }
