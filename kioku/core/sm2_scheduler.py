"""SM-2 review scheduling.

Implements the SuperMemo-2 variant used for vocabulary cards: a recall
rating is mapped to a quality score (again=0, hard=3, good=4, easy=5),
which drives the repetition count, the interval in days and the ease factor.

Quality 3 ("hard") is the lowest passing grade and counts as a successful
recall, as in classic SM-2.

References:
    - SM-2: https://super-memory.com/english/ol/sm2.htm
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any

from kioku.core.errors import ValidationError
from kioku.core.models import CardUpdater, Flashcard, ReviewRating, clamp_ease_factor

logger = logging.getLogger(__name__)

PASSING_QUALITY = 3
FIRST_INTERVAL_DAYS = 1
SECOND_INTERVAL_DAYS = 6


@dataclass
class ReviewSchedule:
    """Scheduling fields produced by one review."""

    ease_factor: float
    interval: int
    repetitions: int
    next_review_date: date

    def as_update(self) -> dict[str, Any]:
        """Return the fields to push through a card updater."""
        return {
            "ease_factor": self.ease_factor,
            "interval": self.interval,
            "repetitions": self.repetitions,
            "next_review_date": self.next_review_date,
        }


def parse_rating(rating: ReviewRating | str) -> ReviewRating:
    """Resolve a rating given as an enum member or its name.

    Raises:
        ValidationError: If the rating is not one of again/hard/good/easy
    """
    if isinstance(rating, ReviewRating):
        return rating
    if isinstance(rating, str):
        try:
            return ReviewRating[rating.strip().upper()]
        except KeyError:
            pass
    raise ValidationError(f"Unknown review rating: {rating!r}", "rating")


def next_ease_factor(ease_factor: float, quality: int) -> float:
    """Apply the SM-2 ease factor update and clamp the result."""
    penalty = 5 - quality
    return clamp_ease_factor(ease_factor + (0.1 - penalty * (0.08 + penalty * 0.02)))


def calculate_next_review(
    card: Flashcard,
    rating: ReviewRating | str,
    today: date | None = None,
) -> ReviewSchedule:
    """Compute the next review metadata for a card.

    Pure function: the card is not modified, the caller persists the result.

    Args:
        card: Card with its current ease factor, interval and repetitions
        rating: Recall rating
        today: Reference date (defaults to the local date)

    Returns:
        New ease factor, interval, repetition count and due date
    """
    quality = parse_rating(rating).value
    today = today or date.today()

    if quality < PASSING_QUALITY:
        repetitions = 0
        interval = FIRST_INTERVAL_DAYS
    else:
        if card.repetitions == 0:
            interval = FIRST_INTERVAL_DAYS
        elif card.repetitions == 1:
            interval = SECOND_INTERVAL_DAYS
        else:
            interval = max(FIRST_INTERVAL_DAYS, round(card.interval * card.ease_factor))
        repetitions = card.repetitions + 1

    return ReviewSchedule(
        ease_factor=next_ease_factor(card.ease_factor, quality),
        interval=interval,
        repetitions=repetitions,
        next_review_date=today + timedelta(days=interval),
    )


def is_due(card: Flashcard, today: date | None = None) -> bool:
    """Whether the card should be reviewed today.

    New cards are created with today's date, so they are due immediately.
    """
    today = today or date.today()
    return card.next_review_date <= today


def days_until_due(card: Flashcard, today: date | None = None) -> int:
    """Days until the card becomes due; zero or negative when already due."""
    today = today or date.today()
    return (card.next_review_date - today).days


class ReviewScheduler:
    """Applies SM-2 reviews to cards and persists the result."""

    def __init__(
        self,
        update_card: CardUpdater,
        clock: Callable[[], date] | None = None,
    ) -> None:
        """Initialize review scheduler.

        Args:
            update_card: Collaborator persisting partial card updates
            clock: Callable returning today's date
        """
        self.update_card = update_card
        self.clock = clock or date.today

    def review_card(self, card: Flashcard, rating: ReviewRating | str) -> ReviewSchedule:
        """Rate a card, persist its new schedule and return it."""
        resolved = parse_rating(rating)
        today = self.clock()
        schedule = calculate_next_review(card, resolved, today)

        fields = schedule.as_update()
        fields["last_reviewed"] = today
        self.update_card(card.id, fields)

        logger.debug(
            f"Reviewed card {card.id} as {resolved.name.lower()}: "
            f"interval={schedule.interval}d ease={schedule.ease_factor:.2f} "
            f"next={schedule.next_review_date.isoformat()}"
        )
        return schedule
