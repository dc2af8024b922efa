"""Pytest configuration and fixtures."""

from __future__ import annotations

import random
from datetime import date, datetime
from typing import Any

import pytest

from kioku.core.models import Flashcard

TODAY = date(2024, 3, 15)


class FakeCardRepository:
    """In-memory card collection recording every update it receives."""

    def __init__(self, cards: list[Flashcard]) -> None:
        self._cards = {card.id: card for card in cards}
        self.updates: list[tuple[str, dict[str, Any]]] = []

    @property
    def cards(self) -> list[Flashcard]:
        return list(self._cards.values())

    def get(self, card_id: str) -> Flashcard:
        return self._cards[card_id]

    def update_card(self, card_id: str, fields: dict[str, Any]) -> None:
        self.updates.append((card_id, dict(fields)))
        self._cards[card_id] = self._cards[card_id].model_copy(update=fields)


def make_card(card_id: str, **fields: Any) -> Flashcard:
    """Build a card that is due on TODAY unless told otherwise."""
    fields.setdefault("next_review_date", TODAY)
    fields.setdefault("word", f"word-{card_id}")
    return Flashcard(id=card_id, **fields)


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def clock():
    return lambda: TODAY


@pytest.fixture
def now():
    return lambda: datetime(2024, 3, 15, 20, 30)


@pytest.fixture
def rng() -> random.Random:
    return random.Random(42)


@pytest.fixture
def sample_cards() -> list[Flashcard]:
    """Five due cards with mixed scope fields."""
    return [
        make_card("a", jlpt_levels=["N5"], lesson_ids=["1"]),
        make_card("b", jlpt_levels=["N5"], lesson_ids=["2"], memorization_status="memorized"),
        make_card("c", jlpt_levels=["N4"], lesson_ids=["1"], difficulty_level="hard"),
        make_card("d", jlpt_levels=["N4"], difficulty_level="easy"),
        make_card("e", jlpt_levels=["N5", "N4"], memorization_status="not_memorized"),
    ]


@pytest.fixture
def repository(sample_cards) -> FakeCardRepository:
    return FakeCardRepository(sample_cards)


@pytest.fixture
def card_factory():
    return make_card


@pytest.fixture
def repository_factory():
    return FakeCardRepository
