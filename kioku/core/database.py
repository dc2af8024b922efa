"""SQLite storage for cards and learner progress."""

from __future__ import annotations

import json
import logging
from collections.abc import Generator, Iterable
from contextlib import contextmanager
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

from sqlalchemy import create_engine, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from kioku.core.errors import CardNotFoundError, StorageError
from kioku.core.models import (
    Base,
    DailyWordsState,
    Flashcard,
    FlashcardRecord,
    ProgressRecord,
)
from kioku.core.progress_store import (
    PROGRESS_KEY,
    parse_progress_state,
    serialize_progress_state,
)

logger = logging.getLogger(__name__)

_LIST_COLUMNS = ("jlpt_levels", "lesson_ids")


def _to_column_value(name: str, value: Any) -> Any:
    if name in _LIST_COLUMNS:
        return json.dumps([item.value if isinstance(item, Enum) else item for item in value])
    if isinstance(value, Enum):
        return value.value
    return value


def _record_to_card(record: FlashcardRecord) -> Flashcard:
    return Flashcard(
        id=record.id,
        word=record.word,
        reading=record.reading,
        meaning=record.meaning,
        ease_factor=record.ease_factor,
        interval=record.interval,
        repetitions=record.repetitions,
        next_review_date=record.next_review_date,
        last_reviewed=record.last_reviewed,
        memorization_status=record.memorization_status,
        difficulty_level=record.difficulty_level,
        original_difficulty_level=record.original_difficulty_level,
        jlpt_levels=json.loads(record.jlpt_levels or "[]"),
        lesson_ids=json.loads(record.lesson_ids or "[]"),
    )


class DatabaseManager:
    """Manages the SQLite database holding cards and progress."""

    def __init__(self, db_path: str | Path = "data/kioku.db") -> None:
        """Initialize database manager.

        Args:
            db_path: Path to the SQLite database file, or ":memory:"
        """
        if str(db_path) == ":memory:":
            self.db_path = None
            url = "sqlite://"
        else:
            self.db_path = Path(db_path)
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            url = f"sqlite:///{self.db_path}"

        self.engine = create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=False,
        )
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)
        self._create_tables()

    def _create_tables(self) -> None:
        """Create all database tables."""
        Base.metadata.create_all(bind=self.engine)
        logger.info(f"Database initialized at {self.db_path or ':memory:'}")

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """Get a database session context manager.

        Yields:
            Database session.
        """
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ------------------------------------------------------------------
    # Cards
    # ------------------------------------------------------------------

    def import_cards(self, records: Iterable[dict[str, Any] | Flashcard]) -> int:
        """Insert or replace cards.

        Raw records are normalized on the way in, so legacy shapes never
        reach the engine.

        Args:
            records: Card dicts (camelCase or snake_case) or ``Flashcard`` objects

        Returns:
            Number of cards stored.
        """
        cards = [
            record if isinstance(record, Flashcard) else Flashcard.model_validate(record)
            for record in records
        ]
        with self.get_session() as session:
            for card in cards:
                values = {
                    name: _to_column_value(name, getattr(card, name))
                    for name in Flashcard.model_fields
                }
                session.merge(FlashcardRecord(**values))
        logger.info(f"Imported {len(cards)} cards")
        return len(cards)

    def load_cards_file(self, cards_file: str | Path) -> int:
        """Import cards from a JSON file holding a list of card records."""
        path = Path(cards_file)
        if not path.exists():
            raise FileNotFoundError(f"Cards file not found: {path}")

        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        if isinstance(data, dict):
            data = data.get("cards", [])
        return self.import_cards(data)

    def get_flashcards(self) -> list[Flashcard]:
        """Return every card, ordered by id."""
        with self.get_session() as session:
            records = session.scalars(select(FlashcardRecord).order_by(FlashcardRecord.id))
            return [_record_to_card(record) for record in records]

    def get_flashcard(self, card_id: str) -> Flashcard | None:
        with self.get_session() as session:
            record = session.get(FlashcardRecord, card_id)
            return _record_to_card(record) if record else None

    def update_card(self, card_id: str, fields: dict[str, Any]) -> None:
        """Apply a partial update to a stored card.

        Raises:
            CardNotFoundError: If no card has the given id
        """
        with self.get_session() as session:
            record = session.get(FlashcardRecord, card_id)
            if record is None:
                raise CardNotFoundError(card_id)
            for name, value in fields.items():
                if name not in Flashcard.model_fields or name == "id":
                    logger.warning(f"Ignoring unknown card field {name!r}")
                    continue
                setattr(record, name, _to_column_value(name, value))

    # ------------------------------------------------------------------
    # Key-value progress
    # ------------------------------------------------------------------

    def get_value(self, key: str) -> str | None:
        try:
            with self.get_session() as session:
                record = session.get(ProgressRecord, key)
                return record.value if record else None
        except SQLAlchemyError as e:
            raise StorageError(f"Cannot read {key}: {e}", key) from e

    def set_value(self, key: str, value: str) -> None:
        try:
            with self.get_session() as session:
                session.merge(
                    ProgressRecord(
                        key=key, value=value, updated_at=datetime.now(UTC).timestamp()
                    )
                )
        except SQLAlchemyError as e:
            raise StorageError(f"Cannot write {key}: {e}", key) from e

    def progress_store(self, key: str = PROGRESS_KEY) -> DatabaseProgressStore:
        """Return a progress store persisting under ``key``."""
        return DatabaseProgressStore(self, key)


class DatabaseProgressStore:
    """Progress store backed by the key-value table."""

    def __init__(self, db_manager: DatabaseManager, key: str = PROGRESS_KEY) -> None:
        self.db_manager = db_manager
        self.key = key

    def load(self) -> DailyWordsState | None:
        return parse_progress_state(self.db_manager.get_value(self.key))

    def save(self, state: DailyWordsState) -> None:
        self.db_manager.set_value(self.key, serialize_progress_state(state))
