"""Persistence port for daily-words progress.

The tracker only needs ``load`` and ``save``. Progress is stored as plain
JSON under a fixed key; records written by older versions are migrated on
load, and unreadable records are treated as a cold start.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Protocol

from pydantic import ValidationError as PydanticValidationError

from kioku.core.errors import StorageError
from kioku.core.models import DailyWordsState

logger = logging.getLogger(__name__)

PROGRESS_KEY = "daily-words-data"


class ProgressStore(Protocol):
    """Key-value persistence for ``DailyWordsState``."""

    def load(self) -> DailyWordsState | None: ...

    def save(self, state: DailyWordsState) -> None: ...


def migrate_progress_record(record: dict[str, Any]) -> dict[str, Any]:
    """Fill in fields missing from records written by older versions."""
    migrated = dict(record)
    session = migrated.get("currentSession")
    if isinstance(session, dict) and not (
        session.get("learnedWordIds") or session.get("learned_word_ids")
    ):
        migrated["currentSession"] = {**session, "learnedWordIds": []}
    if not (migrated.get("todayWords") or migrated.get("today_words")):
        migrated.pop("today_words", None)
        migrated["todayWords"] = []
    return migrated


def parse_progress_state(raw: str | bytes | dict[str, Any] | None) -> DailyWordsState | None:
    """Decode a stored progress record.

    Args:
        raw: JSON text or an already decoded record

    Returns:
        Parsed state, or None when nothing usable is stored
    """
    if raw is None or raw == "" or raw == b"":
        return None

    if isinstance(raw, str | bytes):
        try:
            raw = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Ignoring malformed progress record: {e}")
            return None

    if not isinstance(raw, dict):
        logger.warning(f"Ignoring progress record of type {type(raw).__name__}")
        return None

    try:
        return DailyWordsState.model_validate(migrate_progress_record(raw))
    except PydanticValidationError as e:
        logger.warning(f"Ignoring invalid progress record: {e.error_count()} errors")
        return None


def serialize_progress_state(state: DailyWordsState) -> str:
    """Encode progress as JSON text."""
    return json.dumps(state.to_record(), ensure_ascii=False)


class InMemoryProgressStore:
    """Progress store kept in process memory."""

    def __init__(self, initial: str | None = None) -> None:
        self.data: dict[str, str] = {}
        if initial is not None:
            self.data[PROGRESS_KEY] = initial

    def load(self) -> DailyWordsState | None:
        return parse_progress_state(self.data.get(PROGRESS_KEY))

    def save(self, state: DailyWordsState) -> None:
        self.data[PROGRESS_KEY] = serialize_progress_state(state)


class JsonFileProgressStore:
    """Progress store backed by a JSON file."""

    def __init__(self, path: str | Path) -> None:
        """Initialize JSON file store.

        Args:
            path: Location of the JSON file; parent directories are created on save
        """
        self.path = Path(path)

    def load(self) -> DailyWordsState | None:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except UnicodeDecodeError as e:
            logger.warning(f"Ignoring unreadable progress file {self.path}: {e}")
            return None
        except OSError as e:
            raise StorageError(f"Cannot read {self.path}: {e}", PROGRESS_KEY) from e
        return parse_progress_state(text)

    def save(self, state: DailyWordsState) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(serialize_progress_state(state), encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Cannot write {self.path}: {e}", PROGRESS_KEY) from e
