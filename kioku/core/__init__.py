"""Core module for the Kioku spaced-repetition study engine."""

from kioku.core.daily_words import (
    DailyWordsTracker,
    StreakSummary,
    compute_streak,
    select_daily_words,
    update_streak,
)
from kioku.core.database import DatabaseManager, DatabaseProgressStore
from kioku.core.due_cards import DueCardFilter, select_due_cards
from kioku.core.errors import (
    CardNotFoundError,
    KiokuError,
    StorageError,
    ValidationError,
)
from kioku.core.models import (
    DailyProgress,
    DailyWordsSession,
    DailyWordsState,
    DifficultyLevel,
    Flashcard,
    JLPTLevel,
    MemorizationStatus,
    ReviewRating,
    StudyStats,
    normalize_card_record,
)
from kioku.core.progress_store import (
    PROGRESS_KEY,
    InMemoryProgressStore,
    JsonFileProgressStore,
    ProgressStore,
)
from kioku.core.sm2_scheduler import (
    ReviewSchedule,
    ReviewScheduler,
    calculate_next_review,
)
from kioku.core.study_session import ResetReport, SessionPhase, StudySession

__all__ = [
    # Models
    "Flashcard",
    "MemorizationStatus",
    "DifficultyLevel",
    "JLPTLevel",
    "ReviewRating",
    "StudyStats",
    "DailyWordsSession",
    "DailyWordsState",
    "DailyProgress",
    "normalize_card_record",
    # Scheduling
    "ReviewSchedule",
    "ReviewScheduler",
    "calculate_next_review",
    "DueCardFilter",
    "select_due_cards",
    # Sessions
    "StudySession",
    "SessionPhase",
    "ResetReport",
    # Daily words
    "DailyWordsTracker",
    "StreakSummary",
    "compute_streak",
    "update_streak",
    "select_daily_words",
    # Persistence
    "ProgressStore",
    "InMemoryProgressStore",
    "JsonFileProgressStore",
    "DatabaseManager",
    "DatabaseProgressStore",
    "PROGRESS_KEY",
    # Errors
    "KiokuError",
    "ValidationError",
    "StorageError",
    "CardNotFoundError",
]
