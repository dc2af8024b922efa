"""Daily words quota and learning streaks.

Each calendar day gets a fixed random subset of cards to learn. Completing
the subset extends the streak of consecutive completed days. Progress is
kept in a ``DailyWordsState`` that is mirrored to a ``ProgressStore`` after
every mutation.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from kioku.core.errors import StorageError, ValidationError
from kioku.core.models import (
    DailyProgress,
    DailyWordsSession,
    DailyWordsState,
    Flashcard,
    MemorizationStatus,
)
from kioku.core.progress_store import ProgressStore
from kioku.core.settings import ALLOWED_DAILY_TARGETS

logger = logging.getLogger(__name__)

DEFAULT_TARGET_WORDS = 10
DEFAULT_HISTORY_LIMIT = 30


@dataclass(frozen=True)
class StreakSummary:
    """Current and longest runs of consecutive completed days."""

    current: int
    longest: int


def compute_streak(
    history: Iterable[DailyWordsSession],
    today_session: DailyWordsSession | None,
    today: date,
) -> StreakSummary:
    """Recompute streaks from scratch.

    The current streak is the run of consecutive completed days ending today
    or yesterday; any older run no longer counts as current.

    Args:
        history: Archived sessions
        today_session: Today's session, if any
        today: Reference date

    Returns:
        Current and longest streaks
    """
    sessions = list(history)
    if today_session is not None:
        sessions.append(today_session)

    days = sorted(
        {session.session_date for session in sessions if session.is_completed},
        reverse=True,
    )
    if not days:
        return StreakSummary(current=0, longest=0)

    current = 0
    if days[0] in (today, today - timedelta(days=1)):
        current = 1
        for newer, older in zip(days, days[1:]):
            if (newer - older).days != 1:
                break
            current += 1

    longest = run = 1
    for newer, older in zip(days, days[1:]):
        run = run + 1 if (newer - older).days == 1 else 1
        longest = max(longest, run)

    return StreakSummary(current=current, longest=max(longest, current))


def update_streak(
    history: Iterable[DailyWordsSession],
    current_streak: int,
    today: date,
) -> int:
    """Return the streak after today's quota is completed.

    Continues the streak when the last completed day was yesterday (or there
    is none yet), keeps it when today already counted, and restarts at 1
    after a gap.
    """
    completed = [session.session_date for session in history if session.is_completed]
    last_completed = max(completed) if completed else None

    if last_completed is None or last_completed == today - timedelta(days=1):
        return current_streak + 1
    if last_completed == today:
        return current_streak
    return 1


def _effective_target(session: DailyWordsSession) -> int:
    # a collection smaller than the target yields fewer words than the target
    if not session.word_ids:
        return session.target_words
    return min(session.target_words, len(session.word_ids))


def select_daily_words(
    cards: Sequence[Flashcard],
    target_words: int,
    rng: random.Random,
) -> list[Flashcard]:
    """Pick a random subset of cards, preferring ones not yet memorized."""
    not_memorized = [
        card for card in cards if card.memorization_status != MemorizationStatus.MEMORIZED
    ]
    pool = not_memorized if len(not_memorized) >= target_words else list(cards)
    pool = list(pool)
    rng.shuffle(pool)  # Fisher-Yates
    return pool[:target_words]


class DailyWordsTracker:
    """Tracks today's word quota, per-word completion and streaks."""

    def __init__(
        self,
        store: ProgressStore,
        target_words: int = DEFAULT_TARGET_WORDS,
        enabled: bool = True,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        clock: Callable[[], date] | None = None,
        now: Callable[[], datetime] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize daily words tracker.

        Args:
            store: Persistence port for the progress state
            target_words: Words to learn per day (5, 10, 15 or 20)
            enabled: Whether daily words are turned on
            history_limit: Number of past sessions kept
            clock: Callable returning today's date
            now: Callable returning the current time, used for completion stamps
            rng: Random source for word selection
        """
        if target_words not in ALLOWED_DAILY_TARGETS:
            raise ValidationError(
                f"target_words must be one of {ALLOWED_DAILY_TARGETS}", "target_words"
            )
        if history_limit < 1:
            raise ValidationError("history_limit must be positive", "history_limit")

        self.store = store
        self.target_words = target_words
        self.enabled = enabled
        self.history_limit = history_limit
        self.clock = clock or date.today
        self.now = now or datetime.now
        self.rng = rng or random.Random()

        self.state = DailyWordsState()
        self.is_initialized = False
        self.just_completed = False

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load(self) -> DailyWordsState:
        try:
            state = self.store.load()
        except StorageError as e:
            logger.warning(f"Could not load daily words progress, starting fresh: {e}")
            return DailyWordsState()
        return state or DailyWordsState()

    def _save(self) -> None:
        self.state.history = self.state.history[-self.history_limit :]
        try:
            self.store.save(self.state)
        except StorageError as e:
            logger.error(f"Failed to save daily words progress: {e}")

    # ------------------------------------------------------------------
    # Day rollover
    # ------------------------------------------------------------------

    def _new_session(self, cards: Sequence[Flashcard], today: date) -> DailyWordsSession:
        words = select_daily_words(cards, self.target_words, self.rng)
        return DailyWordsSession(
            session_date=today,
            target_words=self.target_words,
            word_ids=[word.id for word in words],
        )

    def initialize(self, cards: Sequence[Flashcard]) -> None:
        """Load progress and make sure there is a session for today.

        On the first call of a new day the previous session is archived and
        today's words are selected.
        """
        self.state = self._load()
        today = self.clock()

        if not self.enabled or not cards:
            self.is_initialized = True
            return

        current = self.state.current_session
        if current is not None and current.session_date == today:
            known = {card.id for card in cards}
            self.state.today_words = [word_id for word_id in current.word_ids if word_id in known]
            self.is_initialized = True
            self._save()
            return

        history = list(self.state.history)
        if current is not None:
            history.append(current)
        history = history[-self.history_limit :]

        existing = next((s for s in history if s.session_date == today), None)
        if existing is not None:
            session = existing
            history = [s for s in history if s.session_date != today]
            logger.info(f"Restored daily words session for {today.isoformat()}")
        else:
            session = self._new_session(cards, today)
            logger.info(
                f"Selected {len(session.word_ids)} daily words for {today.isoformat()}"
            )

        streaks = compute_streak(history, session, today)
        self.state.current_session = session
        self.state.today_words = list(session.word_ids)
        self.state.history = history
        self.state.streak = streaks.current
        self.state.longest_streak = max(self.state.longest_streak, streaks.longest)

        self.is_initialized = True
        self._save()

    # ------------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------------

    def _complete(self, session: DailyWordsSession) -> None:
        session.is_completed = True
        session.completed_at = self.now()

        today = self.clock()
        self.state.streak = update_streak(self.state.history, self.state.streak, today)
        self.state.longest_streak = max(self.state.longest_streak, self.state.streak)
        self.just_completed = True
        logger.info(
            f"Daily words completed for {today.isoformat()}, streak {self.state.streak}"
        )

    def mark_word_learned(self, word_id: str) -> None:
        """Record one of today's words as learned."""
        session = self.state.current_session
        if session is None or session.is_completed:
            return
        if word_id not in session.word_ids or word_id in session.learned_word_ids:
            return

        session.learned_word_ids.append(word_id)
        session.completed_words = len(session.learned_word_ids)
        if session.completed_words >= _effective_target(session):
            self._complete(session)
        self._save()

    def mark_all_learned(self) -> None:
        """Complete today's quota in one step."""
        session = self.state.current_session
        if session is None or session.is_completed:
            return

        session.learned_word_ids = list(session.word_ids)
        session.completed_words = len(session.learned_word_ids)
        self._complete(session)
        self._save()

    def refresh_words(self, cards: Sequence[Flashcard]) -> None:
        """Replace today's words with a new random selection.

        Learned words are cleared. A day that was already completed stays
        completed, so refreshing never touches the streak.
        """
        if not self.enabled or not cards:
            return

        previous = self.state.current_session
        session = self._new_session(cards, self.clock())
        if previous is not None and previous.session_date == session.session_date:
            session.is_completed = previous.is_completed
            session.completed_at = previous.completed_at

        self.state.current_session = session
        self.state.today_words = list(session.word_ids)
        logger.info(f"Refreshed daily words: {len(session.word_ids)} selected")
        self._save()

    def acknowledge_completion(self) -> None:
        """Clear the just-completed flag once the celebration was shown."""
        self.just_completed = False

    def dismiss_notification(self) -> None:
        """Hide the daily reminder for the rest of today."""
        self.state.notification_dismissed_date = self.clock()
        self._save()

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    @property
    def current_session(self) -> DailyWordsSession | None:
        return self.state.current_session

    @property
    def is_completed(self) -> bool:
        session = self.state.current_session
        return bool(session and session.is_completed)

    @property
    def streak(self) -> int:
        return self.state.streak

    @property
    def longest_streak(self) -> int:
        return self.state.longest_streak

    @property
    def completed_word_ids(self) -> set[str]:
        session = self.state.current_session
        return set(session.learned_word_ids) if session else set()

    @property
    def progress(self) -> DailyProgress:
        session = self.state.current_session
        if session is None:
            return DailyProgress(completed=0, target=self.target_words)
        return DailyProgress(
            completed=session.completed_words, target=_effective_target(session)
        )

    @property
    def show_notification(self) -> bool:
        """Whether the daily reminder should be shown."""
        if not self.enabled or self.is_completed:
            return False
        return self.state.notification_dismissed_date != self.clock()

    def today_words(self, cards: Iterable[Flashcard]) -> list[Flashcard]:
        """Resolve today's word ids against the card collection."""
        session = self.state.current_session
        if session is None:
            return []
        by_id = {card.id: card for card in cards}
        return [by_id[word_id] for word_id in session.word_ids if word_id in by_id]

    def streak_summary(self) -> StreakSummary:
        """Recompute streaks from history and today's session."""
        return compute_streak(self.state.history, self.state.current_session, self.clock())
