"""Tests for the kioku command line interface."""

from __future__ import annotations

import json
from datetime import date, timedelta

import pytest
from click.testing import CliRunner

from kioku.cli.study_cli import cli
from kioku.core.database import DatabaseManager
from kioku.core.models import MemorizationStatus


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "kioku.db"


@pytest.fixture
def invoke(db_path):
    """Run a CLI command against a temporary database."""
    runner = CliRunner()

    def _invoke(*args, **kwargs):
        env = {"KIOKU_DATABASE_PATH": str(db_path), "KIOKU_LOG_LEVEL": "WARNING"}
        env.update(kwargs.pop("env", {}))
        return runner.invoke(cli, list(args), env=env, **kwargs)

    return _invoke


@pytest.fixture
def cards_file(tmp_path):
    path = tmp_path / "cards.json"
    path.write_text(
        json.dumps(
            [
                {"id": "1", "word": "水", "meaning": "water", "jlptLevel": "N5"},
                {
                    "id": "2",
                    "word": "雨",
                    "meaning": "rain",
                    "jlptLevels": ["N4"],
                    "memorizationStatus": "memorized",
                },
                {
                    "id": "3",
                    "word": "空",
                    "meaning": "sky",
                    "nextReviewDate": (date.today() + timedelta(days=5)).isoformat(),
                },
            ]
        ),
        encoding="utf-8",
    )
    return path


@pytest.fixture
def imported(invoke, cards_file):
    result = invoke("import-cards", str(cards_file))
    assert result.exit_code == 0, result.output
    return result


class TestStudyCLI:
    """Tests for card commands."""

    def test_import_cards(self, imported):
        assert "Imported 3 cards" in imported.output

    def test_due_lists_only_due_cards(self, invoke, imported):
        result = invoke("due")

        assert result.exit_code == 0
        assert "Due cards (2)" in result.output
        assert "water" in result.output
        assert "sky" not in result.output

    def test_due_with_filter(self, invoke, imported):
        result = invoke("due", "--level", "n4")

        assert result.exit_code == 0
        assert "Due cards (1)" in result.output
        assert "rain" in result.output

    def test_due_without_cards(self, invoke):
        result = invoke("due")

        assert result.exit_code == 0
        assert "No cards due today" in result.output

    def test_review_reschedules(self, invoke, imported, db_path):
        result = invoke("review", "1", "good")

        assert result.exit_code == 0
        assert "interval 1d" in result.output
        card = DatabaseManager(db_path).get_flashcard("1")
        assert card.repetitions == 1
        assert card.next_review_date == date.today() + timedelta(days=1)

    def test_review_unknown_card(self, invoke, imported):
        result = invoke("review", "99", "good")

        assert result.exit_code == 1
        assert "Card 99 not found" in result.output

    def test_review_rejects_unknown_rating(self, invoke, imported):
        result = invoke("review", "1", "perfect")

        assert result.exit_code == 2

    def test_study_rates_every_card(self, invoke, imported, db_path):
        result = invoke("study", input="3\n1\n")

        assert result.exit_code == 0, result.output
        assert "Session summary" in result.output
        assert "Session complete" in result.output
        db = DatabaseManager(db_path)
        assert db.get_flashcard("1").interval == 1
        assert db.get_flashcard("2").repetitions == 0

    def test_study_quit_early(self, invoke, imported, db_path):
        result = invoke("study", input="f\nm\nq\n")

        assert result.exit_code == 0, result.output
        assert "Session complete" not in result.output
        db = DatabaseManager(db_path)
        assert db.get_flashcard("1").memorization_status == MemorizationStatus.MEMORIZED

    def test_study_without_due_cards(self, invoke, imported):
        result = invoke("study", "--level", "N1")

        assert result.exit_code == 0
        assert "No cards due today" in result.output

    def test_reset(self, invoke, imported, db_path):
        result = invoke("reset")

        assert result.exit_code == 0
        assert "Reset 1 cards" in result.output
        card = DatabaseManager(db_path).get_flashcard("2")
        assert card.memorization_status == MemorizationStatus.UNSET

    def test_invalid_configuration(self, invoke):
        result = invoke("due", env={"KIOKU_DAILY_TARGET_WORDS": "7"})

        assert result.exit_code == 1
        assert "Invalid configuration" in result.output


class TestDailyCLI:
    """Tests for daily words commands."""

    def test_show(self, invoke, imported):
        result = invoke("daily", "show")

        assert result.exit_code == 0, result.output
        assert "Daily words 0/3 (0%)" in result.output
        assert "Reminder" in result.output

    def test_learning_every_word_reaches_goal(self, invoke, imported):
        for word_id in ("1", "2"):
            result = invoke("daily", "learn", word_id)
            assert result.exit_code == 0, result.output
        assert "Daily goal reached!" not in result.output

        result = invoke("daily", "learn", "3")

        assert "Daily goal reached!" in result.output
        assert "Today's words are done" in result.output
        assert "Current streak: 1" in invoke("streak").output

    def test_complete(self, invoke, imported):
        result = invoke("daily", "complete")

        assert result.exit_code == 0
        assert "Daily words 3/3 (100%)" in result.output
        assert "Streak: 1" in result.output

    def test_refresh_keeps_completed_day(self, invoke, imported):
        invoke("daily", "complete")

        result = invoke("daily", "refresh")

        assert result.exit_code == 0
        assert "Today's words are done" in result.output

    def test_dismiss_hides_reminder(self, invoke, imported):
        result = invoke("daily", "dismiss")
        assert "Reminder dismissed for today" in result.output

        result = invoke("daily", "show")

        assert "Reminder:" not in result.output

    def test_disabled(self, invoke, imported):
        result = invoke("daily", "show", env={"KIOKU_DAILY_WORDS_ENABLED": "false"})

        assert "Daily words are disabled" in result.output

    def test_progress_in_json_file(self, invoke, imported, tmp_path):
        progress_path = tmp_path / "progress.json"

        invoke("daily", "complete", env={"KIOKU_PROGRESS_JSON_PATH": str(progress_path)})

        record = json.loads(progress_path.read_text(encoding="utf-8"))
        assert record["currentSession"]["isCompleted"] is True
        assert record["streak"] == 1

    def test_streak_without_progress(self, invoke):
        result = invoke("streak")

        assert result.exit_code == 0
        assert "Current streak: 0" in result.output
        assert "Longest streak: 0" in result.output
