"""Command line interface for studying flashcards and tracking daily words."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import click
from pydantic import ValidationError as SettingsValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from kioku.core.daily_words import DailyWordsTracker
from kioku.core.database import DatabaseManager
from kioku.core.due_cards import ALL, DueCardFilter, select_due_cards
from kioku.core.models import (
    DifficultyLevel,
    Flashcard,
    JLPTLevel,
    MemorizationStatus,
    ReviewRating,
)
from kioku.core.progress_store import JsonFileProgressStore, ProgressStore
from kioku.core.settings import Settings, get_settings
from kioku.core.sm2_scheduler import ReviewScheduler
from kioku.core.study_session import StudySession

console = Console()
logger = logging.getLogger(__name__)

RATING_CHOICES = [rating.name.lower() for rating in ReviewRating]
STUDY_ACTIONS = {
    "f": "flip",
    "n": "next",
    "p": "previous",
    "m": "memorized",
    "x": "not memorized",
    "1": "again",
    "2": "hard",
    "3": "good",
    "4": "easy",
    "q": "quit",
}
RATING_KEYS = {"1": "again", "2": "hard", "3": "good", "4": "easy"}


@dataclass
class AppContext:
    """Process-wide objects shared by all commands."""

    settings: Settings
    db: DatabaseManager
    tracker: DailyWordsTracker


def _configure_logging(settings: Settings) -> None:
    handlers: list[logging.Handler] = [RichHandler(rich_tracebacks=True, show_path=False)]
    if settings.log_file:
        file_handler = logging.FileHandler(settings.log_file, encoding="utf-8")
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        handlers.append(file_handler)
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(message)s",
        datefmt="[%X]",
        handlers=handlers,
    )


def _build_context(settings: Settings) -> AppContext:
    db = DatabaseManager(settings.database_path)
    store: ProgressStore
    if settings.progress_json_path:
        store = JsonFileProgressStore(settings.progress_json_path)
    else:
        store = db.progress_store()
    tracker = DailyWordsTracker(
        store,
        target_words=settings.daily_target_words,
        enabled=settings.daily_words_enabled,
        history_limit=settings.history_limit,
    )
    return AppContext(settings=settings, db=db, tracker=tracker)


def _build_filter(
    level: str | None, status: str | None, difficulty: str | None, lesson: str | None
) -> DueCardFilter:
    return DueCardFilter(
        jlpt_level=level.upper() if level else ALL,
        memorization_status=status or ALL,
        difficulty_level=difficulty or ALL,
        lesson_id=lesson or ALL,
    )


def filter_options(func):
    """Attach the shared scope filter options to a command."""
    func = click.option("--lesson", default=None, help="Lesson id")(func)
    func = click.option(
        "--difficulty",
        type=click.Choice([d.value for d in DifficultyLevel]),
        default=None,
        help="Difficulty level",
    )(func)
    func = click.option(
        "--status",
        type=click.Choice([s.value for s in MemorizationStatus]),
        default=None,
        help="Memorization status",
    )(func)
    func = click.option(
        "--level",
        type=click.Choice([lvl.value for lvl in JLPTLevel], case_sensitive=False),
        default=None,
        help="JLPT level",
    )(func)
    return func


def _card_table(cards: list[Flashcard], title: str) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="cyan")
    table.add_column("Word", style="bold")
    table.add_column("Meaning")
    table.add_column("Status", style="magenta")
    table.add_column("Difficulty", style="yellow")
    table.add_column("Next review", style="green")
    for card in cards:
        table.add_row(
            card.id,
            card.word,
            card.meaning,
            card.memorization_status.value,
            card.difficulty_level.value,
            card.next_review_date.isoformat(),
        )
    return table


@click.group()
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Study flashcards with spaced repetition."""
    try:
        settings = get_settings()
    except SettingsValidationError as e:
        raise click.ClickException(f"Invalid configuration: {e}") from e
    _configure_logging(settings)
    ctx.obj = _build_context(settings)


@cli.command("import-cards")
@click.argument("cards_file", type=click.Path(exists=True, dir_okay=False))
@click.pass_obj
def import_cards(app: AppContext, cards_file: str) -> None:
    """Import cards from a JSON file."""
    count = app.db.load_cards_file(cards_file)
    console.print(f"[green]Imported {count} cards[/green]")


@cli.command()
@filter_options
@click.pass_obj
def due(
    app: AppContext,
    level: str | None,
    status: str | None,
    difficulty: str | None,
    lesson: str | None,
) -> None:
    """List the cards due for review today."""
    cards = select_due_cards(
        app.db.get_flashcards(), _build_filter(level, status, difficulty, lesson)
    )
    if not cards:
        console.print("[yellow]No cards due today[/yellow]")
        return
    console.print(_card_table(cards, f"Due cards ({len(cards)})"))


@cli.command()
@click.argument("card_id")
@click.argument("rating", type=click.Choice(RATING_CHOICES, case_sensitive=False))
@click.pass_obj
def review(app: AppContext, card_id: str, rating: str) -> None:
    """Rate a single card and reschedule it."""
    card = app.db.get_flashcard(card_id)
    if card is None:
        raise click.ClickException(f"Card {card_id} not found")

    schedule = ReviewScheduler(app.db.update_card).review_card(card, rating)
    console.print(
        f"[green]{card.word or card.id}[/green]: next review "
        f"{schedule.next_review_date.isoformat()} "
        f"(interval {schedule.interval}d, ease {schedule.ease_factor:.2f})"
    )


def _show_card(session: StudySession) -> None:
    card = session.current_card
    if card is None:
        return
    body = f"[bold]{card.word or card.id}[/bold]"
    if session.is_flipped:
        body += f"\n{card.reading}\n[green]{card.meaning}[/green]"
    console.print(
        Panel(
            body,
            title=f"{session.current_index + 1}/{session.total_due_cards}",
            subtitle=f"clicks {session.click_count}",
        )
    )


@cli.command()
@filter_options
@click.option("--shuffle", is_flag=True, help="Study in random order")
@click.option(
    "--auto-advance/--no-auto-advance",
    default=None,
    help="Advance after repeated flips (default from settings)",
)
@click.pass_obj
def study(
    app: AppContext,
    level: str | None,
    status: str | None,
    difficulty: str | None,
    lesson: str | None,
    shuffle: bool,
    auto_advance: bool | None,
) -> None:
    """Study due cards interactively."""
    session = StudySession(
        app.db.get_flashcards(),
        app.db.update_card,
        filters=_build_filter(None, status, difficulty, None),
        auto_advance=app.settings.auto_advance if auto_advance is None else auto_advance,
        clicks_to_advance=app.settings.clicks_to_advance,
    )
    session.select_scope(jlpt_level=level.upper() if level else ALL, lesson_id=lesson or ALL)
    if shuffle:
        session.shuffle_cards()

    if not session.has_cards_to_study:
        console.print("[yellow]No cards due today[/yellow]")
        return

    legend = "  ".join(f"{key}={label}" for key, label in STUDY_ACTIONS.items())
    while not session.is_session_complete and session.current_card is not None:
        _show_card(session)
        action = click.prompt(legend, type=click.Choice(list(STUDY_ACTIONS)), show_choices=False)
        if action == "q":
            break
        if action == "f":
            session.flip_card()
        elif action == "n":
            session.go_to_next()
        elif action == "p":
            session.go_to_prev()
        elif action == "m":
            session.set_memorization_status(MemorizationStatus.MEMORIZED)
        elif action == "x":
            session.set_memorization_status(MemorizationStatus.NOT_MEMORIZED)
        else:
            session.rate_card(RATING_KEYS[action])

    summary = session.summary()
    table = Table(title="Session summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    for key in ("total_cards", "cards_studied", "correct_count", "again_count"):
        table.add_row(key.replace("_", " "), str(summary[key]))
    table.add_row("accuracy", f"{summary['accuracy_percentage']}%")
    console.print(table)
    if summary["is_complete"]:
        console.print("[green]Session complete[/green]")


@cli.command()
@filter_options
@click.pass_obj
def reset(
    app: AppContext,
    level: str | None,
    status: str | None,
    difficulty: str | None,
    lesson: str | None,
) -> None:
    """Restore due cards to their author-set status and difficulty."""
    session = StudySession(
        app.db.get_flashcards(),
        app.db.update_card,
        filters=_build_filter(level, status, difficulty, lesson),
    )
    report = session.reset_all()
    console.print(f"[green]Reset {len(report.reset_ids)} cards[/green]")
    if report.failed_ids:
        console.print(f"[red]Failed: {', '.join(report.failed_ids)}[/red]")


@cli.group()
@click.pass_obj
def daily(app: AppContext) -> None:
    """Daily words quota."""
    app.tracker.initialize(app.db.get_flashcards())


def _print_daily(app: AppContext) -> None:
    tracker = app.tracker
    if not tracker.enabled:
        console.print("[yellow]Daily words are disabled[/yellow]")
        return
    if tracker.current_session is None:
        console.print("[yellow]No daily words yet, import some cards first[/yellow]")
        return

    progress = tracker.progress
    learned = tracker.completed_word_ids
    table = Table(
        title=f"Daily words {progress.completed}/{progress.target} ({progress.percent}%)"
    )
    table.add_column("ID", style="cyan")
    table.add_column("Word", style="bold")
    table.add_column("Meaning")
    table.add_column("Learned", style="green")
    for card in tracker.today_words(app.db.get_flashcards()):
        table.add_row(card.id, card.word, card.meaning, "yes" if card.id in learned else "")
    console.print(table)

    if tracker.is_completed:
        console.print("[green]Today's words are done[/green]")
    console.print(f"Streak: {tracker.streak} (longest {tracker.longest_streak})")


@daily.command("show")
@click.pass_obj
def daily_show(app: AppContext) -> None:
    """Show today's words and progress."""
    _print_daily(app)
    if app.tracker.show_notification:
        console.print("[blue]Reminder: today's words are waiting[/blue]")


@daily.command("learn")
@click.argument("word_id")
@click.pass_obj
def daily_learn(app: AppContext, word_id: str) -> None:
    """Mark one of today's words as learned."""
    app.tracker.mark_word_learned(word_id)
    if app.tracker.just_completed:
        console.print("[bold green]Daily goal reached![/bold green]")
        app.tracker.acknowledge_completion()
    _print_daily(app)


@daily.command("complete")
@click.pass_obj
def daily_complete(app: AppContext) -> None:
    """Mark all of today's words as learned."""
    app.tracker.mark_all_learned()
    _print_daily(app)


@daily.command("refresh")
@click.pass_obj
def daily_refresh(app: AppContext) -> None:
    """Pick a new set of words for today."""
    app.tracker.refresh_words(app.db.get_flashcards())
    _print_daily(app)


@daily.command("dismiss")
@click.pass_obj
def daily_dismiss(app: AppContext) -> None:
    """Hide today's reminder."""
    app.tracker.dismiss_notification()
    console.print("Reminder dismissed for today")


@cli.command()
@click.pass_obj
def streak(app: AppContext) -> None:
    """Show the daily words streak."""
    app.tracker.initialize(app.db.get_flashcards())
    summary = app.tracker.streak_summary()
    console.print(f"Current streak: {app.tracker.streak}")
    console.print(f"Longest streak: {max(app.tracker.longest_streak, summary.longest)}")


def main() -> None:
    """Entry point for the kioku command."""
    cli()


if __name__ == "__main__":
    main()
