"""
Typer CLI for studyhabits.

Commands:
    studyhabits deck list                 - List decks with due counts
    studyhabits deck add NAME             - Create a deck
    studyhabits deck remove DECK          - Delete a deck and its cards
    studyhabits card add DECK FRONT BACK  - Add a card
    studyhabits card list DECK            - List cards of a deck
    studyhabits card remove CARD_ID       - Delete a card
    studyhabits review DECK               - Review due cards interactively
    studyhabits timer status|start|pause|skip|stop|watch|settings
    studyhabits read list|add|run         - RSVP reading library and player
    studyhabits stats                     - Study history summary

Usage:
    studyhabits --help
    studyhabits deck add "Spanish verbs"
    studyhabits timer start && studyhabits timer watch
    studyhabits read run <text-id> --rate 450
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Optional

import typer
from loguru import logger
from rich.align import Align
from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.progress_bar import ProgressBar
from rich.prompt import Confirm, Prompt
from rich.table import Table
from rich.text import Text

from studyhabits.config import get_settings
from studyhabits.core.clock import LoopClock
from studyhabits.delivery.deck import Deck, ReviewOutcome
from studyhabits.delivery.item_store import ItemStore
from studyhabits.delivery.scheduler import SM2Config, SM2Scheduler
from studyhabits.delivery.state_store import StateStore
from studyhabits.delivery.study_session import SessionState, StudySession
from studyhabits.study.pomodoro_engine import PomodoroEngine, TimerMode, TimerSettings, TimerSnapshot
from studyhabits.study.reader_engine import PlaybackSnapshot, ReaderEngine, ReaderSettings
from studyhabits.study.study_log import StudyLog, StudyMethod

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="studyhabits",
    help="studyhabits: flashcards, pomodoro timer and RSVP reader",
    no_args_is_help=True,
)
deck_app = typer.Typer(help="Manage flashcard decks", no_args_is_help=True)
card_app = typer.Typer(help="Manage flashcards", no_args_is_help=True)
timer_app = typer.Typer(help="Pomodoro timer", no_args_is_help=True)
read_app = typer.Typer(help="RSVP speed reading", no_args_is_help=True)

app.add_typer(deck_app, name="deck")
app.add_typer(card_app, name="card")
app.add_typer(timer_app, name="timer")
app.add_typer(read_app, name="read")

console = Console()

MODE_STYLES = {
    TimerMode.WORK: "bold red",
    TimerMode.SHORT_BREAK: "bold green",
    TimerMode.LONG_BREAK: "bold blue",
}

ANSWER_KEYS = {
    "1": ReviewOutcome.FAIL,
    "2": ReviewOutcome.HARD,
    "3": ReviewOutcome.GOOD,
    "4": ReviewOutcome.EASY,
}


# ========================================
# Context Builder (Dependency Injection)
# ========================================


class CLIContext:
    """
    Dependency injection container for CLI commands.

    Engines are built lazily so a command only loads the state it touches.
    """

    def __init__(self, db_path: Path | None = None):
        self.settings = get_settings()
        self.db_path = db_path or self.settings.state_db_path
        self._store: StateStore | None = None
        self._clock: LoopClock | None = None
        self._study_log: StudyLog | None = None
        self._items: ItemStore | None = None
        self._timer: PomodoroEngine | None = None
        self._reader: ReaderEngine | None = None

    @property
    def store(self) -> StateStore:
        if self._store is None:
            self._store = StateStore(self.db_path)
        return self._store

    @property
    def clock(self) -> LoopClock:
        if self._clock is None:
            self._clock = LoopClock()
        return self._clock

    @property
    def study_log(self) -> StudyLog:
        if self._study_log is None:
            self._study_log = StudyLog(self.store)
            self._study_log.load()
        return self._study_log

    @property
    def items(self) -> ItemStore:
        if self._items is None:
            scheduler = SM2Scheduler(SM2Config(max_interval_days=self.settings.max_interval_days))
            self._items = ItemStore(self.store, scheduler, now=self.clock.now)
            self._items.load()
        return self._items

    @property
    def timer(self) -> PomodoroEngine:
        if self._timer is None:
            self._timer = PomodoroEngine(
                self.store,
                self.clock,
                settings=TimerSettings(**self.settings.get_timer_defaults()),
                on_session_complete=self.study_log.record,
            )
            self._timer.reconcile()
        return self._timer

    @property
    def reader(self) -> ReaderEngine:
        if self._reader is None:
            defaults = self.settings.get_reader_defaults()
            self._reader = ReaderEngine(
                self.store,
                self.clock,
                settings=ReaderSettings(default_rate_wpm=defaults["default_rate_wpm"]),
                on_session_complete=self.study_log.record,
                skip_step=defaults["skip_step_tokens"],
            )
            self._reader.load()
        return self._reader

    def run(self, coro) -> None:
        """Run a coroutine on the clock's loop so engine ticks fire."""
        self.clock.loop.run_until_complete(coro)

    def close(self) -> None:
        if self._clock is not None:
            self._clock.loop.close()
        if self._store is not None:
            self._store.close()


@app.callback()
def main_callback(
    ctx: typer.Context,
    db: Optional[Path] = typer.Option(
        None,
        "--db",
        help="State database (defaults to STUDYHABITS_STATE_DB_PATH)",
    ),
) -> None:
    """Personal study-habit tracker."""
    state = CLIContext(db_path=db)
    ctx.obj = state
    ctx.call_on_close(state.close)


def _ctx(ctx: typer.Context) -> CLIContext:
    return ctx.find_root().obj


def _resolve_deck(items: ItemStore, key: str) -> Deck:
    """Find a deck by id or (case-insensitive) name, or exit."""
    deck = items.get_deck(key)
    if deck is None:
        deck = next((d for d in items.decks if d.name.lower() == key.lower()), None)
    if deck is None:
        console.print(f"[red]No deck named or identified by '{key}'[/red]")
        raise typer.Exit(1)
    return deck


# =============================================================================
# Decks
# =============================================================================


@deck_app.command("list")
def deck_list(ctx: typer.Context) -> None:
    """List decks with their card counts."""
    items = _ctx(ctx).items
    current = items.current_deck()

    table = Table(title="Decks")
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Cards", justify="right")
    table.add_column("Due", justify="right")

    for deck in items.decks:
        name = f"[bold]{deck.name}[/bold] *" if current and current.id == deck.id else deck.name
        due = f"[yellow]{deck.due_count}[/yellow]" if deck.due_count else "0"
        table.add_row(deck.id, name, str(deck.total_count), due)

    console.print(table)


@deck_app.command("add")
def deck_add(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Deck name"),
    description: str = typer.Option("", "--description", "-d", help="Short description"),
    color: str = typer.Option("#4F46E5", "--color", "-c", help="Color tag"),
) -> None:
    """Create a deck."""
    deck = _ctx(ctx).items.create_deck(name, description=description, color=color)
    console.print(f"[green]Created deck[/green] {deck.name} [dim]({deck.id})[/dim]")


@deck_app.command("remove")
def deck_remove(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Deck id or name"),
    confirm: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete a deck together with its cards."""
    items = _ctx(ctx).items
    deck = _resolve_deck(items, key)

    if not confirm and not Confirm.ask(f"Delete {deck.name} and its {deck.total_count} cards?", default=False):
        raise typer.Exit(0)

    items.delete_deck(deck.id)
    console.print(f"[green]Deleted deck[/green] {deck.name}")


# =============================================================================
# Cards
# =============================================================================


@card_app.command("add")
def card_add(
    ctx: typer.Context,
    deck_key: str = typer.Argument(..., metavar="DECK", help="Deck id or name"),
    front: str = typer.Argument(..., help="Question side"),
    back: str = typer.Argument(..., help="Answer side"),
) -> None:
    """Add a card (due immediately)."""
    items = _ctx(ctx).items
    deck = _resolve_deck(items, deck_key)
    card = items.create_card(deck.id, front, back)
    console.print(f"[green]Added card[/green] {card.id} to {deck.name}")


@card_app.command("list")
def card_list(
    ctx: typer.Context,
    deck_key: str = typer.Argument(..., metavar="DECK", help="Deck id or name"),
) -> None:
    """List the cards of a deck with their schedule."""
    state = _ctx(ctx)
    deck = _resolve_deck(state.items, deck_key)
    now = state.clock.now()

    table = Table(title=deck.name)
    table.add_column("ID", style="dim")
    table.add_column("Front")
    table.add_column("Back")
    table.add_column("Interval", justify="right")
    table.add_column("Ease", justify="right")
    table.add_column("Due")

    for card in sorted(state.items.cards_for_deck(deck.id), key=lambda c: c.due_at):
        due = "[yellow]now[/yellow]" if card.is_due(now) else card.due_at.strftime("%Y-%m-%d")
        table.add_row(card.id, card.front, card.back, f"{card.interval_days}d", f"{card.ease_factor:.2f}", due)

    console.print(table)


@card_app.command("remove")
def card_remove(
    ctx: typer.Context,
    card_id: str = typer.Argument(..., help="Card id"),
) -> None:
    """Delete a card."""
    if not _ctx(ctx).items.delete_card(card_id):
        console.print(f"[red]Card {card_id} not found[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Deleted card[/green] {card_id}")


# =============================================================================
# Review
# =============================================================================


@app.command()
def review(
    ctx: typer.Context,
    deck_key: str = typer.Argument(..., metavar="DECK", help="Deck id or name"),
) -> None:
    """
    Review the due cards of a deck.

    Each card shows its front; press Enter to reveal the back, then grade
    it 1-4 (again / hard / good / easy). Enter q to stop early.
    """
    state = _ctx(ctx)
    items = state.items
    deck = _resolve_deck(items, deck_key)

    session = StudySession(items, on_complete=state.study_log.record, now=state.clock.now)
    if not session.start(deck.id):
        console.print(f"[green]Nothing due in {deck.name}.[/green] All caught up.")
        raise typer.Exit(0)

    items.set_current_deck(deck.id)
    console.print(f"\n[bold cyan]{deck.name}[/bold cyan]: {session.snapshot().total} cards due\n")

    try:
        while session.is_active:
            snap = session.snapshot()
            card = snap.card
            console.print(
                Panel(card.front, title=f"Card {snap.position + 1}/{snap.total}", border_style="cyan")
            )
            if Prompt.ask("[dim]Press Enter to reveal (q to stop)[/dim]", default="") == "q":
                break
            session.reveal()
            console.print(Panel(card.back, title="Answer", border_style="green"))

            intervals = items.scheduler.preview(card, state.clock.now())
            labels = "  ".join(
                f"[bold]{key}[/bold] {outcome.value} ({intervals[outcome]}d)" for key, outcome in ANSWER_KEYS.items()
            )
            console.print(labels)
            answer = Prompt.ask("Grade", choices=[*ANSWER_KEYS, "q"], default="3")
            if answer == "q":
                break
            session.submit(ANSWER_KEYS[answer])
            console.print()
    except KeyboardInterrupt:
        console.print("\n[yellow]Session interrupted.[/yellow]")

    snap = session.snapshot()
    completed = snap.state is SessionState.COMPLETE
    session.end()

    counts = ", ".join(f"{outcome.value}: {count}" for outcome, count in snap.outcome_counts.items()) or "none"
    console.print(
        Panel(
            f"Cards reviewed: {snap.reviewed}/{snap.total}\nAnswers: {counts}",
            title="Session Complete" if completed else "Session Ended",
            border_style="green" if completed else "yellow",
        )
    )


# =============================================================================
# Timer
# =============================================================================


def _render_timer(snap: TimerSnapshot) -> Panel:
    style = MODE_STYLES[snap.mode]
    if not snap.is_active:
        status = "inactive"
    elif snap.is_running:
        status = "running"
    else:
        status = "paused"

    body = Text(justify="center")
    body.append(f"{snap.mode.label}\n", style=style)
    body.append(f"{snap.display}\n", style="bold")
    body.append(f"{status} · {snap.completed_cycles} cycles completed", style="dim")
    return Panel(Align.center(body), title="Pomodoro", border_style=style)


@timer_app.command("status")
def timer_status(ctx: typer.Context) -> None:
    """Show the timer."""
    console.print(_render_timer(_ctx(ctx).timer.snapshot()))


@timer_app.command("start")
def timer_start(ctx: typer.Context) -> None:
    """Start or resume the countdown."""
    timer = _ctx(ctx).timer
    if not timer.start():
        console.print("[yellow]Timer is already running[/yellow]")
    console.print(_render_timer(timer.snapshot()))


@timer_app.command("pause")
def timer_pause(ctx: typer.Context) -> None:
    """Pause the countdown."""
    timer = _ctx(ctx).timer
    if not timer.pause():
        console.print("[yellow]Timer is not running[/yellow]")
    console.print(_render_timer(timer.snapshot()))


@timer_app.command("skip")
def timer_skip(ctx: typer.Context) -> None:
    """Finish the current block and move to the next one."""
    timer = _ctx(ctx).timer
    if not timer.skip():
        console.print("[yellow]Timer is not active[/yellow]")
    console.print(_render_timer(timer.snapshot()))


@timer_app.command("stop")
def timer_stop(ctx: typer.Context) -> None:
    """Deactivate the timer and reset it."""
    if _ctx(ctx).timer.deactivate():
        console.print("[green]Timer stopped[/green]")
    else:
        console.print("[dim]Timer was not active[/dim]")


@timer_app.command("watch")
def timer_watch(
    ctx: typer.Context,
    duration: float = typer.Option(0, "--duration", "-d", help="Seconds to watch (0 = until Ctrl+C)"),
) -> None:
    """Show a live countdown; the timer keeps cycling while watched."""
    state = _ctx(ctx)
    timer = state.timer

    async def _watch() -> None:
        loop = asyncio.get_running_loop()
        until = loop.time() + duration if duration > 0 else None
        with Live(_render_timer(timer.snapshot()), console=console, refresh_per_second=4) as live:
            while until is None or loop.time() < until:
                live.update(_render_timer(timer.snapshot()))
                await asyncio.sleep(0.25)

    try:
        state.run(_watch())
    except KeyboardInterrupt:
        console.print("[dim]Stopped watching; the timer keeps its deadline.[/dim]")


@timer_app.command("settings")
def timer_settings(
    ctx: typer.Context,
    work: Optional[int] = typer.Option(None, "--work", help="Work minutes"),
    short_break: Optional[int] = typer.Option(None, "--short", help="Short break minutes"),
    long_break: Optional[int] = typer.Option(None, "--long", help="Long break minutes"),
    cycles: Optional[int] = typer.Option(None, "--cycles", help="Work blocks before a long break"),
) -> None:
    """Show or change timer lengths."""
    timer = _ctx(ctx).timer
    changes = {
        key: value
        for key, value in {
            "work_minutes": work,
            "short_break_minutes": short_break,
            "long_break_minutes": long_break,
            "sessions_before_long_break": cycles,
        }.items()
        if value is not None
    }

    if changes:
        try:
            timer.update_settings(**changes)
        except ValueError as exc:
            console.print(f"[red]Invalid timer settings:[/red] {exc}")
            raise typer.Exit(1)

    table = Table(show_header=False, box=None)
    table.add_column("Setting", style="dim")
    table.add_column("Value", style="bold")
    for key, value in timer.settings.model_dump().items():
        table.add_row(key.replace("_", " "), str(value))
    console.print(table)


# =============================================================================
# Reader
# =============================================================================


def _render_word(token: str, reader: ReaderEngine) -> Text:
    before, focus, after = reader.focal_split(token)
    word = Text(justify="center")
    if reader.settings.color_mode == "bionic":
        half = max(1, len(token) // 2)
        word.append(token[:half], style="bold")
        word.append(token[half:])
        return word
    word.append(before)
    word.append(focus, style="bold red")
    word.append(after)
    return word


def _render_playback(snap: PlaybackSnapshot, reader: ReaderEngine) -> Panel:
    parts = [Align.center(_render_word(snap.token, reader))]
    if reader.settings.show_progress_bar:
        parts.append(ProgressBar(total=100, completed=snap.progress))
    status = "finished" if snap.progress >= 100 else ("paused" if snap.is_paused else f"{snap.rate_wpm} wpm")
    parts.append(Align.center(Text(f"{snap.cursor + 1}/{snap.total} · {status}", style="dim")))
    border = "white" if reader.settings.color_mode == "dark" else "cyan"
    return Panel(Group(*parts), title=snap.title, border_style=border)


@read_app.command("list")
def read_list(ctx: typer.Context) -> None:
    """List texts in the reading library."""
    reader = _ctx(ctx).reader

    table = Table(title="Reading library")
    table.add_column("ID", style="dim")
    table.add_column("Title")
    table.add_column("Words", justify="right")
    table.add_column("WPM", justify="right")
    table.add_column("Last read")

    for text in reader.texts:
        last = text.last_read_at.strftime("%Y-%m-%d") if text.last_read_at else "-"
        table.add_row(text.id, text.title, str(text.word_count), str(text.rate_wpm), last)

    console.print(table)


@read_app.command("add")
def read_add(
    ctx: typer.Context,
    title: str = typer.Argument(..., help="Text title"),
    content: Optional[str] = typer.Option(None, "--content", "-c", help="Text to read"),
    file: Optional[Path] = typer.Option(None, "--file", "-f", help="Read the text from a file"),
    rate: Optional[int] = typer.Option(None, "--rate", "-r", help="Words per minute"),
) -> None:
    """Add a text to the library."""
    if file is not None:
        content = file.read_text(encoding="utf-8")
    if not content or not content.strip():
        console.print("[red]Provide --content or --file with some words in it[/red]")
        raise typer.Exit(1)

    try:
        text = _ctx(ctx).reader.create_text(title, content, rate_wpm=rate)
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Added[/green] {text.title} [dim]({text.id}, {text.word_count} words)[/dim]")


@read_app.command("run")
def read_run(
    ctx: typer.Context,
    text_id: str = typer.Argument(..., help="Text id"),
    rate: Optional[int] = typer.Option(None, "--rate", "-r", help="Override words per minute"),
) -> None:
    """Play a text word by word until it finishes (Ctrl+C to stop)."""
    state = _ctx(ctx)
    reader = state.reader

    if not reader.start_reading(text_id):
        console.print(f"[red]Text {text_id} not found or empty[/red]")
        raise typer.Exit(1)
    if rate is not None and not reader.adjust_speed(rate):
        console.print(f"[yellow]Ignoring invalid rate {rate}[/yellow]")

    async def _play() -> None:
        with Live(_render_playback(reader.snapshot(), reader), console=console, refresh_per_second=20) as live:
            while reader.snapshot().progress < 100:
                live.update(_render_playback(reader.snapshot(), reader))
                await asyncio.sleep(0.05)
            live.update(_render_playback(reader.snapshot(), reader))

    try:
        state.run(_play())
        console.print("[green]Finished reading.[/green]")
    except KeyboardInterrupt:
        console.print(f"\n[yellow]Stopped at word {reader.snapshot().cursor + 1}.[/yellow]")
    finally:
        reader.end_reading()


# =============================================================================
# Stats
# =============================================================================


@app.command()
def stats(ctx: typer.Context) -> None:
    """Show study history by method."""
    state = _ctx(ctx)
    log = state.study_log
    today = state.clock.now().date()

    console.print("\n[bold cyan]Study Statistics[/bold cyan]")
    console.print("=" * 40)

    table = Table(show_header=False, box=None)
    table.add_column("Metric", style="dim")
    table.add_column("Value", style="bold")

    by_method = log.minutes_by_method()
    table.add_row("Total minutes", str(log.total_minutes()))
    for method in StudyMethod:
        table.add_row(f"  {method.value}", f"{by_method.get(method, 0)} min")
    table.add_row("Sessions", str(len(log.sessions())))
    table.add_row("Streak", f"{log.streak_days(today)} days")
    console.print(table)

    recent = log.sessions()[-5:]
    if recent:
        console.print("\n[bold]Recent Sessions[/bold]")
        session_table = Table()
        session_table.add_column("Date")
        session_table.add_column("Method")
        session_table.add_column("Minutes", justify="right")
        session_table.add_column("Topic")
        for session in reversed(recent):
            session_table.add_row(
                session.date.astimezone().strftime("%Y-%m-%d %H:%M"),
                session.method.value,
                str(session.duration_minutes),
                session.topic,
            )
        console.print(session_table)


# =============================================================================
# Entry Point
# =============================================================================


def main() -> None:
    """CLI entry point."""
    # Configure logging
    logger.remove()
    logger.add(
        sys.stderr,
        level=get_settings().log_level.upper(),
        format="<level>{message}</level>",
    )

    app()


if __name__ == "__main__":
    main()
