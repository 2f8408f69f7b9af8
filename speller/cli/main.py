"""
Typer CLI for the speller practice engine.

Commands:
    speller init-db                  - Create database tables
    speller seed-words [FILE]        - Load the built-in word bank or a word file
    speller add-learner NAME         - Register a learner
    speller import-list LEARNER FILE - Build a curated list from free text
    speller practice LEARNER         - Interactive practice session
    speller diff CORRECT ATTEMPT     - Show the letter-level diff of two spellings
    speller stats LEARNER            - Rating, tier, accuracy and streak
    speller mistakes LEARNER         - Most-missed words and how they were misspelled

Usage:
    speller --help
    speller --database-url sqlite:///speller.db init-db
    speller practice 6f1c... --assessment
"""

from __future__ import annotations

import sys
import time
from pathlib import Path

import typer
from loguru import logger
from rich import box
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table
from rich.text import Text

from speller.config import get_settings
from speller.core.diff import DiffResult, compute_diff, describe_errors
from speller.core.errors import SpellerError
from speller.core.models import DiffOpType, MiniSetAction, NextStep, PromptMode, Word
from speller.core.stats import build_word_mistake_stats, compute_current_streak, compute_unique_words
from speller.core.wordlist import extract_candidates_from_text, is_valid_word_length, normalize_word
from speller.db.database import get_engine, init_db
from speller.db.sql_store import SqlStore
from speller.db.stores import Stores
from speller.session.runner import BreakSummary
from speller.session.service import PracticeService

app = typer.Typer(
    help="speller: adaptive spelling practice",
    no_args_is_help=True,
)

console = Console()

# Built-in starter bank, by tier
DEFAULT_WORDS: dict[int, list[str]] = {
    1: ["cat", "dog", "sun", "ship", "fish", "jump", "milk", "hand"],
    2: ["cake", "boat", "rain", "play", "light", "night", "duck", "green"],
    3: ["their", "friend", "because", "people", "little", "watch", "judge", "phone"],
    4: ["receive", "believe", "science", "station", "different", "knowledge", "whistle", "quiet"],
    5: ["necessary", "separate", "beginning", "tomorrow", "rhythm", "business", "neighbour", "achieve"],
    6: ["accommodate", "embarrass", "occurrence", "conscience", "definitely", "millennium", "privilege", "rhyme"],
    7: ["onomatopoeia", "questionnaire", "surveillance", "bureaucracy", "idiosyncrasy", "connoisseur", "liaison", "mischievous"],
}

_MINI_SET_ACTIONS = {
    "c": MiniSetAction.CONTINUE,
    "j": MiniSetAction.CHALLENGE_JUMP,
    "p": MiniSetAction.PRACTICE_MISSED,
}


@app.callback()
def main_callback(
    ctx: typer.Context,
    database_url: str = typer.Option(
        None, "--database-url", envvar="SPELLER_DATABASE_URL", help="SQLAlchemy database URL"
    ),
) -> None:
    """Adaptive spelling practice with ELO ratings and pattern lessons."""
    ctx.obj = {"database_url": database_url or get_settings().database_url}


def _store(ctx: typer.Context) -> SqlStore:
    return SqlStore(get_engine(ctx.obj["database_url"]))


def _fail(message: str) -> None:
    console.print(f"[red]Error: {message}[/red]")
    raise typer.Exit(1)


# ========================================
# Admin commands
# ========================================


@app.command("init-db")
def init_db_command(ctx: typer.Context) -> None:
    """
    Create database tables from the SQLAlchemy models.

    Safe to run multiple times (idempotent).
    """
    init_db(get_engine(ctx.obj["database_url"]))
    rprint("[green]✓[/green] Database initialized!")


def _read_word_file(path: Path, default_tier: int) -> list[tuple[str, int]]:
    """Lines of `word` or `word,tier`; blank lines and '#' comments are skipped."""
    entries: list[tuple[str, int]] = []
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        text, _, tier = line.partition(",")
        word = normalize_word(text)
        if not word or not is_valid_word_length(word):
            logger.warning(f"Skipping unusable word {text!r}")
            continue
        entries.append((word, int(tier) if tier.strip() else default_tier))
    return entries


@app.command("seed-words")
def seed_words(
    ctx: typer.Context,
    source: Path = typer.Argument(None, help="Word file (word or word,tier per line)"),
    tier: int = typer.Option(3, "--tier", "-t", help="Tier for words without one"),
) -> None:
    """Load words into the word bank, skipping words already present."""
    if source is not None and not source.exists():
        _fail(f"Source not found: {source}")

    if source is None:
        entries = [(word, t) for t, words in DEFAULT_WORDS.items() for word in words]
    else:
        entries = _read_word_file(source, tier)

    store = _store(ctx)
    added = 0
    for word, word_tier in entries:
        if store.find_word_by_text(word) is not None:
            continue
        store.add_word(word, tier=word_tier)
        added += 1

    console.print(f"[green]✓[/green] Added {added} words ({len(entries) - added} already present)")


@app.command("add-learner")
def add_learner(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Learner name"),
    tier: int = typer.Option(3, "--tier", "-t", help="Starting tier (1-7)"),
) -> None:
    """Register a learner and print their id."""
    if not 1 <= tier <= get_settings().max_tier:
        _fail(f"Tier must be between 1 and {get_settings().max_tier}")
    learner = _store(ctx).add_learner(name, tier=tier)
    console.print(f"[green]✓[/green] Learner [bold]{learner.name}[/bold] created: [cyan]{learner.id}[/cyan]")


@app.command("import-list")
def import_list(
    ctx: typer.Context,
    learner_id: str = typer.Argument(..., help="Learner to assign the list to"),
    source: Path = typer.Argument(..., help="Text file to extract words from"),
    name: str = typer.Option(None, "--name", "-n", help="List name (defaults to the file name)"),
    disabled: bool = typer.Option(False, "--disabled", help="Create the list without enabling it"),
) -> None:
    """Extract candidate words from a text file into a curated list."""
    if not source.exists():
        _fail(f"Source not found: {source}")

    words = extract_candidates_from_text(source.read_text(encoding="utf-8"))
    if not words:
        _fail("No usable words found")

    try:
        list_id = _store(ctx).create_custom_list(
            name or source.stem, learner_id, words, enabled=not disabled
        )
    except SpellerError as e:
        _fail(str(e))
        return

    console.print(f"[green]✓[/green] Curated list [cyan]{list_id}[/cyan] with {len(words)} words")
    console.print(f"  [dim]{', '.join(words[:15])}{' ...' if len(words) > 15 else ''}[/dim]")


# ========================================
# Diff rendering
# ========================================


def render_diff(diff: DiffResult) -> Text:
    """What the learner typed, coloured by error type (omissions shown as '_')."""
    text = Text()
    for op in diff.ops:
        if op.type == DiffOpType.MATCH:
            text.append(op.user_char or "", style="green")
        elif op.type == DiffOpType.SUBSTITUTION:
            text.append(op.user_char or "", style="bold red")
        elif op.type == DiffOpType.OMISSION:
            text.append("_", style="bold yellow")
        elif op.type == DiffOpType.ADDITION:
            text.append(op.user_char or "", style="red strike")
        else:
            text.append(op.user_char or "", style="bold magenta underline")
    return text


@app.command("diff")
def diff_command(
    correct: str = typer.Argument(..., help="Correct spelling"),
    attempt: str = typer.Argument(..., help="Attempted spelling"),
) -> None:
    """Show how an attempt differs from the correct spelling."""
    diff = compute_diff(correct, attempt)

    table = Table(box=box.SIMPLE)
    table.add_column("#", style="dim", width=3)
    table.add_column("Operation")
    table.add_column("Correct", style="green")
    table.add_column("Typed", style="red")
    for i, op in enumerate(diff.error_ops, 1):
        table.add_row(str(i), op.type.value, op.correct_char or "-", op.user_char or "-")

    console.print(Text.assemble("Typed:   ", render_diff(diff)))
    console.print(f"Correct: [bold]{correct}[/bold]")
    if diff.summary.total == 0:
        console.print("[green]No differences[/green]")
        return
    console.print(table)
    console.print(f"[yellow]{describe_errors(diff.summary).capitalize()}[/yellow]")


# ========================================
# Practice
# ========================================


def _show_prompt(word: Word, index: int, size: int) -> None:
    if word.example_sentence:
        hint = word.example_sentence.replace(word.text, "_" * len(word.text))
    elif word.definition:
        hint = word.definition
    else:
        hint = None

    if hint:
        body = hint
    else:
        # no hint to spell from: show the word, then clear it
        console.print(Panel(f"[bold]{word.text}[/bold]", title=f"Study {index + 1}/{size}", border_style="cyan"))
        Prompt.ask("[dim]Press Enter when ready[/dim]", default="", show_default=False)
        console.clear()
        body = "Spell the word you just studied."
    console.print(Panel(body, title=f"Word {index + 1}/{size}", border_style="cyan", box=box.ROUNDED))


def _show_break(summary: BreakSummary, lesson) -> None:
    table = Table(title="Mini-set complete", box=box.ROUNDED)
    table.add_column("Word", style="white")
    table.add_column("Result")
    table.add_column("You typed", style="dim")
    for word in summary.correct:
        table.add_row(word, "[green]✓[/green]", "")
    for missed in summary.missed:
        table.add_row(missed.word, "[red]✗[/red]", missed.user_spelling)
    console.print(table)

    if lesson is not None:
        lines = [lesson.explanation]
        if lesson.contrast:
            lines.append(f"[dim]Compare: {', '.join(lesson.contrast)}[/dim]")
        if lesson.question:
            lines.append(f"\n[cyan]{lesson.question}[/cyan]")
        console.print(Panel("\n".join(lines), title=f"[bold]Lesson: {lesson.pattern}[/bold]", border_style="yellow"))
        if lesson.question:
            Prompt.ask("[cyan]>_[/cyan]", default="", show_default=False)
            console.print(f"[dim]Answer: {lesson.answer}[/dim]")


@app.command("practice")
def practice(
    ctx: typer.Context,
    learner_id: str = typer.Argument(..., help="Learner id"),
    words: str = typer.Option(None, "--words", "-w", help="Comma-separated word ids for the first set"),
    assessment: bool = typer.Option(False, "--assessment", help="Measure the tier without applying it"),
) -> None:
    """Run an interactive practice session."""
    settings = get_settings()
    store = _store(ctx)
    service = PracticeService(Stores.single(store), settings=settings)
    size = settings.mini_set_size

    try:
        started = service.start(
            learner_id,
            word_ids=[w.strip() for w in words.split(",") if w.strip()] if words else None,
            assessment=assessment,
            prompt_mode=PromptMode.NO_AUDIO,
        )
    except SpellerError as e:
        _fail(str(e))
        return

    session_id = started.session_id
    word = started.current_word
    index = started.word_index
    console.print(f"\n[bold cyan]Practice session[/bold cyan] [dim]{session_id}[/dim] at tier {started.tier}")

    try:
        while word is not None:
            _show_prompt(word, index, size)
            began = time.monotonic()
            typed = Prompt.ask("[cyan]Spell it[/cyan]")
            elapsed = int((time.monotonic() - began) * 1000)

            result = service.submit(session_id, word.id, typed, response_ms=elapsed)
            if result.correct:
                console.print("[green]✓ Correct![/green]")
            else:
                console.print(Text.assemble("[✗] ", render_diff(result.error_details), style="red"))
                console.print(
                    f"  Correct spelling: [bold]{result.correct_spelling}[/bold] "
                    f"[dim]({result.error_description})[/dim]"
                )

            if result.next_step == NextStep.NEXT_WORD:
                word = result.next_word
                index += 1
                continue

            _show_break(result.break_summary, result.lesson)
            choice = Prompt.ask(
                "Next: continue (c), challenge jump (j), practice missed (p) or quit (q)",
                choices=["c", "j", "p", "q"],
                default="c",
            )
            if choice == "q":
                break
            completion = service.complete_mini_set(session_id, _MINI_SET_ACTIONS[choice])
            if completion.next_tier != started.tier:
                console.print(f"[yellow]Tier is now {completion.next_tier}[/yellow]")
            word = completion.next_words[0] if completion.next_words else None
            index = 0
    except SpellerError as e:
        logger.error(f"Session {session_id} stopped: {e}")
        console.print(f"[red]{e}[/red]")

    finished = service.finish(session_id)
    lines = [
        f"Correct: [bold]{finished.correct_total}[/bold] / {finished.attempts_total}",
        f"Mini-sets: {finished.mini_sets_completed}",
        f"Tier: {finished.tier_end}",
    ]
    if finished.assessment_suggested_tier is not None:
        lines.append(
            f"[yellow]Suggested tier: {finished.assessment_suggested_tier} "
            f"(max {finished.assessment_max_tier})[/yellow]"
        )
    console.print(Panel("\n".join(lines), title="[bold]Session finished[/bold]", border_style="green"))


# ========================================
# Reports
# ========================================


@app.command("stats")
def stats(
    ctx: typer.Context,
    learner_id: str = typer.Argument(..., help="Learner id"),
) -> None:
    """Show a learner's rating, tier, accuracy and current streak."""
    store = _store(ctx)
    learner = store.get_learner(learner_id)
    if learner is None:
        _fail(f"Learner not found: {learner_id}")
        return

    attempts = store.list_attempts_for_learner(learner_id)
    streak = compute_current_streak(attempts)
    accuracy = learner.successful_attempts / learner.total_attempts if learner.total_attempts else 0.0

    table = Table(title=f"Progress: {learner.name}", box=box.ROUNDED, show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Rating", str(learner.effective_rating))
    table.add_row("Tier", str(learner.tier))
    table.add_row("Percentile", f"{store.get_learner_percentile_rank(learner_id):.0%}")
    table.add_row("Attempts", str(learner.total_attempts))
    table.add_row("Accuracy", f"{accuracy:.0%}")
    table.add_row("Unique words", str(compute_unique_words(attempts)))
    table.add_row(
        "Current streak",
        f"{streak.count} {'correct' if streak.correct else 'missed'}" if streak.count else "-",
    )
    console.print(table)


@app.command("mistakes")
def mistakes(
    ctx: typer.Context,
    learner_id: str = typer.Argument(..., help="Learner id"),
    limit: int = typer.Option(10, "--limit", "-l", help="Max words to show"),
) -> None:
    """List the learner's most-missed words."""
    store = _store(ctx)
    word_stats = build_word_mistake_stats(store.list_attempts_for_learner(learner_id))
    if not word_stats:
        console.print("[green]No mistakes recorded yet![/green]")
        return

    table = Table(title="Most-missed words", box=box.ROUNDED)
    table.add_column("Word", style="white")
    table.add_column("Misses", style="red", justify="right")
    table.add_column("Accuracy", justify="right")
    table.add_column("Misspellings", style="dim")
    for entry in word_stats[:limit]:
        table.add_row(
            entry.word,
            str(entry.misses),
            f"{entry.accuracy:.0%}",
            ", ".join(f"{text} ×{count}" for text, count in entry.misspellings[:3]),
        )
    console.print(table)


def _configure_logging() -> None:
    settings = get_settings()
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )
    if settings.log_file:
        logger.add(settings.log_file, level="DEBUG", rotation="10 MB", retention=5)


def main() -> None:
    """Entry point for the CLI."""
    _configure_logging()
    app()


if __name__ == "__main__":
    main()
