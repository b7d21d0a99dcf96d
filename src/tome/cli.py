"""Command-line interface for tome.

Built with Typer for commands and Rich for beautiful output.
"""

import logging
from typing import Optional

import pydantic
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .config import get_config
from .db import get_db
from .db.schemas import BookCreate, SessionStatus
from .errors import StateConflictError, TomeError, first_error_message
from .reading import ProgressTracker, SessionManager
from .streaks import StreakManager

# Create the main app
app = typer.Typer(
    name="tome",
    help="Track your reading sessions, progress and streaks.",
    no_args_is_help=True,
)

# Create sub-apps for command groups
book_app = typer.Typer(help="Manage books.")
app.add_typer(book_app, name="book")

progress_app = typer.Typer(help="Log and edit reading progress.")
app.add_typer(progress_app, name="progress")

streak_app = typer.Typer(help="Daily reading streaks.")
app.add_typer(streak_app, name="streak")

# Rich console for pretty output
console = Console()


# ============================================================================
# Helper Functions
# ============================================================================


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[bold red]Error:[/bold red] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[bold green]Success:[/bold green] {message}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[dim]{message}[/dim]")


def fail(error: TomeError) -> None:
    """Report a tracking error and exit with status 1."""
    print_error(str(error))
    if isinstance(error, StateConflictError) and error.conflicting_entry:
        entry = error.conflicting_entry
        print_info(f"Conflicts with progress entry {entry.id} on {entry.date}")
    raise typer.Exit(1)


def format_sessions_table(sessions: list, title: str = "Sessions") -> Table:
    """Create a rich table for displaying reading sessions."""
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("#", justify="right")
    table.add_column("Status", style="yellow")
    table.add_column("Active", justify="center")
    table.add_column("Started")
    table.add_column("Completed")
    table.add_column("Rating", justify="center")

    for s in sessions:
        rating = "★" * s.rating + "☆" * (5 - s.rating) if s.rating else "-"
        table.add_row(
            str(s.session_number),
            s.status,
            "[green]yes[/green]" if s.is_active else "",
            s.started_date or "-",
            s.completed_date or "-",
            rating,
        )

    return table


def format_progress_table(logs: list, title: str = "Progress") -> Table:
    """Create a rich table for displaying progress entries."""
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Date")
    table.add_column("Page", justify="right")
    table.add_column("%", justify="right")
    table.add_column("Pages Read", justify="right")
    table.add_column("Notes", max_width=40)

    for log in logs:
        table.add_row(
            str(log.id),
            log.progress_date,
            str(log.current_page),
            f"{log.current_percentage:.0f}",
            str(log.pages_read),
            log.notes or "",
        )

    return table


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Track your reading sessions, progress and streaks."""
    level = "DEBUG" if verbose else get_config().log_level
    logging.basicConfig(
        level=level,
        format="%(levelname)s in %(module)s: %(message)s",
    )


# ============================================================================
# Book Commands
# ============================================================================


@book_app.command("add")
def book_add(
    title: str = typer.Argument(..., help="Book title"),
    author: Optional[str] = typer.Option(None, "--author", "-a", help="Author"),
    pages: Optional[int] = typer.Option(None, "--pages", "-p", help="Total pages"),
) -> None:
    """Add a book to the library."""
    try:
        data = BookCreate(title=title, author=author, total_pages=pages)
    except pydantic.ValidationError as e:
        print_error(first_error_message(e))
        raise typer.Exit(1)

    book = get_db().create_book(data)
    print_success(f"Added: {book.title} (id {book.id})")


@book_app.command("list")
def book_list() -> None:
    """List all books."""
    db = get_db()
    books = db.get_all_books()

    if not books:
        console.print("[dim]No books found.[/dim]")
        return

    table = Table(title="Books", show_header=True, header_style="bold magenta")
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Title", style="cyan", no_wrap=False, max_width=40)
    table.add_column("Author", style="green", max_width=25)
    table.add_column("Pages", justify="right")
    table.add_column("Rating", justify="center")

    for book in books:
        table.add_row(
            str(book.id),
            book.title,
            book.author or "-",
            str(book.total_pages) if book.total_pages else "-",
            str(book.rating) if book.rating else "-",
        )

    console.print(table)


# ============================================================================
# Session Commands
# ============================================================================


@app.command()
def status(
    book_id: int = typer.Argument(..., help="Book ID"),
    new_status: SessionStatus = typer.Argument(..., metavar="STATUS", help="New status"),
    rating: Optional[int] = typer.Option(None, "--rating", "-r", help="Rating 1-5"),
    review: Optional[str] = typer.Option(None, "--review", help="Review text"),
    started: Optional[str] = typer.Option(None, "--started", help="Start date (YYYY-MM-DD)"),
    completed: Optional[str] = typer.Option(
        None, "--completed", help="Completion date (YYYY-MM-DD)"
    ),
) -> None:
    """Change a book's reading status."""
    manager = SessionManager(get_db())
    try:
        result = manager.update_status(
            book_id,
            new_status,
            rating=rating,
            review=review,
            started_date=started,
            completed_date=completed,
        )
    except TomeError as e:
        fail(e)

    print_success(f"Book {book_id} is now '{result.session.status}'")
    if result.session_archived:
        print_info(f"Session #{result.archived_session_number} archived")
    if result.progress_created:
        print_info("Completion progress entry added")


@app.command()
def dnf(
    book_id: int = typer.Argument(..., help="Book ID"),
    date_str: Optional[str] = typer.Option(None, "--date", "-d", help="Date (YYYY-MM-DD)"),
) -> None:
    """Mark a book as did-not-finish."""
    manager = SessionManager(get_db())
    try:
        result = manager.mark_dnf(book_id, dnf_date=date_str)
    except TomeError as e:
        fail(e)

    print_success(f"Marked DNF on {result.session.completed_date}")


@app.command()
def reread(book_id: int = typer.Argument(..., help="Book ID")) -> None:
    """Start reading a finished book again."""
    manager = SessionManager(get_db())
    try:
        new_session = manager.start_reread(book_id)
    except TomeError as e:
        fail(e)

    print_success(f"Started re-read (session #{new_session.session_number})")


@app.command()
def sessions(book_id: int = typer.Argument(..., help="Book ID")) -> None:
    """Show all reading sessions of a book."""
    db = get_db()
    book = db.get_book(book_id)
    if not book:
        print_error("Book not found")
        raise typer.Exit(1)

    found = SessionManager(db).get_sessions_for_book(book_id)
    if not found:
        print_info("No reading sessions yet")
        return

    console.print(format_sessions_table(found, title=f"Sessions - {book.title}"))


# ============================================================================
# Progress Commands
# ============================================================================


@progress_app.command("log")
def progress_log(
    book_id: int = typer.Argument(..., help="Book ID"),
    page: Optional[int] = typer.Option(None, "--page", "-p", help="Current page"),
    percent: Optional[float] = typer.Option(None, "--percent", help="Current percentage"),
    date_str: Optional[str] = typer.Option(None, "--date", "-d", help="Date (YYYY-MM-DD)"),
    notes: Optional[str] = typer.Option(None, "--notes", "-n", help="Notes"),
) -> None:
    """Log reading progress for a book."""
    tracker = ProgressTracker(get_db())
    try:
        result = tracker.log_progress(
            book_id,
            current_page=page,
            current_percentage=percent,
            notes=notes,
            progress_date=date_str,
        )
    except TomeError as e:
        fail(e)

    log = result.progress_log
    print_success(
        f"Page {log.current_page} ({log.current_percentage:.0f}%) on {log.progress_date}, "
        f"{log.pages_read} pages read"
    )
    if result.should_show_completion_modal:
        console.print(
            Panel(
                f"You reached the end! Run [bold]tome status {book_id} read "
                f"--completed {result.completion_date}[/bold] to finish it.",
                title="[green]Finished?[/green]",
            )
        )


@progress_app.command("edit")
def progress_edit(
    progress_id: int = typer.Argument(..., help="Progress entry ID"),
    page: Optional[int] = typer.Option(None, "--page", "-p", help="Current page"),
    percent: Optional[float] = typer.Option(None, "--percent", help="Current percentage"),
    date_str: Optional[str] = typer.Option(None, "--date", "-d", help="Date (YYYY-MM-DD)"),
    notes: Optional[str] = typer.Option(None, "--notes", "-n", help="Notes"),
) -> None:
    """Edit a progress entry."""
    tracker = ProgressTracker(get_db())
    try:
        log = tracker.update_progress(
            progress_id,
            current_page=page,
            current_percentage=percent,
            notes=notes,
            progress_date=date_str,
        )
    except TomeError as e:
        fail(e)

    print_success(f"Entry {log.id}: page {log.current_page} on {log.progress_date}")


@progress_app.command("delete")
def progress_delete(progress_id: int = typer.Argument(..., help="Progress entry ID")) -> None:
    """Delete a progress entry."""
    tracker = ProgressTracker(get_db())
    if not tracker.delete_progress(progress_id):
        print_error("Progress entry not found")
        raise typer.Exit(1)
    print_success(f"Deleted progress entry {progress_id}")


@progress_app.command("list")
def progress_list(book_id: int = typer.Argument(..., help="Book ID")) -> None:
    """Show progress of the book's active session."""
    logs = ProgressTracker(get_db()).get_progress_for_active_session(book_id)
    if not logs:
        print_info("No progress logged for the active session")
        return
    console.print(format_progress_table(logs))


# ============================================================================
# Streak Commands
# ============================================================================


def _streak_panel(streak) -> Panel:
    content_parts = [
        f"[bold]Current Streak:[/bold] {streak.current_streak} days",
        f"[bold]Longest Streak:[/bold] {streak.longest_streak} days",
        f"[bold]Active Days:[/bold] {streak.total_days_active}",
        f"Daily goal: {streak.daily_threshold} pages ({streak.user_timezone})",
    ]
    if streak.current_streak and streak.streak_start_date:
        content_parts.append(f"Started: {streak.streak_start_date}")
    if not streak.streak_enabled:
        content_parts.append("[dim]Streak tracking is disabled[/dim]")
    return Panel("\n".join(content_parts), title="[blue]Streak Status[/blue]")


@streak_app.command("show")
def streak_show() -> None:
    """Show the current streak."""
    manager = StreakManager(get_db())
    if manager.check_and_reset_streak_if_needed():
        print_info("Your streak was reset after a missed day")
    console.print(_streak_panel(manager.get_or_create_streak()))


@streak_app.command("rebuild")
def streak_rebuild(
    date_str: Optional[str] = typer.Option(None, "--date", "-d", help="Treat this day as today"),
) -> None:
    """Recalculate the streak from all logged progress."""
    manager = StreakManager(get_db())
    try:
        streak = manager.rebuild_streak(current_date=date_str)
    except TomeError as e:
        fail(e)
    console.print(_streak_panel(streak))


@streak_app.command("threshold")
def streak_threshold(pages: int = typer.Argument(..., help="Pages per day")) -> None:
    """Set the daily page goal and recalculate."""
    manager = StreakManager(get_db())
    try:
        streak = manager.update_threshold(None, pages)
    except TomeError as e:
        fail(e)
    print_success(f"Daily goal set to {streak.daily_threshold} pages")
    console.print(_streak_panel(streak))


@streak_app.command("timezone")
def streak_timezone(tz: str = typer.Argument(..., help="IANA timezone, e.g. Europe/Paris")) -> None:
    """Set the timezone used for day boundaries."""
    manager = StreakManager(get_db())
    try:
        streak = manager.set_timezone(tz)
    except TomeError as e:
        fail(e)
    print_success(f"Timezone set to {streak.user_timezone}")


@streak_app.command("enable")
def streak_enable() -> None:
    """Turn streak tracking on."""
    StreakManager(get_db()).set_streak_enabled(True)
    print_success("Streak tracking enabled")


@streak_app.command("disable")
def streak_disable() -> None:
    """Turn streak tracking off."""
    StreakManager(get_db()).set_streak_enabled(False)
    print_success("Streak tracking disabled")


@streak_app.command("calendar")
def streak_calendar(
    start: Optional[str] = typer.Option(None, "--start", help="First day (YYYY-MM-DD)"),
    end: Optional[str] = typer.Option(None, "--end", help="Last day (YYYY-MM-DD)"),
) -> None:
    """Show pages read per day."""
    manager = StreakManager(get_db())
    try:
        days = manager.get_daily_totals(start, end)
    except TomeError as e:
        fail(e)

    if not days:
        print_info("No reading activity")
        return

    table = Table(title="Reading Activity")
    table.add_column("Date")
    table.add_column("Pages", justify="right")
    table.add_column("Goal", justify="center")
    for day in days:
        table.add_row(
            day.date,
            str(day.pages_read),
            "[green]Met[/green]" if day.qualifies else "",
        )
    console.print(table)


# ============================================================================
# Version Command
# ============================================================================


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"tome version {__version__}")


# ============================================================================
# Main Entry Point
# ============================================================================


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
