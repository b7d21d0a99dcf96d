"""Tests for the CLI interface."""

import pytest
from typer.testing import CliRunner

from tome.cli import app
from tome.config import reset_config
from tome.db.sqlite import get_db, reset_db


@pytest.fixture(autouse=True)
def setup_test_db(monkeypatch, tmp_path):
    """Point the CLI at a fresh database file for each test."""
    monkeypatch.setenv("TOME_DB_PATH", str(tmp_path / "cli.db"))
    reset_db()
    reset_config()

    yield

    reset_db()
    reset_config()


@pytest.fixture
def runner():
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def book_id(runner: CliRunner) -> int:
    """Add a 300 page book through the CLI and return its id."""
    result = runner.invoke(app, ["book", "add", "Dune", "--author", "Frank Herbert", "--pages", "300"])
    assert result.exit_code == 0
    return get_db().get_all_books()[0].id


class TestCLIBasics:
    """Tests for basic CLI functionality."""

    def test_help(self, runner: CliRunner):
        """Test that help command works."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "Track your reading" in result.stdout

    def test_version(self, runner: CliRunner):
        """Test version command."""
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.stdout


class TestBookCommands:
    """Tests for book commands."""

    def test_add_and_list(self, runner: CliRunner, book_id: int):
        """Test an added book shows up in the list."""
        result = runner.invoke(app, ["book", "list"])

        assert result.exit_code == 0
        assert "Dune" in result.stdout

    def test_list_empty(self, runner: CliRunner):
        """Test listing with no books."""
        result = runner.invoke(app, ["book", "list"])

        assert result.exit_code == 0
        assert "No books found" in result.stdout

    def test_add_invalid_pages(self, runner: CliRunner):
        """Test a zero page count is rejected."""
        result = runner.invoke(app, ["book", "add", "Dune", "--pages", "0"])

        assert result.exit_code == 1
        assert "Error" in result.stdout


class TestSessionCommands:
    """Tests for status, dnf, reread and sessions."""

    def test_status_reading(self, runner: CliRunner, book_id: int):
        """Test starting a book."""
        result = runner.invoke(app, ["status", str(book_id), "reading"])

        assert result.exit_code == 0
        assert "reading" in result.stdout
        assert get_db().get_active_session(book_id).status == "reading"

    def test_status_read_with_rating(self, runner: CliRunner, book_id: int):
        """Test finishing a book archives the session."""
        runner.invoke(app, ["status", str(book_id), "reading"])

        result = runner.invoke(app, ["status", str(book_id), "read", "--rating", "5"])

        assert result.exit_code == 0
        assert "archived" in result.stdout
        assert get_db().get_book(book_id).rating == 5

    def test_status_unknown_book(self, runner: CliRunner):
        """Test errors exit with status 1."""
        result = runner.invoke(app, ["status", "999", "reading"])

        assert result.exit_code == 1
        assert "Book not found" in result.stdout

    def test_invalid_rating(self, runner: CliRunner, book_id: int):
        """Test rating validation messages reach the user."""
        result = runner.invoke(app, ["status", str(book_id), "read", "--rating", "7"])

        assert result.exit_code == 1
        assert "Rating must be between 1 and 5" in result.stdout

    def test_dnf_and_sessions(self, runner: CliRunner, book_id: int):
        """Test marking DNF and listing the session history."""
        runner.invoke(app, ["status", str(book_id), "reading"])

        result = runner.invoke(app, ["dnf", str(book_id), "--date", "2025-01-10"])
        assert result.exit_code == 0
        assert "2025-01-10" in result.stdout

        result = runner.invoke(app, ["sessions", str(book_id)])
        assert result.exit_code == 0
        assert "dnf" in result.stdout

    def test_reread(self, runner: CliRunner, book_id: int):
        """Test a re-read after finishing."""
        runner.invoke(app, ["status", str(book_id), "read"])

        result = runner.invoke(app, ["reread", str(book_id)])

        assert result.exit_code == 0
        assert "session #2" in result.stdout

    def test_reread_without_completion(self, runner: CliRunner, book_id: int):
        """Test a re-read requires a finished read."""
        result = runner.invoke(app, ["reread", str(book_id)])

        assert result.exit_code == 1
        assert "no completed reads found" in result.stdout


class TestProgressCommands:
    """Tests for progress commands."""

    def test_log_and_list(self, runner: CliRunner, book_id: int):
        """Test logging progress and listing it."""
        runner.invoke(app, ["status", str(book_id), "reading"])

        result = runner.invoke(app, ["progress", "log", str(book_id), "--page", "150"])
        assert result.exit_code == 0
        assert "50%" in result.stdout

        result = runner.invoke(app, ["progress", "list", str(book_id)])
        assert result.exit_code == 0
        assert "150" in result.stdout

    def test_log_without_session(self, runner: CliRunner, book_id: int):
        """Test progress needs an active session."""
        result = runner.invoke(app, ["progress", "log", str(book_id), "--page", "10"])

        assert result.exit_code == 1
        assert "No active reading session" in result.stdout

    def test_log_conflict(self, runner: CliRunner, book_id: int):
        """Test timeline conflicts are reported with the blocking entry."""
        runner.invoke(app, ["status", str(book_id), "reading"])
        runner.invoke(
            app, ["progress", "log", str(book_id), "--page", "200", "--date", "2025-01-10"]
        )

        result = runner.invoke(
            app, ["progress", "log", str(book_id), "--page", "250", "--date", "2025-01-05"]
        )

        assert result.exit_code == 1
        assert "Progress cannot exceed page 200" in result.stdout

    def test_delete_missing(self, runner: CliRunner):
        """Test deleting an unknown entry."""
        result = runner.invoke(app, ["progress", "delete", "999"])

        assert result.exit_code == 1


class TestStreakCommands:
    """Tests for streak commands."""

    def test_show(self, runner: CliRunner):
        """Test the streak panel."""
        result = runner.invoke(app, ["streak", "show"])

        assert result.exit_code == 0
        assert "Current Streak" in result.stdout

    def test_threshold(self, runner: CliRunner):
        """Test setting the daily goal."""
        result = runner.invoke(app, ["streak", "threshold", "20"])

        assert result.exit_code == 0
        assert "20 pages" in result.stdout

    def test_threshold_out_of_range(self, runner: CliRunner):
        """Test the goal range is enforced."""
        result = runner.invoke(app, ["streak", "threshold", "0"])

        assert result.exit_code == 1
        assert "Daily threshold must be between 1 and 9999" in result.stdout

    def test_invalid_timezone(self, runner: CliRunner):
        """Test unknown timezones are rejected."""
        result = runner.invoke(app, ["streak", "timezone", "Nowhere/City"])

        assert result.exit_code == 1
        assert "Invalid timezone" in result.stdout
