"""Main entry point for the tome package."""

from tome.cli import app


def main():
    """Run the command-line interface."""
    app()


if __name__ == "__main__":
    main()
