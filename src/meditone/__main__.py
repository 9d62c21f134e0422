"""Entry point for running meditone as a module."""

from .cli import app


def main() -> None:
    """Main entry point for the meditone CLI application."""
    app()


if __name__ == "__main__":
    main()
