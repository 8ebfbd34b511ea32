"""Entry point for running ForgeLens as a module."""

from forgelens.cli import app


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
