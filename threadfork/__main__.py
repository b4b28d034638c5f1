"""Main entry point for the threadfork CLI."""

from threadfork.cli import cli


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
