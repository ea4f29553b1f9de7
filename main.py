# main.py

"""Entry point for pharma_search (interactive TUI or headless CLI)."""

import argparse
import asyncio
import logging
import sys

from src.config.logging_config import setup_logging

logger = logging.getLogger("pharma_search.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="pharma_search",
        description=(
            "Find products by name or SKU, online through the remote "
            "index or offline from the local cache."
        ),
    )
    parser.add_argument(
        "query",
        nargs="?",
        default=None,
        help="Search query. Omit to launch the interactive TUI.",
    )
    parser.add_argument(
        "-f",
        "--format",
        choices=["json", "table"],
        default="json",
        dest="output_format",
        help="Output format (default: json).",
    )
    parser.add_argument(
        "--health",
        action="store_true",
        default=False,
        help="Probe the remote search bridge and report the mode.",
    )
    parser.add_argument(
        "--sync",
        default=None,
        metavar="FILE",
        help="Replace the offline cache with a JSON product export.",
    )
    return parser


def _run_tui() -> None:
    """Launch the interactive Textual TUI."""
    from src.ui.app import ProductSearchApp

    try:
        app = ProductSearchApp()
        app.run()
    except Exception:
        logger.critical("Fatal error during TUI run", exc_info=True)
        raise
    finally:
        logger.info("pharma_search TUI shutting down")


def _run_cli(args: argparse.Namespace) -> None:
    """Run a headless search and exit."""
    from src.cli.runner import cli_search

    exit_code = asyncio.run(
        cli_search(
            query=args.query,
            output_format=args.output_format,
        )
    )
    sys.exit(exit_code)


def _run_health_check() -> None:
    """Probe the remote search bridge."""
    from src.cli.runner import run_health_check

    exit_code = asyncio.run(run_health_check())
    sys.exit(exit_code)


def _run_sync(filepath: str) -> None:
    """Load a product export into the offline cache."""
    from src.cli.runner import run_sync

    sys.exit(run_sync(filepath))


def main() -> None:
    """Route to TUI (no args) or one of the headless commands."""
    log_file = setup_logging()
    logger.info("pharma_search starting, log file: %s", log_file)

    parser = _build_parser()
    args = parser.parse_args()

    if args.sync:
        _run_sync(args.sync)
    elif args.health:
        _run_health_check()
    elif args.query is None:
        _run_tui()
    else:
        _run_cli(args)


if __name__ == "__main__":
    main()
