# main.py

"""Entry point for the price_sync command line."""

import argparse
import asyncio
import logging
import sys

from src.config.logging_config import setup_logging

logger = logging.getLogger("price_sync.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="price_sync",
        description=(
            "Synchronise observed retail prices from the Nota Paraná "
            "price-transparency service into the local catalogue."
        ),
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Echo INFO logs to stderr (the run log always has DEBUG).",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sync = sub.add_parser("sync", help="Run one full synchronisation pass.")
    sync.add_argument(
        "-f",
        "--format",
        choices=["json", "table"],
        default="json",
        dest="output_format",
        help="Report format (default: json).",
    )

    matching = sub.add_parser(
        "test-matching",
        help="Show how offers for a barcode would be matched (no writes).",
    )
    matching.add_argument("barcode", help="Product GTIN/EAN.")
    matching.add_argument(
        "-t",
        "--term",
        default=None,
        help="Product name; picks the food or non-food category order.",
    )

    history = sub.add_parser("history", help="List recent sync runs.")
    history.add_argument(
        "-n",
        "--limit",
        type=int,
        default=20,
        help="Number of runs to show (default: 20).",
    )

    catalog = sub.add_parser(
        "import-catalog",
        help="Load markets and products from a JSON file.",
    )
    catalog.add_argument("path", help="Path to the catalogue JSON.")

    sub.add_parser(
        "categories", help="Print the configured category search order.",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Dispatch to the requested command and exit with its code."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    log_file = setup_logging(
        console_level=logging.INFO if args.verbose else logging.WARNING
    )
    logger.info("price_sync %s starting, log file: %s", args.command, log_file)

    from src.cli import runner

    try:
        if args.command == "sync":
            exit_code = asyncio.run(runner.run_sync(args.output_format))
        elif args.command == "test-matching":
            exit_code = runner.run_test_matching(args.barcode, args.term)
        elif args.command == "history":
            exit_code = runner.run_history(args.limit)
        elif args.command == "import-catalog":
            exit_code = runner.run_import_catalog(args.path)
        else:
            exit_code = runner.run_list_categories()
    except Exception:
        logger.critical("Fatal error in %s", args.command, exc_info=True)
        raise
    finally:
        logger.info("price_sync %s finished", args.command)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
