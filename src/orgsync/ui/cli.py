from __future__ import annotations

import argparse
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from orgsync.app import (
    run_extraction,
    run_relationship_resolution,
    run_scheduled_batches,
    seed_default_settings,
)
from orgsync.config import ConfigurationError, configure_logging
from orgsync.domain.model import ResolutionMode

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Extract and link organisation data")
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    extract = subparsers.add_parser("extract", help="Run one configured extraction procedure")
    extract.add_argument("procedure", type=str, help="Procedure name from the extraction settings")
    extract.add_argument(
        "--start",
        type=str,
        required=True,
        help="Start date passed to the procedure (e.g. 2024-01-01)",
    )
    extract.add_argument(
        "--end",
        type=str,
        required=True,
        help="End date passed to the procedure (e.g. 2024-01-31)",
    )

    resolve = subparsers.add_parser("resolve", help="Run one relationship-resolution batch")
    resolve.add_argument(
        "mode",
        choices=[mode.value for mode in ResolutionMode],
        help="Which relationships to resolve",
    )
    resolve.add_argument(
        "--batch-size",
        type=int,
        help="Records per page (defaults to the configured batch size)",
    )

    run_all = subparsers.add_parser(
        "run-all",
        help="Run every active extraction, then every active resolution batch",
    )
    run_all.add_argument("--start", type=str, required=True, help="Start date for extractions")
    run_all.add_argument("--end", type=str, required=True, help="End date for extractions")

    subparsers.add_parser("seed-config", help="Write the default configuration rows")

    return parser.parse_args(list(argv))


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)

    try:
        if parsed_args.command == "extract":
            summary = run_extraction(parsed_args.procedure, parsed_args.start, parsed_args.end)
            log.info("Extraction summary: %s", summary)
        elif parsed_args.command == "resolve":
            if parsed_args.batch_size is not None and parsed_args.batch_size < 1:
                raise ValueError("Batch size must be positive")  # noqa: TRY301
            summary = run_relationship_resolution(
                parsed_args.mode, batch_size=parsed_args.batch_size
            )
            log.info("Resolution summary: %s", summary)
        elif parsed_args.command == "run-all":
            summaries = run_scheduled_batches(parsed_args.start, parsed_args.end)
            for name, summary in summaries.items():
                log.info("%s: %s", name, summary)
        elif parsed_args.command == "seed-config":
            if not seed_default_settings():
                log.info("Nothing seeded")
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301

    except (ConfigurationError, ValueError):
        log.exception("Invalid configuration or arguments")
        sys.exit(2)
    except Exception:
        log.exception("Fatal error during run")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
