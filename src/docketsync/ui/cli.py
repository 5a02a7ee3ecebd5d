from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from contextlib import suppress
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from docketsync.app import list_failures, run_once, run_worker
from docketsync.config import ConfigurationError, configure_logging

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from docketsync.domain.model import FailureRecord

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Sync source-of-record cases to the task board")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run-once", help="Run a single reconcile pass")
    run.add_argument(
        "--dry-run",
        action="store_true",
        help="Compute every change but write nothing to the board or the state store",
    )

    subparsers.add_parser("worker", help="Run the periodic sync loop until interrupted")

    failures = subparsers.add_parser("failures", help="List recorded sync failures")
    failures.add_argument(
        "--all",
        action="store_true",
        dest="include_resolved",
        help="Include failures that were resolved by a later successful run",
    )
    failures.add_argument(
        "--limit",
        type=int,
        default=50,
        help="Maximum number of rows to show (default: %(default)s)",
    )

    return parser.parse_args(list(argv))


def _format_failure(failure: FailureRecord) -> str:
    state = "resolved" if failure.resolved else "open"
    return (
        f"{failure.occurred_at:%Y-%m-%d %H:%M:%S} {state:<8} case={failure.source_id} "
        f"({failure.case_number or '-'}) {failure.operation} [{failure.error_kind}] "
        f"attempts={failure.retry_attempts}: {failure.error_type}: {failure.error_message}"
    )


async def _run_worker_until_signalled() -> None:
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    # add_signal_handler is unavailable on Windows event loops
    with suppress(NotImplementedError):
        loop.add_signal_handler(signal.SIGTERM, stop_event.set)
    await run_worker(stop_event)


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    load_dotenv()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)

    try:
        if parsed_args.command == "run-once":
            report = asyncio.run(run_once(dry_run=True if parsed_args.dry_run else None))
            if not report.lock_acquired:
                log.warning("Another run holds the sync lock; nothing was done")
        elif parsed_args.command == "worker":
            asyncio.run(_run_worker_until_signalled())
        elif parsed_args.command == "failures":
            records = list_failures(
                include_resolved=parsed_args.include_resolved, limit=parsed_args.limit
            )
            for failure in records:
                print(_format_failure(failure))  # noqa: T201
            log.info("%s failure(s) listed", len(records))
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301
    except KeyboardInterrupt:
        log.info("Closed by user (Ctrl+C)")
        sys.exit(0)
    except ConfigurationError:
        log.exception("Configuration error")
        sys.exit(2)
    except Exception:
        log.exception("Fatal error during sync")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


if __name__ == "__main__":
    signal.signal(signal.SIGINT, sigint_handler)
    main()
