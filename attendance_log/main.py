from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Sequence

from dotenv import load_dotenv

from .allocator import SerialAllocator
from .config import AppConfig, load_config
from .coordinator import AppendCoordinator, build_coordinator
from .errors import AttendanceLogError
from .models import PendingRow
from .store import InMemoryRemoteStore

LOGGER = logging.getLogger("attendance_log")


def _load_env_files(config_path: Path) -> None:
    """Read ``.env`` from the working directory, then one beside the config file."""

    load_dotenv(override=False)
    config_env = config_path.parent / ".env"
    if config_env.exists():
        load_dotenv(dotenv_path=config_env, override=False)


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Append an attendance record to today's sheet")
    parser.add_argument("--config", required=True, help="Path to the YAML configuration file")
    parser.add_argument("--name", required=True, help="Attendee name")
    parser.add_argument("--roll-number", required=True, help="Attendee roll number")
    parser.add_argument("--seat-number", required=True, type=int, help="Seat number (0 or greater)")
    parser.add_argument("--time-in", required=True, help="Arrival time as it should appear in the sheet")
    parser.add_argument("--time-out", default="", help="Departure time, if already known")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Do not write to Google Sheets; append to an in-memory sheet and print the result",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    return parser.parse_args(argv)


def _dry_run_coordinator(config: AppConfig) -> AppendCoordinator:
    return AppendCoordinator(
        InMemoryRemoteStore(),
        zone=config.sheets.zone,
        layout=config.sheets.layout,
        allocator=SerialAllocator(config.sheets.header_rows),
        lock_timeout=config.lock_timeout,
    )


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    config_path = Path(args.config).expanduser().resolve()
    _load_env_files(config_path)

    try:
        config = load_config(config_path)
        pending = PendingRow(
            name=args.name,
            roll_number=args.roll_number,
            seat_number=args.seat_number,
            time_in=args.time_in,
            time_out=args.time_out,
        )
        if args.dry_run:
            LOGGER.info("Dry run: writing to an in-memory sheet")
            coordinator = _dry_run_coordinator(config)
        else:
            coordinator = build_coordinator(config, os.environ)
        outcome = coordinator.append(pending)
    except (AttendanceLogError, FileNotFoundError, ValueError) as exc:
        LOGGER.error("%s", exc)
        return 1

    print(outcome.summary)
    if outcome.placement_confirmed is False:
        LOGGER.warning("Row was written to %s; check the sheet for duplicates", outcome.updated_range)
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
