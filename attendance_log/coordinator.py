"""Serial allocation and append, serialised per day's tab."""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone, tzinfo
from typing import Callable, Dict, List, Sequence, Tuple
from zoneinfo import ZoneInfo

from .allocator import SerialAllocator
from .config import DEFAULT_TIMEZONE, AppConfig, SecretProvider
from .errors import (
    AllocationError,
    AppendError,
    AppendTimeoutError,
    AttendanceLogError,
    RemoteStoreError,
    RemoteTimeoutError,
)
from .formatting import Layout, SheetRange, current_range_id, format_row, parse_updated_row
from .models import AppendOutcome, AppendState, PendingRow
from .session import build_session
from .store import RemoteStore, SheetsRemoteStore

LOGGER = logging.getLogger(__name__)

Clock = Callable[[], datetime]

REFERENCE_ZONE = ZoneInfo(DEFAULT_TIMEZONE)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _lock_key(range_id: str) -> str:
    try:
        return SheetRange.parse(range_id).sheet_name
    except ValueError:
        return range_id


class RangeLockRegistry:
    """Hand out one lock per tab; share an instance to share the locks.

    Ranges are keyed by the tab they name, so ``'5 Jun'!A:F`` and
    ``'5 Jun'!1:6`` wait on the same lock.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def get(self, range_id: str) -> threading.Lock:
        key = _lock_key(range_id)
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


class AppendCoordinator:
    """Number and append attendance rows against a remote store.

    The read that picks a serial number and the append that uses it run under
    the same per-range lock, so callers in this process never share a serial.
    Nothing is retried: a failed call leaves the caller to try again, and the
    retry numbers the row afresh.
    """

    def __init__(
        self,
        store: RemoteStore,
        *,
        zone: tzinfo = REFERENCE_ZONE,
        layout: Layout = "open",
        allocator: SerialAllocator | None = None,
        clock: Clock = utc_now,
        lock_timeout: float | None = None,
        locks: RangeLockRegistry | None = None,
    ) -> None:
        self._store = store
        self._zone = zone
        self._layout = layout
        self._allocator = allocator or SerialAllocator()
        self._clock = clock
        self._lock_timeout = lock_timeout
        self._locks = RangeLockRegistry() if locks is None else locks
        if layout == "legacy":
            LOGGER.warning(
                "Using the legacy 1:6 range layout; serial numbers stop growing after six rows per tab"
            )

    @property
    def store(self) -> RemoteStore:
        return self._store

    def range_for(self, now: datetime | None = None) -> str:
        return str(current_range_id(now or self._clock(), self._zone, layout=self._layout))

    def append(
        self,
        pending: PendingRow,
        *,
        range_id: str | None = None,
        now: datetime | None = None,
    ) -> AppendOutcome:
        """Allocate a serial number for ``pending`` and append it to today's tab."""

        now = now or self._clock()
        target = range_id or self.range_for(now)
        LOGGER.debug("%s: %s for %s", AppendState.PENDING.name, target, pending.roll_number)

        lock = self._locks.get(target)
        timeout = -1 if self._lock_timeout is None else self._lock_timeout
        started = time.monotonic()
        if not lock.acquire(timeout=timeout):
            LOGGER.warning(
                "%s: gave up waiting %.1fs for the lock on %s",
                AppendState.FAILED.name,
                time.monotonic() - started,
                target,
            )
            raise AppendTimeoutError(
                target, message=f"Timed out waiting for another append to {target}"
            )
        try:
            return self._append_locked(pending, target, now)
        finally:
            lock.release()

    async def append_async(
        self,
        pending: PendingRow,
        *,
        range_id: str | None = None,
        now: datetime | None = None,
    ) -> AppendOutcome:
        """Run :meth:`append` in a worker thread so the event loop stays free.

        Cancelling the awaiting task does not stop a call already in flight.
        """

        return await asyncio.to_thread(self.append, pending, range_id=range_id, now=now)

    def append_many(
        self,
        rows: Sequence[PendingRow],
        *,
        max_workers: int = 4,
        now: datetime | None = None,
    ) -> Tuple[List[AppendOutcome], List[Tuple[PendingRow, AttendanceLogError]]]:
        """
        Append several rows concurrently.

        Args:
            rows: Records to append
            max_workers: Number of worker threads
            now: Optional fixed timestamp shared by every row

        Returns:
            Tuple of two lists:
            - Successful outcomes ordered by serial number
            - Failed rows paired with the error they raised
        """
        if not rows:
            return ([], [])

        LOGGER.info("Appending %d rows with %d workers", len(rows), max_workers)
        outcomes: List[AppendOutcome] = []
        failures: List[Tuple[PendingRow, AttendanceLogError]] = []

        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            future_to_row = {executor.submit(self.append, row, now=now): row for row in rows}
            for future in as_completed(future_to_row):
                row = future_to_row[future]
                try:
                    outcomes.append(future.result())
                except AttendanceLogError as exc:
                    LOGGER.warning("Append failed for %s: %s", row.roll_number, exc)
                    failures.append((row, exc))

        LOGGER.info("Batch append complete: %d successful, %d failed", len(outcomes), len(failures))
        outcomes.sort(key=lambda outcome: (outcome.range_id, outcome.row.serial_number))
        return (outcomes, failures)

    # Internal ----------------------------------------------------------------
    def _append_locked(self, pending: PendingRow, target: str, now: datetime) -> AppendOutcome:
        LOGGER.debug("%s: %s", AppendState.NUMBERING.name, target)
        try:
            serial = self._allocator.next_serial(self._store, target)
        except AllocationError as exc:
            LOGGER.error("%s: numbering %s failed: %s", AppendState.FAILED.name, target, exc.cause)
            raise

        row = pending.with_serial(serial)
        wire_row = format_row(row, now, zone=self._zone, layout=self._layout, range_id=target)

        LOGGER.debug("%s: serial %s to %s", AppendState.APPENDING.name, serial, target)
        try:
            ack = self._store.append(wire_row)
        except RemoteTimeoutError as exc:
            LOGGER.error("%s: append of serial %s timed out", AppendState.FAILED.name, serial)
            raise AppendTimeoutError(target, serial, exc) from exc
        except RemoteStoreError as exc:
            LOGGER.error("%s: append of serial %s failed: %s", AppendState.FAILED.name, serial, exc)
            raise AppendError(target, serial, exc) from exc

        placement_confirmed = None
        if self._layout == "open":
            written_row = parse_updated_row(ack.updated_range)
            if written_row is not None:
                expected_row = self._allocator.header_rows + serial
                placement_confirmed = written_row == expected_row
                if not placement_confirmed:
                    LOGGER.warning(
                        "Serial %s landed on row %s of %s, expected row %s; another writer may be active",
                        serial,
                        written_row,
                        target,
                        expected_row,
                    )

        LOGGER.info("%s: serial %s for %s in %s", AppendState.SUCCEEDED.name, serial, row.roll_number, target)
        return AppendOutcome(
            row=row,
            summary=row.summary(),
            range_id=target,
            updated_range=ack.updated_range,
            state=AppendState.SUCCEEDED,
            placement_confirmed=placement_confirmed,
        )


def build_coordinator(
    config: AppConfig,
    secret_provider: SecretProvider,
    *,
    locks: RangeLockRegistry | None = None,
) -> AppendCoordinator:
    """Create one authenticated session and a coordinator that reuses it for every append."""

    spreadsheet_id = config.sheets.resolve_spreadsheet_id(secret_provider)
    session = build_session(
        secret_provider,
        key_name=config.credentials_key,
        timeout=config.request_timeout,
    )
    store = SheetsRemoteStore(session, spreadsheet_id)
    return AppendCoordinator(
        store,
        zone=config.sheets.zone,
        layout=config.sheets.layout,
        allocator=SerialAllocator(config.sheets.header_rows),
        lock_timeout=config.lock_timeout,
        locks=locks,
    )
