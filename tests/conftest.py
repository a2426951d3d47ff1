from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import List
from zoneinfo import ZoneInfo

import pytest

from attendance_log.errors import RemoteStoreError, RemoteTimeoutError
from attendance_log.models import AppendAck, PendingRow, WireRow
from attendance_log.store import InMemoryRemoteStore

KOLKATA = ZoneInfo("Asia/Kolkata")

# 2024-06-04 20:00 UTC is already 5 June in Kolkata.
FIXED_NOW = datetime(2024, 6, 4, 20, 0, tzinfo=timezone.utc)


class ScriptedStore(InMemoryRemoteStore):
    """In-memory sheet that can fail, time out or stall on demand."""

    def __init__(self, sheets=None) -> None:
        super().__init__(sheets)
        self.read_failures: List[Exception] = []
        self.append_failures: List[Exception] = []
        self.read_delay = 0.0
        self.read_calls: List[str] = []

    def read(self, range_id: str):
        self.read_calls.append(range_id)
        if self.read_failures:
            raise self.read_failures.pop(0)
        rows = super().read(range_id)
        if self.read_delay:
            time.sleep(self.read_delay)
        return rows

    def append(self, wire_row: WireRow) -> AppendAck:
        if self.append_failures:
            raise self.append_failures.pop(0)
        return super().append(wire_row)


@pytest.fixture
def store() -> ScriptedStore:
    return ScriptedStore()


@pytest.fixture
def pending() -> PendingRow:
    return PendingRow(
        name="Asha Rao",
        roll_number="21CS042",
        seat_number=17,
        time_in="09:05",
        time_out="12:30",
    )


@pytest.fixture
def quota_error() -> RemoteStoreError:
    return RemoteStoreError("quota exceeded", status=429, retryable=True)


@pytest.fixture
def timeout_error() -> RemoteTimeoutError:
    return RemoteTimeoutError("read timed out")
