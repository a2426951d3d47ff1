import pytest

from attendance_log.allocator import SerialAllocator
from attendance_log.errors import AllocationError, AllocationTimeoutError

from conftest import ScriptedStore

RANGE = "'5 Jun'!A:F"


def test_empty_range_starts_at_one(store):
    assert SerialAllocator().next_serial(store, RANGE) == 1


def test_next_serial_is_row_count_plus_one():
    store = ScriptedStore({"5 Jun": [["1"], ["2"], ["3"]]})

    assert SerialAllocator().next_serial(store, RANGE) == 4


def test_header_rows_are_not_counted():
    store = ScriptedStore({"5 Jun": [["Serial", "Name"], ["1", "A"]]})

    assert SerialAllocator(header_rows=1).next_serial(store, RANGE) == 2


def test_header_only_sheet_starts_at_one():
    store = ScriptedStore({"5 Jun": [["Serial", "Name"]]})

    assert SerialAllocator(header_rows=1).next_serial(store, RANGE) == 1


def test_read_failure_becomes_allocation_error(store, quota_error):
    store.read_failures.append(quota_error)

    with pytest.raises(AllocationError) as excinfo:
        SerialAllocator().next_serial(store, RANGE)

    assert excinfo.value.cause is quota_error
    assert excinfo.value.range_id == RANGE


def test_read_timeout_becomes_allocation_timeout(store, timeout_error):
    store.read_failures.append(timeout_error)

    with pytest.raises(AllocationTimeoutError):
        SerialAllocator().next_serial(store, RANGE)


def test_allocator_does_not_retry(store, quota_error):
    store.read_failures.append(quota_error)

    with pytest.raises(AllocationError):
        SerialAllocator().next_serial(store, RANGE)

    assert store.read_calls == [RANGE]


def test_legacy_window_caps_the_count():
    store = ScriptedStore({"5 Jun": [[str(n)] for n in range(1, 10)]})

    assert SerialAllocator().next_serial(store, "'5 Jun'!1:6") == 7


def test_negative_header_rows_rejected():
    with pytest.raises(ValueError):
        SerialAllocator(header_rows=-1)
