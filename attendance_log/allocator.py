from __future__ import annotations

import logging

from .errors import AllocationError, AllocationTimeoutError, RemoteStoreError, RemoteTimeoutError
from .store import RemoteStore

LOGGER = logging.getLogger(__name__)


class SerialAllocator:
    """Derive the next serial number of a tab from how many rows it already holds.

    This is a read followed by arithmetic, not an atomic counter: two callers
    reading the same tab at once get the same answer. Callers must hold the
    tab's lock from the read until their append has finished.
    """

    def __init__(self, header_rows: int = 0) -> None:
        if header_rows < 0:
            raise ValueError("header_rows must be 0 or greater")
        self._header_rows = header_rows

    @property
    def header_rows(self) -> int:
        return self._header_rows

    def next_serial(self, store: RemoteStore, range_id: str) -> int:
        try:
            rows = store.read(range_id)
        except RemoteTimeoutError as exc:
            raise AllocationTimeoutError(range_id, exc) from exc
        except RemoteStoreError as exc:
            raise AllocationError(range_id, exc) from exc

        if not rows:
            LOGGER.debug("Range %s is empty; starting at serial 1", range_id)
            return 1

        serial = max(len(rows) - self._header_rows, 0) + 1
        LOGGER.debug("Range %s holds %s rows; next serial is %s", range_id, len(rows), serial)
        return serial
