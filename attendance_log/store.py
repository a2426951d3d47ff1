from __future__ import annotations

from typing import Callable, Dict, List, Protocol

import http.client
import logging
import ssl
import threading

from google.auth.exceptions import GoogleAuthError
from googleapiclient.errors import HttpError
from googleapiclient.http import HttpRequest
from httplib2 import HttpLib2Error

from .errors import RemoteStoreError, RemoteTimeoutError
from .formatting import SheetRange
from .models import AppendAck, WireRow
from .session import Session

LOGGER = logging.getLogger(__name__)

_RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}
# TimeoutError is an OSError, so _execute must catch it before these.
_TRANSPORT_EXCEPTIONS = (ssl.SSLError, HttpLib2Error, OSError, http.client.HTTPException)

VALUE_INPUT_OPTION = "USER_ENTERED"
INSERT_DATA_OPTION = "INSERT_ROWS"


class RemoteStore(Protocol):
    """The two spreadsheet operations the allocator and coordinator rely on."""

    def read(self, range_id: str) -> List[List[str]]: ...

    def append(self, wire_row: WireRow) -> AppendAck: ...


class SheetsRemoteStore:
    """Google Sheets values API bound to one spreadsheet."""

    def __init__(self, session: Session, spreadsheet_id: str) -> None:
        self._session = session
        self._spreadsheet_id = spreadsheet_id

    @property
    def spreadsheet_id(self) -> str:
        return self._spreadsheet_id

    # Reading -----------------------------------------------------------------
    def read(self, range_id: str) -> List[List[str]]:
        """Load the values currently stored in ``range_id``."""

        def _build_request() -> HttpRequest:
            return (
                self._session.service.spreadsheets()
                .values()
                .get(spreadsheetId=self._spreadsheet_id, range=range_id)
            )

        result = self._execute(_build_request, operation=f"read {range_id}")
        return result.get("values", [])

    # Writing -----------------------------------------------------------------
    def append(self, wire_row: WireRow) -> AppendAck:
        """Append rows below the table found in the target range."""

        def _append_request() -> HttpRequest:
            return (
                self._session.service.spreadsheets()
                .values()
                .append(
                    spreadsheetId=self._spreadsheet_id,
                    range=wire_row.range_id,
                    valueInputOption=VALUE_INPUT_OPTION,
                    insertDataOption=INSERT_DATA_OPTION,
                    body=wire_row.to_body(),
                )
            )

        result = self._execute(_append_request, operation=f"append to {wire_row.range_id}")
        updates = result.get("updates") or {}
        return AppendAck(updated_range=updates.get("updatedRange"), raw_response=result)

    # Internal ----------------------------------------------------------------
    def _execute(
        self,
        request_builder: Callable[[], HttpRequest],
        *,
        operation: str,
    ) -> dict:
        """Execute a Sheets API request once, translating failures into store errors."""

        try:
            return request_builder().execute(num_retries=0)
        except TimeoutError as exc:
            LOGGER.warning("Sheets API %s timed out: %s", operation, exc)
            raise RemoteTimeoutError(f"Sheets API {operation} timed out") from exc
        except HttpError as exc:
            status = getattr(exc.resp, "status", None)
            LOGGER.warning("Sheets API %s failed with HTTP %s", operation, status)
            raise RemoteStoreError(
                f"Sheets API {operation} failed: {exc}",
                status=status,
                retryable=status in _RETRYABLE_STATUS_CODES,
            ) from exc
        except _TRANSPORT_EXCEPTIONS as exc:
            LOGGER.warning("Sheets API %s failed in transport: %s", operation, exc)
            raise RemoteStoreError(
                f"Sheets API {operation} failed: {exc}", retryable=True
            ) from exc
        except GoogleAuthError as exc:
            LOGGER.warning("Sheets API %s could not authenticate: %s", operation, exc)
            raise RemoteStoreError(f"Sheets API {operation} could not authenticate: {exc}") from exc


def column_letter(index: int) -> str:
    """Convert a 1-based column index to its A1 letters (1 -> A, 27 -> AA)."""

    if index < 1:
        raise ValueError(f"Column index must be 1-based; received {index}")
    letters = ""
    while index:
        index, remainder = divmod(index - 1, 26)
        letters = chr(ord("A") + remainder) + letters
    return letters


def _row_window(span: str) -> tuple[int, int | None]:
    start, _, end = span.partition(":")
    if start.isdigit():
        first = int(start)
        last = int(end) if end.isdigit() else first
        return first, last
    return 1, None


class InMemoryRemoteStore:
    """Process-local stand-in for a spreadsheet, one list of rows per tab.

    Reads honour numeric row windows such as ``1:6`` the way Sheets does, and
    appends always land below the last stored row.
    """

    def __init__(self, sheets: Dict[str, List[List[str]]] | None = None) -> None:
        self._lock = threading.Lock()
        self._sheets: Dict[str, List[List[str]]] = {
            name: [list(row) for row in rows] for name, rows in (sheets or {}).items()
        }
        self.append_calls: List[WireRow] = []

    def rows(self, sheet_name: str) -> List[List[str]]:
        with self._lock:
            return [list(row) for row in self._sheets.get(sheet_name, [])]

    def read(self, range_id: str) -> List[List[str]]:
        target = SheetRange.parse(range_id)
        first, last = _row_window(target.span)
        with self._lock:
            rows = self._sheets.get(target.sheet_name, [])
            selected = rows[first - 1 : last]
            return [list(row) for row in selected]

    def append(self, wire_row: WireRow) -> AppendAck:
        target = SheetRange.parse(wire_row.range_id)
        with self._lock:
            self.append_calls.append(wire_row)
            rows = self._sheets.setdefault(target.sheet_name, [])
            start = len(rows) + 1
            rows.extend(list(row) for row in wire_row.values)
            end = len(rows)
        quoted = target.sheet_name.replace("'", "''")
        width = max([1, *(len(row) for row in wire_row.values)])
        last_column = column_letter(width)
        updated_range = f"'{quoted}'!A{start}:{last_column}{end}"
        return AppendAck(
            updated_range=updated_range,
            raw_response={"updates": {"updatedRange": updated_range}},
        )
