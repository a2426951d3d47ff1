from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, tzinfo
from typing import Literal

from .models import Row, WireRow

Layout = Literal["open", "legacy"]

# "open" lets Sheets find the end of the table; "legacy" is the historical fixed
# 1:6 window, which keeps landing on the same few rows once they are filled.
SPANS = {
    "open": "A:F",
    "legacy": "1:6",
}


@dataclass(frozen=True, slots=True)
class SheetRange:
    """A day's tab paired with the span rows are written to."""

    sheet_name: str
    span: str

    def __str__(self) -> str:
        quoted = self.sheet_name.replace("'", "''")
        return f"'{quoted}'!{self.span}"

    @classmethod
    def parse(cls, range_id: str) -> "SheetRange":
        sheet_part, sep, span = range_id.rpartition("!")
        if not sep or not sheet_part:
            raise ValueError(f"Range '{range_id}' does not name a sheet")
        if len(sheet_part) >= 2 and sheet_part[0] == sheet_part[-1] == "'":
            sheet_part = sheet_part[1:-1].replace("''", "'")
        return cls(sheet_name=sheet_part, span=span)


def sheet_name_for(now: datetime, zone: tzinfo) -> str:
    local = now.astimezone(zone)
    return f"{local.day} {local:%b}"


def current_range_id(now: datetime, zone: tzinfo, *, layout: Layout = "open") -> SheetRange:
    """Name the tab for ``now`` in ``zone``, e.g. ``'5 Jun'!A:F``."""

    try:
        span = SPANS[layout]
    except KeyError:
        raise ValueError(f"Unknown range layout '{layout}'") from None
    return SheetRange(sheet_name=sheet_name_for(now, zone), span=span)


def format_row(
    row: Row,
    now: datetime,
    *,
    zone: tzinfo,
    layout: Layout = "open",
    range_id: str | None = None,
) -> WireRow:
    target = range_id or str(current_range_id(now, zone, layout=layout))
    return WireRow(range_id=target, values=[row.cells()])


def parse_updated_row(updated_range: str | None) -> int | None:
    """Return the first row number written according to an ``updatedRange`` string."""

    if not updated_range:
        return None
    _, _, range_body = updated_range.rpartition("!")
    start_ref, _, _ = range_body.partition(":")
    digits = "".join(ch for ch in start_ref if ch.isdigit())
    if not digits:
        return None
    return int(digits)
