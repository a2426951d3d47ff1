from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class AppendState(str, Enum):
    PENDING = "pending"
    NUMBERING = "numbering"
    APPENDING = "appending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


def _check_seat_number(seat_number: int) -> None:
    if isinstance(seat_number, bool) or not isinstance(seat_number, int):
        raise TypeError(f"seat_number must be an int, got {type(seat_number).__name__}")
    if seat_number < 0:
        raise ValueError(f"seat_number must not be negative; received {seat_number}")


@dataclass(frozen=True, slots=True)
class PendingRow:
    """Attendance record as supplied by a caller, before it has a serial number."""

    name: str
    roll_number: str
    seat_number: int
    time_in: str
    time_out: str = ""

    def __post_init__(self) -> None:
        _check_seat_number(self.seat_number)

    def with_serial(self, serial_number: int) -> "Row":
        return Row(
            serial_number=serial_number,
            name=self.name,
            roll_number=self.roll_number,
            seat_number=self.seat_number,
            time_in=self.time_in,
            time_out=self.time_out,
        )


@dataclass(frozen=True, slots=True)
class Row:
    """A complete attendance record, one line of a day's sheet."""

    serial_number: int
    name: str
    roll_number: str
    seat_number: int
    time_in: str
    time_out: str

    def __post_init__(self) -> None:
        if isinstance(self.serial_number, bool) or not isinstance(self.serial_number, int):
            raise TypeError("serial_number must be an int")
        if self.serial_number < 1:
            msg = f"serial_number must be 1-based; received {self.serial_number}"
            raise ValueError(msg)
        _check_seat_number(self.seat_number)

    def cells(self) -> List[str]:
        return [
            str(self.serial_number),
            self.name,
            self.roll_number,
            str(self.seat_number),
            self.time_in,
            self.time_out,
        ]

    def summary(self) -> str:
        return (
            "Appended data:\n"
            f"Serial Number: {self.serial_number}\t"
            f"Name: {self.name}\t"
            f"Roll Number: {self.roll_number}\t"
            f"Seat Number: {self.seat_number}\t"
            f"Time In: {self.time_in}\t"
            f"Time Out: {self.time_out}"
        )


@dataclass(frozen=True, slots=True)
class WireRow:
    """Payload for a single values.append call."""

    range_id: str
    values: List[List[str]]
    major_dimension: str = "ROWS"

    def to_body(self) -> dict:
        return {
            "range": self.range_id,
            "majorDimension": self.major_dimension,
            "values": [list(row) for row in self.values],
        }


@dataclass(frozen=True, slots=True)
class AppendAck:
    """What the remote store reports back after an append."""

    updated_range: Optional[str] = None
    raw_response: dict = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class AppendOutcome:
    """Result handed back to the caller after a successful append."""

    row: Row
    summary: str
    range_id: str
    updated_range: Optional[str] = None
    state: AppendState = AppendState.SUCCEEDED
    placement_confirmed: Optional[bool] = None
