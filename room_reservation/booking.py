from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any, Iterable, Mapping, Protocol
import re


WORKING_START_HOUR = 8
WORKING_END_HOUR = 20
SLOT_INTERVAL_MINUTES = 30
MIN_RESERVATION_MINUTES = 15
MAX_RESERVATION_HOURS = 8
MAX_ADVANCE_DAYS = 365

COMPANIES = ("Company A", "Company B")

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_RE = re.compile(r"^(?P<hour>[01]?\d|2[0-3]):(?P<minute>[0-5]\d)$")


class ErrorCode(str, Enum):
    MALFORMED_INPUT = "malformed_input"
    INVALID_RANGE = "invalid_range"
    TOO_SHORT = "too_short"
    TOO_LONG = "too_long"
    IN_THE_PAST = "in_the_past"
    TOO_FAR_AHEAD = "too_far_ahead"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    UNAUTHENTICATED = "unauthenticated"
    SESSION_EXPIRED = "session_expired"
    STORE_UNAVAILABLE = "store_unavailable"

    @property
    def http_status(self) -> int:
        if self is ErrorCode.CONFLICT:
            return 409
        if self is ErrorCode.NOT_FOUND:
            return 404
        if self in (ErrorCode.UNAUTHENTICATED, ErrorCode.SESSION_EXPIRED):
            return 401
        if self is ErrorCode.STORE_UNAVAILABLE:
            return 500
        return 400


class ReservationInputError(ValueError):
    """Raised when a caller-supplied value cannot be normalised."""

    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


@dataclass(frozen=True)
class ValidationResult:
    error: ErrorCode | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None


VALID = ValidationResult()


@dataclass(frozen=True)
class Room:
    id: str
    name: str
    description: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"id": self.id, "name": self.name}
        if self.description is not None:
            payload["description"] = self.description
        return payload


ROOMS = (
    Room("room-1", "Meeting Room 1", "Main conference room"),
    Room("room-2", "Meeting Room 2", "Small meeting room"),
    Room("room-3", "Meeting Room 3", "Team collaboration space"),
    Room("room-4", "Meeting Room 4", "Executive meeting room"),
)


def find_room(room_id: str, rooms: Iterable[Room] = ROOMS) -> Room | None:
    for room in rooms:
        if room.id == room_id:
            return room
    return None


def parse_date(value: str) -> date:
    """Parse a zero-padded ``YYYY-MM-DD`` string."""
    text = str(value).strip()
    if not _DATE_RE.match(text):
        raise ValueError(f"Invalid date format: {value!r}")
    return date.fromisoformat(text)


def parse_time(value: str) -> time:
    """Parse ``HH:MM`` (24-hour). A single-digit hour is accepted and normalised."""
    match = _TIME_RE.match(str(value).strip())
    if match is None:
        raise ValueError(f"Invalid time format: {value!r}")
    return time(int(match.group("hour")), int(match.group("minute")))


def format_date(value: date) -> str:
    return value.isoformat()


def format_time(value: time) -> str:
    return value.strftime("%H:%M")


def _minutes(value: time) -> int:
    return value.hour * 60 + value.minute


class Schedulable(Protocol):
    room_id: str
    date: date
    start_time: time
    end_time: time


@dataclass(frozen=True)
class ReservationRequest:
    room_id: str
    room_name: str
    date: date
    start_time: time
    end_time: time
    reserved_by: str
    company: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "reserved_by", self.reserved_by.strip())

    @staticmethod
    def from_payload(data: Mapping[str, Any]) -> "ReservationRequest":
        required = ("roomId", "roomName", "date", "startTime", "endTime", "reservedBy", "company")
        missing = [key for key in required if not str(data.get(key) or "").strip()]
        if missing:
            raise ReservationInputError(ErrorCode.MALFORMED_INPUT, "Missing required fields")

        try:
            reservation_date = parse_date(str(data["date"]))
        except ValueError as error:
            raise ReservationInputError(ErrorCode.MALFORMED_INPUT, "Invalid date format") from error
        try:
            start_time = parse_time(str(data["startTime"]))
            end_time = parse_time(str(data["endTime"]))
        except ValueError as error:
            raise ReservationInputError(ErrorCode.MALFORMED_INPUT, "Invalid time format") from error

        return ReservationRequest(
            room_id=str(data["roomId"]).strip(),
            room_name=str(data["roomName"]).strip(),
            date=reservation_date,
            start_time=start_time,
            end_time=end_time,
            reserved_by=str(data["reservedBy"]),
            company=str(data["company"]).strip(),
        )


@dataclass(frozen=True)
class Reservation:
    id: str
    room_id: str
    room_name: str
    date: date
    start_time: time
    end_time: time
    reserved_by: str
    company: str
    created_at: datetime

    @staticmethod
    def from_request(request: ReservationRequest, reservation_id: str, created_at: datetime) -> "Reservation":
        return Reservation(
            id=reservation_id,
            room_id=request.room_id,
            room_name=request.room_name,
            date=request.date,
            start_time=request.start_time,
            end_time=request.end_time,
            reserved_by=request.reserved_by,
            company=request.company,
            created_at=created_at,
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "id": self.id,
            "roomId": self.room_id,
            "roomName": self.room_name,
            "date": format_date(self.date),
            "startTime": format_time(self.start_time),
            "endTime": format_time(self.end_time),
            "reservedBy": self.reserved_by,
            "company": self.company,
            "createdAt": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class ReservationPatch:
    """Partial update of a reservation.

    ``id`` and ``created_at`` are write-once, so they have no field here.
    """

    room_id: str | None = None
    room_name: str | None = None
    date: date | None = None
    start_time: time | None = None
    end_time: time | None = None
    reserved_by: str | None = None
    company: str | None = None

    @property
    def is_empty(self) -> bool:
        return all(getattr(self, name) is None for name in _PATCH_FIELDS)

    def apply(self, record: Reservation) -> Reservation:
        changes = {name: getattr(self, name) for name in _PATCH_FIELDS if getattr(self, name) is not None}
        if "reserved_by" in changes:
            changes["reserved_by"] = changes["reserved_by"].strip()
        return replace(record, **changes)

    @staticmethod
    def from_reservation(record: Reservation) -> "ReservationPatch":
        """Patch that rewrites every mutable field to match ``record``."""
        return ReservationPatch(**{name: getattr(record, name) for name in _PATCH_FIELDS})

    @staticmethod
    def from_payload(data: Mapping[str, Any]) -> "ReservationPatch":
        def text(key: str) -> str | None:
            value = data.get(key)
            if value is None or not str(value).strip():
                return None
            return str(value).strip()

        try:
            patch_date = parse_date(text("date")) if text("date") else None
        except ValueError as error:
            raise ReservationInputError(ErrorCode.MALFORMED_INPUT, "Invalid date format") from error
        try:
            start_time = parse_time(text("startTime")) if text("startTime") else None
            end_time = parse_time(text("endTime")) if text("endTime") else None
        except ValueError as error:
            raise ReservationInputError(ErrorCode.MALFORMED_INPUT, "Invalid time format") from error

        return ReservationPatch(
            room_id=text("roomId"),
            room_name=text("roomName"),
            date=patch_date,
            start_time=start_time,
            end_time=end_time,
            reserved_by=text("reservedBy"),
            company=text("company"),
        )


_PATCH_FIELDS = ("room_id", "room_name", "date", "start_time", "end_time", "reserved_by", "company")


@dataclass(frozen=True)
class ReservationFilter:
    room_id: str | None = None
    date: date | None = None
    company: str | None = None
    start_date: date | None = None
    end_date: date | None = None


def overlaps(a: Schedulable, b: Schedulable) -> bool:
    """Return True when two bookings share a room, a date and some time.

    Intervals are half-open ``[start, end)`` so a booking ending at 10:00 and
    another starting at 10:00 do not overlap.
    """
    if a.room_id != b.room_id or a.date != b.date:
        return False
    return _minutes(a.start_time) < _minutes(b.end_time) and _minutes(b.start_time) < _minutes(a.end_time)


def find_conflicts(
    candidate: Schedulable,
    existing_reservations: Iterable[Reservation],
    exclude_id: str | None = None,
) -> list[Reservation]:
    return [
        reservation
        for reservation in existing_reservations
        if not (exclude_id is not None and reservation.id == exclude_id) and overlaps(candidate, reservation)
    ]


def is_available(
    candidate: Schedulable,
    existing_reservations: Iterable[Reservation],
    exclude_id: str | None = None,
) -> bool:
    """Return True if no reservation other than ``exclude_id`` overlaps the candidate."""
    for reservation in existing_reservations:
        if exclude_id is not None and reservation.id == exclude_id:
            continue
        if overlaps(candidate, reservation):
            return False
    return True


def validate_times(start: str | time, end: str | time) -> ValidationResult:
    try:
        start_value = start if isinstance(start, time) else parse_time(start)
        end_value = end if isinstance(end, time) else parse_time(end)
    except ValueError:
        return ValidationResult(ErrorCode.MALFORMED_INPUT, "Invalid time format")

    if start_value >= end_value:
        return ValidationResult(ErrorCode.INVALID_RANGE, "End time must be after start time")

    duration = _minutes(end_value) - _minutes(start_value)
    if duration > MAX_RESERVATION_HOURS * 60:
        return ValidationResult(ErrorCode.TOO_LONG, f"Reservation cannot exceed {MAX_RESERVATION_HOURS} hours")
    if duration < MIN_RESERVATION_MINUTES:
        return ValidationResult(ErrorCode.TOO_SHORT, f"Reservation must be at least {MIN_RESERVATION_MINUTES} minutes")
    return VALID


def validate_date(value: str | date, now: datetime | None = None) -> ValidationResult:
    try:
        target = value if isinstance(value, date) else parse_date(value)
    except ValueError:
        return ValidationResult(ErrorCode.MALFORMED_INPUT, "Invalid date format")

    today = (now or datetime.now()).date()
    if target < today:
        return ValidationResult(ErrorCode.IN_THE_PAST, "Cannot reserve in the past")
    if target > today + timedelta(days=MAX_ADVANCE_DAYS):
        return ValidationResult(ErrorCode.TOO_FAR_AHEAD, "Cannot reserve more than 1 year in advance")
    return VALID
