"""Time-slot grid and read-only calendar projection."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Iterable, Sequence

import holidays as pyholidays

from .booking import (
    SLOT_INTERVAL_MINUTES,
    WORKING_END_HOUR,
    WORKING_START_HOUR,
    Reservation,
    Room,
    format_date,
    parse_time,
)

_HOLIDAY_CACHE: dict[tuple[str, int], dict[date, str]] = {}


@dataclass(frozen=True)
class TimeSlot:
    time: str
    is_available: bool
    reservation: Reservation | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"time": self.time, "isAvailable": self.is_available}
        if self.reservation is not None:
            payload["reservation"] = self.reservation.to_dict()
        return payload


@dataclass(frozen=True)
class RoomSchedule:
    room: Room
    time_slots: tuple[TimeSlot, ...]

    def to_dict(self) -> dict[str, Any]:
        return {"room": self.room.to_dict(), "timeSlots": [slot.to_dict() for slot in self.time_slots]}


@dataclass(frozen=True)
class DaySchedule:
    date: date
    rooms: tuple[RoomSchedule, ...]
    holiday: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "date": format_date(self.date),
            "rooms": [room.to_dict() for room in self.rooms],
        }
        if self.holiday is not None:
            payload["holiday"] = self.holiday
        return payload


@dataclass(frozen=True)
class CalendarView:
    start_date: date
    end_date: date
    days: tuple[DaySchedule, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "startDate": format_date(self.start_date),
            "endDate": format_date(self.end_date),
            "days": [day.to_dict() for day in self.days],
        }


def generate_slots(
    start_hour: int = WORKING_START_HOUR,
    end_hour: int = WORKING_END_HOUR,
    interval_minutes: int = SLOT_INTERVAL_MINUTES,
) -> list[str]:
    """Return every slot boundary from ``start_hour:00`` up to, not including, ``end_hour:00``."""
    if interval_minutes <= 0:
        raise ValueError("interval_minutes must be greater than zero")
    if not 0 <= start_hour < end_hour <= 24:
        raise ValueError("hours must satisfy 0 <= start_hour < end_hour <= 24")

    slots: list[str] = []
    for minute_of_day in range(start_hour * 60, end_hour * 60, interval_minutes):
        slots.append(f"{minute_of_day // 60:02d}:{minute_of_day % 60:02d}")
    return slots


def week_start(day: date) -> date:
    """Monday of the week containing ``day``."""
    return day - timedelta(days=day.weekday())


def week_dates(start: date, days: int = 7) -> list[date]:
    return [start + timedelta(days=offset) for offset in range(days)]


def holiday_name(target_date: date, country: str) -> str | None:
    key = (country, target_date.year)
    if key not in _HOLIDAY_CACHE:
        holiday_map = pyholidays.country_holidays(country, years=[target_date.year])
        _HOLIDAY_CACHE[key] = dict(holiday_map.items())
    return _HOLIDAY_CACHE[key].get(target_date)


def build_calendar(
    rooms: Sequence[Room],
    start_date: date,
    end_date: date,
    reservations: Iterable[Reservation],
    slots: Sequence[str] | None = None,
    holiday_country: str | None = None,
) -> CalendarView:
    if end_date < start_date:
        raise ValueError("end_date must not be earlier than start_date")

    slot_labels = list(slots) if slots is not None else generate_slots()
    slot_times = [parse_time(label) for label in slot_labels]

    grouped: dict[tuple[str, date], list[Reservation]] = {}
    for reservation in reservations:
        if start_date <= reservation.date <= end_date:
            grouped.setdefault((reservation.room_id, reservation.date), []).append(reservation)

    days: list[DaySchedule] = []
    cursor = start_date
    while cursor <= end_date:
        room_schedules: list[RoomSchedule] = []
        for room in rooms:
            booked = sorted(grouped.get((room.id, cursor), []), key=lambda item: item.start_time)
            time_slots: list[TimeSlot] = []
            for label, slot_time in zip(slot_labels, slot_times):
                occupant = next((row for row in booked if row.start_time <= slot_time < row.end_time), None)
                time_slots.append(TimeSlot(time=label, is_available=occupant is None, reservation=occupant))
            room_schedules.append(RoomSchedule(room=room, time_slots=tuple(time_slots)))

        holiday = holiday_name(cursor, holiday_country) if holiday_country else None
        days.append(DaySchedule(date=cursor, rooms=tuple(room_schedules), holiday=holiday))
        cursor += timedelta(days=1)

    return CalendarView(start_date=start_date, end_date=end_date, days=tuple(days))
