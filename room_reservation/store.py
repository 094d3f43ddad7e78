from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Iterable
from uuid import uuid4

from .booking import Reservation, ReservationFilter, ReservationPatch, ReservationRequest


class ReservationStorageError(RuntimeError):
    pass


class StoreUnavailable(ReservationStorageError):
    """The backing persistence call failed. The original cause is chained."""


class ReservationNotFound(LookupError):
    def __init__(self, reservation_id: str) -> None:
        super().__init__(f"Reservation not found: {reservation_id}")
        self.reservation_id = reservation_id


def generate_reservation_id(now: datetime | None = None) -> str:
    millis = int((now or datetime.now()).timestamp() * 1000)
    return f"{millis}-{uuid4().hex[:12]}"


def filter_reservations(
    reservations: Iterable[Reservation],
    criteria: ReservationFilter | None = None,
) -> list[Reservation]:
    """Apply ``criteria`` and sort by ``(date, start_time)``."""
    criteria = criteria or ReservationFilter()
    rows = list(reservations)

    if criteria.room_id:
        rows = [row for row in rows if row.room_id == criteria.room_id]
    if criteria.date is not None:
        rows = [row for row in rows if row.date == criteria.date]
    if criteria.company:
        needle = criteria.company.lower()
        rows = [row for row in rows if needle in row.company.lower()]
    if criteria.start_date is not None:
        rows = [row for row in rows if row.date >= criteria.start_date]
    if criteria.end_date is not None:
        rows = [row for row in rows if row.date <= criteria.end_date]

    return sorted(rows, key=lambda row: (row.date, row.start_time))


class ReservationStore(ABC):
    """Durable CRUD over reservations.

    The store does not enforce the no-overlap rule; callers check conflicts
    before ``create``/``update``. Writes must be visible to the next read made
    by the same caller.
    """

    @abstractmethod
    async def list_all(self) -> list[Reservation]:
        ...

    @abstractmethod
    async def get_by_id(self, reservation_id: str) -> Reservation | None:
        ...

    @abstractmethod
    async def create(self, request: ReservationRequest) -> Reservation:
        ...

    @abstractmethod
    async def update(self, reservation_id: str, patch: ReservationPatch) -> Reservation:
        ...

    @abstractmethod
    async def delete(self, reservation_id: str) -> None:
        ...

    async def list_filtered(self, criteria: ReservationFilter | None = None) -> list[Reservation]:
        return filter_reservations(await self.list_all(), criteria)
