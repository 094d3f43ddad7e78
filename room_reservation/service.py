from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date, datetime
from typing import AsyncIterator, Callable, Hashable, Sequence
import asyncio
import logging
import threading

from .booking import (
    ROOMS,
    ErrorCode,
    Reservation,
    ReservationFilter,
    ReservationPatch,
    ReservationRequest,
    Room,
    find_conflicts,
    validate_date,
    validate_times,
)
from .schedule import CalendarView, build_calendar, generate_slots
from .store import ReservationNotFound, ReservationStore, StoreUnavailable

logger = logging.getLogger(__name__)

CONFLICT_MESSAGE = "This time slot is already reserved. Please select a different time."
NOT_FOUND_MESSAGE = "Reservation not found"
STORE_UNAVAILABLE_MESSAGE = "Reservation storage is temporarily unavailable. Please try again."

_LOCK_POLL_SECONDS = 0.005


@dataclass(frozen=True)
class ReservationOutcome:
    reservation: Reservation | None = None
    reservations: tuple[Reservation, ...] = ()
    error: ErrorCode | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    @staticmethod
    def failure(error: ErrorCode, message: str, conflicts: Sequence[Reservation] = ()) -> "ReservationOutcome":
        return ReservationOutcome(reservations=tuple(conflicts), error=error, message=message)


class KeyedLocks:
    """One lock per key, shared by every event loop and thread using the service.

    Locks are taken by polling so a cancelled waiter never ends up owning a key.
    A key's lock is dropped once nobody holds or waits for it.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[Hashable, threading.Lock] = {}
        self._users: dict[Hashable, int] = {}

    def _checkout(self, key: Hashable) -> threading.Lock:
        with self._guard:
            self._users[key] = self._users.get(key, 0) + 1
            return self._locks.setdefault(key, threading.Lock())

    def _checkin(self, key: Hashable) -> None:
        with self._guard:
            remaining = self._users[key] - 1
            if remaining:
                self._users[key] = remaining
            else:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @asynccontextmanager
    async def hold(self, *keys: tuple[str, date]) -> AsyncIterator[None]:
        checked_out: list[Hashable] = []
        acquired: list[threading.Lock] = []
        try:
            for key in sorted(set(keys)):
                lock = self._checkout(key)
                checked_out.append(key)
                while not lock.acquire(blocking=False):
                    await asyncio.sleep(_LOCK_POLL_SECONDS)
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
            for key in checked_out:
                self._checkin(key)


class ReservationService:
    """Validate, conflict-check and persist reservations.

    Every decision re-reads the store. Writes for the same ``(room_id, date)``
    are serialised so two concurrent requests cannot both pass the conflict
    check for the same slot.
    """

    def __init__(
        self,
        store: ReservationStore,
        clock: Callable[[], datetime] | None = None,
        locks: KeyedLocks | None = None,
    ) -> None:
        self.store = store
        self.clock: Callable[[], datetime] = clock or datetime.now
        self.locks = locks or KeyedLocks()

    def _validate(self, candidate: ReservationRequest | Reservation) -> ReservationOutcome | None:
        date_result = validate_date(candidate.date, self.clock())
        if not date_result.ok:
            return ReservationOutcome.failure(date_result.error, date_result.message)

        time_result = validate_times(candidate.start_time, candidate.end_time)
        if not time_result.ok:
            return ReservationOutcome.failure(time_result.error, time_result.message)
        return None

    async def create(self, request: ReservationRequest) -> ReservationOutcome:
        invalid = self._validate(request)
        if invalid is not None:
            return invalid

        try:
            async with self.locks.hold((request.room_id, request.date)):
                conflicts = find_conflicts(request, await self.store.list_all())
                if conflicts:
                    logger.info("Rejected booking of %s on %s: slot taken", request.room_id, request.date)
                    return ReservationOutcome.failure(ErrorCode.CONFLICT, CONFLICT_MESSAGE, conflicts)
                created = await self.store.create(request)
        except StoreUnavailable:
            return self._store_failure()

        return ReservationOutcome(reservation=created, message="Reservation created successfully")

    async def update(self, reservation_id: str, patch: ReservationPatch) -> ReservationOutcome:
        try:
            while True:
                snapshot = await self.store.get_by_id(reservation_id)
                if snapshot is None:
                    return ReservationOutcome.failure(ErrorCode.NOT_FOUND, NOT_FOUND_MESSAGE)
                target = patch.apply(snapshot)

                async with self.locks.hold((snapshot.room_id, snapshot.date), (target.room_id, target.date)):
                    current = await self.store.get_by_id(reservation_id)
                    if current is None:
                        return ReservationOutcome.failure(ErrorCode.NOT_FOUND, NOT_FOUND_MESSAGE)
                    if (current.room_id, current.date) != (snapshot.room_id, snapshot.date):
                        # Moved since the snapshot, so the held keys are stale.
                        continue

                    candidate = patch.apply(current)
                    invalid = self._validate(candidate)
                    if invalid is not None:
                        return invalid
                    conflicts = find_conflicts(candidate, await self.store.list_all(), exclude_id=reservation_id)
                    if conflicts:
                        logger.info("Rejected update of %s: slot taken", reservation_id)
                        return ReservationOutcome.failure(ErrorCode.CONFLICT, CONFLICT_MESSAGE, conflicts)
                    updated = await self.store.update(reservation_id, ReservationPatch.from_reservation(candidate))
                    break
        except ReservationNotFound:
            return ReservationOutcome.failure(ErrorCode.NOT_FOUND, NOT_FOUND_MESSAGE)
        except StoreUnavailable:
            return self._store_failure()

        return ReservationOutcome(reservation=updated, message="Reservation updated successfully")

    async def delete(self, reservation_id: str) -> ReservationOutcome:
        try:
            await self.store.delete(reservation_id)
        except ReservationNotFound:
            return ReservationOutcome.failure(ErrorCode.NOT_FOUND, NOT_FOUND_MESSAGE)
        except StoreUnavailable:
            return self._store_failure()
        return ReservationOutcome(message="Reservation deleted successfully")

    async def get(self, reservation_id: str) -> ReservationOutcome:
        try:
            reservation = await self.store.get_by_id(reservation_id)
        except StoreUnavailable:
            return self._store_failure()
        if reservation is None:
            return ReservationOutcome.failure(ErrorCode.NOT_FOUND, NOT_FOUND_MESSAGE)
        return ReservationOutcome(reservation=reservation)

    async def list(self, criteria: ReservationFilter | None = None) -> ReservationOutcome:
        try:
            reservations = await self.store.list_filtered(criteria)
        except StoreUnavailable:
            return self._store_failure()
        return ReservationOutcome(reservations=tuple(reservations))

    async def check_availability(
        self,
        request: ReservationRequest,
        exclude_id: str | None = None,
    ) -> ReservationOutcome:
        """Run the create checks without writing. Conflicts come back in ``reservations``."""
        invalid = self._validate(request)
        if invalid is not None:
            return invalid

        try:
            conflicts = find_conflicts(request, await self.store.list_all(), exclude_id=exclude_id)
        except StoreUnavailable:
            return self._store_failure()
        if conflicts:
            return ReservationOutcome.failure(ErrorCode.CONFLICT, CONFLICT_MESSAGE, conflicts)
        return ReservationOutcome(message="Time slot is available")

    async def calendar(
        self,
        start_date: date,
        end_date: date,
        rooms: Sequence[Room] = ROOMS,
        slots: Sequence[str] | None = None,
        holiday_country: str | None = None,
    ) -> CalendarView | ReservationOutcome:
        try:
            reservations = await self.store.list_filtered(ReservationFilter(start_date=start_date, end_date=end_date))
        except StoreUnavailable:
            return self._store_failure()
        return build_calendar(
            rooms,
            start_date,
            end_date,
            reservations,
            slots if slots is not None else generate_slots(),
            holiday_country=holiday_country,
        )

    @staticmethod
    def _store_failure() -> ReservationOutcome:
        return ReservationOutcome.failure(ErrorCode.STORE_UNAVAILABLE, STORE_UNAVAILABLE_MESSAGE)
