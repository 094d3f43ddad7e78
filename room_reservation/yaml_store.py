from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, TypeVar
import asyncio
import logging
import shutil
import threading

import yaml

from .booking import (
    Reservation,
    ReservationPatch,
    ReservationRequest,
    format_date,
    format_time,
    parse_date,
    parse_time,
)
from .store import (
    ReservationNotFound,
    ReservationStorageError,
    ReservationStore,
    StoreUnavailable,
    generate_reservation_id,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

HEADER = [
    "Reservation ID",
    "Room ID",
    "Room Name",
    "Date",
    "Start Time",
    "End Time",
    "Reserved By",
    "Company",
    "Created At",
]
COLUMN_COUNT = len(HEADER)


def reservation_to_row(reservation: Reservation) -> list[str]:
    return [
        reservation.id,
        reservation.room_id,
        reservation.room_name,
        format_date(reservation.date),
        format_time(reservation.start_time),
        format_time(reservation.end_time),
        reservation.reserved_by,
        reservation.company,
        reservation.created_at.isoformat(),
    ]


def row_to_reservation(row: Any) -> Reservation | None:
    """Convert a stored row back to a reservation, or None when it is unusable."""
    if not isinstance(row, list) or len(row) < COLUMN_COUNT:
        return None
    cells = [str(cell) if cell is not None else "" for cell in row[:COLUMN_COUNT]]
    try:
        return Reservation(
            id=cells[0],
            room_id=cells[1],
            room_name=cells[2],
            date=parse_date(cells[3]),
            start_time=parse_time(cells[4]),
            end_time=parse_time(cells[5]),
            reserved_by=cells[6],
            company=cells[7],
            created_at=datetime.fromisoformat(cells[8]),
        )
    except ValueError:
        return None


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class YamlReservationStore(ReservationStore):
    """Reservation table kept in a single YAML file.

    The file is a list of rows. Row 0 is the header; every other row uses the
    fixed nine-column order of ``HEADER``. Row order on disk carries no meaning.
    """

    def __init__(self, base_dir: str | Path = "data", clock: Callable[[], datetime] | None = None) -> None:
        self.base_dir = Path(base_dir)
        self.table_file = self.base_dir / "reservations.yaml"
        self.clock: Callable[[], datetime] = clock or _utc_now
        self._lock = threading.Lock()
        self._ensure_files()

    def _ensure_files(self) -> None:
        self.base_dir.mkdir(parents=True, exist_ok=True)
        if not self.table_file.exists():
            self._write_table([])

    async def list_all(self) -> list[Reservation]:
        return await self._run(self._list_all)

    async def get_by_id(self, reservation_id: str) -> Reservation | None:
        for reservation in await self.list_all():
            if reservation.id == reservation_id:
                return reservation
        return None

    async def create(self, request: ReservationRequest) -> Reservation:
        return await self._run(self._create, request)

    async def update(self, reservation_id: str, patch: ReservationPatch) -> Reservation:
        return await self._run(self._update, reservation_id, patch)

    async def delete(self, reservation_id: str) -> None:
        await self._run(self._delete, reservation_id)

    async def _run(self, func: Callable[..., T], *args: Any) -> T:
        try:
            return await asyncio.to_thread(self._locked, func, *args)
        except (ReservationNotFound, StoreUnavailable):
            raise
        except (OSError, yaml.YAMLError, ReservationStorageError) as error:
            logger.exception("Reservation store call %s failed", func.__name__)
            raise StoreUnavailable("Reservation store is unavailable") from error

    def _locked(self, func: Callable[..., T], *args: Any) -> T:
        with self._lock:
            return func(*args)

    def _list_all(self) -> list[Reservation]:
        reservations: list[Reservation] = []
        for index, row in enumerate(self._read_table()):
            reservation = row_to_reservation(row)
            if reservation is None:
                logger.warning("Skipping unreadable row %d in %s", index + 2, self.table_file.name)
                continue
            reservations.append(reservation)
        return reservations

    def _create(self, request: ReservationRequest) -> Reservation:
        created_at = self.clock()
        record = Reservation.from_request(request, generate_reservation_id(created_at), created_at)
        rows = self._read_table()
        rows.append(reservation_to_row(record))
        self._write_table(rows)

        logger.info("Reservation %s created for %s on %s", record.id, record.room_id, format_date(record.date))
        return record

    def _update(self, reservation_id: str, patch: ReservationPatch) -> Reservation:
        rows = self._read_table()
        found_index = self._find_row(rows, reservation_id)

        current = row_to_reservation(rows[found_index])
        if current is None:
            raise ReservationStorageError(f"Stored row for {reservation_id} is unreadable")

        updated = patch.apply(current)
        rows[found_index] = reservation_to_row(updated)
        self._write_table(rows)

        logger.info("Reservation %s updated", reservation_id)
        return updated

    def _delete(self, reservation_id: str) -> None:
        rows = self._read_table()
        found_index = self._find_row(rows, reservation_id)
        del rows[found_index]
        self._write_table(rows)

        logger.info("Reservation %s deleted", reservation_id)

    @staticmethod
    def _find_row(rows: list[Any], reservation_id: str) -> int:
        for index, row in enumerate(rows):
            if isinstance(row, list) and row and str(row[0]) == reservation_id:
                return index
        raise ReservationNotFound(reservation_id)

    def _read_table(self) -> list[Any]:
        """Return the data rows, header excluded."""
        try:
            payload = yaml.safe_load(self.table_file.read_text(encoding="utf-8"))
        except FileNotFoundError:
            self._write_table([])
            return []
        except (UnicodeDecodeError, yaml.YAMLError) as error:
            self._backup_corrupted_table(error)
            raise ReservationStorageError(f"Reservation table is unreadable: {self.table_file}") from error

        if payload is None:
            return []
        if not isinstance(payload, list):
            self._backup_corrupted_table(ValueError("top-level YAML is not a list"))
            raise ReservationStorageError(f"Reservation table is not a list: {self.table_file}")
        return payload[1:]

    def _write_table(self, rows: list[Any]) -> None:
        temp_path = self.table_file.with_suffix(self.table_file.suffix + ".tmp")
        document = [HEADER, *rows]
        try:
            temp_path.write_text(yaml.safe_dump(document, allow_unicode=True, sort_keys=False), encoding="utf-8")
            temp_path.replace(self.table_file)
        except OSError as error:
            raise ReservationStorageError(f"Failed to write YAML file: {self.table_file}") from error
        finally:
            if temp_path.exists():
                temp_path.unlink(missing_ok=True)

    def _backup_corrupted_table(self, error: Exception) -> None:
        timestamp = datetime.now().strftime("%Y%m%d%H%M%S")
        backup_path = self.table_file.with_name(f"{self.table_file.stem}.corrupt.{timestamp}{self.table_file.suffix}")
        try:
            shutil.copy2(self.table_file, backup_path)
        except OSError:
            logger.warning("Could not back up corrupted table %s", self.table_file.name)
            return
        logger.error("Reservation table %s is corrupted (%s); copied to %s", self.table_file.name, error, backup_path.name)
