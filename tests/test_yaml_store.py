import tempfile
import unittest
from datetime import date, datetime, time, timezone
from pathlib import Path

import yaml

from room_reservation import (
    ReservationFilter,
    ReservationNotFound,
    ReservationPatch,
    ReservationRequest,
    StoreUnavailable,
    YamlReservationStore,
)
from room_reservation.yaml_store import HEADER


def make_request(
    room_id: str = "room-1",
    day: date = date(2026, 2, 24),
    start: time = time(10, 0),
    end: time = time(11, 0),
    company: str = "Company A",
) -> ReservationRequest:
    return ReservationRequest(
        room_id=room_id,
        room_name=room_id.replace("room-", "Meeting Room "),
        date=day,
        start_time=start,
        end_time=end,
        reserved_by="Kim",
        company=company,
    )


class TestYamlReservationStore(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self._temp_dir = tempfile.TemporaryDirectory()
        self.data_dir = Path(self._temp_dir.name) / "data"
        self.store = YamlReservationStore(self.data_dir)

    def tearDown(self) -> None:
        self._temp_dir.cleanup()

    async def test_create_then_get_round_trip(self) -> None:
        request = make_request()

        before = datetime.now(timezone.utc)
        created = await self.store.create(request)
        after = datetime.now(timezone.utc)

        fetched = await self.store.get_by_id(created.id)
        self.assertEqual(fetched, created)
        self.assertTrue(created.id)
        self.assertLessEqual(before, created.created_at)
        self.assertLessEqual(created.created_at, after)
        self.assertEqual(fetched.room_id, request.room_id)
        self.assertEqual(fetched.date, request.date)
        self.assertEqual(fetched.start_time, request.start_time)
        self.assertEqual(fetched.end_time, request.end_time)
        self.assertEqual(fetched.reserved_by, request.reserved_by)
        self.assertEqual(fetched.company, request.company)

    async def test_generated_ids_are_unique(self) -> None:
        ids = {(await self.store.create(make_request(start=time(8 + index, 0), end=time(9 + index, 0)))).id for index in range(5)}

        self.assertEqual(len(ids), 5)

    async def test_writes_are_visible_to_a_new_store_instance(self) -> None:
        created = await self.store.create(make_request())

        reopened = YamlReservationStore(self.data_dir)
        self.assertEqual(await reopened.list_all(), [created])

    async def test_table_has_header_and_nine_columns(self) -> None:
        created = await self.store.create(make_request())

        document = yaml.safe_load((self.data_dir / "reservations.yaml").read_text(encoding="utf-8"))
        self.assertEqual(document[0], HEADER)
        self.assertEqual(len(document[1]), 9)
        self.assertEqual(document[1][0], created.id)
        self.assertEqual(document[1][3:6], ["2026-02-24", "10:00", "11:00"])

    async def test_update_merges_fields_and_keeps_write_once_values(self) -> None:
        created = await self.store.create(make_request())

        updated = await self.store.update(created.id, ReservationPatch(start_time=time(13, 0), end_time=time(14, 0), reserved_by=" Lee "))

        self.assertEqual(updated.id, created.id)
        self.assertEqual(updated.created_at, created.created_at)
        self.assertEqual(updated.start_time, time(13, 0))
        self.assertEqual(updated.reserved_by, "Lee")
        self.assertEqual(updated.company, created.company)
        self.assertEqual(await self.store.get_by_id(created.id), updated)

    async def test_update_unknown_id_raises_not_found(self) -> None:
        with self.assertRaises(ReservationNotFound):
            await self.store.update("missing", ReservationPatch(reserved_by="Lee"))

    async def test_delete_removes_record_permanently(self) -> None:
        first = await self.store.create(make_request())
        second = await self.store.create(make_request(room_id="room-2"))

        await self.store.delete(first.id)

        self.assertIsNone(await self.store.get_by_id(first.id))
        self.assertEqual(await self.store.list_all(), [second])
        with self.assertRaises(ReservationNotFound):
            await self.store.delete(first.id)

    async def test_list_filtered_sorts_by_date_then_start_time(self) -> None:
        await self.store.create(make_request(day=date(2026, 2, 26), start=time(9, 0), end=time(10, 0)))
        await self.store.create(make_request(room_id="room-2", day=date(2026, 2, 24), start=time(15, 0), end=time(16, 0)))
        await self.store.create(make_request(room_id="room-3", day=date(2026, 2, 24), start=time(8, 0), end=time(9, 0)))
        await self.store.create(make_request(day=date(2026, 2, 25), start=time(12, 0), end=time(13, 0)))

        listed = await self.store.list_filtered(ReservationFilter())

        self.assertEqual(
            [(row.date.isoformat(), row.start_time.isoformat(timespec="minutes")) for row in listed],
            [("2026-02-24", "08:00"), ("2026-02-24", "15:00"), ("2026-02-25", "12:00"), ("2026-02-26", "09:00")],
        )

    async def test_list_filtered_applies_every_criterion(self) -> None:
        await self.store.create(make_request(day=date(2026, 2, 24)))
        await self.store.create(make_request(day=date(2026, 2, 25), company="Company B"))
        await self.store.create(make_request(room_id="room-2", day=date(2026, 2, 27), company="Company B"))

        by_room = await self.store.list_filtered(ReservationFilter(room_id="room-1"))
        by_company = await self.store.list_filtered(ReservationFilter(company="company b"))
        by_date = await self.store.list_filtered(ReservationFilter(date=date(2026, 2, 25)))
        by_range = await self.store.list_filtered(ReservationFilter(start_date=date(2026, 2, 25), end_date=date(2026, 2, 26)))

        self.assertEqual(len(by_room), 2)
        self.assertEqual(len(by_company), 2)
        self.assertEqual([row.date for row in by_date], [date(2026, 2, 25)])
        self.assertEqual([row.date for row in by_range], [date(2026, 2, 25)])

    async def test_short_or_unreadable_rows_are_skipped(self) -> None:
        created = await self.store.create(make_request())
        table = self.data_dir / "reservations.yaml"
        document = yaml.safe_load(table.read_text(encoding="utf-8"))
        document.append(["short", "room-1"])
        document.append(["bad", "room-1", "Meeting Room 1", "not-a-date", "10:00", "11:00", "Kim", "Company A", "2026-02-01T09:00:00"])
        table.write_text(yaml.safe_dump(document), encoding="utf-8")

        with self.assertLogs("room_reservation.yaml_store", level="WARNING"):
            listed = await self.store.list_all()

        self.assertEqual(listed, [created])

    async def test_corrupted_table_surfaces_store_unavailable(self) -> None:
        table = self.data_dir / "reservations.yaml"
        table.write_text("- [unclosed\n", encoding="utf-8")

        with self.assertLogs("room_reservation.yaml_store", level="ERROR"):
            with self.assertRaises(StoreUnavailable):
                await self.store.list_all()

        backups = list(self.data_dir.glob("reservations.corrupt.*.yaml"))
        self.assertEqual(len(backups), 1)

    async def test_missing_table_is_recreated(self) -> None:
        (self.data_dir / "reservations.yaml").unlink()

        self.assertEqual(await self.store.list_all(), [])
        self.assertTrue((self.data_dir / "reservations.yaml").exists())

    async def test_injected_clock_sets_created_at(self) -> None:
        fixed = datetime(2026, 2, 24, 8, 30, tzinfo=timezone.utc)
        store = YamlReservationStore(self.data_dir, clock=lambda: fixed)

        created = await store.create(make_request())

        self.assertEqual(created.created_at, fixed)
        self.assertTrue(created.id.startswith(str(int(fixed.timestamp() * 1000))))


if __name__ == "__main__":
    unittest.main()
