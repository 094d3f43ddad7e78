import unittest
from datetime import date, datetime

from room_reservation import ROOMS, Reservation, build_calendar, generate_slots
from room_reservation.booking import parse_time
from room_reservation.schedule import week_dates, week_start


def make_reservation(reservation_id: str, room_id: str, day: date, start: str, end: str) -> Reservation:
    return Reservation(
        id=reservation_id,
        room_id=room_id,
        room_name=room_id,
        date=day,
        start_time=parse_time(start),
        end_time=parse_time(end),
        reserved_by="Kim",
        company="Company A",
        created_at=datetime(2026, 2, 1, 9, 0),
    )


class TestGenerateSlots(unittest.TestCase):
    def test_default_working_hours_grid(self) -> None:
        slots = generate_slots(8, 20, 30)

        self.assertEqual(len(slots), 24)
        self.assertEqual(slots[0], "08:00")
        self.assertEqual(slots[-1], "19:30")
        self.assertEqual(slots, sorted(set(slots)))
        self.assertEqual(slots, generate_slots(8, 20, 30))

    def test_interval_that_does_not_divide_an_hour_steps_continuously(self) -> None:
        self.assertEqual(generate_slots(9, 11, 45), ["09:00", "09:45", "10:30"])

    def test_invalid_arguments_raise(self) -> None:
        with self.assertRaises(ValueError):
            generate_slots(8, 20, 0)
        with self.assertRaises(ValueError):
            generate_slots(20, 8, 30)
        with self.assertRaises(ValueError):
            generate_slots(8, 25, 30)


class TestWeekHelpers(unittest.TestCase):
    def test_week_starts_on_monday(self) -> None:
        self.assertEqual(week_start(date(2026, 2, 26)), date(2026, 2, 23))
        self.assertEqual(week_start(date(2026, 2, 23)), date(2026, 2, 23))
        self.assertEqual(week_start(date(2026, 3, 1)), date(2026, 2, 23))

    def test_week_dates_has_seven_consecutive_days(self) -> None:
        dates = week_dates(date(2026, 2, 23))

        self.assertEqual(len(dates), 7)
        self.assertEqual(dates[-1], date(2026, 3, 1))


class TestBuildCalendar(unittest.TestCase):
    def test_marks_occupied_slots_per_room_and_date(self) -> None:
        day = date(2026, 2, 24)
        reservations = [
            make_reservation("a", "room-1", day, "09:00", "10:00"),
            make_reservation("b", "room-2", date(2026, 2, 25), "08:00", "08:30"),
        ]

        view = build_calendar(ROOMS, day, date(2026, 2, 25), reservations, generate_slots(8, 11, 30))

        self.assertEqual(len(view.days), 2)
        first_day = view.days[0]
        self.assertEqual(len(first_day.rooms), len(ROOMS))

        room_one = {slot.time: slot for slot in first_day.rooms[0].time_slots}
        self.assertTrue(room_one["08:30"].is_available)
        self.assertFalse(room_one["09:00"].is_available)
        self.assertFalse(room_one["09:30"].is_available)
        self.assertEqual(room_one["09:30"].reservation.id, "a")
        self.assertTrue(room_one["10:00"].is_available)

        room_two_next_day = {slot.time: slot for slot in view.days[1].rooms[1].time_slots}
        self.assertFalse(room_two_next_day["08:00"].is_available)
        self.assertTrue(room_two_next_day["08:30"].is_available)

    def test_does_not_mutate_reservations(self) -> None:
        reservations = [make_reservation("a", "room-1", date(2026, 2, 24), "09:00", "10:00")]
        snapshot = list(reservations)

        build_calendar(ROOMS, date(2026, 2, 24), date(2026, 2, 24), reservations)

        self.assertEqual(reservations, snapshot)

    def test_holiday_annotation(self) -> None:
        view = build_calendar(ROOMS[:1], date(2026, 1, 1), date(2026, 1, 2), [], ["09:00"], holiday_country="US")

        self.assertIsNotNone(view.days[0].holiday)
        self.assertIsNone(view.days[1].holiday)
        self.assertIn("holiday", view.to_dict()["days"][0])

    def test_rejects_inverted_range(self) -> None:
        with self.assertRaises(ValueError):
            build_calendar(ROOMS, date(2026, 2, 25), date(2026, 2, 24), [])


if __name__ == "__main__":
    unittest.main()
