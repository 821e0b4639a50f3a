"""
Tests for the JSON store and row conversion.
"""

import asyncio
import json
from datetime import date, time

import pytest
from filelock import FileLock

from slotbook.adapters.json_store import JsonBookingStore
from slotbook.adapters.records import parse_appointment, parse_day_hours, parse_weekday
from slotbook.domain.exceptions import InvalidConfigurationError, SlotUnavailableError, StoreError
from slotbook.domain.models import AppointmentStatus, ExistingAppointment, Weekday
from slotbook.services.booking_service import BookingService

TODAY = date(2024, 6, 1)
MONDAY = date(2024, 6, 10)

DATA = {
    "businesses": [
        {
            "id": 1,
            "slug": "studio-bella",
            "name": "Studio Bella",
            "services": [{"name": "Haircut", "duration": 30}],
            "hours": [
                {"dayOfWeek": "segunda-feira", "isOpen": True, "openTime": "09:00", "closeTime": "18:00"},
                {"dayOfWeek": "Tuesday", "isOpen": False, "openTime": "09:00", "closeTime": "18:00"},
            ],
            "appointments": [
                {"id": 1, "date": "2024-06-10", "time": "10:00", "duration": 45, "status": "confirmed"},
                {"id": 2, "date": "2024-06-11", "time": "11:00", "status": "pending"},
            ],
        }
    ]
}


class TestRecords:
    """Tests for row parsing."""

    def test_parse_portuguese_and_english_weekdays(self):
        assert parse_weekday("segunda-feira") is Weekday.MONDAY
        assert parse_weekday("Sábado") is Weekday.SATURDAY
        assert parse_weekday("sunday") is Weekday.SUNDAY

    def test_parse_day_hours(self):
        hours = parse_day_hours({"dayOfWeek": "quinta-feira", "isOpen": True, "openTime": "08:30", "closeTime": "20:00"})

        assert hours.weekday is Weekday.THURSDAY
        assert hours.open_time == time(8, 30)
        assert hours.close_time == time(20, 0)

    def test_parse_day_hours_rejects_bad_time(self):
        with pytest.raises(InvalidConfigurationError):
            parse_day_hours({"dayOfWeek": "monday", "openTime": "9h", "closeTime": "18:00"})

    @pytest.mark.parametrize("is_open", ["false", "true", 0, None])
    def test_parse_day_hours_requires_boolean_is_open(self, is_open):
        """A string "false" must not be read as an open day."""
        with pytest.raises(InvalidConfigurationError, match="isOpen"):
            parse_day_hours({"dayOfWeek": "monday", "isOpen": is_open, "openTime": "09:00", "closeTime": "18:00"})

    def test_parse_day_hours_closed(self):
        hours = parse_day_hours({"dayOfWeek": "domingo", "isOpen": False})

        assert hours.weekday is Weekday.SUNDAY
        assert hours.window() is None

    def test_appointment_business_id(self):
        from_row = parse_appointment({"date": "2024-06-10", "time": "14:00", "businessId": 3}, business_id=9)
        from_caller = parse_appointment({"date": "2024-06-10", "time": "14:00"}, business_id=9)

        assert from_row.business_id == 3
        assert from_caller.business_id == 9

    def test_appointment_duration_from_joined_service(self):
        appointment = parse_appointment(
            {"id": 4, "date": "2024-06-10", "time": "14:00", "status": "confirmed",
             "service": {"name": "Coloring", "duration": 90}, "client": {"name": "Carla"}}
        )

        assert appointment.duration_minutes == 90
        assert appointment.service_name == "Coloring"
        assert appointment.client_name == "Carla"
        assert appointment.status is AppointmentStatus.CONFIRMED

    def test_appointment_without_duration_uses_fallback(self):
        appointment = parse_appointment({"date": "2024-06-10", "time": "14:00"}, fallback_duration_minutes=60)

        assert appointment.duration_minutes == 60
        assert appointment.status is AppointmentStatus.PENDING

    @pytest.mark.parametrize(
        "row",
        [
            {"time": "10:00"},
            {"date": "10/06/2024", "time": "10:00"},
            {"date": "2024-06-10", "time": "25:00"},
            {"date": "2024-06-10", "time": "10:00", "duration": -15},
            {"date": "2024-06-10", "time": "10:00", "status": "archived"},
        ],
    )
    def test_malformed_appointment_rows_raise(self, row):
        with pytest.raises(StoreError):
            parse_appointment(row)


class TestJsonBookingStore:
    """Tests for JsonBookingStore."""

    def test_loads_hours_and_appointments(self):
        store = JsonBookingStore(data=DATA, fallback_duration_minutes=60)

        weekly = asyncio.run(store.get_weekly_hours(1))
        monday = asyncio.run(store.list_appointments(1, MONDAY))
        tuesday = asyncio.run(store.list_appointments(1, date(2024, 6, 11)))

        assert weekly.is_open_on(MONDAY)
        assert not weekly.is_open_on(date(2024, 6, 11))
        assert weekly.for_date(date(2024, 6, 12)) is None
        assert [a.appointment_id for a in monday] == [1]
        assert monday[0].business_id == 1
        assert tuesday[0].duration_minutes == 60

    def test_business_without_hours_gets_defaults(self):
        store = JsonBookingStore(data={"businesses": [{"id": 5, "slug": "repair-shop"}]})

        weekly = asyncio.run(store.get_weekly_hours(5))

        assert len(weekly.records()) == 7
        assert not weekly.is_open_on(date(2024, 6, 9))

    def test_find_business_by_id_or_slug(self):
        store = JsonBookingStore(data=DATA)

        assert store.find_business("studio-bella").business_id == 1
        assert store.find_business("1").slug == "studio-bella"
        assert store.find_business(1).service_duration("haircut") == 30

        with pytest.raises(StoreError):
            store.find_business("unknown")

    def test_unknown_business_id(self):
        store = JsonBookingStore(data=DATA)

        with pytest.raises(StoreError):
            asyncio.run(store.get_weekly_hours(99))

    def test_add_appointment_assigns_next_id(self):
        store = JsonBookingStore(data=DATA)

        stored = asyncio.run(
            store.add_appointment(1, ExistingAppointment(date=MONDAY, start_time="15:00", duration_minutes=30))
        )

        assert stored.appointment_id == 3
        assert len(asyncio.run(store.list_appointments(1, MONDAY))) == 2

    def test_save_and_reload(self, tmp_path):
        data_file = tmp_path / "data.json"
        data_file.write_text(json.dumps(DATA), encoding="utf-8")

        store = JsonBookingStore.from_file(data_file)
        asyncio.run(
            store.add_appointment(
                1, ExistingAppointment(date=MONDAY, start_time="15:00", duration_minutes=30, client_name="Ana")
            )
        )
        store.save()

        reloaded = JsonBookingStore.from_file(data_file)
        appointments = asyncio.run(reloaded.list_appointments(1, MONDAY))

        assert [a.client_name for a in appointments] == ["", "Ana"]
        assert reloaded.find_business(1).services == {"Haircut": 30}

    def test_missing_file(self, tmp_path):
        with pytest.raises(StoreError, match="not found"):
            JsonBookingStore.from_file(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path):
        data_file = tmp_path / "data.json"
        data_file.write_text("{not json", encoding="utf-8")

        with pytest.raises(StoreError):
            JsonBookingStore.from_file(data_file)

    def test_duplicate_business_ids(self):
        with pytest.raises(StoreError, match="Duplicate"):
            JsonBookingStore(data={"businesses": [{"id": 1, "slug": "a"}, {"id": 1, "slug": "b"}]})


class TestSharedDataFile:
    """Tests for several stores writing bookings into one data file."""

    @pytest.fixture
    def data_file(self, tmp_path):
        path = tmp_path / "data.json"
        path.write_text(json.dumps({"businesses": [{"id": 1, "slug": "studio-bella"}]}), encoding="utf-8")
        return path

    @staticmethod
    def _book(store, start_time, client_name):
        service = BookingService(hours_store=store, appointment_store=store)
        return service.book(
            business_id=1,
            day=MONDAY,
            start_time=start_time,
            service_duration_minutes=30,
            today=TODAY,
            client_name=client_name,
        )

    @staticmethod
    def _stored_rows(data_file):
        return json.loads(data_file.read_text(encoding="utf-8"))["businesses"][0]["appointments"]

    def test_booking_is_written_without_save(self, data_file):
        store = JsonBookingStore.from_file(data_file)

        asyncio.run(self._book(store, "10:00", "Ana"))

        rows = self._stored_rows(data_file)
        assert [(row["time"], row["clientName"]) for row in rows] == [("10:00", "Ana")]

    def test_stale_store_cannot_double_book(self, data_file):
        """A store loaded before another one booked still sees that booking."""
        first = JsonBookingStore.from_file(data_file)
        second = JsonBookingStore.from_file(data_file)

        asyncio.run(self._book(first, "10:00", "Ana"))

        with pytest.raises(SlotUnavailableError):
            asyncio.run(self._book(second, "10:00", "Bia"))

        rows = self._stored_rows(data_file)
        assert [row["clientName"] for row in rows] == ["Ana"]

    def test_bookings_from_two_stores_are_both_kept(self, data_file):
        first = JsonBookingStore.from_file(data_file)
        second = JsonBookingStore.from_file(data_file)

        asyncio.run(self._book(first, "10:00", "Ana"))
        booked = asyncio.run(self._book(second, "11:00", "Bia"))

        assert booked.appointment_id == 2
        rows = self._stored_rows(data_file)
        assert [(row["id"], row["clientName"]) for row in rows] == [(1, "Ana"), (2, "Bia")]

    def test_simultaneous_bookings_from_two_stores(self, data_file):
        first = JsonBookingStore.from_file(data_file)
        second = JsonBookingStore.from_file(data_file)

        async def book_both():
            return await asyncio.gather(
                self._book(first, "10:00", "Ana"),
                self._book(second, "10:00", "Bia"),
                return_exceptions=True,
            )

        results = asyncio.run(book_both())

        assert len([r for r in results if isinstance(r, ExistingAppointment)]) == 1
        assert len([r for r in results if isinstance(r, SlotUnavailableError)]) == 1
        assert len(self._stored_rows(data_file)) == 1

    def test_locked_data_file_times_out(self, data_file):
        store = JsonBookingStore.from_file(data_file, lock_timeout_seconds=0.1)
        other_process = FileLock(str(data_file) + ".lock")

        with other_process:
            with pytest.raises(StoreError, match="Timed out"):
                asyncio.run(self._book(store, "10:00", "Ana"))

        assert self._stored_rows(data_file) == []

    def test_released_locks_are_dropped(self, data_file):
        store = JsonBookingStore.from_file(data_file)

        asyncio.run(self._book(store, "10:00", "Ana"))
        asyncio.run(self._book(store, "11:00", "Bia"))

        assert store._locks == {}
        assert store._lock_users == {}
