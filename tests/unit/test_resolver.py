from datetime import date
from types import SimpleNamespace

from booking_engine.scheduling.resolver import effective_windows, resolve, resolve_for
from booking_engine.schemas.scheduling import AvailabilityWindow

MONDAY = date(2024, 1, 1)
SATURDAY = date(2024, 1, 6)
WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday"]

SERVICE_HOURS = AvailabilityWindow(days=WEEKDAYS, start_time="09:00", end_time="17:00")
STAFF_HOURS = AvailabilityWindow(
    days=WEEKDAYS,
    start_time="10:00",
    end_time="16:00",
    break_start_time="12:00",
    break_end_time="13:00",
)


def starts(slots):
    return [slot.start_time for slot in slots]


class TestResolve:
    def test_service_only_day(self):
        slots = resolve(SERVICE_HOURS, None, MONDAY, duration_minutes=60, step_minutes=30)

        assert len(slots) == 15
        assert (slots[0].start_time, slots[0].end_time) == ("09:00", "10:00")
        assert (slots[-1].start_time, slots[-1].end_time) == ("16:00", "17:00")

    def test_closed_weekday_is_empty(self):
        assert resolve(SERVICE_HOURS, None, SATURDAY, 60) == []

    def test_staff_window_and_break_narrow_the_day(self):
        slots = resolve(SERVICE_HOURS, STAFF_HOURS, MONDAY, 60, 30)

        assert starts(slots) == [
            "10:00",
            "10:30",
            "11:00",
            "13:00",
            "13:30",
            "14:00",
            "14:30",
            "15:00",
        ]
        for slot in slots:
            assert slot.end_time <= "12:00" or slot.start_time >= "13:00"

    def test_staff_not_working_that_day_is_empty(self):
        staff_hours = AvailabilityWindow(
            days=["tuesday"], start_time="09:00", end_time="17:00"
        )
        assert resolve(SERVICE_HOURS, staff_hours, MONDAY, 60) == []

    def test_disjoint_service_and_staff_hours_is_empty(self):
        evening = AvailabilityWindow(days=WEEKDAYS, start_time="18:00", end_time="22:00")
        assert resolve(SERVICE_HOURS, evening, MONDAY, 60) == []

    def test_break_covering_whole_window_is_empty(self):
        staff_hours = AvailabilityWindow(
            days=WEEKDAYS,
            start_time="10:00",
            end_time="12:00",
            break_start_time="09:00",
            break_end_time="13:00",
        )
        assert resolve(SERVICE_HOURS, staff_hours, MONDAY, 30) == []

    def test_inverted_window_is_empty_not_an_error(self):
        inverted = AvailabilityWindow(days=WEEKDAYS, start_time="17:00", end_time="09:00")
        assert resolve(inverted, None, MONDAY, 30) == []

    def test_slots_have_service_duration(self):
        for slot in resolve(SERVICE_HOURS, STAFF_HOURS, MONDAY, 45, 15):
            start_h, start_m = map(int, slot.start_time.split(":"))
            end_h, end_m = map(int, slot.end_time.split(":"))
            assert (end_h * 60 + end_m) - (start_h * 60 + start_m) == 45

    def test_is_idempotent(self):
        first = resolve(SERVICE_HOURS, STAFF_HOURS, MONDAY, 60)
        second = resolve(SERVICE_HOURS, STAFF_HOURS, MONDAY, 60)
        assert first == second

    def test_past_dates_are_not_rejected(self):
        assert resolve(SERVICE_HOURS, None, date(2000, 1, 3), 60)


class TestEffectiveWindows:
    def test_intersection_minus_break(self):
        assert effective_windows(MONDAY, SERVICE_HOURS, STAFF_HOURS) == [
            (600, 720),
            (780, 960),
        ]

    def test_missing_schedules_are_ignored(self):
        assert effective_windows(MONDAY, SERVICE_HOURS, None) == [(540, 1020)]

    def test_no_schedule_at_all_is_empty(self):
        assert effective_windows(MONDAY) == []


class TestResolveFor:
    def make_service(self, **overrides):
        fields = dict(
            availability=SERVICE_HOURS, duration_minutes=60, slot_step_minutes=None
        )
        fields.update(overrides)
        return SimpleNamespace(**fields)

    def test_uses_default_step_when_service_has_none(self):
        slots = resolve_for(self.make_service(), None, MONDAY, default_step_minutes=60)
        assert starts(slots)[:3] == ["09:00", "10:00", "11:00"]

    def test_service_step_overrides_default(self):
        service = self.make_service(slot_step_minutes=120)
        slots = resolve_for(service, None, MONDAY, default_step_minutes=30)
        assert starts(slots) == ["09:00", "11:00", "13:00", "15:00"]

    def test_staff_without_schedule_inherits_service_hours(self):
        staff = SimpleNamespace(is_active=True, availability=None)
        slots = resolve_for(self.make_service(), staff, MONDAY, 30)
        assert len(slots) == 15

    def test_inactive_staff_has_no_slots(self):
        staff = SimpleNamespace(is_active=False, availability=STAFF_HOURS)
        assert resolve_for(self.make_service(), staff, MONDAY, 30) == []
