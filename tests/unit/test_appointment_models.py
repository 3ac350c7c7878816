from datetime import datetime
from unittest.mock import patch

from booking_engine.models.appointment import (
    Appointment,
    AppointmentStatus,
    build_slot_key,
)
from booking_engine.models.recurring_appointment import (
    RecurringAppointment,
    RecurringStatus,
)
from booking_engine.models.service import Service, ServiceType
from booking_engine.models.staff import Staff


class TestAppointmentStatusTransitions:
    """Test appointment status transition logic."""

    def test_can_transition_to_valid_transitions(self):
        appointment = Appointment(status=AppointmentStatus.PENDING.value)

        # From PENDING
        assert appointment.can_transition_to(AppointmentStatus.CONFIRMED)
        assert appointment.can_transition_to(AppointmentStatus.CANCELLED)
        assert not appointment.can_transition_to(AppointmentStatus.COMPLETED)

        appointment.status = AppointmentStatus.CONFIRMED.value
        # From CONFIRMED
        assert appointment.can_transition_to(AppointmentStatus.COMPLETED)
        assert appointment.can_transition_to(AppointmentStatus.CANCELLED)
        assert not appointment.can_transition_to(AppointmentStatus.PENDING)

    def test_final_states_allow_nothing(self):
        for final in (AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED):
            appointment = Appointment(status=final.value)
            assert appointment.is_final
            for target in AppointmentStatus:
                assert not appointment.can_transition_to(target)

    @patch("booking_engine.models.appointment.datetime")
    def test_transition_to_success(self, mock_datetime):
        mock_now = datetime(2024, 1, 15, 10, 30, 0)
        mock_datetime.now.return_value = mock_now

        appointment = Appointment(status=AppointmentStatus.PENDING.value)

        assert appointment.transition_to(AppointmentStatus.CONFIRMED)
        assert appointment.status == AppointmentStatus.CONFIRMED.value
        assert appointment.previous_status == AppointmentStatus.PENDING.value
        assert appointment.status_changed_at == mock_now
        assert appointment.cancelled_at is None

    @patch("booking_engine.models.appointment.datetime")
    def test_transition_to_cancelled_records_time(self, mock_datetime):
        mock_now = datetime(2024, 1, 15, 10, 30, 0)
        mock_datetime.now.return_value = mock_now

        appointment = Appointment(status=AppointmentStatus.CONFIRMED.value)

        assert appointment.transition_to(AppointmentStatus.CANCELLED)
        assert appointment.cancelled_at == mock_now

    def test_invalid_transition_changes_nothing(self):
        appointment = Appointment(status=AppointmentStatus.COMPLETED.value)

        assert not appointment.transition_to(AppointmentStatus.CANCELLED)
        assert appointment.status == AppointmentStatus.COMPLETED.value
        assert appointment.previous_status is None


class TestSlotKey:
    def test_staff_takes_precedence(self):
        assert build_slot_key(10, 3) == "staff:3"

    def test_falls_back_to_service(self):
        assert build_slot_key(10) == "service:10"
        assert build_slot_key(10, None) == "service:10"


class TestRecurringStatusTransitions:
    def test_active_and_paused_toggle(self):
        series = RecurringAppointment(status=RecurringStatus.ACTIVE.value)

        assert series.transition_to(RecurringStatus.PAUSED)
        assert series.status == RecurringStatus.PAUSED.value
        assert series.transition_to(RecurringStatus.ACTIVE)
        assert series.status == RecurringStatus.ACTIVE.value

    def test_cancelled_is_final(self):
        series = RecurringAppointment(status=RecurringStatus.CANCELLED.value)

        assert not series.transition_to(RecurringStatus.ACTIVE)
        assert not series.can_transition_to(RecurringStatus.COMPLETED)

    def test_completed_is_final(self):
        series = RecurringAppointment(status=RecurringStatus.COMPLETED.value)
        assert not series.can_transition_to(RecurringStatus.CANCELLED)


class TestAvailabilityProperties:
    def test_service_availability(self):
        service = Service(
            available_days=["Monday", "friday"],
            available_start_time="09:00",
            available_end_time="17:00",
        )

        window = service.availability
        assert [day.value for day in window.days] == ["monday", "friday"]
        assert window.window == (540, 1020)
        assert window.break_window is None

    def test_only_appointment_services_are_bookable(self):
        assert Service(service_type=ServiceType.APPOINTMENT.value, is_active=True).is_bookable
        assert not Service(service_type=ServiceType.PRODUCT.value, is_active=True).is_bookable
        assert not Service(
            service_type=ServiceType.APPOINTMENT.value, is_active=False
        ).is_bookable

    def test_staff_without_schedule_has_no_availability(self):
        assert Staff(name="Floater").availability is None

    def test_staff_availability_includes_break(self):
        staff = Staff(
            available_days=["monday"],
            available_start_time="10:00",
            available_end_time="16:00",
            break_start_time="12:00",
            break_end_time="13:00",
        )

        assert staff.availability.window == (600, 960)
        assert staff.availability.break_window == (720, 780)
