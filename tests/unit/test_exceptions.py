from datetime import date

from booking_engine.core.exceptions import (
    BookingError,
    InvalidInputError,
    OutOfWindowError,
    SeriesRejectedError,
    SlotTakenError,
)


class TestBookingErrors:
    def test_errors_are_value_errors(self):
        assert issubclass(BookingError, ValueError)

    def test_to_dict_includes_stage_when_known(self):
        error = SlotTakenError("taken", stage="conflict_checking")

        assert error.status_code == 409
        assert error.to_dict() == {
            "error": "taken",
            "reason": "slot_taken",
            "stage": "conflict_checking",
        }

    def test_to_dict_omits_unknown_stage(self):
        assert InvalidInputError("bad").to_dict() == {
            "error": "bad",
            "reason": "invalid_input",
        }

    def test_series_rejection_lists_every_failing_date(self):
        error = SeriesRejectedError(
            [
                (date(2024, 1, 8), OutOfWindowError("closed")),
                (date(2024, 1, 15), SlotTakenError("taken")),
            ]
        )

        payload = error.to_dict()
        assert error.status_code == 409
        assert payload["reason"] == "series_rejected"
        assert payload["stage"] == "partially_failed"
        assert payload["failing_dates"] == [
            {"date": "2024-01-08", "reason": "out_of_window", "message": "closed"},
            {"date": "2024-01-15", "reason": "slot_taken", "message": "taken"},
        ]
