from datetime import date, timedelta

from booking_engine.models.staff import Staff
from tests.fixtures.booking_fixtures import FUTURE_MONDAY

BASE = "/api/v1/appointments"


def booking_payload(service_id, staff_id=None, on_date=FUTURE_MONDAY, start="10:00", **extra):
    payload = {
        "service_id": service_id,
        "customer_id": "cust-1",
        "date": on_date.isoformat(),
        "start_time": start,
    }
    if staff_id is not None:
        payload["staff_id"] = staff_id
    payload.update(extra)
    return payload


class TestAvailableSlots:
    async def test_lists_slots(self, client, sample_service):
        response = await client.get(
            f"{BASE}/available-slots",
            params={"service_id": sample_service.id, "date": FUTURE_MONDAY.isoformat()},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["available"] is True
        assert len(data["time_slots"]) == 15
        assert data["time_slots"][0] == {"start_time": "09:00", "end_time": "10:00"}

    async def test_staff_slots(self, client, sample_service, sample_staff):
        response = await client.get(
            f"{BASE}/available-slots",
            params={
                "service_id": sample_service.id,
                "staff_id": sample_staff.id,
                "date": FUTURE_MONDAY.isoformat(),
            },
        )

        assert response.status_code == 200
        assert len(response.json()["time_slots"]) == 8

    async def test_past_date(self, client, sample_service):
        response = await client.get(
            f"{BASE}/available-slots",
            params={"service_id": sample_service.id, "date": "2020-01-06"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["available"] is False
        assert data["time_slots"] == []
        assert data["message"]

    async def test_booked_slot_disappears(self, client, sample_service):
        service_id = sample_service.id
        await client.post(f"{BASE}/", json=booking_payload(service_id))

        response = await client.get(
            f"{BASE}/available-slots",
            params={"service_id": service_id, "date": FUTURE_MONDAY.isoformat()},
        )

        starts = [slot["start_time"] for slot in response.json()["time_slots"]]
        assert "10:00" not in starts
        assert "11:00" in starts

    async def test_unknown_service(self, client, sample_business):
        response = await client.get(
            f"{BASE}/available-slots",
            params={"service_id": 999, "date": FUTURE_MONDAY.isoformat()},
        )
        assert response.status_code == 404

    async def test_staff_of_other_business(self, client, sample_service, db, other_business):
        outsider = Staff(business_id=other_business.id, name="Outsider")
        db.add(outsider)
        await db.commit()

        response = await client.get(
            f"{BASE}/available-slots",
            params={
                "service_id": sample_service.id,
                "staff_id": outsider.id,
                "date": FUTURE_MONDAY.isoformat(),
            },
        )
        assert response.status_code == 404


class TestCreateAppointment:
    async def test_create(self, client, sample_service, sample_staff):
        response = await client.post(
            f"{BASE}/",
            json=booking_payload(sample_service.id, sample_staff.id, notes="First visit"),
        )

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "pending"
        assert data["start_time"] == "10:00"
        assert data["end_time"] == "11:00"
        assert data["staff_id"] == sample_staff.id
        assert data["notes"] == "First visit"
        assert data["uuid"]

    async def test_double_booking_is_conflict(self, client, sample_service, sample_staff):
        payload = booking_payload(sample_service.id, sample_staff.id)
        first = await client.post(f"{BASE}/", json=payload)
        assert first.status_code == 201

        response = await client.post(f"{BASE}/", json={**payload, "start_time": "10:30"})

        assert response.status_code == 409
        data = response.json()
        assert data["reason"] == "slot_taken"
        assert data["stage"] == "conflict_checking"
        assert data["error"]

    async def test_outside_hours(self, client, sample_service):
        response = await client.post(
            f"{BASE}/", json=booking_payload(sample_service.id, start="18:00")
        )

        assert response.status_code == 422
        assert response.json()["reason"] == "out_of_window"

    async def test_malformed_time(self, client, sample_service):
        response = await client.post(
            f"{BASE}/", json=booking_payload(sample_service.id, start="25:00")
        )

        assert response.status_code == 400
        assert response.json()["reason"] == "invalid_input"
        assert response.json()["stage"] == "validating"

    async def test_past_date(self, client, sample_service):
        response = await client.post(
            f"{BASE}/", json=booking_payload(sample_service.id, on_date=date(2020, 1, 6))
        )

        assert response.status_code == 400
        assert response.json()["reason"] == "invalid_input"

    async def test_missing_fields(self, client, sample_service):
        response = await client.post(f"{BASE}/", json={"service_id": sample_service.id})
        assert response.status_code == 422


class TestAppointmentLookups:
    async def test_get_and_update_status(self, client, sample_service):
        created = (await client.post(f"{BASE}/", json=booking_payload(sample_service.id))).json()

        response = await client.get(f"{BASE}/{created['uuid']}")
        assert response.status_code == 200
        assert response.json()["id"] == created["id"]

        response = await client.patch(
            f"{BASE}/{created['uuid']}/status", json={"status": "confirmed"}
        )
        assert response.status_code == 200
        assert response.json()["status"] == "confirmed"

        response = await client.patch(
            f"{BASE}/{created['uuid']}/status", json={"status": "pending"}
        )
        assert response.status_code == 400
        assert response.json()["reason"] == "invalid_input"

    async def test_unknown_appointment(self, client):
        response = await client.get(f"{BASE}/00000000-0000-0000-0000-000000000000")
        assert response.status_code == 404

    async def test_business_and_customer_lists(self, client, sample_service, sample_business):
        service_id, business_id = sample_service.id, sample_business.id
        for offset, customer_id in [(0, "cust-1"), (1, "cust-1"), (2, "cust-2")]:
            payload = booking_payload(
                service_id, on_date=FUTURE_MONDAY + timedelta(days=offset)
            )
            payload["customer_id"] = customer_id
            assert (await client.post(f"{BASE}/", json=payload)).status_code == 201

        response = await client.get(
            f"{BASE}/business/{business_id}", params={"page_size": 2}
        )
        data = response.json()
        assert response.status_code == 200
        assert data["total_count"] == 3
        assert data["total_pages"] == 2
        assert len(data["appointments"]) == 2

        response = await client.get(
            f"{BASE}/customer/cust-1",
            params={"start_date": (FUTURE_MONDAY + timedelta(days=1)).isoformat()},
        )
        data = response.json()
        assert data["total_count"] == 1
        assert data["appointments"][0]["date"] == (
            FUTURE_MONDAY + timedelta(days=1)
        ).isoformat()

        response = await client.get(f"{BASE}/customer/cust-2", params={"status": "confirmed"})
        assert response.json()["total_count"] == 0


class TestRescheduleAndAssign:
    async def test_reschedule(self, client, sample_service, sample_staff):
        created = (
            await client.post(f"{BASE}/", json=booking_payload(sample_service.id, sample_staff.id))
        ).json()

        response = await client.put(
            f"{BASE}/{created['uuid']}", json={"start_time": "14:00", "notes": "Moved"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["start_time"] == "14:00"
        assert data["end_time"] == "15:00"
        assert data["notes"] == "Moved"

        slots = await client.get(
            f"{BASE}/available-slots",
            params={"service_id": sample_service.id, "date": FUTURE_MONDAY.isoformat()},
        )
        starts = [s["start_time"] for s in slots.json()["time_slots"]]
        assert "10:00" in starts
        assert "14:00" not in starts

    async def test_reschedule_onto_taken_slot(self, client, sample_service, sample_staff):
        service_id, staff_id = sample_service.id, sample_staff.id
        assert (
            await client.post(f"{BASE}/", json=booking_payload(service_id, staff_id))
        ).status_code == 201
        later = (
            await client.post(f"{BASE}/", json=booking_payload(service_id, staff_id, start="14:00"))
        ).json()

        response = await client.put(f"{BASE}/{later['uuid']}", json={"start_time": "10:30"})

        assert response.status_code == 409
        assert response.json()["reason"] == "slot_taken"
        current = (await client.get(f"{BASE}/{later['uuid']}")).json()
        assert current["start_time"] == "14:00"

    async def test_reschedule_unknown_appointment(self, client):
        response = await client.put(
            f"{BASE}/00000000-0000-0000-0000-000000000000", json={"start_time": "10:00"}
        )
        assert response.status_code == 404

    async def test_assign_staff(self, client, sample_service, sample_staff):
        created = (await client.post(f"{BASE}/", json=booking_payload(sample_service.id))).json()
        assert created["staff_id"] is None

        response = await client.post(
            f"{BASE}/{created['uuid']}/assign", json={"staff_id": sample_staff.id}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["staff_id"] == sample_staff.id
        assert data["start_time"] == "10:00"

    async def test_assign_staff_during_break(self, client, sample_service, sample_staff):
        created = (
            await client.post(f"{BASE}/", json=booking_payload(sample_service.id, start="12:00"))
        ).json()

        response = await client.post(
            f"{BASE}/{created['uuid']}/assign", json={"staff_id": sample_staff.id}
        )

        assert response.status_code == 422
        assert response.json()["reason"] == "out_of_window"
