import pytest
from httpx import ASGITransport, AsyncClient

from app.core.redis import get_redis
from app.main import app
from db.session import get_db

ADMIN = {"telegram_id": 1}


@pytest.fixture
async def client(session_maker, redis_client):
    async def override_get_db():
        async with session_maker() as session:
            yield session

    async def override_get_redis():
        yield redis_client

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
async def published(client, booking_date):
    """Два интервьюера, окна, ссылка для alice@example.com"""
    interviewer_ids = []
    for n in (1, 2):
        resp = await client.post("/api/v1/admin/interviewers", params=ADMIN, json={
            "full_name": f"Interviewer {n}",
            "email": f"interviewer{n}@example.com",
            "domains": ["Python"],
        })
        assert resp.status_code == 201
        interviewer_ids.append(resp.json()["id"])

    resp = await client.post("/api/v1/admin/booking-requests", params=ADMIN, json={
        "booking_date": booking_date.isoformat(),
        "interviewer_ids": interviewer_ids,
        "slot_duration_minutes": 30,
    })
    assert resp.status_code == 201
    booking_request = resp.json()
    assert booking_request["state"] == "awaiting_availability"
    assert len(booking_request["invitations"]) == 2

    for interviewer_id, (start, end) in zip(interviewer_ids, [("10:00", "11:00"), ("14:00", "14:30")]):
        resp = await client.put(
            f"/api/v1/booking-requests/{booking_request['id']}/availability/{interviewer_id}",
            json={"windows": [{"date": booking_date.isoformat(), "start": start, "end": end}]},
        )
        assert resp.status_code == 200

    resp = await client.post("/api/v1/admin/links", params=ADMIN, json={
        "booking_request_id": booking_request["id"],
        "allow_list": [{"identity": "alice@example.com", "full_name": "Alice"}],
    })
    assert resp.status_code == 201
    return {"booking_request_id": booking_request["id"], "public_id": resp.json()["public_id"]}


async def test_health(client):
    resp = await client.get("/healthz")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
    assert resp.json()["redis"] is True


async def test_admin_identity_required(client):
    resp = await client.get("/api/v1/admin/interviewers")
    assert resp.status_code == 400

    resp = await client.get("/api/v1/admin/interviewers", params={"telegram_id": 42})
    assert resp.status_code == 403


async def test_duplicate_interviewer_email(client):
    payload = {"full_name": "Anna", "email": "anna@example.com"}
    assert (await client.post("/api/v1/admin/interviewers", params=ADMIN, json=payload)).status_code == 201

    resp = await client.post("/api/v1/admin/interviewers", params=ADMIN, json=payload)
    assert resp.status_code == 400
    assert resp.json()["error"] == "validation_error"


async def test_overlapping_availability_is_rejected(client, booking_date):
    resp = await client.post("/api/v1/admin/interviewers", params=ADMIN, json={
        "full_name": "Anna", "email": "anna@example.com",
    })
    interviewer_id = resp.json()["id"]
    resp = await client.post("/api/v1/admin/booking-requests", params=ADMIN, json={
        "booking_date": booking_date.isoformat(), "interviewer_ids": [interviewer_id],
    })
    booking_request_id = resp.json()["id"]

    resp = await client.put(
        f"/api/v1/booking-requests/{booking_request_id}/availability/{interviewer_id}",
        json={"windows": [
            {"date": booking_date.isoformat(), "start": "09:00", "end": "10:30"},
            {"date": booking_date.isoformat(), "start": "10:00", "end": "11:00"},
        ]},
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "validation_error"


async def test_student_booking_flow(client, published):
    public_id = published["public_id"]

    resp = await client.get(f"/api/v1/links/{public_id}/slots", params={"identity": "alice@example.com"})
    assert resp.status_code == 200
    slots = resp.json()["slots"]
    assert [(s["start"], s["end"]) for s in slots] == [("10:00", "10:30"), ("10:30", "11:00"), ("14:00", "14:30")]
    slot_id = slots[0]["id"]

    resp = await client.post(
        f"/api/v1/links/{public_id}/slots/{slot_id}/claim",
        json={"identity": "Alice@Example.com", "name": "Alice"},
    )
    assert resp.status_code == 201
    booking = resp.json()
    assert booking["state"] == "confirmed"
    assert booking["slot"]["state"] == "confirmed"

    resp = await client.post(f"/api/v1/links/{public_id}/slots/{slot_id}/claim", json={"identity": "alice@example.com"})
    assert resp.status_code == 409
    assert resp.json()["error"] == "already_booked"
    assert resp.json()["booking_id"] == booking["id"]

    resp = await client.post(
        f"/api/v1/admin/links/{public_id}/allow-list", params=ADMIN,
        json={"entries": [{"identity": "bob@example.com"}]},
    )
    assert resp.json()["size"] == 2

    resp = await client.post(f"/api/v1/links/{public_id}/slots/{slot_id}/claim", json={"identity": "bob@example.com"})
    assert resp.status_code == 409
    assert resp.json()["error"] == "slot_unavailable"

    resp = await client.get(f"/api/v1/links/{public_id}/slots", params={"identity": "bob@example.com"})
    assert len(resp.json()["slots"]) == 2

    resp = await client.post(
        f"/api/v1/admin/bookings/{booking['id']}/cancel", params=ADMIN, json={"release_slot": True},
    )
    assert resp.status_code == 200
    assert resp.json()["state"] == "cancelled"

    resp = await client.get("/api/v1/admin/bookings/feed", params={**ADMIN, "since": 0})
    feed = resp.json()
    assert [item["event"] for item in feed["items"]] == ["slot.confirmed", "booking.cancelled"]
    assert feed["next_cursor"] == feed["items"][-1]["cursor"]


async def test_not_allowed_student(client, published):
    resp = await client.get(
        f"/api/v1/links/{published['public_id']}/slots", params={"identity": "mallory@example.com"},
    )
    assert resp.status_code == 403
    assert resp.json()["error"] == "not_authorized"


async def test_unknown_link(client):
    resp = await client.get("/api/v1/links/unknown/slots", params={"identity": "alice@example.com"})
    assert resp.status_code == 404
    assert resp.json() == {"error": "not_found", "detail": "Ссылка не найдена"}


async def test_closed_request_freezes_claims(client, published):
    resp = await client.post(
        f"/api/v1/admin/booking-requests/{published['booking_request_id']}/close", params=ADMIN,
    )
    assert resp.json()["state"] == "closed"

    resp = await client.get(
        f"/api/v1/links/{published['public_id']}/slots", params={"identity": "alice@example.com"},
    )
    slot_id = resp.json()["slots"][0]["id"]
    resp = await client.post(
        f"/api/v1/links/{published['public_id']}/slots/{slot_id}/claim", json={"identity": "alice@example.com"},
    )
    assert resp.status_code == 410
    assert resp.json()["error"] == "link_closed"


async def test_pipeline(client, published):
    public_id = published["public_id"]
    resp = await client.get("/api/v1/admin/bookings/pipeline", params={**ADMIN, "public_id": public_id})
    assert resp.status_code == 200
    body = resp.json()
    assert body["total"] == 1
    assert body["booked"] == 0


async def test_main_sheet_sync_requires_url(client):
    resp = await client.post("/api/v1/admin/main-sheet/sync", params=ADMIN)
    assert resp.status_code == 400


async def test_availability_draft_roundtrip(client):
    url = "/api/v1/booking-requests/1/availability/1/draft"
    resp = await client.put(url, json={"windows": [{"start": "09:00"}]})
    assert resp.status_code == 200
    assert resp.json()["windows"] == [{"start": "09:00"}]

    assert (await client.delete(url)).status_code == 204
    assert (await client.get(url)).json()["windows"] == []


async def test_admin_listings(client, published):
    resp = await client.patch(
        "/api/v1/admin/interviewers/1", params=ADMIN, json={"status": "inactive"},
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "inactive"

    resp = await client.get("/api/v1/admin/interviewers", params={**ADMIN, "status": "active"})
    assert [i["email"] for i in resp.json()["interviewers"]] == ["interviewer2@example.com"]

    resp = await client.get("/api/v1/admin/booking-requests", params=ADMIN)
    assert resp.json()["total"] == 1
    assert resp.json()["booking_requests"][0]["state"] == "published"

    resp = await client.get("/api/v1/admin/links", params=ADMIN)
    link = resp.json()["links"][0]
    assert (link["public_id"], link["slot_count"], link["student_count"]) == (published["public_id"], 3, 1)
