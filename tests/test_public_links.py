from datetime import time

import pytest
from sqlalchemy import select

from app.core.exceptions import (
    LinkClosedError, NotAuthorizedError, NotFoundError, ValidationError,
)
from app.domain.slots import Window
from app.services.availability_service import AvailabilityService
from app.services.booking_request_service import BookingRequestService
from app.services.public_link_service import PublicLinkService, normalize_entries
from app.services.reservation_service import ReservationService
from app.services.slot_service import SlotService
from db.models import BookingRequestState, OutboxEvent, OutboxEventType, SlotState
from tests.conftest import create_interviewers


async def _events(db, event: OutboxEventType) -> list[OutboxEvent]:
    res = await db.execute(select(OutboxEvent).where(OutboxEvent.event == event).order_by(OutboxEvent.id))
    return list(res.scalars().all())


def test_normalize_entries_dedupes_and_keeps_profile():
    rows = normalize_entries([
        " Alice@Example.com ",
        {"identity": "alice@example.com", "full_name": "Ignored"},
        {"identity": "S-1001", "full_name": " Sam ", "mobile_number": "  "},
    ])
    assert [r["identity"] for r in rows] == ["alice@example.com", "s-1001"]
    assert rows[0]["full_name"] is None
    assert rows[1]["full_name"] == "Sam"
    assert rows[1]["mobile_number"] is None


async def test_link_publishes_request_and_snapshots_available_slots(db, scenario):
    booking_request = await BookingRequestService(db).get(scenario.booking_request_id)
    assert booking_request.state == BookingRequestState.PUBLISHED
    assert len(scenario.slot_ids) == 3

    details = await PublicLinkService(db).get_public_link(scenario.public_id)
    assert [e.identity for e in details.allow_list] == [
        "alice@example.com", "bob@example.com", "carol@example.com",
    ]
    assert details.bookings == []


async def test_initial_allow_list_is_invited(db, scenario):
    invites = await _events(db, OutboxEventType.ALLOW_LIST_INVITED)
    assert [e.student_identity for e in invites] == [
        "alice@example.com", "bob@example.com", "carol@example.com",
    ]
    assert all(e.payload["public_id"] == scenario.public_id for e in invites)
    assert invites[0].payload["link_url"].endswith(f"/book/{scenario.public_id}")


async def test_public_ids_are_unique(db, booking_date, scenario):
    second = await PublicLinkService(db).create_public_link(scenario.booking_request_id, ["dave@example.com"])
    assert second.public_id != scenario.public_id
    assert len(second.public_id) >= 16


async def test_link_with_slot_subset(db, scenario):
    link = await PublicLinkService(db).create_public_link(
        scenario.booking_request_id, ["dave@example.com"], slot_ids=scenario.slot_ids[:1],
    )
    public_id = link.public_id

    slots = await PublicLinkService(db).list_available_slots(public_id, "dave@example.com")
    assert [s.id for s in slots] == scenario.slot_ids[:1]


async def test_link_rejects_foreign_slot_ids(db, scenario):
    with pytest.raises(ValidationError):
        await PublicLinkService(db).create_public_link(
            scenario.booking_request_id, ["dave@example.com"], slot_ids=["not-a-slot"],
        )


async def test_publish_keeps_materialized_slots(db, booking_date):
    interviewer_ids = await create_interviewers(db, 1)
    booking_request = await BookingRequestService(db).create(booking_date, interviewer_ids)
    booking_request_id = booking_request.id
    await AvailabilityService(db).submit(
        interviewer_ids[0], booking_request_id, [Window(booking_date, time(9, 0), time(11, 0))]
    )
    materialized = [s.id for s in await SlotService(db).materialize(booking_request_id, slot_duration_minutes=60)]

    service = PublicLinkService(db)
    link = await service.create_public_link(booking_request_id, ["alice@example.com"])
    published = await service.slots.list_for_link(link.id)

    assert [s.id for s in published] == materialized
    assert [(s.start_time, s.end_time) for s in published] == [(time(9, 0), time(10, 0)), (time(10, 0), time(11, 0))]
    assert all(s.state == SlotState.AVAILABLE for s in published)
    assert await service.slots.list_for_request(booking_request_id, states=[SlotState.RELEASED]) == []


async def test_cannot_publish_before_availability(db, booking_date):
    interviewer_ids = await create_interviewers(db)
    booking_request = await BookingRequestService(db).create(booking_date, interviewer_ids)

    with pytest.raises(ValidationError):
        await PublicLinkService(db).create_public_link(booking_request.id, ["alice@example.com"])


async def test_cannot_publish_without_slots(db, booking_date):
    interviewer_ids = await create_interviewers(db, 1)
    booking_request = await BookingRequestService(db).create(
        booking_date, interviewer_ids, slot_duration_minutes=60,
    )
    booking_request_id = booking_request.id
    # Окно короче слота — нарезать нечего
    await AvailabilityService(db).submit(
        interviewer_ids[0], booking_request_id, [Window(booking_date, time(9, 0), time(9, 30))]
    )

    with pytest.raises(ValidationError):
        await PublicLinkService(db).create_public_link(booking_request_id, ["alice@example.com"])


async def test_closed_request_cannot_publish(db, scenario):
    await BookingRequestService(db).close(scenario.booking_request_id)

    with pytest.raises(LinkClosedError):
        await PublicLinkService(db).create_public_link(scenario.booking_request_id, ["dave@example.com"])


async def test_unknown_link(db):
    with pytest.raises(NotFoundError):
        await PublicLinkService(db).extend_allow_list("nope", ["alice@example.com"])


class TestAllowList:
    async def test_extend_is_a_union(self, db, scenario):
        service = PublicLinkService(db)

        assert await service.extend_allow_list(scenario.public_id, ["dave@example.com", "ALICE@example.com"]) == 4
        assert await service.extend_allow_list(scenario.public_id, ["dave@example.com"]) == 4

    async def test_extend_never_overwrites_profile(self, db, scenario):
        service = PublicLinkService(db)
        await service.extend_allow_list(scenario.public_id, [{"identity": "erin@example.com", "full_name": "Erin"}])
        await service.extend_allow_list(scenario.public_id, [{"identity": "erin@example.com", "full_name": "Other"}])

        entry = await service.links.get_allow_list_entry(
            (await service.get_link(scenario.public_id)).id, "erin@example.com"
        )
        assert entry.full_name == "Erin"

    async def test_only_new_identities_are_invited(self, db, scenario):
        await PublicLinkService(db).extend_allow_list(scenario.public_id, ["alice@example.com", "dave@example.com"])

        invites = await _events(db, OutboxEventType.ALLOW_LIST_INVITED)
        assert [e.student_identity for e in invites][-1] == "dave@example.com"
        assert len(invites) == 4

    async def test_explicit_removal(self, db, scenario):
        service = PublicLinkService(db)
        await service.remove_from_allow_list(scenario.public_id, "Bob@Example.com")

        with pytest.raises(NotAuthorizedError):
            await service.list_available_slots(scenario.public_id, "bob@example.com")
        with pytest.raises(NotFoundError):
            await service.remove_from_allow_list(scenario.public_id, "bob@example.com")


class TestAvailableSlots:
    async def test_requires_allow_list(self, db, scenario):
        with pytest.raises(NotAuthorizedError):
            await PublicLinkService(db).list_available_slots(scenario.public_id, "mallory@example.com")

    async def test_identity_is_case_insensitive(self, db, scenario):
        slots = await PublicLinkService(db).list_available_slots(scenario.public_id, "  ALICE@example.com")
        assert [s.id for s in slots] == scenario.slot_ids

    async def test_claimed_slot_disappears(self, db, scenario):
        await ReservationService(db).claim_slot(scenario.public_id, scenario.slot_ids[0], "alice@example.com")

        slots = await PublicLinkService(db).list_available_slots(scenario.public_id, "bob@example.com")
        assert [s.id for s in slots] == scenario.slot_ids[1:]


async def test_overview_counts(db, scenario):
    await ReservationService(db).claim_slot(scenario.public_id, scenario.slot_ids[2], "carol@example.com")

    [overview] = await PublicLinkService(db).list_public_links(scenario.booking_request_id)
    assert overview.link.public_id == scenario.public_id
    assert overview.slot_count == 3
    assert overview.interviewer_count == 2
    assert overview.student_count == 3
    assert overview.confirmed_count == 1


async def test_reminders_skip_booked_students(db, scenario):
    await ReservationService(db).claim_slot(scenario.public_id, scenario.slot_ids[0], "alice@example.com")

    queued = await PublicLinkService(db).send_reminders(scenario.public_id)

    assert queued == 2
    reminders = await _events(db, OutboxEventType.BOOKING_REMINDER)
    assert {e.student_identity for e in reminders} == {"bob@example.com", "carol@example.com"}


async def test_reminders_on_closed_request(db, scenario):
    await BookingRequestService(db).close(scenario.booking_request_id)

    with pytest.raises(LinkClosedError):
        await PublicLinkService(db).send_reminders(scenario.public_id)
