import pytest
from sqlalchemy import select

from app.core.exceptions import NotFoundError
from app.services.public_link_service import PublicLinkService
from app.services.reservation_service import ReservationService
from db.models import OutboxEvent, OutboxEventType, SlotState, StudentBookingState
from db.repositories.slots import SlotRepository


async def _cancel_events(db) -> list[OutboxEvent]:
    res = await db.execute(select(OutboxEvent).where(OutboxEvent.event == OutboxEventType.BOOKING_CANCELLED))
    return list(res.scalars().all())


@pytest.fixture
async def booking_id(db, scenario) -> int:
    booking = await ReservationService(db).claim_slot(scenario.public_id, scenario.slot_ids[0], "alice@example.com")
    return booking.id


async def test_cancel_and_release_returns_slot_to_pool(db, scenario, booking_id):
    booking = await ReservationService(db).cancel_booking(booking_id, release_slot=True)

    assert booking.state == StudentBookingState.CANCELLED
    assert booking.cancelled_at is not None
    assert booking.slot.state == SlotState.AVAILABLE

    [event] = await _cancel_events(db)
    assert event.payload["releaseSlot"] is True
    assert event.payload["studentBookingId"] == booking_id


async def test_released_slot_can_be_claimed_again(db, scenario, booking_id):
    service = ReservationService(db)
    await service.cancel_booking(booking_id, release_slot=True)

    again = await service.claim_slot(scenario.public_id, scenario.slot_ids[0], "bob@example.com")
    assert again.state == StudentBookingState.CONFIRMED
    # Отменённая запись больше не считается: студент может записаться снова
    alice = await service.claim_slot(scenario.public_id, scenario.slot_ids[1], "alice@example.com")
    assert alice.state == StudentBookingState.CONFIRMED


async def test_cancel_and_withdraw_takes_slot_out(db, scenario, booking_id):
    booking = await ReservationService(db).cancel_booking(booking_id, release_slot=False)

    assert booking.slot.state == SlotState.RELEASED
    slots = await PublicLinkService(db).list_available_slots(scenario.public_id, "bob@example.com")
    assert scenario.slot_ids[0] not in [s.id for s in slots]


async def test_repeated_cancel_is_noop(db, scenario, booking_id):
    service = ReservationService(db)
    first = await service.cancel_booking(booking_id, release_slot=True)
    cancelled_at = first.cancelled_at

    second = await service.cancel_booking(booking_id, release_slot=False)

    assert second.state == StudentBookingState.CANCELLED
    assert second.cancelled_at == cancelled_at
    assert len(await _cancel_events(db)) == 1
    # Повторная отмена не трогает слот
    assert (await SlotRepository(db).get_by_id(scenario.slot_ids[0])).state == SlotState.AVAILABLE


async def test_unknown_booking(db):
    with pytest.raises(NotFoundError):
        await ReservationService(db).cancel_booking(404, release_slot=True)
