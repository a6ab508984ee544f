import asyncio
from datetime import time

import pytest
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.exceptions import (
    AlreadyBookedError, InternalError, LinkClosedError, NotAuthorizedError,
    NotFoundError, SlotUnavailableError,
)
from app.domain.slots import Window
from app.services.availability_service import AvailabilityService
from app.services.booking_request_service import BookingRequestService
from app.services.public_link_service import PublicLinkService
from app.services.reservation_service import ReservationService
from app.services.slot_service import SlotService
from db.engine import Base
from db.models import (
    OutboxEvent, OutboxEventType, SlotState, StudentBooking, StudentBookingState,
)
from db.repositories.outbox import OutboxRepository
from db.repositories.slots import SlotRepository
from tests.conftest import create_interviewers, create_published_link


async def _confirmed_count(db) -> int:
    res = await db.execute(
        select(func.count(StudentBooking.id)).where(StudentBooking.state == StudentBookingState.CONFIRMED)
    )
    return res.scalar()


async def _slot_state(db, slot_id: str) -> SlotState:
    return (await SlotRepository(db).get_by_id(slot_id)).state


async def test_claim_confirms_slot_and_booking(db, scenario):
    slot_id = scenario.slot_ids[0]

    booking = await ReservationService(db).claim_slot(scenario.public_id, slot_id, " Alice@Example.com ", "Alice")

    assert booking.state == StudentBookingState.CONFIRMED
    assert booking.student_identity == "alice@example.com"
    assert booking.student_name == "Alice"
    assert booking.confirmed_at is not None
    assert booking.slot.state == SlotState.CONFIRMED
    assert booking.slot.version == 2


async def test_claim_writes_outbox_in_same_transaction(db, scenario):
    booking = await ReservationService(db).claim_slot(scenario.public_id, scenario.slot_ids[0], "alice@example.com")

    res = await db.execute(
        select(OutboxEvent).where(OutboxEvent.student_booking_id == booking.id).order_by(OutboxEvent.id)
    )
    events = list(res.scalars().all())
    assert [e.event for e in events] == [OutboxEventType.SLOT_CONFIRMED, OutboxEventType.MEET_LINK_REQUESTED]
    assert events[0].payload == {
        "event": "slot.confirmed",
        "studentBookingId": booking.id,
        "slotId": scenario.slot_ids[0],
        "studentIdentity": "alice@example.com",
    }


async def test_student_id_identity(db, scenario):
    await PublicLinkService(db).extend_allow_list(scenario.public_id, ["S-1001"])

    booking = await ReservationService(db).claim_slot(scenario.public_id, scenario.slot_ids[0], "s-1001")
    assert booking.student_identity == "s-1001"


class TestPreconditionOrder:
    async def test_unknown_link(self, db, scenario):
        with pytest.raises(NotFoundError):
            await ReservationService(db).claim_slot("missing", scenario.slot_ids[0], "alice@example.com")

    async def test_closed_wins_over_allow_list(self, db, scenario):
        await BookingRequestService(db).close(scenario.booking_request_id)

        with pytest.raises(LinkClosedError):
            await ReservationService(db).claim_slot(scenario.public_id, scenario.slot_ids[0], "mallory@example.com")

    async def test_allow_list_wins_over_slot(self, db, scenario):
        with pytest.raises(NotAuthorizedError):
            await ReservationService(db).claim_slot(scenario.public_id, "no-such-slot", "mallory@example.com")

    async def test_already_booked_wins_over_taken_slot(self, db, scenario):
        service = ReservationService(db)
        first = await service.claim_slot(scenario.public_id, scenario.slot_ids[0], "alice@example.com")
        first_id = first.id
        await service.claim_slot(scenario.public_id, scenario.slot_ids[1], "bob@example.com")

        with pytest.raises(AlreadyBookedError) as exc:
            await service.claim_slot(scenario.public_id, scenario.slot_ids[1], "alice@example.com")
        assert exc.value.booking_id == first_id

    async def test_exact_retry_reports_already_booked(self, db, scenario):
        service = ReservationService(db)
        first = await service.claim_slot(scenario.public_id, scenario.slot_ids[0], "alice@example.com")
        first_id = first.id

        with pytest.raises(AlreadyBookedError) as exc:
            await service.claim_slot(scenario.public_id, scenario.slot_ids[0], "alice@example.com")
        assert exc.value.booking_id == first_id
        assert await _confirmed_count(db) == 1

    async def test_slot_outside_link(self, db, scenario):
        with pytest.raises(SlotUnavailableError):
            await ReservationService(db).claim_slot(scenario.public_id, "no-such-slot", "alice@example.com")


class TestNoDoubleBooking:
    async def test_second_student_loses(self, db, scenario):
        service = ReservationService(db)
        slot_id = scenario.slot_ids[0]
        await service.claim_slot(scenario.public_id, slot_id, "alice@example.com")

        with pytest.raises(SlotUnavailableError):
            await service.claim_slot(scenario.public_id, slot_id, "bob@example.com")

        assert await _confirmed_count(db) == 1
        # Проигравший может сразу взять другой слот
        booking = await service.claim_slot(scenario.public_id, scenario.slot_ids[1], "bob@example.com")
        assert booking.state == StudentBookingState.CONFIRMED

    async def test_compare_and_set_has_one_winner(self, db, scenario):
        repo = SlotRepository(db)
        slot_id = scenario.slot_ids[0]

        assert await repo.compare_and_set_state(slot_id, SlotState.AVAILABLE, SlotState.CONFIRMED)
        assert not await repo.compare_and_set_state(slot_id, SlotState.AVAILABLE, SlotState.CONFIRMED)

    async def test_database_rejects_second_confirmed_booking_for_slot(self, db, scenario):
        booking = await ReservationService(db).claim_slot(scenario.public_id, scenario.slot_ids[0], "alice@example.com")
        public_link_id, slot_id = booking.public_link_id, booking.slot_id

        db.add(StudentBooking(
            public_link_id=public_link_id,
            slot_id=slot_id,
            student_identity="bob@example.com",
            state=StudentBookingState.CONFIRMED,
        ))
        with pytest.raises(IntegrityError):
            await db.flush()
        await db.rollback()

    async def test_lost_race_on_slot_index_maps_to_slot_unavailable(self, db, scenario, monkeypatch):
        slot_id = scenario.slot_ids[0]
        await ReservationService(db).claim_slot(scenario.public_id, slot_id, "alice@example.com")

        # Гонка: проверка состояния пропущена, решает только уникальный индекс
        async def always_wins(self, *args, **kwargs):
            return True
        monkeypatch.setattr(SlotRepository, "compare_and_set_state", always_wins)

        with pytest.raises(SlotUnavailableError):
            await ReservationService(db).claim_slot(scenario.public_id, slot_id, "bob@example.com")
        assert await _confirmed_count(db) == 1

    async def test_lost_race_on_identity_index_maps_to_already_booked(self, db, scenario):
        first = await ReservationService(db).claim_slot(scenario.public_id, scenario.slot_ids[0], "alice@example.com")
        first_id = first.id

        service = ReservationService(db)

        async def skip_checks(public_id, identity):
            return await service.links.get_by_public_id(public_id)
        service._check_preconditions = skip_checks

        with pytest.raises(AlreadyBookedError) as exc:
            await service.claim_slot(scenario.public_id, scenario.slot_ids[1], "alice@example.com")
        assert exc.value.booking_id == first_id
        # Откат вернул слот в пул
        assert await _slot_state(db, scenario.slot_ids[1]) == SlotState.AVAILABLE


async def test_storage_failure_rolls_back_everything(db, scenario, monkeypatch):
    slot_id = scenario.slot_ids[0]

    async def broken_add(self, *args, **kwargs):
        raise OperationalError("INSERT INTO outbox_events", {}, Exception("disk I/O error"))
    monkeypatch.setattr(OutboxRepository, "add", broken_add)

    with pytest.raises(InternalError):
        await ReservationService(db).claim_slot(scenario.public_id, slot_id, "alice@example.com")

    assert await _slot_state(db, slot_id) == SlotState.AVAILABLE
    assert await _confirmed_count(db) == 0


async def test_concurrent_claims_on_shared_database(tmp_path, booking_date):
    """Две записи на один слот в разных сессиях и соединениях одновременно"""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'claims.db'}", connect_args={"timeout": 30})
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    session_maker = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)

    try:
        async with session_maker() as setup:
            scenario = await create_published_link(setup, booking_date)
        slot_id = scenario.slot_ids[0]

        async def claim(identity: str):
            async with session_maker() as session:
                return await ReservationService(session).claim_slot(scenario.public_id, slot_id, identity)

        results = await asyncio.gather(
            claim("alice@example.com"), claim("bob@example.com"), return_exceptions=True,
        )

        winners = [r for r in results if isinstance(r, StudentBooking)]
        losers = [r for r in results if isinstance(r, SlotUnavailableError)]
        assert len(winners) == 1 and len(losers) == 1

        async with session_maker() as check:
            assert await _confirmed_count(check) == 1
            assert await _slot_state(check, slot_id) == SlotState.CONFIRMED
            outbox = await check.execute(
                select(func.count(OutboxEvent.id)).where(OutboxEvent.event == OutboxEventType.SLOT_CONFIRMED)
            )
            assert outbox.scalar() == 1
    finally:
        await engine.dispose()


async def test_booking_day_end_to_end(db, booking_date):
    """Материализация часовых слотов, ссылка для одного студента, расширение списка, повторная попытка"""
    interviewer_ids = await create_interviewers(db, 1)
    booking_request = await BookingRequestService(db).create(booking_date, interviewer_ids)
    booking_request_id = booking_request.id
    await AvailabilityService(db).submit(
        interviewer_ids[0], booking_request_id, [Window(booking_date, time(9, 0), time(11, 0))]
    )
    slot_ids = [s.id for s in await SlotService(db).materialize(booking_request_id, slot_duration_minutes=60)]
    assert len(slot_ids) == 2

    links = PublicLinkService(db)
    link = await links.create_public_link(booking_request_id, ["alice@example.com"])
    public_id = link.public_id
    reservations = ReservationService(db)

    alice = await reservations.claim_slot(public_id, slot_ids[0], "alice@example.com")
    alice_id = alice.id
    assert alice.state == StudentBookingState.CONFIRMED

    with pytest.raises(NotAuthorizedError):
        await reservations.claim_slot(public_id, slot_ids[1], "bob@example.com")

    await links.extend_allow_list(public_id, ["bob@example.com"])
    assert [s.id for s in await links.list_available_slots(public_id, "bob@example.com")] == slot_ids[1:]
    bob = await reservations.claim_slot(public_id, slot_ids[1], "bob@example.com")
    assert bob.slot_id == slot_ids[1]

    with pytest.raises(AlreadyBookedError) as exc:
        await reservations.claim_slot(public_id, slot_ids[0], "alice@example.com")
    assert exc.value.booking_id == alice_id
    assert await _confirmed_count(db) == 2
