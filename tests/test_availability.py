from datetime import time, timedelta

import pytest
from sqlalchemy import select, func

from app.core.exceptions import NotAuthorizedError, NotFoundError, ValidationError
from app.domain.slots import Window
from app.services.availability_service import AvailabilityService
from app.services.booking_request_service import BookingRequestService
from app.services.draft_service import DraftService
from app.services.interviewer_service import InterviewerService
from db.models import AvailabilityWindow, BookingRequestState, InterviewerStatus
from tests.conftest import create_interviewers


@pytest.fixture
async def request_ids(db, booking_date):
    interviewer_ids = await create_interviewers(db)
    booking_request = await BookingRequestService(db).create(booking_date, interviewer_ids)
    return booking_request.id, interviewer_ids


async def _history_size(db, booking_request_id: int) -> int:
    res = await db.execute(
        select(func.count(AvailabilityWindow.id)).where(AvailabilityWindow.booking_request_id == booking_request_id)
    )
    return res.scalar()


async def test_first_submission_collects_availability(db, booking_date, request_ids):
    booking_request_id, (first, _) = request_ids
    service = AvailabilityService(db)

    rows = await service.submit(first, booking_request_id, [Window(booking_date, time(9, 0), time(11, 0))])

    assert len(rows) == 1
    booking_request = await BookingRequestService(db).get(booking_request_id)
    assert booking_request.state == BookingRequestState.AVAILABILITY_COLLECTED
    mine = await service.get_my_availability(first, booking_request_id)
    assert mine.submitted_at is not None
    assert [(w.start_time, w.end_time) for w in mine.windows] == [(time(9, 0), time(11, 0))]


async def test_resubmission_replaces_and_keeps_history(db, booking_date, request_ids):
    booking_request_id, (first, _) = request_ids
    service = AvailabilityService(db)

    await service.submit(first, booking_request_id, [
        Window(booking_date, time(9, 0), time(10, 0)),
        Window(booking_date, time(12, 0), time(13, 0)),
    ])
    await service.submit(first, booking_request_id, [Window(booking_date, time(15, 0), time(16, 0))])

    mine = await service.get_my_availability(first, booking_request_id)
    assert [(w.start_time, w.end_time) for w in mine.windows] == [(time(15, 0), time(16, 0))]
    assert await _history_size(db, booking_request_id) == 3


async def test_empty_submission_withdraws_everything(db, booking_date, request_ids):
    booking_request_id, (first, _) = request_ids
    service = AvailabilityService(db)

    await service.submit(first, booking_request_id, [Window(booking_date, time(9, 0), time(10, 0))])
    assert await service.submit(first, booking_request_id, []) == []

    mine = await service.get_my_availability(first, booking_request_id)
    assert mine.windows == []
    booking_request = await BookingRequestService(db).get(booking_request_id)
    assert booking_request.state == BookingRequestState.AVAILABILITY_COLLECTED


async def test_empty_first_submission_does_not_collect(db, booking_date, request_ids):
    booking_request_id, (first, _) = request_ids
    await AvailabilityService(db).submit(first, booking_request_id, [])

    booking_request = await BookingRequestService(db).get(booking_request_id)
    assert booking_request.state == BookingRequestState.AWAITING_AVAILABILITY


async def test_overlapping_windows_rejected_and_nothing_stored(db, booking_date, request_ids):
    booking_request_id, (first, _) = request_ids

    with pytest.raises(ValidationError):
        await AvailabilityService(db).submit(first, booking_request_id, [
            Window(booking_date, time(9, 0), time(10, 30)),
            Window(booking_date, time(10, 0), time(11, 0)),
        ])

    assert await _history_size(db, booking_request_id) == 0


async def test_wrong_date_rejected(db, booking_date, request_ids):
    booking_request_id, (first, _) = request_ids
    other_day = booking_date + timedelta(days=1)

    with pytest.raises(ValidationError):
        await AvailabilityService(db).submit(first, booking_request_id, [Window(other_day, time(9, 0), time(10, 0))])


async def test_uninvited_interviewer_rejected(db, booking_date, request_ids):
    booking_request_id, _ = request_ids
    stranger = await InterviewerService(db).create("Stranger", "stranger@example.com")

    with pytest.raises(NotAuthorizedError):
        await AvailabilityService(db).submit(
            stranger.id, booking_request_id, [Window(booking_date, time(9, 0), time(10, 0))]
        )


async def test_deactivated_interviewer_rejected(db, booking_date, request_ids):
    booking_request_id, (first, _) = request_ids
    await InterviewerService(db).update(first, status=InterviewerStatus.INACTIVE)

    with pytest.raises(ValidationError):
        await AvailabilityService(db).submit(first, booking_request_id, [Window(booking_date, time(9, 0), time(10, 0))])


async def test_closed_request_rejects_submissions(db, booking_date, request_ids):
    booking_request_id, (first, _) = request_ids
    await BookingRequestService(db).close(booking_request_id)

    with pytest.raises(ValidationError):
        await AvailabilityService(db).submit(first, booking_request_id, [Window(booking_date, time(9, 0), time(10, 0))])


async def test_unknown_request(db, booking_date):
    with pytest.raises(NotFoundError):
        await AvailabilityService(db).submit(1, 404, [])


async def test_admin_view_groups_by_interviewer(db, booking_date, request_ids):
    booking_request_id, (first, second) = request_ids
    service = AvailabilityService(db)
    await service.submit(first, booking_request_id, [Window(booking_date, time(9, 0), time(10, 0))])

    items = {item.interviewer.id: item for item in await service.get_availability(booking_request_id)}
    assert set(items) == {first, second}
    assert len(items[first].windows) == 1
    assert items[second].windows == []
    assert items[second].submitted_at is None


async def test_reset_submission(db, booking_date, request_ids):
    booking_request_id, (first, _) = request_ids
    service = AvailabilityService(db)
    await service.submit(first, booking_request_id, [Window(booking_date, time(9, 0), time(10, 0))])

    await service.reset_submission(booking_request_id, first)

    mine = await service.get_my_availability(first, booking_request_id)
    assert mine.submitted_at is None
    assert mine.windows == []
    assert await _history_size(db, booking_request_id) == 1


async def test_submission_deletes_draft(db, redis_client, booking_date, request_ids):
    booking_request_id, (first, _) = request_ids
    drafts = DraftService(redis_client)
    await drafts.save_draft(first, booking_request_id, [{"date": booking_date.isoformat(), "start": "09:00"}])

    await AvailabilityService(db, drafts=drafts).submit(
        first, booking_request_id, [Window(booking_date, time(9, 0), time(10, 0))]
    )

    assert await drafts.get_draft(first, booking_request_id) is None
