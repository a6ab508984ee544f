from app.services.draft_service import DraftService, draft_windows
from config import settings


async def test_save_and_get(redis_client):
    drafts = DraftService(redis_client)
    windows = [{"date": "2030-03-14", "start": "09:00", "end": "10:00"}]

    saved = await drafts.save_draft(5, 9, windows)
    assert saved.windows == windows

    draft = await drafts.get_draft(5, 9)
    assert draft.windows == windows
    assert draft.updated_at == saved.updated_at
    assert 0 < draft.ttl_seconds <= settings.redis_draft_ttl


async def test_draft_keeps_only_window_fields(redis_client):
    drafts = DraftService(redis_client)
    await drafts.save_draft(5, 9, [
        {"date": "2030-03-14", "start": " 09:00 ", "note": "после обеда не могу"},
        {"start": "", "end": None},
        {"end": 1030},
    ])

    draft = await drafts.get_draft(5, 9)
    assert draft.windows == [{"date": "2030-03-14", "start": "09:00"}, {"end": "1030"}]


async def test_resave_replaces_windows(redis_client):
    drafts = DraftService(redis_client)
    await drafts.save_draft(5, 9, [{"start": "09:00"}, {"start": "11:00"}])
    await drafts.save_draft(5, 9, [{"start": "12:00"}])

    assert (await drafts.get_draft(5, 9)).windows == [{"start": "12:00"}]


async def test_drafts_are_per_interviewer_and_request(redis_client):
    drafts = DraftService(redis_client)
    await drafts.save_draft(5, 9, [{"start": "09:00"}])

    assert await drafts.get_draft(6, 9) is None
    assert await drafts.get_draft(5, 10) is None


async def test_delete(redis_client):
    drafts = DraftService(redis_client)
    await drafts.save_draft(5, 9, [])

    assert await drafts.delete_draft(5, 9) is True
    assert await drafts.delete_draft(5, 9) is False
    assert await drafts.get_draft(5, 9) is None


def test_draft_windows_drops_empty():
    assert draft_windows([{}, {"comment": "x"}]) == []
