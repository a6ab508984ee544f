import os

# Настройки читаются при импорте config, поэтому окружение задаём до импортов приложения
os.environ.setdefault("ENV", "test")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("DB_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SUPER_ADMIN_IDS", "1")
os.environ.setdefault("DEFAULT_HOST_EMAIL", "host@example.com")

from dataclasses import dataclass
from datetime import date, time, timedelta

import pytest
from fakeredis import aioredis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.domain.slots import Window
from app.services.availability_service import AvailabilityService
from app.services.booking_request_service import BookingRequestService
from app.services.interviewer_service import InterviewerService
from app.services.public_link_service import PublicLinkService
from db.engine import Base
from db import models  # noqa: F401


@pytest.fixture
async def session_maker():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
async def redis_client():
    client = aioredis.FakeRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()


@pytest.fixture
def booking_date() -> date:
    return date.today() + timedelta(days=7)


@dataclass
class Scenario:
    booking_request_id: int
    interviewer_ids: list[int]
    public_id: str
    slot_ids: list[str]


async def create_interviewers(db, count: int = 2) -> list[int]:
    service = InterviewerService(db)
    ids = []
    for n in range(1, count + 1):
        interviewer = await service.create(f"Interviewer {n}", f"interviewer{n}@example.com", ["Python"])
        ids.append(interviewer.id)
    return ids


async def create_published_link(
    db,
    booking_date: date,
    allow_list=("alice@example.com", "bob@example.com", "carol@example.com"),
    windows_per_interviewer=None,
    slot_duration_minutes: int | None = 30,
) -> Scenario:
    """Запрос с двумя интервьюерами, их окнами и опубликованной ссылкой"""
    interviewer_ids = await create_interviewers(db)
    booking_request = await BookingRequestService(db).create(
        booking_date, interviewer_ids, slot_duration_minutes=slot_duration_minutes,
    )
    booking_request_id = booking_request.id

    windows_per_interviewer = windows_per_interviewer or [
        [Window(booking_date, time(10, 0), time(11, 0))],
        [Window(booking_date, time(14, 0), time(14, 30))],
    ]
    availability = AvailabilityService(db)
    for interviewer_id, windows in zip(interviewer_ids, windows_per_interviewer):
        await availability.submit(interviewer_id, booking_request_id, windows)

    service = PublicLinkService(db)
    link = await service.create_public_link(booking_request_id, list(allow_list))
    public_id = link.public_id
    slots = await service.slots.list_for_link(link.id)

    return Scenario(
        booking_request_id=booking_request_id,
        interviewer_ids=interviewer_ids,
        public_id=public_id,
        slot_ids=[s.id for s in slots],
    )


@pytest.fixture
async def scenario(db, booking_date) -> Scenario:
    return await create_published_link(db, booking_date)
