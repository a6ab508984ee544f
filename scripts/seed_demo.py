"""
Демо-данные для разработки: интервьюеры, запрос на завтра, окна и публичная ссылка.
Запуск: python -m scripts.seed_demo [--students a@example.com b@example.com]
"""
import asyncio
import sys
from datetime import date, time, timedelta
sys.path.insert(0, '.')

from app.domain.slots import Window
from app.services.availability_service import AvailabilityService
from app.services.booking_request_service import BookingRequestService
from app.services.interviewer_service import InterviewerService
from app.services.public_link_service import PublicLinkService
from config import settings
from db.engine import async_session_maker
from db.repositories.interviewers import InterviewerRepository


DEMO_INTERVIEWERS = [
    {"full_name": "Анна Петрова", "email": "anna.interviewer@example.com", "domains": ["Python"]},
    {"full_name": "Борис Смирнов", "email": "boris.interviewer@example.com", "domains": ["MERN"]},
]


async def seed_demo(students: list[str]):
    booking_date = date.today() + timedelta(days=1)

    async with async_session_maker() as db:
        repo = InterviewerRepository(db)
        interviewer_ids = []
        for data in DEMO_INTERVIEWERS:
            interviewer = await repo.get_by_email(data["email"])
            if interviewer:
                print(f"   ⚠️ {data['full_name']} уже есть, пропускаем")
            else:
                interviewer = await InterviewerService(db).create(**data)
                print(f"   ✅ Интервьюер: {interviewer.full_name}")
            interviewer_ids.append(interviewer.id)

        booking_request = await BookingRequestService(db).create(
            booking_date, interviewer_ids, slot_duration_minutes=30,
        )
        print(f"✅ Запрос #{booking_request.id} на {booking_date.isoformat()}")

        availability = AvailabilityService(db)
        await availability.submit(interviewer_ids[0], booking_request.id, [
            Window(booking_date, time(10, 0), time(12, 0)),
        ])
        await availability.submit(interviewer_ids[1], booking_request.id, [
            Window(booking_date, time(14, 0), time(15, 30)),
        ])
        print("✅ Доступность отправлена")

        link = await PublicLinkService(db).create_public_link(booking_request.id, students)
        print(f"✅ Ссылка: {settings.public_link_url(link.public_id)}")
        print(f"   Допущено студентов: {len(students)}")


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Seed demo booking data")
    parser.add_argument("--students", nargs="*", default=["student1@example.com", "student2@example.com"])
    args = parser.parse_args()

    print("🚀 Создание демо-данных...")
    asyncio.run(seed_demo(args.students))
