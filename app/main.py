from contextlib import asynccontextmanager
import logging

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import redis.asyncio as redis

from app.core.exceptions import SchedulingError, AlreadyBookedError
from app.core.redis import redis_client, get_redis, ping
from app.api.routers import (
    interviewers,
    booking_requests,
    availability,
    public_links,
    public_booking,
    student_bookings,
    main_sheet,
)
from config import settings

# Логирование
logging.basicConfig(
    level=logging.INFO if not settings.debug else logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle: подключение/отключение Redis"""
    logger.info(f"Starting app in {settings.env} mode...")
    await redis_client.connect()
    logger.info("Redis connected")
    yield
    await redis_client.disconnect()
    logger.info("Redis disconnected")


app = FastAPI(
    title="Interview Booking Backend",
    description="API записи студентов на интервью: доступность интервьюеров, слоты, публичные ссылки",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/api/docs" if settings.is_dev else None,  # Swagger только в dev
    redoc_url="/api/redoc" if settings.is_dev else None,
)

allowed_origins = ["*"] if settings.is_dev else [settings.public_base_url]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SchedulingError)
async def scheduling_error_handler(request: Request, exc: SchedulingError):
    if exc.status_code >= 500:
        logger.error(f"{exc.code} на {request.method} {request.url.path}: {exc.message}")
    content = {"error": exc.code, "detail": exc.message}
    if isinstance(exc, AlreadyBookedError) and exc.booking_id is not None:
        content["booking_id"] = exc.booking_id
    return JSONResponse(status_code=exc.status_code, content=content)


# Роутеры
app.include_router(interviewers.router, prefix="/api/v1", tags=["Interviewers"])
app.include_router(booking_requests.router, prefix="/api/v1", tags=["Booking requests"])
app.include_router(availability.router, prefix="/api/v1", tags=["Availability"])
app.include_router(public_links.router, prefix="/api/v1", tags=["Public links"])
app.include_router(public_booking.router, prefix="/api/v1", tags=["Public booking"])
app.include_router(student_bookings.router, prefix="/api/v1", tags=["Student bookings"])
app.include_router(main_sheet.router, prefix="/api/v1", tags=["Main Sheet"])


@app.get("/healthz")
async def health(client: redis.Redis = Depends(get_redis)):
    """Health check для мониторинга"""
    return {"status": "ok", "env": settings.env, "redis": await ping(client)}
