import logging
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from booking_engine.api.v1.api import api_router
from booking_engine.core.config import settings
from booking_engine.core.database import close_db, init_db
from booking_engine.core.exceptions import BookingError
from booking_engine.core.redis import redis_client

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    await init_db()
    if redis_client.is_enabled:
        await redis_client.init_redis()
    logger.info("Booking engine started", environment=settings.ENVIRONMENT)

    yield

    await redis_client.close()
    await close_db()
    logger.info("Booking engine stopped")


async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    logger.info(
        "Booking request rejected",
        path=request.url.path,
        reason=exc.reason.value,
        stage=exc.stage,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    logging.basicConfig(level=settings.LOG_LEVEL)

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        description="Appointment availability, recurrence and booking engine",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(BookingError, booking_error_handler)
    app.include_router(api_router, prefix="/api/v1")

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "version": settings.VERSION}

    return app


app = create_app()
