# backend/tutorhub/main.py
"""
FastAPI application for the TutorHub booking backend.

Mounts the v1 booking, coupon and class batch routers under /api/v1 and
wires the teacher schedule listener for batch changes.
"""

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.config import is_running_tests, settings
from .core.constants import BRAND_NAME
from .database import SessionLocal
from .errors import register_error_handlers
from .events.batch_events import register_listener, unregister_listener
from .init_db import init_db
from .middleware.prometheus_middleware import PrometheusMiddleware
from .routes import prometheus
from .routes.v1 import bookings as bookings_v1
from .routes.v1 import class_batches as class_batches_v1
from .routes.v1 import coupons as coupons_v1
from .routes.v1 import health as health_v1
from .services.teacher_schedule_service import make_schedule_listener

logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)

API_TITLE = f"{BRAND_NAME} API"
API_VERSION = "0.1.0"


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown."""
    logger.info(f"{BRAND_NAME} API starting up...")
    logger.info(f"Environment: {settings.environment}")
    if is_running_tests():
        logger.info("Running under pytest (test mode active)")

    if settings.is_sqlite:
        init_db()

    schedule_listener = make_schedule_listener(SessionLocal)
    register_listener(schedule_listener)

    yield

    unregister_listener(schedule_listener)
    logger.info(f"{BRAND_NAME} API shutting down...")


app = FastAPI(
    title=API_TITLE,
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=app_lifespan,
)

# Register unified error envelope handlers
register_error_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "HEAD", "OPTIONS", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["*"],
)
logger.info("CORS allow_origins=%s", settings.cors_origins)

app.add_middleware(PrometheusMiddleware)

api_v1 = APIRouter(prefix="/api/v1")
api_v1.include_router(bookings_v1.router, prefix="/bookings")
api_v1.include_router(coupons_v1.router, prefix="/coupons")
api_v1.include_router(class_batches_v1.router, prefix="/classBatches")
api_v1.include_router(health_v1.router)

app.include_router(api_v1)
app.include_router(prometheus.router)

# Explicit export for ASGI servers and tests
fastapi_app = app

__all__ = ["app", "fastapi_app"]
