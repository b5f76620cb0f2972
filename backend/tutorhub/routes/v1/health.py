# backend/tutorhub/routes/v1/health.py
"""
Health check endpoint.

Reports whether the service is up and whether the database answers.
"""

from datetime import datetime, timezone
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...api.dependencies import get_db
from ...core.config import settings
from ...database import get_db_pool_status
from ...schemas.base import CamelModel

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])


class HealthCheckResponse(CamelModel):
    status: str
    service: str
    version: str
    environment: str
    timestamp: datetime
    checks: Dict[str, bool]
    pool: Dict[str, Any]


@router.get("/health", response_model=HealthCheckResponse)
def health_check(db: Session = Depends(get_db)) -> HealthCheckResponse:
    try:
        db.execute(text("SELECT 1"))
        db_status = True
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        db_status = False

    return HealthCheckResponse(
        status="healthy" if db_status else "degraded",
        service=f"{settings.brand_name} API",
        version="0.1.0",
        environment=settings.environment,
        timestamp=datetime.now(timezone.utc),
        checks={"database": db_status},
        pool=get_db_pool_status(),
    )
