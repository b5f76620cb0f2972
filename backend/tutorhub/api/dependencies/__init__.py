"""
Central export point for request dependencies.
"""

from .database import get_db
from .services import (
    get_booking_service,
    get_class_batch_service,
    get_coupon_service,
    get_reconciliation_service,
)

__all__ = [
    # Database
    "get_db",
    # Services
    "get_booking_service",
    "get_class_batch_service",
    "get_coupon_service",
    "get_reconciliation_service",
]
