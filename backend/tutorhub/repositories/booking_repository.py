# backend/tutorhub/repositories/booking_repository.py
"""
Booking Repository.

Status changes go through ``transition_status``, a compare-and-set UPDATE
that only matches while the row is still in one of the expected statuses.
Concurrent requests for the same booking therefore see exactly one winner.
"""

import logging
from typing import Any, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ..core.exceptions import RepositoryException
from ..models.booking import Booking, BookingStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingRepository(BaseRepository[Booking]):
    """Repository for booking data access."""

    def __init__(self, db: Session):
        super().__init__(db, Booking)

    def transition_status(
        self,
        booking_id: str,
        from_statuses: Iterable[BookingStatus],
        to_status: BookingStatus,
        **extra_values: Any,
    ) -> bool:
        """
        Move a booking to ``to_status`` only if it is currently in ``from_statuses``.

        ``extra_values`` are written in the same statement (timestamps etc.).
        Returns True when this call performed the transition.
        """
        allowed = [status.value for status in from_statuses]
        values = {Booking.status: to_status.value}
        for key, value in extra_values.items():
            values[getattr(Booking, key)] = value
        try:
            updated = (
                self.db.query(Booking)
                .filter(Booking.id == booking_id, Booking.status.in_(allowed))
                .update(values, synchronize_session=False)
            )
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error moving booking {booking_id} to {to_status.value}: {str(e)}"
            )
            raise RepositoryException(f"Failed to update booking status: {str(e)}")

        cached = self.db.identity_map.get(self.db.identity_key(Booking, booking_id))
        if cached is not None:
            self.db.expire(cached)
        return updated == 1

    def get_for_batch(
        self, batch_id: str, status: Optional[BookingStatus] = None
    ) -> List[Booking]:
        try:
            query = self.db.query(Booking).filter(Booking.batch_id == batch_id)
            if status is not None:
                query = query.filter(Booking.status == status.value)
            return query.order_by(Booking.created_at, Booking.id).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting bookings for batch {batch_id}: {str(e)}")
            raise RepositoryException(f"Failed to get batch bookings: {str(e)}")

    def get_booking_with_details(self, booking_id: str) -> Optional[Booking]:
        """Get a booking with its batch and participants loaded."""
        try:
            return (
                self.db.query(Booking)
                .options(
                    joinedload(Booking.batch),
                    joinedload(Booking.teacher),
                    joinedload(Booking.student),
                    joinedload(Booking.parent),
                )
                .filter(Booking.id == booking_id)
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting booking details {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to get booking details: {str(e)}")

    def get_fresh(self, booking_id: str) -> Optional[Booking]:
        """Re-read a booking, discarding any cached state in the session."""
        cached = self.db.identity_map.get(self.db.identity_key(Booking, booking_id))
        if cached is not None:
            self.db.refresh(cached)
            return cached
        return self.get_by_id(booking_id)

