import logging

from sqlalchemy.exc import OperationalError, ProgrammingError

from quickcourt.services.booking_service import BookingManager
from quickcourt.services.booking_store import SqlBookingStore

logger = logging.getLogger(__name__)

def complete_due_bookings(manager: BookingManager | None = None) -> dict:
    """Move confirmed bookings whose end has passed to completed. Run periodically via Celery beat."""
    manager = manager or BookingManager(SqlBookingStore())
    try:
        done = manager.complete_due_bookings()
    except (ProgrammingError, OperationalError):
        # DB not migrated yet; don't crash the worker.
        logger.warning("completion sweep skipped, bookings table not available")
        return {"skipped": True, "reason": "missing_tables"}
    if done:
        logger.info("completion sweep completed %d bookings", done)
    return {"completed": done}
