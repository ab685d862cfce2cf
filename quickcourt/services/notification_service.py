import logging
from typing import Any, Mapping, Protocol

logger = logging.getLogger(__name__)

BOOKING_CREATED = "booking_created"
BOOKING_CONFIRMED = "booking_confirmed"
BOOKING_CANCELLED = "booking_cancelled"
REFUND_ACTION_REQUIRED = "refund_action_required"


class NotificationSender(Protocol):
    def notify(self, user_id: str, kind: str, context: Mapping[str, Any]) -> None: ...


class LoggingNotifier:
    """Default sender: records the notification in the application log."""

    def notify(self, user_id: str, kind: str, context: Mapping[str, Any]) -> None:
        logger.info("notify user=%s kind=%s context=%s", user_id, kind, dict(context))


def send_safely(sender: NotificationSender, user_id: str, kind: str, context: Mapping[str, Any]) -> bool:
    """Fire and forget: a failing sender is logged and never blocks the caller."""
    try:
        sender.notify(user_id, kind, context)
        return True
    except Exception:
        logger.exception("notification %s for user %s failed", kind, user_id)
        return False
