"""Fire-and-forget emission of dialectic lifecycle notifications."""

from supabase import Client

from app.core.logging import get_logger
from app.core.schemas_notifications import DialecticNotification
from app.db.notifications import create_notification

logger = get_logger(__name__)


def emit_notification(
    supabase: Client,
    user_id: str | None,
    notification: DialecticNotification,
) -> None:
    """
    Record a lifecycle event for a user.

    Never raises: a failed notification must not fail the work it describes.
    """
    if not user_id:
        logger.debug(f"No user to notify for {notification.type}, skipping")
        return

    try:
        create_notification(
            supabase,
            user_id=user_id,
            type=str(notification.type),
            data=notification.model_dump(mode="json", exclude_none=True),
        )
    except Exception as e:
        logger.warning(
            f"Failed to emit {notification.type} notification: {e}",
            extra={"session_id": notification.session_id, "stage_slug": notification.stage_slug},
        )
