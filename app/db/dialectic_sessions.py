"""Database operations for dialectic sessions."""

from datetime import UTC, datetime
from typing import Any

from supabase import Client

from app.core.logging import get_logger

logger = get_logger(__name__)


def get_session(supabase: Client, session_id: str) -> dict[str, Any] | None:
    """
    Get a session by ID.

    Returns:
        Session dict or None if not found

    Raises:
        Exception: If database operation fails
    """
    try:
        response = (
            supabase.table("dialectic_sessions").select("*").eq("id", session_id).execute()
        )
    except Exception as e:
        logger.error(f"Failed to get session {session_id}: {e}", extra={"session_id": session_id})
        raise

    if response.data:
        return response.data[0]

    logger.warning(f"Session {session_id} not found", extra={"session_id": session_id})
    return None


def update_session_status(supabase: Client, session_id: str, status: str) -> None:
    """
    Set the lifecycle status of a session.

    Raises:
        Exception: If database operation fails
    """
    try:
        supabase.table("dialectic_sessions").update(
            {
                "status": status,
                "updated_at": datetime.now(UTC).isoformat(),
            }
        ).eq("id", session_id).execute()
    except Exception as e:
        logger.error(
            f"Failed to set session {session_id} status to {status}: {e}",
            extra={"session_id": session_id},
        )
        raise

    logger.info(f"Session {session_id} status -> {status}", extra={"session_id": session_id})
