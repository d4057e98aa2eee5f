"""Database operations for user feedback on stages."""

from typing import Any

from supabase import Client

from app.core.logging import get_logger

logger = get_logger(__name__)


def find_feedback(
    supabase: Client,
    session_id: str,
    stage_slug: str,
    iteration_number: int,
    user_id: str,
) -> dict[str, Any] | None:
    """
    Find the feedback a user left on a stage.

    Returns:
        Feedback row or None if none exists

    Raises:
        Exception: If database operation fails
    """
    try:
        response = (
            supabase.table("dialectic_feedback")
            .select("*")
            .eq("session_id", session_id)
            .eq("stage_slug", stage_slug)
            .eq("iteration_number", iteration_number)
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .limit(1)
            .execute()
        )
    except Exception as e:
        logger.error(
            f"Failed to find feedback for stage {stage_slug}: {e}",
            extra={"session_id": session_id, "stage_slug": stage_slug},
        )
        raise

    if response.data:
        return response.data[0]
    return None
