"""Database operations for raw model contributions."""

from typing import Any

from supabase import Client

from app.core.logging import get_logger

logger = get_logger(__name__)


def list_latest_contributions(
    supabase: Client,
    session_id: str,
    iteration_number: int,
    stage_slug: str,
) -> list[dict[str, Any]]:
    """
    List the latest edit of every contribution for a stage iteration.

    Args:
        supabase: Supabase client
        session_id: Session ID
        iteration_number: Iteration number
        stage_slug: Stage the contributions were generated in

    Returns:
        Contribution rows, newest first

    Raises:
        Exception: If database operation fails
    """
    try:
        response = (
            supabase.table("dialectic_contributions")
            .select("*")
            .eq("session_id", session_id)
            .eq("iteration_number", iteration_number)
            .eq("stage", stage_slug)
            .eq("is_latest_edit", True)
            .order("created_at", desc=True)
            .execute()
        )
        return response.data or []

    except Exception as e:
        logger.error(
            f"Failed to list contributions for stage {stage_slug}: {e}",
            extra={"session_id": session_id, "stage_slug": stage_slug},
        )
        raise


def insert_contribution(supabase: Client, row: dict[str, Any]) -> dict[str, Any]:
    """
    Insert a contribution record.

    Returns:
        The inserted row

    Raises:
        ValueError: If no row comes back
        Exception: If database operation fails
    """
    response = supabase.table("dialectic_contributions").insert(row).execute()
    if not response.data:
        raise ValueError("No data returned from contribution insert")
    return response.data[0]
