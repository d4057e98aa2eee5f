"""Database operations for dialectic generation jobs."""

from typing import Any

from supabase import Client

from app.core.logging import get_logger

logger = get_logger(__name__)


def list_stage_jobs(
    supabase: Client,
    session_id: str,
    stage_slug: str,
    iteration_number: int,
    user_id: str,
    project_id: str,
) -> list[dict[str, Any]]:
    """
    List the generation jobs of one stage iteration owned by a user.

    The user and project filters narrow the result set; callers rely on them
    to keep other users' jobs out.

    Raises:
        Exception: If database operation fails
    """
    try:
        response = (
            supabase.table("dialectic_generation_jobs")
            .select("*")
            .eq("session_id", session_id)
            .eq("payload->>stage_slug", stage_slug)
            .eq("payload->>iteration_number", str(iteration_number))
            .eq("user_id", user_id)
            .eq("payload->>project_id", project_id)
            .order("created_at")
            .execute()
        )
        return response.data or []

    except Exception as e:
        logger.error(
            f"Failed to list generation jobs for stage {stage_slug}: {e}",
            extra={"session_id": session_id, "stage_slug": stage_slug},
        )
        raise
