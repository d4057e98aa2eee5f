"""Database operations for dialectic projects."""

from typing import Any

from supabase import Client

from app.core.logging import get_logger

logger = get_logger(__name__)


def get_project(supabase: Client, project_id: str) -> dict[str, Any] | None:
    """
    Get a project by ID.

    Returns:
        Project dict or None if not found

    Raises:
        Exception: If database operation fails
    """
    try:
        response = (
            supabase.table("dialectic_projects").select("*").eq("id", project_id).execute()
        )
    except Exception as e:
        logger.error(f"Failed to get project {project_id}: {e}")
        raise

    if response.data:
        return response.data[0]

    logger.warning(f"Project {project_id} not found")
    return None
