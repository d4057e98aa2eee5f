"""Database operations for project resources (rendered documents, seed prompts)."""

from typing import Any

from supabase import Client

from app.core.logging import get_logger

logger = get_logger(__name__)

RENDERED_DOCUMENT = "rendered_document"
SEED_PROMPT = "seed_prompt"


def find_rendered_documents(
    supabase: Client,
    session_id: str,
    iteration_number: int,
    stage_slug: str,
    document_key: str | None = None,
) -> list[dict[str, Any]]:
    """
    Find rendered documents for one stage of a session iteration.

    Args:
        supabase: Supabase client
        session_id: Session ID
        iteration_number: Iteration the documents were rendered in
        stage_slug: Stage that produced the documents
        document_key: Optional document key to narrow to

    Returns:
        Matching resource rows, newest first

    Raises:
        Exception: If database operation fails
    """
    try:
        query = (
            supabase.table("dialectic_project_resources")
            .select("*")
            .eq("resource_type", RENDERED_DOCUMENT)
            .eq("session_id", session_id)
            .eq("iteration_number", iteration_number)
            .eq("stage_slug", stage_slug)
        )
        if document_key:
            query = query.eq("resource_description->>document_key", document_key)

        response = (
            query.order("updated_at", desc=True).order("created_at", desc=True).execute()
        )
        return response.data or []

    except Exception as e:
        logger.error(
            f"Failed to find rendered documents for stage {stage_slug}: {e}",
            extra={"session_id": session_id, "stage_slug": stage_slug},
        )
        raise


def list_stage_rendered_documents(
    supabase: Client,
    session_id: str,
    stage_slug: str,
    iteration_number: int,
) -> list[dict[str, Any]]:
    """
    List every rendered document of a stage iteration, filtering on columns only.

    Raises:
        Exception: If database operation fails
    """
    try:
        response = (
            supabase.table("dialectic_project_resources")
            .select("*")
            .eq("resource_type", RENDERED_DOCUMENT)
            .eq("session_id", session_id)
            .eq("stage_slug", stage_slug)
            .eq("iteration_number", iteration_number)
            .order("updated_at", desc=True)
            .order("created_at", desc=True)
            .execute()
        )
        return response.data or []

    except Exception as e:
        logger.error(
            f"Failed to list rendered documents for stage {stage_slug}: {e}",
            extra={"session_id": session_id, "stage_slug": stage_slug},
        )
        raise


def get_seed_prompt_resource(
    supabase: Client,
    project_id: str,
    session_id: str,
    stage_slug: str,
    iteration_number: int,
) -> dict[str, Any] | None:
    """
    Get the seed prompt stored for a stage iteration.

    Returns:
        Resource row or None if no seed prompt was stored

    Raises:
        Exception: If database operation fails
    """
    try:
        response = (
            supabase.table("dialectic_project_resources")
            .select("*")
            .eq("project_id", project_id)
            .eq("resource_type", SEED_PROMPT)
            .eq("session_id", session_id)
            .eq("stage_slug", stage_slug)
            .eq("iteration_number", iteration_number)
            .order("created_at", desc=True)
            .limit(1)
            .execute()
        )
    except Exception as e:
        logger.error(
            f"Failed to get seed prompt for session {session_id}: {e}",
            extra={"session_id": session_id, "stage_slug": stage_slug},
        )
        raise

    if response.data:
        return response.data[0]
    return None
