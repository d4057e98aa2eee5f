"""Database operations for dialectic stages."""

from typing import Any

from supabase import Client

from app.core.logging import get_logger

logger = get_logger(__name__)


def get_stage_display_names(supabase: Client, slugs: list[str]) -> dict[str, str]:
    """
    Resolve stage slugs to display names in a single query.

    Args:
        supabase: Supabase client
        slugs: Stage slugs (duplicates are ignored)

    Returns:
        Mapping of slug -> display name for the slugs that exist

    Raises:
        Exception: If database operation fails
    """
    distinct = list(dict.fromkeys(slugs))
    if not distinct:
        return {}

    try:
        response = (
            supabase.table("dialectic_stages")
            .select("slug, display_name")
            .in_("slug", distinct)
            .execute()
        )
    except Exception as e:
        logger.error(f"Failed to fetch stage display names for {distinct}: {e}")
        raise

    return {
        row["slug"]: row["display_name"]
        for row in response.data or []
        if row.get("slug") and row.get("display_name")
    }


def fallback_display_name(slug: str) -> str:
    """Display name used when a stage has none in the catalog."""
    return slug[:1].upper() + slug[1:]


def get_stage_by_slug(supabase: Client, slug: str) -> dict[str, Any] | None:
    """
    Get a stage with its active recipe step.

    Returns:
        Stage dict or None if not found

    Raises:
        Exception: If database operation fails
    """
    try:
        response = supabase.table("dialectic_stages").select("*").eq("slug", slug).execute()
    except Exception as e:
        logger.error(f"Failed to get stage {slug}: {e}")
        raise

    if response.data:
        return response.data[0]

    logger.warning(f"Stage {slug} not found")
    return None
