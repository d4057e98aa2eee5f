"""Database operations for the AI provider catalog."""

from typing import Any

from supabase import Client

from app.core.logging import get_logger

logger = get_logger(__name__)


def get_ai_provider(supabase: Client, model_id: str) -> dict[str, Any] | None:
    """
    Get the provider configuration for a selectable model.

    Returns:
        Provider dict or None if not found

    Raises:
        Exception: If database operation fails
    """
    try:
        response = (
            supabase.table("ai_providers")
            .select("id, provider, name, api_identifier, config, is_active")
            .eq("id", model_id)
            .execute()
        )
    except Exception as e:
        logger.error(f"Failed to get AI provider {model_id}: {e}", extra={"model_id": model_id})
        raise

    if response.data:
        return response.data[0]

    return None
