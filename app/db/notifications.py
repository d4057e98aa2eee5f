"""Database operations for the notifications table."""

from typing import Any

from supabase import Client


def create_notification(
    supabase: Client,
    user_id: str,
    type: str,
    data: dict[str, Any],
    is_internal_event: bool = True,
) -> dict[str, Any]:
    """Insert a notification row; realtime delivery happens outside this service."""
    row = {
        "user_id": user_id,
        "type": type,
        "data": data,
        "is_internal_event": is_internal_event,
    }
    result = supabase.table("notifications").insert(row).execute()
    if not result.data:
        raise ValueError("No data returned from notification insert")
    return result.data[0]
