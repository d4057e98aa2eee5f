"""Supabase client for the dialectic catalog and artifact store."""

from functools import lru_cache

from supabase import Client, ClientOptions, create_client

from app.core.config import get_settings


@lru_cache(maxsize=1)
def get_supabase() -> Client:
    """
    Get the shared Supabase client (cached singleton).

    The same client serves catalog queries (``client.table``) and artifact
    storage (``client.storage``). Both use the configured request timeout so
    a stalled catalog or storage call can't hold a generation round open.

    Returns:
        Supabase client configured with service role key

    Raises:
        RuntimeError: If client initialization fails
    """
    settings = get_settings()
    options = ClientOptions(
        postgrest_client_timeout=settings.SUPABASE_TIMEOUT_SECONDS,
        storage_client_timeout=settings.SUPABASE_TIMEOUT_SECONDS,
    )
    try:
        return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY, options=options)
    except Exception as e:
        raise RuntimeError(f"Failed to initialize Supabase client: {e}") from e
