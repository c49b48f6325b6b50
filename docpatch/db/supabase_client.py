"""Supabase client initialization for the reference store."""

from functools import lru_cache

from supabase import Client, create_client

from docpatch.core.config import get_settings


def reference_store_configured() -> bool:
    """True when both the Supabase URL and service key are set."""
    settings = get_settings()
    return bool(settings.SUPABASE_URL and settings.SUPABASE_SERVICE_ROLE_KEY)


@lru_cache(maxsize=1)
def get_supabase() -> Client:
    """
    Get Supabase client instance (cached singleton).

    Returns:
        Supabase client configured with service role key

    Raises:
        RuntimeError: If the store is not configured or client initialization fails
    """
    settings = get_settings()
    if not (settings.SUPABASE_URL and settings.SUPABASE_SERVICE_ROLE_KEY):
        raise RuntimeError("Reference store not configured: set SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY")
    try:
        return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
    except Exception as e:
        raise RuntimeError(f"Failed to initialize Supabase client: {e}") from e
