"""
Shared Supabase client for the API

The backend writes on behalf of users it has already authenticated, so it
connects with the service-role key (SUPABASE_SERVICE_KEY), never the anon
key. Without credentials the API still serves guests; see
supabase_configured().
"""
import logging
import os
from typing import Optional, Tuple

from supabase import create_client, Client
from dotenv import load_dotenv

load_dotenv()
load_dotenv('../.env')  # running from backend/

logger = logging.getLogger("backend.main")

_client: Optional[Client] = None


def _credentials() -> Tuple[Optional[str], Optional[str]]:
    return os.getenv("SUPABASE_URL"), os.getenv("SUPABASE_SERVICE_KEY")


def supabase_configured() -> bool:
    url, key = _credentials()
    return bool(url and key)


def get_supabase_client() -> Client:
    """
    Return the process-wide client, creating it on first use.

    Raises:
        ValueError: If SUPABASE_URL or SUPABASE_SERVICE_KEY is missing
    """
    global _client
    if _client is not None:
        return _client

    url, key = _credentials()
    if not (url and key):
        raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set in environment")

    _client = create_client(url, key)
    logger.info(f"✅ Supabase client ready ({url})")
    return _client
