"""
Supabase client for profile and session persistence
"""
import logging
import os
from typing import Optional

from dotenv import load_dotenv
from supabase import Client, create_client

# Load environment variables
load_dotenv()
load_dotenv('../.env')  # Also try parent directory

logger = logging.getLogger(__name__)

_supabase_client: Optional[Client] = None


def get_supabase_client(required: bool = False) -> Optional[Client]:
    """
    Get or create the Supabase client singleton.

    Args:
        required: Raise instead of returning None when credentials are missing

    Returns:
        Client, or None when SUPABASE_URL / SUPABASE_SERVICE_KEY are not set
        (the tutor then persists in memory)
    """
    global _supabase_client

    if _supabase_client is None:
        url = os.getenv("SUPABASE_URL")
        # Use service role key in backend for profile writes
        key = os.getenv("SUPABASE_SERVICE_KEY")

        if not url or not key:
            if required:
                raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set in environment")
            logger.warning("⚠️ [Supabase] Credentials not set, using in-memory persistence")
            return None

        _supabase_client = create_client(url, key)

    return _supabase_client
