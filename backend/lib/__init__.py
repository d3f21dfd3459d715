"""Backend utilities"""
from .logger import get_logger, setup_logging
from .supabase_client import get_supabase_client

__all__ = ["get_supabase_client", "get_logger", "setup_logging"]
