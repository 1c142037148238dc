"""
Core application modules.
Contains logging, metrics, request middleware and the database connection.
"""
from .database import get_supabase_client

__all__ = ["get_supabase_client"]
