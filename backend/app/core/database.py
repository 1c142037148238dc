"""
Supabase connection for the durable pending-request store.

Only the governance store talks to the database; everything else in this
service is process-local.
"""
import os
from typing import Optional
from supabase import create_client, Client
from pathlib import Path
from dotenv import load_dotenv

from app.core.logging import get_logger

logger = get_logger(__name__)

# Load environment variables from .env file in the repository root
env_path = Path(__file__).parent.parent.parent.parent / ".env"

if env_path.exists():
    load_dotenv(env_path)
    logger.info("env_loaded", env_path=str(env_path))
else:
    logger.debug("env_file_not_found", expected_path=str(env_path))


def get_supabase_client() -> Optional[Client]:
    """Create and return Supabase client instance, or None when not configured."""
    supabase_url = os.getenv("SUPABASE_URL")
    supabase_key = os.getenv("SUPABASE_SERVICE_KEY") or os.getenv("SUPABASE_KEY")

    if not supabase_url or not supabase_key:
        logger.warning(
            "supabase_credentials_missing",
            message="Check SUPABASE_URL and SUPABASE_SERVICE_KEY in .env"
        )
        return None

    if not supabase_url.startswith("http"):
        logger.error(
            "supabase_url_invalid",
            url=supabase_url,
            message="Should start with http:// or https://"
        )
        return None

    try:
        logger.info("supabase_client_creating", url_prefix=supabase_url[:30])
        client = create_client(supabase_url, supabase_key)
        logger.info("supabase_client_created")
        return client
    except Exception as e:
        logger.error(
            "supabase_client_creation_failed",
            error=str(e),
            error_type=type(e).__name__,
            exc_info=True,
        )
        return None
