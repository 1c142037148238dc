"""
Verify that the service can reach Supabase and read the pending approval table.
Run this script before deploying to a new environment.
"""
import os
import sys
from pathlib import Path
from dotenv import load_dotenv

# Add parent directory to path to import app modules
sys.path.insert(0, str(Path(__file__).parent.parent))

env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)
    print(f"Loaded environment from {env_path}")
else:
    print(f"Note: .env file not found at {env_path}")
    print("   Environment variables will be read from system environment")

from app.core.database import get_supabase_client
from app.services.governance.store import PENDING_REQUESTS_TABLE
from app.services.providers.models import load_crossover_config


def check_pending_store() -> bool:
    """Check credentials, connectivity and the pending requests table."""
    print("=" * 60)
    print("Checking pending request store")
    print("=" * 60)
    print()

    print("Step 1: Checking environment variables...")
    supabase_url = os.getenv("SUPABASE_URL")
    supabase_key = os.getenv("SUPABASE_SERVICE_KEY") or os.getenv("SUPABASE_KEY")

    if not supabase_url:
        print("[X] SUPABASE_URL not found in environment variables")
        return False
    print(f"[OK] SUPABASE_URL found: {supabase_url}")

    if not supabase_key:
        print("[X] SUPABASE_SERVICE_KEY not found in environment variables")
        return False
    key_preview = f"{supabase_key[:8]}...{supabase_key[-8:]}" if len(supabase_key) > 16 else "***"
    print(f"[OK] SUPABASE_SERVICE_KEY found: {key_preview}")
    print()

    print("Step 2: Creating Supabase client...")
    client = get_supabase_client()
    if not client:
        print("[X] Failed to create Supabase client")
        return False
    print("[OK] Supabase client created successfully")
    print()

    print(f"Step 3: Reading table '{PENDING_REQUESTS_TABLE}'...")
    try:
        result = client.table(PENDING_REQUESTS_TABLE).select("id, status").limit(5).execute()
    except Exception as e:
        print(f"[X] Query failed: {e}")
        print("   Approval gate will fail closed (503) until the table is reachable")
        return False

    statuses = [row.get("status") for row in result.data]
    print(f"[OK] Table reachable, sampled {len(result.data)} row(s): {statuses}")
    print()

    print("Step 4: Loading model crossover table...")
    try:
        config = load_crossover_config()
    except (OSError, ValueError) as e:
        print(f"[X] Crossover table invalid: {e}")
        return False
    print(f"[OK] Crossover version {config.version}, {len(config.crossover)} mapping(s)")
    print()

    print("[OK] All checks passed.")
    return True


if __name__ == "__main__":
    success = check_pending_store()
    sys.exit(0 if success else 1)
