"""
Durable store for pending approval requests.

The gate needs exactly two operations: insert a new record and look one up by
id. Records live in the Supabase table `ai_pending_requests` so that a
deferred request and its approved retry may be served by different instances.
"""
import uuid
from typing import Optional, Protocol

from supabase import Client

from app.core.database import get_supabase_client
from app.core.logging import get_logger
from app.core.metrics import record_pending_store_error
from app.services.governance.errors import PersistenceError
from app.services.governance.schema import PendingRequest

logger = get_logger(__name__)

PENDING_REQUESTS_TABLE = "ai_pending_requests"

_SELECT_COLUMNS = (
    "id, tenant_id, user_id, feature, request_payload_hash, "
    "request_payload, risk_reasons, status"
)


class PendingRequestStore(Protocol):
    """Opaque durable keyed store for pending requests."""

    def insert(self, record: PendingRequest) -> str:
        ...

    def get_by_id(self, pending_request_id: str) -> Optional[PendingRequest]:
        ...


class SupabasePendingRequestStore:
    """PendingRequestStore backed by the Supabase `ai_pending_requests` table."""

    def __init__(self, client: Optional[Client] = None, table: str = PENDING_REQUESTS_TABLE):
        self._client = client
        self.table = table

    def _get_client(self, operation: str) -> Client:
        if self._client is None:
            self._client = get_supabase_client()
        if self._client is None:
            record_pending_store_error(operation)
            logger.error("pending_store_unavailable", operation=operation)
            raise PersistenceError(operation, "Pending request store is not configured")
        return self._client

    def insert(self, record: PendingRequest) -> str:
        """
        Insert a pending request and return the id assigned by the database.

        Raises:
            PersistenceError if the store is unreachable or the insert returns no row.
        """
        client = self._get_client("insert")
        row = {
            "tenant_id": record.tenant_id,
            "user_id": record.user_id,
            "feature": record.feature,
            "request_payload_hash": record.payload_hash,
            "request_payload": record.payload,
            "risk_reasons": record.risk_reasons,
            "status": record.status.value,
        }

        try:
            response = client.table(self.table).insert(row).execute()
        except Exception as e:
            record_pending_store_error("insert")
            logger.error(
                "pending_store_insert_failed",
                feature=record.feature,
                payload_hash=record.payload_hash,
                error_type=type(e).__name__,
            )
            raise PersistenceError("insert", "Failed to create pending approval request") from e

        if not response.data or not response.data[0].get("id"):
            record_pending_store_error("insert")
            logger.error(
                "pending_store_insert_empty",
                feature=record.feature,
                payload_hash=record.payload_hash,
            )
            raise PersistenceError("insert", "Failed to create pending approval request")

        return str(response.data[0]["id"])

    def get_by_id(self, pending_request_id: str) -> Optional[PendingRequest]:
        """
        Look up a pending request by id.

        Returns:
            The record, or None when no row has this id (including ids that are
            not valid UUIDs and therefore cannot exist).

        Raises:
            PersistenceError if the store cannot be queried.
        """
        try:
            pending_request_id = str(uuid.UUID(str(pending_request_id)))
        except ValueError:
            return None

        client = self._get_client("lookup")
        try:
            response = (
                client.table(self.table)
                .select(_SELECT_COLUMNS)
                .eq("id", pending_request_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            record_pending_store_error("lookup")
            logger.error(
                "pending_store_lookup_failed",
                pending_request_id=pending_request_id,
                error_type=type(e).__name__,
            )
            raise PersistenceError("lookup", "Failed to look up pending approval request") from e

        if not response.data:
            return None

        row = response.data[0]
        return PendingRequest(
            id=str(row["id"]),
            tenant_id=str(row["tenant_id"]),
            user_id=str(row["user_id"]),
            feature=row["feature"],
            payload_hash=row.get("request_payload_hash") or "",
            payload=row.get("request_payload") or {},
            risk_reasons=row.get("risk_reasons") or [],
            status=row["status"],
        )
