"""
Unit tests for the Supabase-backed pending request store.

The Supabase client is a MagicMock; no network calls are made.
"""
import uuid
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from app.services.governance import store as store_module
from app.services.governance.errors import PersistenceError
from app.services.governance.schema import PendingRequest, PendingStatus
from app.services.governance.store import PENDING_REQUESTS_TABLE, SupabasePendingRequestStore


def make_record() -> PendingRequest:
    return PendingRequest(
        tenant_id="tenant-1",
        user_id="user-1",
        feature="question_generation",
        payload_hash="numd4y",
        payload={"a": 1},
        risk_reasons=["question_count_30"],
    )


def test_insert_writes_row_and_returns_id():
    client = MagicMock()
    client.table.return_value.insert.return_value.execute.return_value = SimpleNamespace(
        data=[{"id": "0f8fad5b-d9cb-469f-a165-70867728950e"}]
    )
    store = SupabasePendingRequestStore(client=client)

    pending_id = store.insert(make_record())

    assert pending_id == "0f8fad5b-d9cb-469f-a165-70867728950e"
    client.table.assert_called_with(PENDING_REQUESTS_TABLE)
    row = client.table.return_value.insert.call_args.args[0]
    assert row == {
        "tenant_id": "tenant-1",
        "user_id": "user-1",
        "feature": "question_generation",
        "request_payload_hash": "numd4y",
        "request_payload": {"a": 1},
        "risk_reasons": ["question_count_30"],
        "status": "pending",
    }


def test_insert_error_raises_persistence_error():
    client = MagicMock()
    client.table.return_value.insert.return_value.execute.side_effect = RuntimeError("connection refused")
    store = SupabasePendingRequestStore(client=client)

    with pytest.raises(PersistenceError) as exc_info:
        store.insert(make_record())

    assert exc_info.value.operation == "insert"
    # Payload content must not leak into the error
    assert "question_count_30" not in str(exc_info.value)


def test_insert_without_returned_row_raises():
    client = MagicMock()
    client.table.return_value.insert.return_value.execute.return_value = SimpleNamespace(data=[])
    store = SupabasePendingRequestStore(client=client)

    with pytest.raises(PersistenceError):
        store.insert(make_record())


def test_unconfigured_store_raises(monkeypatch):
    monkeypatch.setattr(store_module, "get_supabase_client", lambda: None)
    store = SupabasePendingRequestStore()

    with pytest.raises(PersistenceError):
        store.insert(make_record())


def test_get_by_id_with_malformed_id_skips_query():
    client = MagicMock()
    store = SupabasePendingRequestStore(client=client)

    assert store.get_by_id("not-a-uuid") is None
    client.table.assert_not_called()


def _select_chain(client: MagicMock) -> MagicMock:
    return client.table.return_value.select.return_value.eq.return_value.limit.return_value.execute


def test_get_by_id_missing_row_returns_none():
    client = MagicMock()
    _select_chain(client).return_value = SimpleNamespace(data=[])
    store = SupabasePendingRequestStore(client=client)

    assert store.get_by_id(str(uuid.uuid4())) is None


def test_get_by_id_maps_columns():
    pending_id = str(uuid.uuid4())
    client = MagicMock()
    _select_chain(client).return_value = SimpleNamespace(
        data=[
            {
                "id": pending_id,
                "tenant_id": "tenant-1",
                "user_id": "user-1",
                "feature": "question_generation",
                "request_payload_hash": "numd4y",
                "request_payload": {"a": 1},
                "risk_reasons": ["critic_pass_enabled"],
                "status": "approved",
            }
        ]
    )
    store = SupabasePendingRequestStore(client=client)

    record = store.get_by_id(pending_id)

    assert record.id == pending_id
    assert record.status == PendingStatus.APPROVED
    assert record.payload_hash == "numd4y"
    assert record.risk_reasons == ["critic_pass_enabled"]
    client.table.return_value.select.return_value.eq.assert_called_with("id", pending_id)


@pytest.mark.parametrize(
    "form",
    [
        lambda u: "{" + str(u) + "}",
        lambda u: u.urn,
        lambda u: u.hex,
        lambda u: str(u).upper(),
    ],
)
def test_get_by_id_queries_canonical_uuid(form):
    pending_id = uuid.uuid4()
    client = MagicMock()
    _select_chain(client).return_value = SimpleNamespace(data=[])
    store = SupabasePendingRequestStore(client=client)

    assert store.get_by_id(form(pending_id)) is None
    client.table.return_value.select.return_value.eq.assert_called_with("id", str(pending_id))


def test_get_by_id_store_failure_raises():
    client = MagicMock()
    _select_chain(client).side_effect = RuntimeError("timeout")
    store = SupabasePendingRequestStore(client=client)

    with pytest.raises(PersistenceError) as exc_info:
        store.get_by_id(str(uuid.uuid4()))

    assert exc_info.value.operation == "lookup"
