"""
Unit tests for the approval gate state machine and payload hashing.

The durable store is replaced by the in-memory store from conftest.py.
"""
import pytest

from app.services.governance.approval import hash_payload
from app.services.governance.errors import PersistenceError, RiskValidationError
from app.services.governance.schema import (
    ApprovalGateRequest,
    PendingFound,
    PendingNotFound,
    PendingNotOwner,
    PendingStatus,
)


def make_request(**overrides) -> ApprovalGateRequest:
    fields = {
        "tenant_id": "tenant-1",
        "user_id": "user-1",
        "user_role": "employee",
        "feature": "question_generation",
        "question_count": 10,
        "enable_critic_pass": False,
        "request_payload": {"questionCount": 10, "focusAreas": ["stress", "workload"]},
    }
    fields.update(overrides)
    return ApprovalGateRequest(**fields)


# ---------------------------------------------------------------------------
# hash_payload
# ---------------------------------------------------------------------------

def test_hash_is_invariant_to_key_order():
    assert hash_payload({"a": 1, "b": 2}) == hash_payload({"b": 2, "a": 1})


def test_hash_is_invariant_to_nested_key_order():
    first = {"config": {"tone": "formal", "complexity": "simple"}, "count": 30}
    second = {"count": 30, "config": {"complexity": "simple", "tone": "formal"}}

    assert hash_payload(first) == hash_payload(second)


def test_hash_differs_for_different_values():
    assert hash_payload({"a": 1}) != hash_payload({"a": 2})


def test_hash_known_value():
    """31-multiplier fold over '{"a":1}', wrapped to signed 32 bits, base 36."""
    assert hash_payload({"a": 1}) == "numd4y"


def test_hash_is_lowercase_base36():
    value = hash_payload({"focusAreas": ["stress"], "language": "both", "text": "صحة"})

    assert value
    assert set(value) <= set("0123456789abcdefghijklmnopqrstuvwxyz")


def test_hash_accepts_lone_surrogates():
    value = hash_payload({"text": "\ud800"})

    assert value
    assert set(value) <= set("0123456789abcdefghijklmnopqrstuvwxyz")
    assert value != hash_payload({"text": "\ud801"})


def test_lone_surrogate_payload_is_deferred(approval_gate, pending_store):
    result = approval_gate.check(make_request(question_count=30, request_payload={"text": "\ud800"}))

    assert result.allowed is False
    stored = pending_store.records[result.pending_request_id]
    assert stored.payload_hash == hash_payload({"text": "\ud800"})


# ---------------------------------------------------------------------------
# Fresh path
# ---------------------------------------------------------------------------

def test_low_risk_request_is_allowed_without_record(approval_gate, pending_store):
    result = approval_gate.check(make_request())

    assert result.allowed
    assert result.pending_request_id is None
    assert result.reasons == []
    assert pending_store.records == {}


@pytest.mark.parametrize("role", ["employee", "manager", "hr_manager", "viewer", ""])
def test_high_risk_non_admin_is_deferred(approval_gate, pending_store, role):
    payload = {"questionCount": 30, "focusAreas": ["burnout"]}
    result = approval_gate.check(
        make_request(user_role=role, question_count=30, request_payload=payload)
    )

    assert not result.allowed
    assert result.pending_request_id is not None
    assert result.reasons == ["question_count_30"]

    record = pending_store.records[result.pending_request_id]
    assert record.id == result.pending_request_id
    assert record.status == PendingStatus.PENDING
    assert record.tenant_id == "tenant-1"
    assert record.user_id == "user-1"
    assert record.feature == "question_generation"
    assert record.payload == payload
    assert record.payload_hash == hash_payload(payload)
    assert record.risk_reasons == ["question_count_30"]


@pytest.mark.parametrize("role", ["tenant_admin", "super_admin"])
def test_high_risk_admin_is_allowed_with_visible_reasons(approval_gate, pending_store, role):
    result = approval_gate.check(
        make_request(user_role=role, question_count=30, enable_critic_pass=True)
    )

    assert result.allowed
    assert result.pending_request_id is None
    assert result.reasons == ["question_count_30", "critic_pass_enabled"]
    assert pending_store.records == {}


def test_persistence_failure_fails_closed(approval_gate, pending_store):
    pending_store.fail_inserts = True

    with pytest.raises(PersistenceError):
        approval_gate.check(make_request(question_count=40))


def test_malformed_input_fails_before_store_is_touched(approval_gate, pending_store):
    with pytest.raises(RiskValidationError):
        approval_gate.check(make_request(question_count="forty"))

    assert pending_store.records == {}


# ---------------------------------------------------------------------------
# Retry path
# ---------------------------------------------------------------------------

def _defer(approval_gate) -> str:
    result = approval_gate.check(make_request(question_count=30))
    assert not result.allowed
    return result.pending_request_id


def test_retry_unknown_id_is_not_found(approval_gate, pending_store):
    result = approval_gate.check(make_request(pending_request_id="missing-id"))

    assert not result.allowed
    assert result.pending_request_id == "missing-id"
    assert result.reasons == ["pending_status_not_found"]


def test_retry_by_another_user_is_not_owner(approval_gate, pending_store):
    pending_id = _defer(approval_gate)
    pending_store.set_status(pending_id, PendingStatus.APPROVED)

    result = approval_gate.check(make_request(user_id="user-2", pending_request_id=pending_id))

    assert not result.allowed
    assert result.reasons == ["pending_status_not_owner"]


@pytest.mark.parametrize(
    "status, reason",
    [
        (PendingStatus.PENDING, "pending_status_pending"),
        (PendingStatus.REJECTED, "pending_status_rejected"),
    ],
)
def test_retry_not_yet_approved(approval_gate, pending_store, status, reason):
    pending_id = _defer(approval_gate)
    pending_store.set_status(pending_id, status)

    result = approval_gate.check(make_request(question_count=30, pending_request_id=pending_id))

    assert not result.allowed
    assert result.pending_request_id == pending_id
    assert result.reasons == [reason]


def test_retry_after_approval_is_allowed(approval_gate, pending_store):
    pending_id = _defer(approval_gate)
    pending_store.set_status(pending_id, PendingStatus.APPROVED)

    result = approval_gate.check(make_request(question_count=30, pending_request_id=pending_id))

    assert result.allowed
    assert result.pending_request_id is None
    assert result.reasons == []


def test_retry_does_not_create_records_or_reassess_risk(approval_gate, pending_store):
    pending_id = _defer(approval_gate)
    pending_store.lookups = 0

    approval_gate.check(make_request(question_count=99, pending_request_id=pending_id))

    assert len(pending_store.records) == 1
    assert pending_store.lookups == 1


def test_retry_never_mutates_record(approval_gate, pending_store):
    pending_id = _defer(approval_gate)
    before = pending_store.records[pending_id]

    approval_gate.check(make_request(pending_request_id=pending_id))

    assert pending_store.records[pending_id] == before


def test_lookup_outcomes_are_tagged(approval_gate, pending_store):
    pending_id = _defer(approval_gate)

    found = approval_gate.lookup(pending_id, "user-1")
    not_owner = approval_gate.lookup(pending_id, "user-2")
    not_found = approval_gate.lookup("nope", "user-1")

    assert isinstance(found, PendingFound)
    assert found.record.status == PendingStatus.PENDING
    assert isinstance(not_owner, PendingNotOwner)
    assert isinstance(not_found, PendingNotFound)
    assert {found.kind, not_owner.kind, not_found.kind} == {"found", "not_owner", "not_found"}
