"""
Approval gate: admission control for high-risk AI generation requests.

Fresh requests are classified by the risk assessor:
- not high-risk            -> allowed, nothing stored
- high-risk, admin caller  -> allowed, reasons returned so the bypass is auditable
- high-risk, other roles   -> a pending request is stored and the caller is deferred

A retry carries the pending request id back. It is allowed only once the
record exists, belongs to the caller and has been approved out of band.

The gate makes one store round trip per call and never fails open: if the
pending record cannot be written, PersistenceError propagates.
"""
import json
from typing import Any, Dict, Optional

from app.core.logging import get_logger
from app.core.metrics import record_approval_decision, record_pending_request_created
from app.services.governance.risk import detect_high_risk, is_admin_role
from app.services.governance.schema import (
    ApprovalGateRequest,
    ApprovalGateResult,
    PendingFound,
    PendingLookup,
    PendingNotFound,
    PendingNotOwner,
    PendingRequest,
    PendingStatus,
)
from app.services.governance.store import PendingRequestStore, SupabasePendingRequestStore

logger = get_logger(__name__)

_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_DIGITS[remainder])
    return "".join(reversed(digits))


def hash_payload(payload: Dict[str, Any]) -> str:
    """
    Key-order-invariant 32-bit hash of a request payload, in base 36.

    Used for advisory deduplication only. It is neither collision-free nor
    cryptographic and must not back any security decision. Canonical JSON
    follows Python's json module (1.0 stays "1.0", NaN is written as NaN), so
    hashes are stable within this service but not portable to other encoders.
    """
    canonical = json.dumps(
        payload,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )
    # surrogatepass keeps lone surrogates as their own code units
    encoded = canonical.encode("utf-16-le", "surrogatepass")

    value = 0
    for i in range(0, len(encoded), 2):
        code_unit = encoded[i] | (encoded[i + 1] << 8)
        value = (value * 31 + code_unit) & 0xFFFFFFFF

    # Reinterpret as signed 32-bit
    if value >= 0x80000000:
        value -= 0x100000000

    return _to_base36(abs(value))


class ApprovalGate:
    """Allow/defer decisions backed by a durable pending request store."""

    def __init__(self, store: PendingRequestStore):
        self.store = store

    def lookup(self, pending_request_id: str, user_id: str) -> PendingLookup:
        """Resolve a pending request id into found / not_found / not_owner for this user."""
        record = self.store.get_by_id(pending_request_id)
        if record is None:
            return PendingNotFound()
        if record.user_id != user_id:
            return PendingNotOwner()
        return PendingFound(record=record)

    def check(self, request: ApprovalGateRequest) -> ApprovalGateResult:
        """
        Decide whether a request may proceed now.

        Raises:
            RiskValidationError if risk inputs are malformed (nothing is stored).
            PersistenceError if the store cannot record or look up a request.
        """
        if request.pending_request_id:
            return self._check_retry(request)
        return self._check_fresh(request)

    def _check_retry(self, request: ApprovalGateRequest) -> ApprovalGateResult:
        pending_request_id = request.pending_request_id
        lookup = self.lookup(pending_request_id, request.user_id)

        if isinstance(lookup, PendingFound) and lookup.record.status == PendingStatus.APPROVED:
            record_approval_decision("retry", "allowed")
            logger.info(
                "approval_gate_pending_approved",
                pending_request_id=pending_request_id,
                feature=request.feature,
            )
            return ApprovalGateResult(allowed=True, pending_request_id=None, reasons=[])

        if isinstance(lookup, PendingFound):
            status = lookup.record.status.value
        else:
            status = lookup.kind

        record_approval_decision("retry", "blocked")
        logger.info(
            "approval_gate_pending_not_allowed",
            pending_request_id=pending_request_id,
            feature=request.feature,
            status=status,
        )
        return ApprovalGateResult(
            allowed=False,
            pending_request_id=pending_request_id,
            reasons=[f"pending_status_{status}"],
        )

    def _check_fresh(self, request: ApprovalGateRequest) -> ApprovalGateResult:
        risk = detect_high_risk(
            question_count=request.question_count,
            enable_critic_pass=request.enable_critic_pass,
            context_trim_percent=request.context_trim_percent,
        )

        if not risk.is_high_risk:
            record_approval_decision("fresh", "allowed")
            return ApprovalGateResult(allowed=True, pending_request_id=None, reasons=[])

        if is_admin_role(request.user_role):
            record_approval_decision("fresh", "admin_bypass")
            logger.info(
                "approval_gate_admin_bypass",
                feature=request.feature,
                user_role=request.user_role,
                reasons=risk.reasons,
            )
            return ApprovalGateResult(
                allowed=True,
                pending_request_id=None,
                reasons=risk.reasons,
            )

        payload_hash = hash_payload(request.request_payload)
        record = PendingRequest(
            tenant_id=request.tenant_id,
            user_id=request.user_id,
            feature=request.feature,
            payload_hash=payload_hash,
            payload=request.request_payload,
            risk_reasons=risk.reasons,
            status=PendingStatus.PENDING,
        )
        pending_id = self.store.insert(record)

        record_pending_request_created(request.feature)
        record_approval_decision("fresh", "deferred")
        logger.info(
            "approval_gate_deferred",
            pending_request_id=pending_id,
            feature=request.feature,
            payload_hash=payload_hash,
            reasons=risk.reasons,
        )

        return ApprovalGateResult(
            allowed=False,
            pending_request_id=pending_id,
            reasons=risk.reasons,
        )


_approval_gate: Optional[ApprovalGate] = None


def get_approval_gate() -> ApprovalGate:
    """Global singleton accessor backed by the Supabase store."""
    global _approval_gate
    if _approval_gate is None:
        _approval_gate = ApprovalGate(store=SupabasePendingRequestStore())
    return _approval_gate
