"""
Admission control for AI generation requests.

Classifies requests by risk, defers high-risk requests from non-admin callers
into a durable pending store, and admits approved retries.
"""

from .approval import ApprovalGate, get_approval_gate, hash_payload
from .errors import GovernanceError, PersistenceError, RiskValidationError
from .risk import detect_high_risk, detect_post_execution_high_risk, is_admin_role
from .schema import ApprovalGateRequest, ApprovalGateResult, HighRiskCheck, PendingRequest, PendingStatus

__all__ = [
    "ApprovalGate",
    "get_approval_gate",
    "hash_payload",
    "GovernanceError",
    "PersistenceError",
    "RiskValidationError",
    "detect_high_risk",
    "detect_post_execution_high_risk",
    "is_admin_role",
    "ApprovalGateRequest",
    "ApprovalGateResult",
    "HighRiskCheck",
    "PendingRequest",
    "PendingStatus",
]
