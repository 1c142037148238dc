"""
Pydantic models for the admission-control gate.

PendingStatus holds only the values that are persisted. Lookup outcomes that
are synthesized on the retry path (not_found, not_owner) live in the
PendingLookup union and never share a field with the persisted status.
"""
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field


class PendingStatus(str, Enum):
    """Persisted status of a pending request."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class HighRiskCheck(BaseModel):
    """Result of a risk assessment. Reasons keep rule order."""

    is_high_risk: bool
    reasons: List[str] = Field(default_factory=list)


class PendingRequest(BaseModel):
    """
    Durable record of a deferred high-risk request.

    `id` is assigned by the store on insert. Only the external approval
    action advances `status`; this service reads records but never updates them.
    """

    id: Optional[str] = None
    tenant_id: str
    user_id: str
    feature: str
    payload_hash: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    risk_reasons: List[str] = Field(default_factory=list)
    status: PendingStatus = PendingStatus.PENDING


class PendingFound(BaseModel):
    kind: Literal["found"] = "found"
    record: PendingRequest


class PendingNotFound(BaseModel):
    kind: Literal["not_found"] = "not_found"


class PendingNotOwner(BaseModel):
    kind: Literal["not_owner"] = "not_owner"


PendingLookup = Annotated[
    Union[PendingFound, PendingNotFound, PendingNotOwner],
    Field(discriminator="kind"),
]


class ApprovalGateRequest(BaseModel):
    """
    Input to ApprovalGate.check.

    Risk inputs are typed loosely on purpose so that the risk assessor, not
    pydantic coercion, decides what is malformed (e.g. "30" is rejected
    rather than silently converted).
    """

    tenant_id: str
    user_id: str
    user_role: str
    feature: str
    question_count: Any
    enable_critic_pass: Any = False
    context_trim_percent: Any = None
    pending_request_id: Optional[str] = None
    request_payload: Dict[str, Any] = Field(default_factory=dict)


class ApprovalGateResult(BaseModel):
    """Gate decision. A non-null pending_request_id with allowed=False means deferred."""

    allowed: bool
    pending_request_id: Optional[str] = None
    reasons: List[str] = Field(default_factory=list)
