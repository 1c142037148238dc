"""
Pydantic models for provider orchestration.
"""
from enum import Enum
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field


class OutcomeKind(str, Enum):
    """Result of one provider attempt."""

    SUCCESS = "success"
    SCHEMA_INVALID = "schema_invalid"
    TIMEOUT = "timeout"
    PROVIDER_ERROR = "provider_error"


class CallOutcome(BaseModel):
    """Input that advances a provider's score."""

    provider: str
    kind: OutcomeKind
    latency_ms: float = Field(..., ge=0.0)


class OrchestratorContext(BaseModel):
    """
    Request metadata carried into log events.

    Ranking does not depend on it.
    """

    feature: str
    purpose: Literal["survey", "wellness"] = "survey"
    strict_mode: bool = False
    tenant_id: Optional[str] = None
    retry_count: int = 0


class AttemptRecord(BaseModel):
    provider: str
    model: str
    kind: OutcomeKind
    latency_ms: float


class OrchestrationResult(BaseModel):
    """Successful run of the attempt protocol."""

    value: Any = None
    provider: str
    model: str
    attempts: List[AttemptRecord] = Field(default_factory=list)


class ProviderSummary(BaseModel):
    """Telemetry view of one provider's score. Contains no prompt content."""

    rank: float
    total_calls: int
    success_rate: int
    p95_latency_ms: float
