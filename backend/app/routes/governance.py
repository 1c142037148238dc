"""
Governance endpoints.

POST /governance/approval/check
POST /governance/risk/post-execution
POST /governance/generate
GET  /governance/providers/resolve

Identity fields in request bodies come from the upstream role/feature gate,
which has already run. Response bodies carry reason labels and ids only,
never the request payload.
"""
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from app.core.logging import get_logger, set_tenant_id, set_user_id
from app.services.generation import GovernedGenerationService, get_generation_service
from app.services.governance.approval import ApprovalGate, get_approval_gate
from app.services.governance.errors import PersistenceError, RiskValidationError
from app.services.governance.risk import detect_post_execution_high_risk
from app.services.governance.schema import ApprovalGateRequest, HighRiskCheck
from app.services.providers.errors import ProvidersExhaustedError
from app.services.providers.orchestrator import ProviderOrchestrator, get_provider_orchestrator

logger = get_logger(__name__)

router = APIRouter()


class PostExecutionRiskRequest(BaseModel):
    batch_decision: str = Field(..., description="Overall decision of the batch quality pass")


class GenerateRequest(BaseModel):
    gate: ApprovalGateRequest
    requested_model: str
    messages: List[Dict[str, str]] = Field(..., min_length=1)


def _deferred_response(content: Dict[str, Any]) -> JSONResponse:
    # 202: accepted for review, caller must resend pending_request_id later
    return JSONResponse(status_code=202, content=content)


@router.post("/approval/check")
async def check_approval(
    request: ApprovalGateRequest,
    gate: ApprovalGate = Depends(get_approval_gate),
):
    """
    Admission-control decision for one AI generation request.

    200 when allowed, 202 when deferred or still awaiting approval,
    422 for malformed risk inputs, 503 when the pending store is unavailable.
    """
    set_user_id(request.user_id)
    set_tenant_id(request.tenant_id)

    try:
        decision = gate.check(request)
    except RiskValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except PersistenceError as exc:
        raise HTTPException(status_code=503, detail=str(exc))

    content = decision.model_dump()
    if not decision.allowed:
        return _deferred_response(content)
    return content


@router.post("/risk/post-execution", response_model=HighRiskCheck)
async def check_post_execution_risk(request: PostExecutionRiskRequest):
    """Flag a batch whose quality pass asked for a full regeneration."""
    return detect_post_execution_high_risk(request.batch_decision)


@router.post("/generate")
async def generate(
    request: GenerateRequest,
    service: GovernedGenerationService = Depends(get_generation_service),
):
    """Gate, then generate JSON output through the ranked providers."""
    set_user_id(request.gate.user_id)
    set_tenant_id(request.gate.tenant_id)

    try:
        outcome = await service.generate(
            request.gate,
            requested_model=request.requested_model,
            messages=request.messages,
        )
    except RiskValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except PersistenceError as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    except ProvidersExhaustedError as exc:
        raise HTTPException(status_code=502, detail=str(exc))

    if outcome.result is None:
        return _deferred_response(outcome.gate.model_dump())

    return {
        "allowed": True,
        "reasons": outcome.risk_reasons,
        "provider": outcome.result.provider,
        "model": outcome.result.model,
        "attempts": [a.model_dump() for a in outcome.result.attempts],
        "output": outcome.result.value,
    }


@router.get("/providers/resolve")
async def resolve_model(
    provider: str = Query(..., description="Target provider"),
    model: str = Query(..., description="Requested model"),
    orchestrator: ProviderOrchestrator = Depends(get_provider_orchestrator),
):
    """Model that would be requested from `provider` for a request that asked for `model`."""
    if provider not in orchestrator.providers:
        raise HTTPException(status_code=400, detail=f"Unknown provider: {provider}")

    return {
        "provider": provider,
        "requested_model": model,
        "resolved_model": orchestrator.resolve_model(provider, model),
        "crossover_version": orchestrator.resolver.version,
    }
