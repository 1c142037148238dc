"""
Governed generation: admission control followed by provider orchestration.

Per logical request:
    ApprovalGate.check -> (allowed) ProviderOrchestrator.execute
                       -> (deferred / blocked) return the gate decision

Prompt construction is the caller's concern; this service receives ready
chat messages and never logs them.
"""
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, Field

from app.core.logging import get_logger
from app.services.governance.approval import ApprovalGate, get_approval_gate
from app.services.governance.schema import ApprovalGateRequest, ApprovalGateResult
from app.services.providers.llm_client import GatewayClient, get_gateway_client
from app.services.providers.orchestrator import ProviderOrchestrator, get_provider_orchestrator
from app.services.providers.schema import OrchestrationResult, OrchestratorContext

logger = get_logger(__name__)


class GenerationOutcome(BaseModel):
    """Either a gate decision that stopped the request, or a completed generation."""

    gate: ApprovalGateResult
    result: Optional[OrchestrationResult] = None
    risk_reasons: List[str] = Field(default_factory=list)

    @property
    def deferred(self) -> bool:
        return not self.gate.allowed and self.gate.pending_request_id is not None


class GovernedGenerationService:
    """Runs the approval gate, then the sequential provider fallback."""

    def __init__(
        self,
        gate: ApprovalGate,
        orchestrator: ProviderOrchestrator,
        client: GatewayClient,
    ):
        self.gate = gate
        self.orchestrator = orchestrator
        self.client = client

    async def generate(
        self,
        request: ApprovalGateRequest,
        requested_model: str,
        messages: List[Dict[str, str]],
        validator: Optional[Callable[[Any], Any]] = None,
        context: Optional[OrchestratorContext] = None,
    ) -> GenerationOutcome:
        """
        Generate JSON output for an admitted request.

        Raises:
            RiskValidationError / PersistenceError from the gate.
            ProvidersExhaustedError when every provider fails.
        """
        decision = self.gate.check(request)
        if not decision.allowed:
            logger.info(
                "generation_not_admitted",
                feature=request.feature,
                pending_request_id=decision.pending_request_id,
                reasons=decision.reasons,
            )
            return GenerationOutcome(gate=decision, risk_reasons=decision.reasons)

        if context is None:
            context = OrchestratorContext(feature=request.feature, tenant_id=request.tenant_id)

        async def call(provider: str, model: str) -> Any:
            return await self.client.generate_json(
                provider,
                model,
                messages,
                validator=validator,
                response_format={"type": "json_object"},
            )

        result = await self.orchestrator.execute(requested_model, call, context=context)
        return GenerationOutcome(gate=decision, result=result, risk_reasons=decision.reasons)


_generation_service: Optional[GovernedGenerationService] = None


def get_generation_service() -> GovernedGenerationService:
    """Global singleton accessor."""
    global _generation_service
    if _generation_service is None:
        _generation_service = GovernedGenerationService(
            gate=get_approval_gate(),
            orchestrator=get_provider_orchestrator(),
            client=get_gateway_client(),
        )
    return _generation_service
