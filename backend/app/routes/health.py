"""
Health check endpoints.
"""
from fastapi import APIRouter, Depends

from app.core.logging import get_logger
from app.services.providers.orchestrator import ProviderOrchestrator, get_provider_orchestrator

logger = get_logger(__name__)
router = APIRouter()


@router.get("/")
async def health_check():
    """
    Basic health check endpoint.
    """
    return {
        "status": "ok",
        "message": "API is running"
    }


@router.get("/providers")
async def provider_health(
    orchestrator: ProviderOrchestrator = Depends(get_provider_orchestrator),
):
    """
    Current provider ranking for this process.

    Returns:
        - ranked: providers in the order the next request would try them
        - scores: rank, total_calls, success_rate (percent) and p95 per provider
        - crossover_version: version of the model crossover table in use

    Scores restart from defaults whenever the process restarts.
    """
    ranked = orchestrator.pick_ranked_providers()
    summary = orchestrator.score_board.summary(orchestrator.providers)

    return {
        "status": "ok",
        "ranked": ranked,
        "scores": {provider: s.model_dump() for provider, s in summary.items()},
        "crossover_version": orchestrator.resolver.version,
    }
