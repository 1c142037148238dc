"""
Multi-provider orchestration for AI generation backends.

Ranks providers by observed reliability, fails over between them one at a
time, and swaps in an equivalent model when crossing providers.
"""

from .errors import ProvidersExhaustedError, ProviderCallError, ProviderTimeoutError, SchemaValidationError
from .models import ModelResolver, get_model_resolver
from .orchestrator import ProviderOrchestrator, get_provider_orchestrator
from .schema import CallOutcome, OrchestrationResult, OrchestratorContext, OutcomeKind
from .scoreboard import ProviderScore, ProviderScoreBoard, compute_rank, get_score_board

__all__ = [
    "ProvidersExhaustedError",
    "ProviderCallError",
    "ProviderTimeoutError",
    "SchemaValidationError",
    "ModelResolver",
    "get_model_resolver",
    "ProviderOrchestrator",
    "get_provider_orchestrator",
    "CallOutcome",
    "OrchestrationResult",
    "OrchestratorContext",
    "OutcomeKind",
    "ProviderScore",
    "ProviderScoreBoard",
    "compute_rank",
    "get_score_board",
]
