"""
Adaptive multi-provider orchestration.

Responsibilities:
- Rank configured providers by observed reliability (ProviderScoreBoard)
- Resolve the model to request on each provider (ModelResolver)
- Run attempts sequentially in rank order, each provider at most once
- Record every attempt outcome, success included, so ranking adapts

NON-responsibilities:
- Does NOT decide whether a request may run (ApprovalGate does)
- Does NOT apply timeouts or cancellation; the caller owns the deadline
- Does NOT fan out in parallel

Attempt protocol:
    RANKED -> ATTEMPT(provider[i], model) -> success: DONE
                                           -> failure: record, i += 1, retry while i < count
           -> EXHAUSTED (ProvidersExhaustedError)
"""
import asyncio
import os
import time
from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar

import httpx

from app.core.logging import get_logger
from app.core.metrics import record_orchestration_exhausted, record_provider_attempt
from app.services.providers.errors import (
    ProvidersExhaustedError,
    ProviderTimeoutError,
    SchemaValidationError,
)
from app.services.providers.models import ModelResolver, get_model_resolver
from app.services.providers.schema import (
    AttemptRecord,
    CallOutcome,
    OrchestrationResult,
    OrchestratorContext,
    OutcomeKind,
)
from app.services.providers.scoreboard import ProviderScoreBoard, get_score_board

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_PROVIDERS = "gemini,openai"


def classify_exception(exc: BaseException) -> OutcomeKind:
    """Map an attempt failure to the outcome kind recorded on the score board."""
    if isinstance(exc, (ProviderTimeoutError, httpx.TimeoutException, asyncio.TimeoutError)):
        return OutcomeKind.TIMEOUT
    if isinstance(exc, SchemaValidationError):
        return OutcomeKind.SCHEMA_INVALID
    return OutcomeKind.PROVIDER_ERROR


def _distinct(providers: Sequence[str]) -> List[str]:
    seen = set()
    ordered = []
    for provider in providers:
        if provider not in seen:
            seen.add(provider)
            ordered.append(provider)
    return ordered


class ProviderOrchestrator:
    """Ranks providers, resolves models and runs the sequential fallback protocol."""

    def __init__(
        self,
        providers: Sequence[str],
        score_board: ProviderScoreBoard,
        resolver: ModelResolver,
        clock: Callable[[], float] = time.time,
    ):
        self.providers = _distinct(providers)
        if not self.providers:
            raise ValueError("At least one provider must be configured")

        unknown = [p for p in self.providers if p not in resolver.config.default_models]
        if unknown:
            raise ValueError(f"No default model configured for providers: {unknown}")

        self.score_board = score_board
        self.resolver = resolver
        self._clock = clock

    def pick_ranked_providers(
        self,
        providers: Optional[Sequence[str]] = None,
        context: Optional[OrchestratorContext] = None,
    ) -> List[str]:
        """
        Return providers best first.

        Sorting is stable, so providers with equal rank (e.g. all unused)
        keep their declared order. The result never has more entries than
        there are distinct providers.
        """
        candidates = _distinct(providers) if providers is not None else list(self.providers)
        ranks = {provider: self.score_board.rank(provider) for provider in candidates}
        ranked = sorted(candidates, key=lambda p: ranks[p], reverse=True)

        logger.debug(
            "providers_ranked",
            ranked=ranked,
            ranks=ranks,
            feature=context.feature if context else None,
            retry_count=context.retry_count if context else None,
        )
        return ranked

    def resolve_model(self, provider: str, requested_model: str) -> str:
        return self.resolver.resolve(provider, requested_model)

    def _record_attempt(
        self,
        attempts: List[AttemptRecord],
        provider: str,
        model: str,
        kind: OutcomeKind,
        latency_ms: float,
    ) -> None:
        attempts.append(
            AttemptRecord(provider=provider, model=model, kind=kind, latency_ms=latency_ms)
        )
        self.score_board.update_scores(
            CallOutcome(provider=provider, kind=kind, latency_ms=latency_ms)
        )
        record_provider_attempt(provider, kind.value, latency_ms)

    async def execute(
        self,
        requested_model: str,
        call: Callable[[str, str], Awaitable[T]],
        context: Optional[OrchestratorContext] = None,
    ) -> OrchestrationResult:
        """
        Run one logical request across providers in rank order.

        Args:
            requested_model: Model the caller asked for
            call: Async function (provider, model) -> value. Raise to fail the attempt.
            context: Optional request metadata for logging

        Returns:
            OrchestrationResult with the value and every attempt made.

        Raises:
            ProvidersExhaustedError once every provider has failed.
        """
        ranked = self.pick_ranked_providers(context=context)
        attempts: List[AttemptRecord] = []
        feature = context.feature if context else None

        for provider in ranked:
            model = self.resolve_model(provider, requested_model)
            start = self._clock()
            try:
                value = await call(provider, model)
            except Exception as exc:
                latency_ms = max(0.0, (self._clock() - start) * 1000.0)
                kind = classify_exception(exc)
                self._record_attempt(attempts, provider, model, kind, latency_ms)
                logger.warning(
                    "provider_attempt_failed",
                    provider=provider,
                    model=model,
                    outcome=kind.value,
                    attempt=len(attempts),
                    max_attempts=len(ranked),
                    latency_ms=latency_ms,
                    feature=feature,
                    error_type=type(exc).__name__,
                )
                continue

            latency_ms = max(0.0, (self._clock() - start) * 1000.0)
            self._record_attempt(attempts, provider, model, OutcomeKind.SUCCESS, latency_ms)
            logger.info(
                "provider_attempt_succeeded",
                provider=provider,
                model=model,
                attempt=len(attempts),
                latency_ms=latency_ms,
                feature=feature,
                crossover=model != requested_model,
            )
            return OrchestrationResult(
                value=value,
                provider=provider,
                model=model,
                attempts=attempts,
            )

        record_orchestration_exhausted()
        logger.error(
            "provider_orchestration_exhausted",
            attempts=[a.provider for a in attempts],
            outcomes=[a.kind.value for a in attempts],
            feature=feature,
        )
        raise ProvidersExhaustedError(attempts)


def configured_providers() -> List[str]:
    """Declared provider order from AI_PROVIDERS (comma separated)."""
    raw = os.getenv("AI_PROVIDERS", DEFAULT_PROVIDERS) or DEFAULT_PROVIDERS
    return [p.strip() for p in raw.split(",") if p.strip()]


_provider_orchestrator: Optional[ProviderOrchestrator] = None


def get_provider_orchestrator() -> ProviderOrchestrator:
    """Global singleton accessor sharing the process-wide score board."""
    global _provider_orchestrator
    if _provider_orchestrator is None:
        _provider_orchestrator = ProviderOrchestrator(
            providers=configured_providers(),
            score_board=get_score_board(),
            resolver=get_model_resolver(),
        )
    return _provider_orchestrator
