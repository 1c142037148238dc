"""
Rolling per-provider call statistics and the provider rank function.

Rank formula:
    rank = (
        0.60 * success_rate -
        0.25 * schema_invalid_rate -
        0.10 * timeout_rate -
        0.05 * latency_penalty
    )

latency_penalty is 0 at or below 2000ms p95, 1 at or above 10000ms, linear
in between. A provider with no recorded calls gets a fixed optimistic prior
(0.9) so that it is still tried. Ranks only order providers; they are not
probabilities and may go below zero.

Scores are process-local and disposable: they start from the prior on every
new process and are never persisted.
"""
import math
import time
from collections import deque
from dataclasses import dataclass, field
from threading import Lock
from typing import Callable, Deque, Dict, Iterable, Optional

from app.core.logging import get_logger
from app.core.metrics import update_provider_rank
from app.services.providers.schema import CallOutcome, OutcomeKind, ProviderSummary

logger = get_logger(__name__)

WEIGHTS = {
    "success_rate": 0.60,
    "schema_invalid_rate": 0.25,
    "timeout_rate": 0.10,
    "latency_penalty": 0.05,
}

UNUSED_PROVIDER_RANK = 0.9
DEFAULT_P95_LATENCY_MS = 1200.0
LATENCY_WINDOW_SIZE = 20
MIN_LATENCY_SAMPLES = 3
LATENCY_PENALTY_FLOOR_MS = 2000.0
LATENCY_PENALTY_SPAN_MS = 8000.0


@dataclass
class ProviderScore:
    """Mutable statistics for one provider. total_calls is the sum of the four buckets."""

    provider: str
    total_calls: int = 0
    successes: int = 0
    schema_invalids: int = 0
    timeouts: int = 0
    failures: int = 0
    p95_latency_ms: float = DEFAULT_P95_LATENCY_MS
    recent_latencies: Deque[float] = field(
        default_factory=lambda: deque(maxlen=LATENCY_WINDOW_SIZE)
    )
    last_updated: float = 0.0


def compute_latency_penalty(p95_latency_ms: float) -> float:
    penalty = (p95_latency_ms - LATENCY_PENALTY_FLOOR_MS) / LATENCY_PENALTY_SPAN_MS
    return min(1.0, max(0.0, penalty))


def compute_rank(score: ProviderScore) -> float:
    """
    Compute the relative rank of a provider.

    Args:
        score: Provider statistics

    Returns:
        UNUSED_PROVIDER_RANK for a provider with no calls, otherwise the
        weighted rank described in the module docstring.
    """
    if score.total_calls == 0:
        return UNUSED_PROVIDER_RANK

    success_rate = score.successes / score.total_calls
    schema_invalid_rate = score.schema_invalids / score.total_calls
    timeout_rate = score.timeouts / score.total_calls
    latency_penalty = compute_latency_penalty(score.p95_latency_ms)

    return (
        WEIGHTS["success_rate"] * success_rate -
        WEIGHTS["schema_invalid_rate"] * schema_invalid_rate -
        WEIGHTS["timeout_rate"] * timeout_rate -
        WEIGHTS["latency_penalty"] * latency_penalty
    )


def nearest_rank_p95(latencies: Iterable[float]) -> float:
    """95th percentile by nearest rank (no interpolation)."""
    ordered = sorted(latencies)
    index = min(math.floor(len(ordered) * 0.95), len(ordered) - 1)
    return ordered[index]


class ProviderScoreBoard:
    """
    Lock-guarded map of provider name to ProviderScore.

    Entries are created on first reference and mutated in place for the life
    of the process.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._lock = Lock()
        self._scores: Dict[str, ProviderScore] = {}

    def _get_or_create_locked(self, provider: str) -> ProviderScore:
        score = self._scores.get(provider)
        if score is None:
            score = ProviderScore(provider=provider, last_updated=self._clock())
            self._scores[provider] = score
        return score

    def get_or_create(self, provider: str) -> ProviderScore:
        """Return the live score for a provider, creating it with defaults if needed."""
        with self._lock:
            return self._get_or_create_locked(provider)

    def rank(self, provider: str) -> float:
        with self._lock:
            return compute_rank(self._get_or_create_locked(provider))

    def update_scores(self, outcome: CallOutcome) -> None:
        """
        Record one attempt outcome.

        provider_error counts as a failure, distinct from schema_invalid and
        timeout. p95 is recomputed only once the latency window holds at
        least MIN_LATENCY_SAMPLES entries.
        """
        with self._lock:
            score = self._get_or_create_locked(outcome.provider)

            score.total_calls += 1
            score.last_updated = self._clock()

            if outcome.kind == OutcomeKind.SUCCESS:
                score.successes += 1
            elif outcome.kind == OutcomeKind.SCHEMA_INVALID:
                score.schema_invalids += 1
            elif outcome.kind == OutcomeKind.TIMEOUT:
                score.timeouts += 1
            else:
                score.failures += 1

            score.recent_latencies.append(outcome.latency_ms)
            if len(score.recent_latencies) >= MIN_LATENCY_SAMPLES:
                score.p95_latency_ms = nearest_rank_p95(score.recent_latencies)

            rank = compute_rank(score)

        update_provider_rank(outcome.provider, rank)
        logger.debug(
            "provider_score_updated",
            provider=outcome.provider,
            outcome=outcome.kind.value,
            latency_ms=outcome.latency_ms,
            total_calls=score.total_calls,
            p95_latency_ms=score.p95_latency_ms,
            rank=rank,
        )

    def summary(self, providers: Iterable[str]) -> Dict[str, ProviderSummary]:
        """Telemetry view per provider; success_rate is an integer percent (100 when unused)."""
        result: Dict[str, ProviderSummary] = {}
        with self._lock:
            for provider in providers:
                score = self._get_or_create_locked(provider)
                success_rate = (
                    round(score.successes / score.total_calls * 100)
                    if score.total_calls > 0
                    else 100
                )
                result[provider] = ProviderSummary(
                    rank=round(compute_rank(score), 3),
                    total_calls=score.total_calls,
                    success_rate=success_rate,
                    p95_latency_ms=score.p95_latency_ms,
                )
        return result

    def reset(self) -> None:
        """Drop all scores; every provider falls back to the optimistic prior."""
        with self._lock:
            self._scores.clear()
        logger.info("provider_scores_reset")


_score_board: Optional[ProviderScoreBoard] = None


def get_score_board() -> ProviderScoreBoard:
    """Process-wide score board, created on first use."""
    global _score_board
    if _score_board is None:
        _score_board = ProviderScoreBoard()
    return _score_board
