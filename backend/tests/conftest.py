"""
Shared fixtures: an in-memory pending request store, a controllable clock,
and orchestration components wired the same way the app wires them.
"""
import uuid
from typing import Dict, Optional

import pytest

from app.services.governance.approval import ApprovalGate
from app.services.governance.errors import PersistenceError
from app.services.governance.schema import PendingRequest, PendingStatus
from app.services.providers.models import ModelResolver, load_crossover_config
from app.services.providers.orchestrator import ProviderOrchestrator
from app.services.providers.scoreboard import ProviderScoreBoard


class InMemoryPendingRequestStore:
    """Stand-in for the Supabase table. set_status plays the external approval action."""

    def __init__(self):
        self.records: Dict[str, PendingRequest] = {}
        self.lookups = 0
        self.fail_inserts = False

    def insert(self, record: PendingRequest) -> str:
        if self.fail_inserts:
            raise PersistenceError("insert", "Failed to create pending approval request")
        pending_id = str(uuid.uuid4())
        self.records[pending_id] = record.model_copy(update={"id": pending_id})
        return pending_id

    def get_by_id(self, pending_request_id: str) -> Optional[PendingRequest]:
        self.lookups += 1
        return self.records.get(pending_request_id)

    def set_status(self, pending_request_id: str, status: PendingStatus) -> None:
        record = self.records[pending_request_id]
        self.records[pending_request_id] = record.model_copy(update={"status": status})


class FakeClock:
    """Deterministic replacement for time.time."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def pending_store():
    return InMemoryPendingRequestStore()


@pytest.fixture
def approval_gate(pending_store):
    return ApprovalGate(store=pending_store)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def score_board(fake_clock):
    return ProviderScoreBoard(clock=fake_clock)


@pytest.fixture
def resolver():
    return ModelResolver(load_crossover_config())


@pytest.fixture
def orchestrator(score_board, resolver, fake_clock):
    return ProviderOrchestrator(
        providers=["gemini", "openai"],
        score_board=score_board,
        resolver=resolver,
        clock=fake_clock,
    )
