"""Shared fakes for portal collaborators."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

import pytest

import portalflow.persistence as persistence
from portalflow.contracts import Prospect
from portalflow.gateway import PortalActionHandlers
from portalflow.gateway.base import ActionGateway
from portalflow.integrations.apollo import RevealField, SearchCriteria
from portalflow.integrations.mattermost import NotificationResult, WebhookEvent
from portalflow.integrations.signature import SignatureService
from portalflow.integrations.textgen import (
    AffiliateRecommendation,
    AffiliateRecommendations,
    GenerationTask,
    ResearchReport,
    Slide,
    SlideDeck,
)
from portalflow.persistence import InMemoryPortalRepository

TEST_SIGNING_SECRET = "portalflow-test-signing-secret-0123456789"


class FakeTextGenerator:
    def __init__(self) -> None:
        self.calls: List[tuple] = []

    async def enhance(self, text: str, context: Optional[Mapping[str, Any]] = None) -> str:
        self.calls.append(("enhance", text))
        return f"Enhanced: {text.strip()}"

    async def generate(self, task: GenerationTask, context: Mapping[str, Any]):
        self.calls.append((task, dict(context)))
        if task is GenerationTask.DEEP_RESEARCH:
            return ResearchReport(
                company_overview=f"{context.get('supplier_name')} machines precision parts",
                capabilities=["CNC machining"],
                gaps=["IATF 16949"],
            )
        if task is GenerationTask.RECOMMEND_AFFILIATES:
            return AffiliateRecommendations(
                recommendations=[
                    AffiliateRecommendation(name="Quality Partner", expertise="IATF 16949", reason="Closes the certification gap")
                ]
            )
        return SlideDeck(title="Readiness", slides=[Slide(title="Summary", bullets=["Ready in Q3"])])


class FakeProspectSearch:
    def __init__(self, prospects: Optional[List[Prospect]] = None, reveals: Optional[Dict[str, str]] = None):
        self.prospects = prospects if prospects is not None else [
            Prospect(id="p1", name="Ada Lovelace", first_name="Ada", last_name="Lovelace", title="CTO", company="Engines Inc"),
            Prospect(id="p2", name="Grace Hopper", first_name="Grace", last_name="Hopper", title="CTO", company="Compilers LLC"),
        ]
        self.reveals = reveals or {}
        self.searches: List[SearchCriteria] = []
        self.reveal_calls: List[tuple] = []
        self.fail_with: Optional[Exception] = None

    async def search(self, criteria: SearchCriteria, page: int = 1) -> List[Prospect]:
        self.searches.append(criteria)
        if self.fail_with is not None:
            raise self.fail_with
        return list(self.prospects)

    async def reveal(self, prospect: Prospect, field: RevealField) -> Optional[str]:
        self.reveal_calls.append((prospect.id, RevealField(field)))
        return self.reveals.get(f"{prospect.id}:{RevealField(field).value}")


class RecordingNotifier:
    def __init__(self, success: bool = True) -> None:
        self.success = success
        self.sent: List[tuple] = []

    async def send(self, event, data) -> NotificationResult:
        self.sent.append((WebhookEvent(event), dict(data)))
        if self.success:
            return NotificationResult(success=True)
        return NotificationResult(success=False, error="HTTP 500: boom")


@pytest.fixture(autouse=True)
def _reset_repository_singleton(monkeypatch):
    monkeypatch.delenv("PORTALFLOW_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.setattr(persistence, "_repository_instance", None)
    monkeypatch.setattr(persistence, "_repository_url", None)
    yield


@pytest.fixture
def repository() -> InMemoryPortalRepository:
    return InMemoryPortalRepository()


@pytest.fixture
def signatures() -> SignatureService:
    return SignatureService(secret=TEST_SIGNING_SECRET, base_url="https://portal.test")


@pytest.fixture
def text_generator() -> FakeTextGenerator:
    return FakeTextGenerator()


@pytest.fixture
def prospects() -> FakeProspectSearch:
    return FakeProspectSearch()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def handlers(repository, signatures, text_generator, prospects, notifier) -> PortalActionHandlers:
    return PortalActionHandlers(
        repository=repository,
        signatures=signatures,
        notifier=notifier,
        text_generator=text_generator,
        prospects=prospects,
    )


@pytest.fixture
def gateway(handlers) -> ActionGateway:
    return handlers.register_all(ActionGateway())
