"""Pytest fixtures for alertswarm tests."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Sequence
from unittest.mock import AsyncMock, MagicMock

import pytest

from alertswarm.agents.base import SpecialistAgent
from alertswarm.models import AgentResult, AgentStatus, Alert, SimilarAlert, TaskType
from alertswarm.models.tasks import CheckHashParams, CheckIpParams, CheckUserParams, QueryLogsParams
from alertswarm.persistence.models import CaseRecord, DirectoryUser, LoginRecord, UserSession
from alertswarm.planner import TaskPlanner

PARAMS_BY_TYPE = {
    TaskType.CHECK_IP: CheckIpParams,
    TaskType.QUERY_LOGS: QueryLogsParams,
    TaskType.CHECK_HASH: CheckHashParams,
    TaskType.CHECK_USER: CheckUserParams,
}


class FakeRelationalStore:
    """In-memory RelationalStore."""

    def __init__(self) -> None:
        self.analyses: dict[str, dict[str, Any]] = {}
        self.case_references: list[str] = []
        self.cases: list[CaseRecord] = []
        self.users: list[DirectoryUser] = []
        self.sessions: list[UserSession] = []
        self.logins: list[LoginRecord] = []
        self.fail_reads = False
        self.fail_updates = False
        self.updates: list[tuple[str, dict[str, Any]]] = []
        self.reference_calls: list[dict[str, Any]] = []

    async def get_alert_analysis(self, alert_id: str) -> dict[str, Any]:
        if self.fail_reads:
            raise RuntimeError("database unavailable")
        return dict(self.analyses.get(alert_id, {}))

    async def update_alert_analysis(self, alert_id: str, analysis: dict[str, Any]) -> None:
        self.updates.append((alert_id, dict(analysis)))
        if self.fail_updates:
            raise RuntimeError("database unavailable")
        self.analyses[alert_id] = dict(analysis)

    async def find_case_references(
        self,
        tenant_id: Optional[str],
        values: Sequence[str],
        *,
        exclude_alert_id: Optional[str] = None,
        limit: int = 10,
    ) -> list[str]:
        self.reference_calls.append({
            "tenant_id": tenant_id,
            "values": list(values),
            "exclude_alert_id": exclude_alert_id,
            "limit": limit,
        })
        return self.case_references[:limit]

    async def get_resolved_cases(self, case_ids: Sequence[str], *, limit: int = 3) -> list[CaseRecord]:
        return [c for c in self.cases if c.id in case_ids and c.status == "resolved"][:limit]

    async def find_user(self, username: str) -> Optional[DirectoryUser]:
        for user in self.users:
            if username in (user.username, user.email):
                return user
        return None

    async def get_active_sessions(self, user_id: str) -> list[UserSession]:
        return [s for s in self.sessions if s.user_id == user_id and s.is_valid]

    async def get_login_history(self, user_id: str, since: datetime) -> list[LoginRecord]:
        return [r for r in self.logins if r.user_id == user_id and r.timestamp >= since]


class FakeSimilaritySearch:
    """In-memory SimilaritySearch; newly indexed alerts rank first."""

    def __init__(self, matches: Optional[list[SimilarAlert]] = None, error: Optional[Exception] = None):
        self.matches = matches or []
        self.error = error
        self.index_error: Optional[Exception] = None
        self.queries: list[tuple[Optional[str], str, int]] = []

    async def search_similar(self, tenant_id: Optional[str], query_text: str, k: int) -> list[SimilarAlert]:
        self.queries.append((tenant_id, query_text, k))
        if self.error:
            raise self.error
        return self.matches[:k]

    async def index_alert(
        self,
        alert_id: str,
        tenant_id: Optional[str],
        title: str,
        description: str,
        *,
        status: str = "resolved",
        resolution: Optional[str] = None,
        tags: Optional[list[str]] = None,
        created_at: Optional[datetime] = None,
    ) -> None:
        if self.index_error:
            raise self.index_error
        self.matches = [m for m in self.matches if m.id != alert_id]
        self.matches.insert(0, SimilarAlert(
            id=alert_id,
            title=title,
            description=description,
            status=status,
            resolution=resolution,
            tags=list(tags or []),
            created_at=created_at,
        ))


class StubAgent(SpecialistAgent):
    """Agent whose handler behaviour is supplied by the test.

    ``behaviour`` maps a task type to either an exception to raise, an
    awaitable factory, or None for a plain success.
    """

    def __init__(self, name: str, kinds: Sequence[TaskType], behaviour: Optional[dict[TaskType, Any]] = None):
        self.name = name
        self._kinds = list(kinds)
        self.behaviour = behaviour or {}
        self.calls: list[tuple[TaskType, Any]] = []
        super().__init__()

    def handlers(self):
        return {kind: (PARAMS_BY_TYPE[kind], self._make_handler(kind)) for kind in self._kinds}

    def _make_handler(self, kind: TaskType):
        async def handler(params: Any) -> AgentResult:
            self.calls.append((kind, params))
            action = self.behaviour.get(kind)
            if isinstance(action, Exception):
                raise action
            if callable(action):
                return await action(params)
            return AgentResult(
                agent=self.name,
                status=AgentStatus.SUCCESS,
                data=params.model_dump(),
                summary=f"{kind.value} ok",
            )

        return handler


@pytest.fixture
def store() -> FakeRelationalStore:
    """Create an in-memory relational store."""
    return FakeRelationalStore()


@pytest.fixture
def similarity() -> FakeSimilaritySearch:
    """Create a similarity search with no matches."""
    return FakeSimilaritySearch()


@pytest.fixture
def planner() -> MagicMock:
    """Create a planner mock that proposes nothing."""
    mock = MagicMock(spec=TaskPlanner)
    mock.plan_initial = AsyncMock(return_value=[])
    mock.plan_followup = AsyncMock(return_value=[])
    mock.synthesize_report = AsyncMock(return_value="Final report")
    return mock


@pytest.fixture
def notifier() -> AsyncMock:
    """Create a status notifier mock."""
    mock = AsyncMock()
    mock.notify = AsyncMock()
    return mock


@pytest.fixture
def sample_alert() -> Alert:
    """Create a sample alert with an IP observable only."""
    return Alert.model_validate({
        "id": "alert-1",
        "tenantId": "tenant-1",
        "title": "Suspicious outbound connection",
        "description": "Host contacted a rare external address",
        "severity": "high",
        "observables": [{"type": "ip", "value": "198.51.100.66"}],
        "rawData": {},
    })
