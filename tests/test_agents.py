"""Tests for the specialist agents."""

from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from alertswarm.agents import FileAgent, NetworkAgent, UserAgent, calculate_user_risk
from alertswarm.enrichment import (
    AbuseIPDBClient,
    AlienVaultOTXClient,
    EnrichmentClients,
    VirusTotalClient,
)
from alertswarm.exceptions import RateLimitExceeded
from alertswarm.models import AgentStatus, AgentTask, TaskType
from alertswarm.persistence.models import DirectoryUser, LoginRecord, UserSession

from conftest import FakeRelationalStore, StubAgent

NOW = datetime(2024, 6, 1, 12, 0, 0)


@pytest.fixture
def clients() -> EnrichmentClients:
    """Enrichment clients in mock mode."""
    return EnrichmentClients(
        virustotal=VirusTotalClient(capacity=4, window_seconds=60),
        abuseipdb=AbuseIPDBClient(capacity=1000, window_seconds=86400),
        alienvault=AlienVaultOTXClient(capacity=100, window_seconds=60),
    )


@pytest.fixture
def analytics() -> AsyncMock:
    mock = AsyncMock()
    mock.query_events = AsyncMock(return_value=[])
    return mock


class TestSpecialistAgentBase:
    """Routing and error conversion shared by all agents."""

    async def test_unknown_task_type(self):
        agent = StubAgent("Stub", [TaskType.CHECK_IP])

        result = await agent.process(AgentTask(type="scan_moon", params={}))

        assert result.status == AgentStatus.FAILED
        assert "Unknown task type: scan_moon" in result.error

    async def test_known_type_not_handled_by_this_agent(self):
        agent = StubAgent("Stub", [TaskType.CHECK_IP])

        result = await agent.process(AgentTask(type="check_hash", params={"hash": "abc"}))

        assert result.status == AgentStatus.FAILED
        assert result.agent == "Stub"

    async def test_invalid_params(self):
        agent = StubAgent("Stub", [TaskType.QUERY_LOGS])

        result = await agent.process(AgentTask(type="query_logs", params={"hours": 5}))

        assert result.status == AgentStatus.FAILED
        assert "Invalid parameters for query_logs" in result.error
        assert "ip" in result.error

    async def test_handler_exception_becomes_failed_result(self):
        agent = StubAgent("Stub", [TaskType.CHECK_IP], {TaskType.CHECK_IP: RuntimeError("boom")})

        result = await agent.process(AgentTask(type="check_ip", params={"ip": "1.2.3.4"}))

        assert result.status == AgentStatus.FAILED
        assert result.error == "boom"
        assert result.summary == "Stub analysis failed: boom"


class TestNetworkAgent:
    """Tests for NetworkAgent."""

    async def test_check_ip_flags_malicious(self, clients, analytics):
        agent = NetworkAgent(clients, analytics)

        result = await agent.process(AgentTask(type="check_ip", params={"ip": "198.51.100.66"}))

        assert result.status == AgentStatus.SUCCESS
        assert result.data["malicious"] is True
        assert [r["source"] for r in result.data["results"]] == ["VirusTotal", "AbuseIPDB", "AlienVault"]
        assert "FLAGGED" in result.summary

    async def test_check_ip_clean(self, clients, analytics):
        agent = NetworkAgent(clients, analytics)

        result = await agent.process(AgentTask(type="check_ip", params={"ip": "192.0.2.10"}))

        assert result.data["malicious"] is False
        assert "appears clean" in result.summary

    async def test_one_provider_failure_keeps_the_others(self, clients, analytics):
        clients.virustotal.enrich_ip = AsyncMock(side_effect=RateLimitExceeded("VirusTotal", 4, 60))
        agent = NetworkAgent(clients, analytics)

        result = await agent.process(AgentTask(type="check_ip", params={"ip": "44.9.9.9"}))

        assert result.status == AgentStatus.SUCCESS
        by_source = {r["source"]: r for r in result.data["results"]}
        assert "Rate limit exceeded" in by_source["VirusTotal"]["error"]
        assert by_source["AbuseIPDB"]["data"]["abuse_confidence_score"] == 85
        assert result.data["malicious"] is True
        assert "1 of 3 lookups failed" in result.summary

    async def test_query_logs(self, clients, analytics):
        analytics.query_events.return_value = [{"event_type": "conn"}, {"event_type": "dns"}]
        agent = NetworkAgent(clients, analytics, log_limit=20)

        result = await agent.process(AgentTask(type="query_logs", params={"ip": "1.2.3.4", "hours": 6}))

        analytics.query_events.assert_awaited_once_with("1.2.3.4", 6, 20)
        assert result.data["hits"] == 2
        assert result.summary == "Found 2 network events involving 1.2.3.4."

    async def test_query_logs_default_window(self, clients, analytics):
        agent = NetworkAgent(clients, analytics)

        result = await agent.process(AgentTask(type="query_logs", params={"ip": "1.2.3.4"}))

        analytics.query_events.assert_awaited_once_with("1.2.3.4", 24, 20)
        assert "No network activity found for 1.2.3.4 in the last 24h." == result.summary

    async def test_query_logs_store_failure(self, clients, analytics):
        analytics.query_events.side_effect = ConnectionError("analytics offline")
        agent = NetworkAgent(clients, analytics)

        result = await agent.process(AgentTask(type="query_logs", params={"ip": "1.2.3.4"}))

        assert result.status == AgentStatus.FAILED
        assert result.summary == "Log query failed for 1.2.3.4"


class TestFileAgent:
    """Tests for FileAgent."""

    async def test_malicious_hash(self, clients):
        agent = FileAgent(clients.virustotal)

        result = await agent.process(AgentTask(type="check_hash", params={"hash": "evil-sample"}))

        assert result.status == AgentStatus.SUCCESS
        assert result.data["malicious"] is True
        assert "MALICIOUS" in result.summary

    async def test_clean_hash(self, clients):
        agent = FileAgent(clients.virustotal)

        result = await agent.process(AgentTask(type="check_hash", params={"hash": "0123abcd"}))

        assert result.data["malicious"] is False
        assert result.summary == "File hash appears safe (0/70)."

    async def test_lookup_failure(self, clients):
        clients.virustotal.enrich_hash = AsyncMock(side_effect=RateLimitExceeded("VirusTotal", 4, 60))
        agent = FileAgent(clients.virustotal)

        result = await agent.process(AgentTask(type="check_hash", params={"hash": "abc"}))

        assert result.status == AgentStatus.FAILED
        assert result.summary == "Hash lookup failed for abc"


def _user(**overrides) -> DirectoryUser:
    fields = {"id": "u-1", "username": "jdoe", "email": "jdoe@corp.example", "role": "user", "department": "Sales"}
    fields.update(overrides)
    return DirectoryUser(**fields)


def _login(hour: int, country: str = "US", days_ago: int = 1) -> LoginRecord:
    ts = (NOW - timedelta(days=days_ago)).replace(hour=hour)
    return LoginRecord(user_id="u-1", country=country, timestamp=ts)


def _session(n: int) -> UserSession:
    return UserSession(id=f"s-{n}", user_id="u-1", ip_address=f"10.0.0.{n}", expires_at=NOW + timedelta(hours=1))


class TestUserRisk:
    """Tests for the deterministic user risk heuristic."""

    def test_quiet_user_scores_zero(self):
        risk = calculate_user_risk(_user(), [], [], NOW)

        assert risk.score == 0
        assert risk.factors == {}

    def test_individual_factors(self):
        user = _user(role="domain_admin", last_active_at=NOW - timedelta(hours=2))
        sessions = [_session(1)]
        logins = [_login(10, "US", days_ago=3), _login(11, "DE", days_ago=3)]

        risk = calculate_user_risk(user, sessions, logins, NOW)

        assert risk.factors == {
            "privileged_role": 30,
            "active_sessions": 5,
            "login_countries": 10,
            "recent_activity": 10,
        }
        assert risk.score == 55
        assert not risk.is_high

    def test_caps(self):
        user = _user(role="admin")
        sessions = [_session(i) for i in range(4)]
        logins = [_login(2, c, days_ago=0) for c in ("US", "DE", "RU", "CN", "BR")] + [_login(23, "US", days_ago=0)]

        risk = calculate_user_risk(user, sessions, logins, NOW)

        assert risk.factors["active_sessions"] == 15
        assert risk.factors["login_countries"] == 25
        assert risk.factors["off_hours_logins"] == 20
        assert risk.factors["recent_activity"] == 10
        assert risk.score == 100
        assert risk.is_high


class TestUserAgent:
    """Tests for UserAgent."""

    async def test_known_user(self, store: FakeRelationalStore):
        store.users = [_user(role="admin")]
        store.sessions = [_session(i) for i in range(3)]
        store.logins = [_login(3, "US"), _login(4, "RO"), _login(23, "NG"), _login(12, "US", days_ago=45)]
        agent = UserAgent(store, clock=lambda: NOW)

        result = await agent.process(AgentTask(type="check_user", params={"username": "jdoe@corp.example"}))

        assert result.status == AgentStatus.SUCCESS
        assert result.data["username"] == "jdoe"
        assert result.data["active_sessions"] == 3
        assert result.data["login_countries"] == ["NG", "RO", "US"]
        # 30 admin + 15 sessions + 20 countries + 15 off-hours + 10 recent
        assert result.data["risk_score"] == 90
        assert "HIGH risk score (90)" in result.summary

    async def test_unknown_user(self, store: FakeRelationalStore):
        agent = UserAgent(store, clock=lambda: NOW)

        result = await agent.process(AgentTask(type="check_user", params={"username": "ghost"}))

        assert result.status == AgentStatus.FAILED
        assert "not found" in result.error
