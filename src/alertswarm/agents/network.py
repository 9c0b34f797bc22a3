"""Network agent: IP reputation and network log lookups."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable

import structlog

from alertswarm.agents.base import SpecialistAgent
from alertswarm.enrichment import EnrichmentClients
from alertswarm.models import AgentResult, AgentStatus, CheckIpParams, QueryLogsParams, TaskType
from alertswarm.persistence.protocols import AnalyticsStore

logger = structlog.get_logger()

ABUSE_SCORE_THRESHOLD = 50


def _is_flagged(results: list[dict[str, Any]]) -> bool:
    """Malicious if ANY provider flags the IP."""
    for entry in results:
        data = entry.get("data")
        if not data:
            continue
        source = entry["source"]
        if source == "VirusTotal" and data.get("malicious"):
            return True
        if source == "AlienVault" and data.get("pulse_count", 0) > 0:
            return True
        if source == "AbuseIPDB" and data.get("abuse_confidence_score", 0) > ABUSE_SCORE_THRESHOLD:
            return True
    return False


class NetworkAgent(SpecialistAgent):
    """Checks IP reputation and queries network events."""

    name = "Network"

    def __init__(self, clients: EnrichmentClients, analytics: AnalyticsStore, *, log_limit: int = 20):
        self._clients = clients
        self._analytics = analytics
        self._log_limit = log_limit
        super().__init__()

    def handlers(self):
        return {
            TaskType.CHECK_IP: (CheckIpParams, self.check_ip),
            TaskType.QUERY_LOGS: (QueryLogsParams, self.query_logs),
        }

    async def check_ip(self, params: CheckIpParams) -> AgentResult:
        """Query all IP reputation providers in parallel.

        Each provider is independently tolerant: one failing lookup is
        recorded as an error entry and does not hide the others.
        """
        ip = params.ip
        lookups: list[tuple[str, Awaitable[Any]]] = [
            ("VirusTotal", self._clients.virustotal.enrich_ip(ip)),
            ("AbuseIPDB", self._clients.abuseipdb.check_ip(ip)),
            ("AlienVault", self._clients.alienvault.check_ip(ip)),
        ]
        outcomes = await asyncio.gather(*(c for _, c in lookups), return_exceptions=True)

        results: list[dict[str, Any]] = []
        for (source, _), outcome in zip(lookups, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning("ip_lookup_failed", provider=source, ip=ip, error=str(outcome))
                results.append({"source": source, "error": str(outcome)})
            else:
                results.append({"source": source, "data": outcome.model_dump(mode="json")})

        failed = sum(1 for r in results if "error" in r)
        flagged = _is_flagged(results)
        if flagged:
            summary = f"IP {ip} is FLAGGED as malicious by threat intel sources."
        else:
            summary = f"IP {ip} appears clean across threat intel feeds."
        if failed:
            summary += f" ({failed} of {len(results)} lookups failed)"

        return AgentResult(
            agent=self.name,
            status=AgentStatus.SUCCESS,
            data={"ip": ip, "malicious": flagged, "results": results},
            summary=summary,
        )

    async def query_logs(self, params: QueryLogsParams) -> AgentResult:
        """Look up recent network events touching the IP."""
        try:
            rows = await self._analytics.query_events(params.ip, params.hours, self._log_limit)
        except Exception as e:
            logger.warning("log_query_failed", ip=params.ip, error=str(e))
            return AgentResult.failure(self.name, str(e), summary=f"Log query failed for {params.ip}")

        if rows:
            summary = f"Found {len(rows)} network events involving {params.ip}."
        else:
            summary = f"No network activity found for {params.ip} in the last {params.hours}h."
        return AgentResult(
            agent=self.name,
            status=AgentStatus.SUCCESS,
            data={"hits": len(rows), "logs": rows},
            summary=summary,
        )
