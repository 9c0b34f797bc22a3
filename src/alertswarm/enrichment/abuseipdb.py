"""AbuseIPDB enrichment client (IP abuse reports)."""

from __future__ import annotations

from typing import Optional

import structlog
from pydantic import BaseModel

from alertswarm.enrichment.base import EnrichmentClient, looks_malicious

logger = structlog.get_logger()


class AbuseIPDBReport(BaseModel):
    """Normalized AbuseIPDB check result."""

    source: str = "AbuseIPDB"
    abuse_confidence_score: int = 0
    total_reports: int = 0
    country_code: str = "Unknown"
    is_whitelisted: bool = False
    last_reported_at: Optional[str] = None


class AbuseIPDBClient(EnrichmentClient):
    """AbuseIPDB lookups (free tier: 1000 checks per day)."""

    name = "AbuseIPDB"
    base_url = "https://api.abuseipdb.com/api/v2"

    def _auth_headers(self) -> dict[str, str]:
        return {"Key": self._api_key, "Accept": "application/json"}

    async def check_ip(self, ip: str, max_age_days: int = 90) -> AbuseIPDBReport:
        """Check an IP address for abuse reports."""
        if not self.is_configured:
            logger.debug("abuseipdb_mock_mode")
            return self._mock(ip)

        data = await self._get_json(
            "/check",
            params={"ipAddress": ip, "maxAgeInDays": max_age_days},
        )
        ip_data = (data or {}).get("data", {})
        return AbuseIPDBReport(
            abuse_confidence_score=int(ip_data.get("abuseConfidenceScore") or 0),
            total_reports=int(ip_data.get("totalReports") or 0),
            country_code=ip_data.get("countryCode") or "Unknown",
            is_whitelisted=bool(ip_data.get("isWhitelisted")),
            last_reported_at=ip_data.get("lastReportedAt"),
        )

    def _mock(self, ip: str) -> AbuseIPDBReport:
        malicious = "44." in ip or looks_malicious(ip)
        return AbuseIPDBReport(
            abuse_confidence_score=85 if malicious else 0,
            total_reports=50 if malicious else 0,
            country_code="RU" if malicious else "US",
            is_whitelisted=not malicious,
            last_reported_at="2024-01-15T00:00:00+00:00" if malicious else None,
        )
