"""VirusTotal v3 enrichment client (IP and file hash reputation)."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

import structlog
from pydantic import BaseModel

from alertswarm.enrichment.base import EnrichmentClient, looks_malicious, stable_number

logger = structlog.get_logger()

# Engine count reported by the offline fallback
MOCK_ENGINE_TOTAL = 70


class VirusTotalReport(BaseModel):
    """Normalized VirusTotal analysis."""

    source: str = "VirusTotal"
    reputation: int = 0
    positives: int = 0
    total: int = 0
    detection_ratio: str = "0/0"
    malicious: bool = False
    country: Optional[str] = None
    asn: Optional[int] = None
    last_analysis_date: Optional[str] = None


class VirusTotalClient(EnrichmentClient):
    """VirusTotal lookups (free tier: 4 requests per minute)."""

    name = "VirusTotal"
    base_url = "https://www.virustotal.com/api/v3"

    def _auth_headers(self) -> dict[str, str]:
        return {"x-apikey": self._api_key}

    async def enrich_ip(self, ip: str) -> VirusTotalReport:
        """Look up IP address reputation."""
        if not self.is_configured:
            logger.debug("virustotal_mock_mode", lookup="ip")
            return self._mock(ip)

        data = await self._get_json(f"/ip_addresses/{ip}")
        attributes = (data or {}).get("data", {}).get("attributes", {})
        report = _parse_attributes(attributes)
        report.country = attributes.get("country") or "Unknown"
        report.asn = attributes.get("asn")
        return report

    async def enrich_hash(self, file_hash: str) -> VirusTotalReport:
        """Look up file hash reputation."""
        if not self.is_configured:
            logger.debug("virustotal_mock_mode", lookup="hash")
            return self._mock(file_hash)

        data = await self._get_json(f"/files/{file_hash}")
        attributes = (data or {}).get("data", {}).get("attributes", {})
        return _parse_attributes(attributes)

    def _mock(self, value: str) -> VirusTotalReport:
        if looks_malicious(value):
            positives = 40 + stable_number(value, 20)
        else:
            positives = 0
        return VirusTotalReport(
            reputation=-50 if positives else 0,
            positives=positives,
            total=MOCK_ENGINE_TOTAL,
            detection_ratio=f"{positives}/{MOCK_ENGINE_TOTAL}",
            malicious=positives > 0,
        )


def _parse_attributes(attributes: dict[str, Any]) -> VirusTotalReport:
    stats = attributes.get("last_analysis_stats") or {}
    total = sum(v for v in stats.values() if isinstance(v, int))
    positives = int(stats.get("malicious", 0) or 0)

    last_analysis = attributes.get("last_analysis_date")
    last_analysis_iso = (
        datetime.fromtimestamp(last_analysis, tz=timezone.utc).isoformat()
        if isinstance(last_analysis, (int, float))
        else None
    )

    return VirusTotalReport(
        reputation=int(attributes.get("reputation", 0) or 0),
        positives=positives,
        total=total,
        detection_ratio=f"{positives}/{total}",
        malicious=positives > 0,
        last_analysis_date=last_analysis_iso,
    )
