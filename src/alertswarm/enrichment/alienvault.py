"""AlienVault OTX (Open Threat Exchange) enrichment client."""

from __future__ import annotations

from typing import Any, Optional

import structlog
from pydantic import BaseModel, Field

from alertswarm.enrichment.base import EnrichmentClient, looks_malicious
from alertswarm.models.enums import OTXRisk

logger = structlog.get_logger()

DANGEROUS_TAGS = {"apt", "ransomware", "c2", "botnet", "malware"}


class OTXReport(BaseModel):
    """Normalized OTX indicator summary."""

    source: str = "AlienVault"
    found: bool = False
    pulse_count: int = 0
    tags: list[str] = Field(default_factory=list)
    malware_families: list[str] = Field(default_factory=list)
    first_seen: Optional[str] = None
    last_seen: Optional[str] = None
    risk: OTXRisk = OTXRisk.LOW


def calculate_risk(pulse_count: int, tags: list[str]) -> OTXRisk:
    """Bucket an indicator by pulse count and tag content."""
    if pulse_count > 20 or any(t.lower() in DANGEROUS_TAGS for t in tags):
        return OTXRisk.CRITICAL
    if pulse_count > 10:
        return OTXRisk.HIGH
    if pulse_count > 3:
        return OTXRisk.MEDIUM
    return OTXRisk.LOW


class AlienVaultOTXClient(EnrichmentClient):
    """OTX lookups (free tier: 10,000 requests per day)."""

    name = "AlienVault"
    base_url = "https://otx.alienvault.com/api/v1"

    def _auth_headers(self) -> dict[str, str]:
        return {"X-OTX-API-KEY": self._api_key}

    async def check_ip(self, ip: str) -> OTXReport:
        """Look up an IPv4 indicator."""
        return await self._check("IPv4", ip)

    async def check_hash(self, file_hash: str) -> OTXReport:
        """Look up a file hash indicator."""
        return await self._check("file", file_hash)

    async def _check(self, section: str, indicator: str) -> OTXReport:
        if not self.is_configured:
            logger.debug("otx_mock_mode", section=section)
            return self._mock(indicator)

        data = await self._get_json(
            f"/indicators/{section}/{indicator}/general",
            allow_not_found=True,
        )
        if data is None:
            return OTXReport()
        return _parse_general(data)

    def _mock(self, indicator: str) -> OTXReport:
        if not looks_malicious(indicator):
            return OTXReport()
        return OTXReport(
            found=True,
            pulse_count=15,
            tags=["malware", "c2"],
            malware_families=["emotet"],
            first_seen="2024-01-15T00:00:00Z",
            last_seen="2024-06-01T00:00:00Z",
            risk=OTXRisk.HIGH,
        )


def _parse_general(data: dict[str, Any]) -> OTXReport:
    pulse_info = data.get("pulse_info") or {}
    pulses = pulse_info.get("pulses") or []
    pulse_count = int(pulse_info.get("count") or 0)

    tags: list[str] = []
    families: list[str] = []
    for pulse in pulses:
        for tag in pulse.get("tags") or []:
            if tag not in tags:
                tags.append(tag)
        for family in pulse.get("malware_families") or []:
            name = family.get("display_name") if isinstance(family, dict) else family
            if name and name not in families:
                families.append(name)

    # Pulses are returned newest first
    return OTXReport(
        found=pulse_count > 0,
        pulse_count=pulse_count,
        tags=tags,
        malware_families=families,
        first_seen=pulses[-1].get("created") if pulses else None,
        last_seen=pulses[0].get("created") if pulses else None,
        risk=calculate_risk(pulse_count, tags),
    )
