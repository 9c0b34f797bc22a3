"""Rate-limited threat-intel enrichment clients.

Clients are process-wide singletons so every concurrent investigation
shares one request window per provider.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import structlog

from alertswarm.config import EnrichmentConfig, get_config
from alertswarm.enrichment.abuseipdb import AbuseIPDBClient, AbuseIPDBReport
from alertswarm.enrichment.alienvault import AlienVaultOTXClient, OTXReport
from alertswarm.enrichment.base import EnrichmentClient, looks_malicious
from alertswarm.enrichment.rate_limit import RateWindow
from alertswarm.enrichment.virustotal import VirusTotalClient, VirusTotalReport

logger = structlog.get_logger()


@dataclass
class EnrichmentClients:
    """The set of enrichment providers used by the specialist agents."""

    virustotal: VirusTotalClient
    abuseipdb: AbuseIPDBClient
    alienvault: AlienVaultOTXClient

    async def aclose(self) -> None:
        for client in (self.virustotal, self.abuseipdb, self.alienvault):
            await client.aclose()


def create_enrichment_clients(config: EnrichmentConfig) -> EnrichmentClients:
    """Build a fresh set of clients from configuration."""
    clients = EnrichmentClients(
        virustotal=VirusTotalClient(
            config.virustotal.api_key,
            capacity=config.virustotal.capacity,
            window_seconds=config.virustotal.window_seconds,
            timeout=config.timeout_seconds,
        ),
        abuseipdb=AbuseIPDBClient(
            config.abuseipdb.api_key,
            capacity=config.abuseipdb.capacity,
            window_seconds=config.abuseipdb.window_seconds,
            timeout=config.timeout_seconds,
        ),
        alienvault=AlienVaultOTXClient(
            config.alienvault.api_key,
            capacity=config.alienvault.capacity,
            window_seconds=config.alienvault.window_seconds,
            timeout=config.timeout_seconds,
        ),
    )
    logger.info(
        "enrichment_clients_created",
        mock_mode=[
            c.name
            for c in (clients.virustotal, clients.abuseipdb, clients.alienvault)
            if not c.is_configured
        ],
    )
    return clients


# Global client instances
_clients: Optional[EnrichmentClients] = None


def get_enrichment_clients() -> EnrichmentClients:
    """Get the process-wide enrichment clients."""
    global _clients
    if _clients is None:
        _clients = create_enrichment_clients(get_config().enrichment)
    return _clients


async def close_enrichment_clients() -> None:
    """Close the process-wide clients (application shutdown)."""
    global _clients
    if _clients is not None:
        await _clients.aclose()
        _clients = None


__all__ = [
    "AbuseIPDBClient",
    "AbuseIPDBReport",
    "AlienVaultOTXClient",
    "EnrichmentClient",
    "EnrichmentClients",
    "OTXReport",
    "RateWindow",
    "VirusTotalClient",
    "VirusTotalReport",
    "close_enrichment_clients",
    "create_enrichment_clients",
    "get_enrichment_clients",
    "looks_malicious",
]
