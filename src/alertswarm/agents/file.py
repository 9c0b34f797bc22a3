"""File agent: hash reputation lookups."""

from __future__ import annotations

import structlog

from alertswarm.agents.base import SpecialistAgent
from alertswarm.enrichment import VirusTotalClient
from alertswarm.models import AgentResult, AgentStatus, CheckHashParams, TaskType

logger = structlog.get_logger()


class FileAgent(SpecialistAgent):
    """Checks file hashes against VirusTotal."""

    name = "File"

    def __init__(self, virustotal: VirusTotalClient):
        self._virustotal = virustotal
        super().__init__()

    def handlers(self):
        return {TaskType.CHECK_HASH: (CheckHashParams, self.check_hash)}

    async def check_hash(self, params: CheckHashParams) -> AgentResult:
        try:
            report = await self._virustotal.enrich_hash(params.hash)
        except Exception as e:
            logger.warning("hash_lookup_failed", hash=params.hash, error=str(e))
            return AgentResult.failure(self.name, str(e), summary=f"Hash lookup failed for {params.hash}")

        malicious = report.malicious or report.positives > 0
        if malicious:
            summary = f"File hash is MALICIOUS ({report.detection_ratio}). Known malware."
        else:
            summary = f"File hash appears safe ({report.detection_ratio})."

        return AgentResult(
            agent=self.name,
            status=AgentStatus.SUCCESS,
            data={**report.model_dump(mode="json"), "hash": params.hash, "malicious": malicious},
            summary=summary,
        )
