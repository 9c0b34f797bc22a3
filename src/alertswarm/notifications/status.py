"""Investigation status notifications.

Notifications are fire-and-forget: implementations log delivery problems
and never raise into the investigation.
"""

from __future__ import annotations

from typing import Optional, Protocol

import httpx
import structlog
from pydantic import BaseModel

from alertswarm.models import AgentResult, NotificationPhase

logger = structlog.get_logger()


class StatusUpdate(BaseModel):
    """Progress update for one investigation."""

    phase: NotificationPhase
    message: str
    round: Optional[int] = None
    max_rounds: Optional[int] = None
    finding: Optional[AgentResult] = None


class StatusNotifier(Protocol):
    async def notify(self, tenant_id: Optional[str], alert_id: str, status: StatusUpdate) -> None: ...


class LoggingStatusNotifier:
    """Writes status updates to the structured log."""

    async def notify(self, tenant_id: Optional[str], alert_id: str, status: StatusUpdate) -> None:
        logger.info(
            "investigation_status",
            tenant_id=tenant_id,
            alert_id=alert_id,
            phase=status.phase.value,
            round=status.round,
            max_rounds=status.max_rounds,
            message=status.message,
        )


class WebhookStatusNotifier:
    """Posts status updates as JSON to a webhook URL."""

    def __init__(self, webhook_url: str, *, timeout: float = 10.0, http_client: Optional[httpx.AsyncClient] = None):
        """Initialize the webhook notifier.

        Args:
            webhook_url: Endpoint receiving the updates.
            timeout: HTTP timeout in seconds.
            http_client: Optional shared HTTP client.
        """
        self._webhook_url = webhook_url
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    async def notify(self, tenant_id: Optional[str], alert_id: str, status: StatusUpdate) -> None:
        payload = {
            "tenantId": tenant_id,
            "alertId": alert_id,
            **status.model_dump(mode="json", exclude_none=True, by_alias=True),
        }
        if "max_rounds" in payload:
            payload["maxRounds"] = payload.pop("max_rounds")

        try:
            response = await self._client.post(self._webhook_url, json=payload)
        except Exception as e:
            logger.error("status_webhook_error", alert_id=alert_id, error=str(e))
            return

        if response.is_success:
            logger.debug("status_webhook_sent", alert_id=alert_id, phase=status.phase.value)
        else:
            logger.warning(
                "status_webhook_failed",
                alert_id=alert_id,
                status_code=response.status_code,
                response_text=response.text[:200],
            )

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()
