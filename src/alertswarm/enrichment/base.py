"""Base class for rate-limited threat-intel enrichment clients."""

from __future__ import annotations

import hashlib
import time
from typing import Any, Callable, Optional

import httpx
import structlog

from alertswarm.enrichment.rate_limit import RateWindow
from alertswarm.exceptions import ProviderError, RateLimitExceeded

logger = structlog.get_logger()

# Substrings that make the offline fallback report an indicator as malicious
MOCK_MALICIOUS_MARKERS = ("bad", "evil")
MOCK_MALICIOUS_SUFFIXES = (".66",)


def looks_malicious(value: str) -> bool:
    """Deterministic verdict used by providers without a credential."""
    lowered = value.lower()
    return any(m in lowered for m in MOCK_MALICIOUS_MARKERS) or lowered.endswith(
        MOCK_MALICIOUS_SUFFIXES
    )


def stable_number(value: str, modulo: int) -> int:
    """Derive a stable small integer from a value (for synthetic counts)."""
    digest = hashlib.sha256(value.encode("utf-8")).hexdigest()
    return int(digest[:8], 16) % modulo


class EnrichmentClient:
    """One external threat-intel lookup with a request budget.

    Subclasses implement the provider-specific lookups and a ``_mock``
    counterpart. When no API key is configured the mock result is
    returned instead of making a request, so downstream logic behaves the
    same in development and tests.
    """

    name: str = "provider"
    base_url: str = ""

    def __init__(
        self,
        api_key: str = "",
        *,
        capacity: int,
        window_seconds: float,
        timeout: float = 15.0,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the client.

        Args:
            api_key: Provider credential. Empty means mock mode.
            capacity: Requests allowed per window.
            window_seconds: Rate window length in seconds.
            timeout: HTTP timeout in seconds.
            http_client: Optional shared HTTP client.
            clock: Time source for the rate window.
        """
        self._api_key = api_key
        self.window = RateWindow(capacity, window_seconds, clock=clock)
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    @property
    def is_configured(self) -> bool:
        """Check if a credential is configured."""
        return bool(self._api_key)

    def _auth_headers(self) -> dict[str, str]:
        return {}

    async def _get_json(
        self,
        path: str,
        params: Optional[dict[str, Any]] = None,
        *,
        allow_not_found: bool = False,
    ) -> Optional[dict[str, Any]]:
        """Perform one budgeted GET request.

        Args:
            path: Path appended to ``base_url``.
            params: Query parameters.
            allow_not_found: Return None on HTTP 404 instead of raising.

        Returns:
            Decoded JSON body, or None for an allowed 404.

        Raises:
            RateLimitExceeded: If the window is full (no request is made).
            ProviderError: If the request fails or returns an error status.
        """
        if not self.window.try_admit():
            logger.warning(
                "enrichment_rate_limited",
                provider=self.name,
                capacity=self.window.capacity,
                window_seconds=self.window.window_seconds,
            )
            raise RateLimitExceeded(self.name, self.window.capacity, self.window.window_seconds)

        try:
            response = await self._client.get(
                f"{self.base_url}{path}",
                params=params,
                headers=self._auth_headers(),
            )
        except httpx.HTTPError as e:
            logger.error("enrichment_request_failed", provider=self.name, path=path, error=str(e))
            raise ProviderError(self.name, f"request failed: {e}") from e

        if response.status_code == 404 and allow_not_found:
            return None

        if response.is_error:
            logger.error(
                "enrichment_api_error",
                provider=self.name,
                path=path,
                status=response.status_code,
            )
            raise ProviderError(
                self.name,
                f"API error: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(self.name, f"invalid JSON response: {e}") from e

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()
