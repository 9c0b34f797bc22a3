"""Exception types for AlertSwarm."""

from __future__ import annotations


class AlertSwarmError(Exception):
    """Base exception for AlertSwarm errors."""
    pass


class EnrichmentError(AlertSwarmError):
    """Error raised by a threat-intel enrichment provider."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"{provider}: {message}")


class RateLimitExceeded(EnrichmentError):
    """Raised when a provider's request window is exhausted.

    No network call is made when this is raised.
    """

    def __init__(self, provider: str, capacity: int, window_seconds: float):
        self.capacity = capacity
        self.window_seconds = window_seconds
        super().__init__(
            provider,
            f"Rate limit exceeded ({capacity} requests per {window_seconds:g}s), please try again later",
        )


class ProviderError(EnrichmentError):
    """Raised when a provider API call fails."""

    def __init__(self, provider: str, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(provider, message)


class PlannerError(AlertSwarmError):
    """Raised when the task planner cannot produce a plan."""
    pass


class PersistenceError(AlertSwarmError):
    """Raised when investigation results cannot be stored."""

    def __init__(self, alert_id: str, message: str):
        self.alert_id = alert_id
        super().__init__(f"Failed to persist investigation for alert {alert_id}: {message}")
