"""Alert boundary schema and extracted entities."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class AlertObservable(BaseModel):
    """An observable attached to an alert (ip, hash, user, domain, ...)."""

    model_config = ConfigDict(extra="allow")

    type: str = Field(..., description="Observable type, e.g. 'ip' or 'hash'")
    value: Any = Field(None, description="Observable value")


class Alert(BaseModel):
    """A security alert under investigation.

    Only the fields the investigation reads are named; anything else the
    source system sends is kept in ``raw_data``.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(..., description="Unique alert ID")
    tenant_id: Optional[str] = Field(None, alias="tenantId", description="Owning tenant")
    title: str = Field(default="Untitled alert", description="Alert title")
    description: str = Field(default="", description="Alert description")
    severity: Optional[str] = Field(None, description="Severity label from the source")
    observables: list[AlertObservable] = Field(default_factory=list)
    raw_data: dict[str, Any] = Field(default_factory=dict, alias="rawData")

    def to_summary(self) -> str:
        """Generate a short human-readable summary for prompts.

        Returns:
            Summary string.
        """
        lines = [f"Title: {self.title}"]
        if self.severity:
            lines.append(f"Severity: {self.severity}")
        if self.description:
            lines.append(f"Description: {self.description}")
        if self.observables:
            obs = ", ".join(f"{o.type}={o.value}" for o in self.observables[:10])
            lines.append(f"Observables: {obs}")
        return "\n".join(lines)


class Entities(BaseModel):
    """Canonical entity values pulled out of an alert."""

    ip: Optional[str] = None
    username: Optional[str] = None
    hash: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        """True when no entity could be extracted."""
        return not (self.ip or self.username or self.hash)

    def values(self) -> list[str]:
        """Non-empty entity values, in ip/username/hash order."""
        return [v for v in (self.ip, self.username, self.hash) if v]
