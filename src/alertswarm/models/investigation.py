"""Investigation state, historical context and outcome models."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from alertswarm.models.alerts import Entities
from alertswarm.models.enums import ContextSource, InvestigationStatus
from alertswarm.models.tasks import AgentResult


class HistoricalContextItem(BaseModel):
    """A previously resolved case judged relevant to the current alert."""

    model_config = ConfigDict(frozen=True)

    title: str
    description: str = ""
    resolution: str = ""
    tags: tuple[str, ...] = ()
    date: Optional[datetime] = None
    source: ContextSource

    def to_prompt_line(self) -> str:
        tags = f" [{', '.join(self.tags)}]" if self.tags else ""
        when = f" ({self.date.date().isoformat()})" if self.date else ""
        return (
            f"- {self.title}{when}{tags}: {self.description[:200]} "
            f"-> Resolution: {self.resolution or 'unknown'} (via {self.source.value})"
        )


class SimilarAlert(BaseModel):
    """An alert returned by the similarity search collaborator."""

    id: str
    title: str
    description: str = ""
    status: str = ""
    resolution: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    score: Optional[float] = None


class InvestigationState(BaseModel):
    """Mutable state of one orchestrate() call."""

    alert_id: str
    round: int = 0
    findings: list[AgentResult] = Field(default_factory=list)
    log: list[str] = Field(default_factory=list)
    entities: Entities = Field(default_factory=Entities)
    historical_context: list[HistoricalContextItem] = Field(default_factory=list)
    done: bool = False

    def add_log(self, line: str) -> None:
        self.log.append(line)


class InvestigationOutcome(BaseModel):
    """Final result handed back to the caller of orchestrate()."""

    alert_id: str
    report: str
    status: InvestigationStatus
    rounds: int
    findings: list[AgentResult] = Field(default_factory=list)
    log: list[str] = Field(default_factory=list)
    historical_context: list[HistoricalContextItem] = Field(default_factory=list)
    investigated_at: datetime

    def to_analysis(self) -> dict[str, Any]:
        """Shape persisted into the alert's analysis record."""
        return {
            "investigationReport": self.report,
            "swarmFindings": [f.model_dump(mode="json") for f in self.findings],
            "investigationLog": list(self.log),
            "investigationRounds": self.rounds,
            "investigationStatus": self.status.value,
            "investigatedAt": self.investigated_at.isoformat(),
            "historicalContext": [c.model_dump(mode="json") for c in self.historical_context],
        }
