"""Data models for AlertSwarm."""

from alertswarm.models.enums import (
    AgentStatus,
    ContextSource,
    InvestigationStatus,
    NotificationPhase,
    OTXRisk,
    Priority,
    TaskType,
)
from alertswarm.models.alerts import Alert, AlertObservable, Entities
from alertswarm.models.tasks import (
    AgentResult,
    AgentTask,
    CheckHashParams,
    CheckIpParams,
    CheckUserParams,
    QueryLogsParams,
)
from alertswarm.models.investigation import (
    HistoricalContextItem,
    InvestigationOutcome,
    InvestigationState,
    SimilarAlert,
)

__all__ = [
    # Enums
    "AgentStatus",
    "ContextSource",
    "InvestigationStatus",
    "NotificationPhase",
    "OTXRisk",
    "Priority",
    "TaskType",
    # Models
    "Alert",
    "AlertObservable",
    "Entities",
    "AgentResult",
    "AgentTask",
    "CheckHashParams",
    "CheckIpParams",
    "CheckUserParams",
    "QueryLogsParams",
    "HistoricalContextItem",
    "InvestigationOutcome",
    "InvestigationState",
    "SimilarAlert",
]
