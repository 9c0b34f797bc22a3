"""Enumeration types for AlertSwarm models."""

from enum import Enum


class Priority(str, Enum):
    """Priority assigned to an agent task."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class AgentStatus(str, Enum):
    """Outcome of a specialist agent task."""

    SUCCESS = "success"
    FAILED = "failed"


class TaskType(str, Enum):
    """Kinds of task a specialist agent can be given."""

    CHECK_IP = "check_ip"
    QUERY_LOGS = "query_logs"
    CHECK_HASH = "check_hash"
    CHECK_USER = "check_user"


class ContextSource(str, Enum):
    """Strategy that produced a historical context item."""

    KEYWORD = "keyword"
    SEMANTIC = "semantic"


class InvestigationStatus(str, Enum):
    """Terminal status of an investigation."""

    COMPLETED = "completed"
    FAILED = "failed"


class NotificationPhase(str, Enum):
    """Phase reported to the status notifier."""

    STARTED = "started"
    ROUND = "round"
    FINDING = "finding"
    COMPLETED = "completed"
    FAILED = "failed"


class OTXRisk(str, Enum):
    """AlienVault OTX risk bucket."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"
