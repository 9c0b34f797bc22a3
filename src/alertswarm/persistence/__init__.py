"""Persistence layer: relational, analytics and similarity collaborators."""

from alertswarm.persistence.analytics import SqlAnalyticsStore
from alertswarm.persistence.database import (
    close_db,
    get_async_engine,
    get_async_session,
    init_db,
)
from alertswarm.persistence.models import (
    AlertRecord,
    CaseRecord,
    DirectoryUser,
    LoginRecord,
    NetworkEvent,
    UserSession,
)
from alertswarm.persistence.protocols import AnalyticsStore, RelationalStore, SimilaritySearch
from alertswarm.persistence.relational import SqlRelationalStore

__all__ = [
    # Database
    "close_db",
    "get_async_engine",
    "get_async_session",
    "init_db",
    # Tables
    "AlertRecord",
    "CaseRecord",
    "DirectoryUser",
    "LoginRecord",
    "NetworkEvent",
    "UserSession",
    # Interfaces
    "AnalyticsStore",
    "RelationalStore",
    "SimilaritySearch",
    # Implementations
    "SqlAnalyticsStore",
    "SqlRelationalStore",
]
