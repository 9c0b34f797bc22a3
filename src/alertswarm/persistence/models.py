"""SQLModel table definitions read and written by the investigation core."""

from datetime import datetime
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy import Column, Index
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlmodel import Field, SQLModel, Text


def _new_id() -> str:
    return str(uuid4())


class AlertRecord(SQLModel, table=True):
    """Stored alert with its analysis blob."""

    __tablename__ = "alerts"
    __table_args__ = (
        Index("ix_alerts_tenant_id", "tenant_id"),
        Index("ix_alerts_case_id", "case_id"),
    )

    id: str = Field(default_factory=_new_id, primary_key=True, max_length=64)
    tenant_id: Optional[str] = Field(default=None, max_length=64)
    title: str = Field(default="", max_length=500)
    description: Optional[str] = Field(default=None, sa_column=Column(Text))
    severity: Optional[str] = Field(default=None, max_length=20)
    status: str = Field(default="open", max_length=50)
    case_id: Optional[str] = Field(default=None, max_length=64)
    # Flattened observable values (ips, hashes, usernames) for cross-referencing
    indicator_values: list[str] = Field(default_factory=list, sa_column=Column(ARRAY(Text)))
    ai_analysis: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSONB))
    created_at: datetime = Field(default_factory=datetime.utcnow)


class CaseRecord(SQLModel, table=True):
    """Case that groups alerts and carries a resolution."""

    __tablename__ = "cases"

    id: str = Field(default_factory=_new_id, primary_key=True, max_length=64)
    tenant_id: Optional[str] = Field(default=None, max_length=64)
    title: str = Field(max_length=500)
    description: Optional[str] = Field(default=None, sa_column=Column(Text))
    status: str = Field(default="open", max_length=50)
    resolution: Optional[str] = Field(default=None, sa_column=Column(Text))
    tags: list[str] = Field(default_factory=list, sa_column=Column(ARRAY(Text)))
    created_at: datetime = Field(default_factory=datetime.utcnow)
    resolved_at: Optional[datetime] = Field(default=None)


class DirectoryUser(SQLModel, table=True):
    """Directory account looked up by the user agent."""

    __tablename__ = "directory_users"
    __table_args__ = (Index("ix_directory_users_username", "username"),)

    id: str = Field(default_factory=_new_id, primary_key=True, max_length=64)
    tenant_id: Optional[str] = Field(default=None, max_length=64)
    username: str = Field(max_length=255)
    email: Optional[str] = Field(default=None, max_length=255)
    display_name: Optional[str] = Field(default=None, max_length=255)
    role: str = Field(default="user", max_length=50)
    department: Optional[str] = Field(default=None, max_length=100)
    status: str = Field(default="active", max_length=50)
    last_active_at: Optional[datetime] = Field(default=None)


class UserSession(SQLModel, table=True):
    """Authenticated session of a directory user."""

    __tablename__ = "user_sessions"
    __table_args__ = (Index("ix_user_sessions_user_id", "user_id"),)

    id: str = Field(default_factory=_new_id, primary_key=True, max_length=64)
    user_id: str = Field(max_length=64)
    ip_address: Optional[str] = Field(default=None, max_length=64)
    country: Optional[str] = Field(default=None, max_length=8)
    user_agent: Optional[str] = Field(default=None, sa_column=Column(Text))
    is_valid: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    expires_at: datetime = Field(default_factory=datetime.utcnow)


class LoginRecord(SQLModel, table=True):
    """One login attempt of a directory user."""

    __tablename__ = "login_history"
    __table_args__ = (Index("ix_login_history_user_ts", "user_id", "timestamp"),)

    id: str = Field(default_factory=_new_id, primary_key=True, max_length=64)
    user_id: str = Field(max_length=64)
    ip_address: Optional[str] = Field(default=None, max_length=64)
    country: Optional[str] = Field(default=None, max_length=8)
    success: bool = Field(default=True)
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class NetworkEvent(SQLModel, table=True):
    """Network/security event row in the analytics store."""

    __tablename__ = "network_events"
    __table_args__ = (
        Index("ix_network_events_timestamp", "timestamp"),
        Index("ix_network_events_source_ip", "source_ip"),
        Index("ix_network_events_dest_ip", "dest_ip"),
    )

    id: str = Field(default_factory=_new_id, primary_key=True, max_length=64)
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    event_type: str = Field(max_length=100)
    source_ip: Optional[str] = Field(default=None, max_length=64)
    dest_ip: Optional[str] = Field(default=None, max_length=64)
    user_name: Optional[str] = Field(default=None, max_length=255)
    result: Optional[str] = Field(default=None, max_length=50)
