"""SQL-backed relational store for alerts, cases and directory records."""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import Any, Callable, Optional, Sequence

import structlog
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from alertswarm.exceptions import PersistenceError
from alertswarm.persistence.database import get_async_session
from alertswarm.persistence.models import (
    AlertRecord,
    CaseRecord,
    DirectoryUser,
    LoginRecord,
    UserSession,
)

logger = structlog.get_logger()

RESOLVED_CASE_STATUSES = ("resolved", "closed")

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


def normalize_username(username: str) -> str:
    """Strip a DOMAIN\\ prefix and an @domain suffix."""
    name = username.strip()
    if "\\" in name:
        name = name.rsplit("\\", 1)[1]
    if "@" in name:
        name = name.split("@", 1)[0]
    return name


class SqlRelationalStore:
    """Relational store over an async SQLAlchemy session."""

    def __init__(self, session_factory: SessionFactory = get_async_session):
        """Initialize the store.

        Args:
            session_factory: Callable returning an async session context manager
                that commits on exit.
        """
        self._session_factory = session_factory

    async def get_alert_analysis(self, alert_id: str) -> dict[str, Any]:
        async with self._session_factory() as session:
            alert = await session.get(AlertRecord, alert_id)
            if alert is None:
                return {}
            return dict(alert.ai_analysis or {})

    async def update_alert_analysis(self, alert_id: str, analysis: dict[str, Any]) -> None:
        """Replace the alert's analysis blob.

        Raises:
            PersistenceError: If the alert does not exist.
        """
        async with self._session_factory() as session:
            alert = await session.get(AlertRecord, alert_id)
            if alert is None:
                raise PersistenceError(alert_id, "alert not found")
            alert.ai_analysis = dict(analysis)
            session.add(alert)
        logger.debug("alert_analysis_updated", alert_id=alert_id, keys=sorted(analysis))

    async def find_case_references(
        self,
        tenant_id: Optional[str],
        values: Sequence[str],
        *,
        exclude_alert_id: Optional[str] = None,
        limit: int = 10,
    ) -> list[str]:
        """Find case ids of other alerts sharing any of the given values."""
        if not values:
            return []

        query = (
            select(AlertRecord.case_id)
            .where(AlertRecord.case_id.is_not(None))
            .where(AlertRecord.indicator_values.overlap(list(values)))
        )
        if tenant_id:
            query = query.where(AlertRecord.tenant_id == tenant_id)
        if exclude_alert_id:
            query = query.where(AlertRecord.id != exclude_alert_id)
        query = query.order_by(AlertRecord.created_at.desc()).limit(limit)

        async with self._session_factory() as session:
            result = await session.execute(query)
            case_ids = [row for row in result.scalars().all() if row]

        # Keep first occurrence order
        return list(dict.fromkeys(case_ids))

    async def get_resolved_cases(self, case_ids: Sequence[str], *, limit: int = 3) -> list[CaseRecord]:
        if not case_ids:
            return []
        query = (
            select(CaseRecord)
            .where(CaseRecord.id.in_(list(case_ids)))
            .where(CaseRecord.status.in_(RESOLVED_CASE_STATUSES))
            .order_by(CaseRecord.created_at.desc())
            .limit(limit)
        )
        async with self._session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def find_user(self, username: str) -> Optional[DirectoryUser]:
        """Find a directory user by exact username/email, then by fuzzy match."""
        async with self._session_factory() as session:
            exact = await session.execute(
                select(DirectoryUser)
                .where(or_(DirectoryUser.username == username, DirectoryUser.email == username))
                .limit(1)
            )
            user = exact.scalars().first()
            if user is not None:
                return user

            term = normalize_username(username)
            if not term:
                return None
            fuzzy = await session.execute(
                select(DirectoryUser)
                .where(
                    or_(
                        DirectoryUser.username.ilike(f"%{term}%"),
                        DirectoryUser.email.ilike(f"%{term}%"),
                        DirectoryUser.display_name.ilike(f"%{term}%"),
                    )
                )
                .order_by(DirectoryUser.username)
                .limit(1)
            )
            user = fuzzy.scalars().first()
            if user is not None:
                logger.debug("user_fuzzy_matched", query=username, matched=user.username)
            return user

    async def get_active_sessions(self, user_id: str) -> list[UserSession]:
        now = datetime.utcnow()
        async with self._session_factory() as session:
            result = await session.execute(
                select(UserSession)
                .where(UserSession.user_id == user_id)
                .where(UserSession.is_valid.is_(True))
                .where(UserSession.expires_at > now)
            )
            return list(result.scalars().all())

    async def get_login_history(self, user_id: str, since: datetime) -> list[LoginRecord]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(LoginRecord)
                .where(LoginRecord.user_id == user_id)
                .where(LoginRecord.timestamp >= since)
                .order_by(LoginRecord.timestamp.desc())
            )
            return list(result.scalars().all())

    async def save_alert(self, alert_id: str, tenant_id: Optional[str], title: str, **fields: Any) -> None:
        """Insert or update an alert record, keeping any stored analysis."""
        async with self._session_factory() as session:
            record = await session.get(AlertRecord, alert_id)
            if record is None:
                record = AlertRecord(id=alert_id, tenant_id=tenant_id, title=title, **fields)
            else:
                record.tenant_id = tenant_id
                record.title = title
                for key, value in fields.items():
                    setattr(record, key, value)
            session.add(record)
