"""SQL-backed analytics store for network event queries."""

from __future__ import annotations

from datetime import datetime, timedelta
from functools import partial
from typing import Any, Optional

import structlog
from sqlalchemy import or_, select

from alertswarm.persistence.database import get_analytics_database_url, get_async_session
from alertswarm.persistence.models import NetworkEvent
from alertswarm.persistence.relational import SessionFactory

logger = structlog.get_logger()


class SqlAnalyticsStore:
    """Queries the ``network_events`` table."""

    def __init__(self, session_factory: Optional[SessionFactory] = None):
        self._session_factory = session_factory or partial(
            get_async_session, get_analytics_database_url()
        )

    async def query_events(self, ip: str, hours: int, limit: int) -> list[dict[str, Any]]:
        """Events where the IP is source or destination within the last ``hours``."""
        since = datetime.utcnow() - timedelta(hours=hours)
        query = (
            select(NetworkEvent)
            .where(or_(NetworkEvent.source_ip == ip, NetworkEvent.dest_ip == ip))
            .where(NetworkEvent.timestamp >= since)
            .order_by(NetworkEvent.timestamp.desc())
            .limit(limit)
        )
        async with self._session_factory() as session:
            result = await session.execute(query)
            rows = result.scalars().all()

        logger.debug("analytics_events_queried", ip=ip, hours=hours, hits=len(rows))
        return [
            {
                "timestamp": row.timestamp.isoformat(),
                "event_type": row.event_type,
                "source_ip": row.source_ip,
                "dest_ip": row.dest_ip,
                "user_name": row.user_name,
                "result": row.result,
            }
            for row in rows
        ]
