"""Collaborator interfaces consumed by the investigation core."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Protocol, Sequence

from alertswarm.models.investigation import SimilarAlert
from alertswarm.persistence.models import CaseRecord, DirectoryUser, LoginRecord, UserSession


class RelationalStore(Protocol):
    """Alert, case and directory records."""

    async def get_alert_analysis(self, alert_id: str) -> dict[str, Any]: ...

    async def update_alert_analysis(self, alert_id: str, analysis: dict[str, Any]) -> None: ...

    async def find_case_references(
        self,
        tenant_id: Optional[str],
        values: Sequence[str],
        *,
        exclude_alert_id: Optional[str] = None,
        limit: int = 10,
    ) -> list[str]: ...

    async def get_resolved_cases(self, case_ids: Sequence[str], *, limit: int = 3) -> list[CaseRecord]: ...

    async def find_user(self, username: str) -> Optional[DirectoryUser]: ...

    async def get_active_sessions(self, user_id: str) -> list[UserSession]: ...

    async def get_login_history(self, user_id: str, since: datetime) -> list[LoginRecord]: ...


class AnalyticsStore(Protocol):
    """Time-bounded event queries."""

    async def query_events(self, ip: str, hours: int, limit: int) -> list[dict[str, Any]]: ...


class SimilaritySearch(Protocol):
    """Nearest-neighbour search over previously investigated alerts."""

    async def search_similar(self, tenant_id: Optional[str], query_text: str, k: int) -> list[SimilarAlert]: ...

    async def index_alert(
        self,
        alert_id: str,
        tenant_id: Optional[str],
        title: str,
        description: str,
        *,
        status: str = "resolved",
        resolution: Optional[str] = None,
        tags: Optional[list[str]] = None,
        created_at: Optional[datetime] = None,
    ) -> None: ...
