"""Historical context retrieval for an investigation.

Two independent strategies feed the result:

- keyword: resolved cases linked to other alerts that share an entity value
- semantic: nearest previously investigated alerts from the similarity index

Each strategy swallows and logs its own failures, so retrieval never raises.
"""

from __future__ import annotations

from typing import Optional

import structlog

from alertswarm.models import ContextSource, Entities, HistoricalContextItem
from alertswarm.persistence.protocols import RelationalStore, SimilaritySearch

logger = structlog.get_logger()

MAX_CONTEXT_ITEMS = 5
MAX_CASE_REFERENCES = 10
MAX_KEYWORD_CASES = 3
MAX_SEMANTIC_MATCHES = 3


def build_semantic_query(entities: Entities) -> str:
    """Natural-language query from whichever entities are present."""
    parts = []
    if entities.ip:
        parts.append(f"network activity involving IP address {entities.ip}")
    if entities.username:
        parts.append(f"user account {entities.username}")
    if entities.hash:
        parts.append(f"file with hash {entities.hash}")
    return "Security alert with " + ", ".join(parts)


def merge_context(
    keyword: list[HistoricalContextItem],
    semantic: list[HistoricalContextItem],
    limit: int = MAX_CONTEXT_ITEMS,
) -> list[HistoricalContextItem]:
    """Concatenate keyword then semantic items, dropping duplicate titles."""
    merged: list[HistoricalContextItem] = []
    seen_titles: set[str] = set()
    for item in [*keyword, *semantic]:
        if item.title in seen_titles:
            continue
        seen_titles.add(item.title)
        merged.append(item)
    return merged[:limit]


class ContextRetriever:
    """Finds resolved cases similar to the alert under investigation."""

    def __init__(self, store: RelationalStore, similarity: Optional[SimilaritySearch] = None):
        self._store = store
        self._similarity = similarity

    async def find_historical_context(
        self,
        entities: Entities,
        tenant_id: Optional[str],
        *,
        exclude_alert_id: Optional[str] = None,
    ) -> list[HistoricalContextItem]:
        """Return up to five historical context items. Never raises."""
        keyword = await self._keyword_matches(entities, tenant_id, exclude_alert_id)
        semantic = await self._semantic_matches(entities, tenant_id, exclude_alert_id)
        merged = merge_context(keyword, semantic)

        logger.info(
            "historical_context_retrieved",
            keyword_matches=len(keyword),
            semantic_matches=len(semantic),
            returned=len(merged),
        )
        return merged

    async def _keyword_matches(
        self,
        entities: Entities,
        tenant_id: Optional[str],
        exclude_alert_id: Optional[str],
    ) -> list[HistoricalContextItem]:
        values = entities.values()
        if not values:
            return []

        try:
            case_ids = await self._store.find_case_references(
                tenant_id,
                values,
                exclude_alert_id=exclude_alert_id,
                limit=MAX_CASE_REFERENCES,
            )
            if not case_ids:
                return []
            cases = await self._store.get_resolved_cases(case_ids, limit=MAX_KEYWORD_CASES)
        except Exception as e:
            logger.warning("keyword_context_failed", error=str(e))
            return []

        return [
            HistoricalContextItem(
                title=case.title,
                description=case.description or "",
                resolution=case.resolution or "",
                tags=tuple(case.tags or ()),
                date=case.resolved_at or case.created_at,
                source=ContextSource.KEYWORD,
            )
            for case in cases
        ]

    async def _semantic_matches(
        self,
        entities: Entities,
        tenant_id: Optional[str],
        exclude_alert_id: Optional[str],
    ) -> list[HistoricalContextItem]:
        if self._similarity is None or entities.is_empty:
            return []

        try:
            matches = await self._similarity.search_similar(
                tenant_id,
                build_semantic_query(entities),
                MAX_SEMANTIC_MATCHES,
            )
        except Exception as e:
            logger.warning("semantic_context_failed", error=str(e))
            return []

        return [
            HistoricalContextItem(
                title=match.title,
                description=match.description,
                resolution=match.resolution or match.status,
                tags=tuple(match.tags),
                date=match.created_at,
                source=ContextSource.SEMANTIC,
            )
            for match in matches[:MAX_SEMANTIC_MATCHES]
            if match.id != exclude_alert_id
        ]
