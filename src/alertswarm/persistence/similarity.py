"""Semantic similarity search over investigated alerts, backed by ChromaDB."""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Optional

import chromadb
import structlog
from chromadb.config import Settings as ChromaSettings

from alertswarm.models.investigation import SimilarAlert

logger = structlog.get_logger()


class ChromaSimilaritySearch:
    """Vector store of resolved alerts for similar-case retrieval."""

    def __init__(self, persist_dir: str, collection: str = "resolved_alerts"):
        self._client = chromadb.Client(ChromaSettings(
            anonymized_telemetry=False,
            is_persistent=True,
            persist_directory=persist_dir,
        ))
        self._collection = self._client.get_or_create_collection(
            name=collection,
            metadata={"hnsw:space": "cosine"},
        )

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
    ) -> None:
        """Store (or replace) an alert so later investigations can find it."""
        metadata: dict[str, Any] = {
            "tenant_id": tenant_id or "",
            "title": title,
            "description": description[:2000],
            "status": status,
            "resolution": resolution or "",
            "tags": ",".join(tags or []),
            "created_at": (created_at or datetime.utcnow()).isoformat(),
        }
        await asyncio.to_thread(
            self._collection.upsert,
            ids=[alert_id],
            documents=[f"{title}\n{description}"],
            metadatas=[metadata],
        )
        logger.debug("similar_alert_indexed", alert_id=alert_id, status=status)

    async def search_similar(self, tenant_id: Optional[str], query_text: str, k: int) -> list[SimilarAlert]:
        """Return up to ``k`` nearest alerts for the tenant."""
        return await asyncio.to_thread(self._search, tenant_id, query_text, k)

    def _search(self, tenant_id: Optional[str], query_text: str, k: int) -> list[SimilarAlert]:
        kwargs: dict[str, Any] = {"query_texts": [query_text], "n_results": k}
        if tenant_id:
            kwargs["where"] = {"tenant_id": tenant_id}

        results = self._collection.query(**kwargs)

        ids = results["ids"][0] if results.get("ids") else []
        metadatas = results["metadatas"][0] if results.get("metadatas") else []
        distances = results["distances"][0] if results.get("distances") else []

        hits: list[SimilarAlert] = []
        for i, alert_id in enumerate(ids):
            meta = metadatas[i] if i < len(metadatas) else {}
            created_at = meta.get("created_at")
            hits.append(SimilarAlert(
                id=alert_id,
                title=meta.get("title") or alert_id,
                description=meta.get("description") or "",
                status=meta.get("status") or "",
                resolution=meta.get("resolution") or None,
                tags=[t for t in (meta.get("tags") or "").split(",") if t],
                created_at=datetime.fromisoformat(created_at) if created_at else None,
                score=1 - distances[i] if i < len(distances) and distances[i] is not None else None,
            ))

        logger.debug("similar_alerts_found", count=len(hits))
        return hits
