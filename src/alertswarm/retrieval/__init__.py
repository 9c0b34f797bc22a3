"""Entity extraction and historical context retrieval."""

from alertswarm.retrieval.context import ContextRetriever, build_semantic_query, merge_context
from alertswarm.retrieval.entities import ENTITY_SOURCES, extract_entities

__all__ = [
    "ContextRetriever",
    "ENTITY_SOURCES",
    "build_semantic_query",
    "extract_entities",
    "merge_context",
]
