"""Tests for historical context retrieval."""

from datetime import datetime

from alertswarm.models import ContextSource, Entities, SimilarAlert
from alertswarm.persistence.models import CaseRecord
from alertswarm.retrieval import ContextRetriever, build_semantic_query

from conftest import FakeRelationalStore, FakeSimilaritySearch


def _case(case_id: str, title: str, status: str = "resolved") -> CaseRecord:
    return CaseRecord(
        id=case_id,
        title=title,
        description=f"{title} description",
        status=status,
        resolution="Blocked at firewall",
        tags=["network"],
        created_at=datetime(2024, 1, 1),
    )


def _similar(alert_id: str, title: str) -> SimilarAlert:
    return SimilarAlert(id=alert_id, title=title, description="similar", status="resolved", resolution="Closed")


class TestContextRetriever:
    """Tests for ContextRetriever."""

    async def test_keyword_wins_on_duplicate_title(self, store: FakeRelationalStore):
        store.case_references = ["c-1"]
        store.cases = [_case("c-1", "Brute force from 203.0.113.9")]
        similarity = FakeSimilaritySearch([
            _similar("a-9", "Brute force from 203.0.113.9"),
            _similar("a-8", "Port scan"),
        ])
        retriever = ContextRetriever(store, similarity)

        items = await retriever.find_historical_context(Entities(ip="203.0.113.9"), "tenant-1")

        titles = [item.title for item in items]
        assert titles == ["Brute force from 203.0.113.9", "Port scan"]
        assert items[0].source == ContextSource.KEYWORD
        assert items[1].source == ContextSource.SEMANTIC

    async def test_result_capped_at_five(self, store: FakeRelationalStore):
        store.case_references = ["c-1", "c-2", "c-3"]
        store.cases = [_case(f"c-{i}", f"Case {i}") for i in range(1, 4)]
        similarity = FakeSimilaritySearch([_similar(f"a-{i}", f"Alert {i}") for i in range(1, 4)])
        retriever = ContextRetriever(store, similarity)

        items = await retriever.find_historical_context(Entities(ip="1.2.3.4"), None)

        assert len(items) == 5
        assert [i.source for i in items[:3]] == [ContextSource.KEYWORD] * 3

    async def test_keyword_strategy_limits(self, store: FakeRelationalStore):
        store.case_references = [f"c-{i}" for i in range(20)]
        store.cases = [_case(f"c-{i}", f"Case {i}") for i in range(20)]
        retriever = ContextRetriever(store)

        items = await retriever.find_historical_context(
            Entities(ip="1.2.3.4", username="bob"),
            "tenant-1",
            exclude_alert_id="alert-1",
        )

        assert len(items) == 3
        call = store.reference_calls[0]
        assert call["values"] == ["1.2.3.4", "bob"]
        assert call["limit"] == 10
        assert call["exclude_alert_id"] == "alert-1"

    async def test_semantic_match_of_current_alert_is_dropped(self, store: FakeRelationalStore):
        similarity = FakeSimilaritySearch([_similar("alert-1", "This alert"), _similar("a-2", "Earlier alert")])

        items = await ContextRetriever(store, similarity).find_historical_context(
            Entities(ip="1.2.3.4"),
            "tenant-1",
            exclude_alert_id="alert-1",
        )

        assert [i.title for i in items] == ["Earlier alert"]

    async def test_unresolved_cases_are_ignored(self, store: FakeRelationalStore):
        store.case_references = ["c-1"]
        store.cases = [_case("c-1", "Still open", status="open")]

        items = await ContextRetriever(store).find_historical_context(Entities(ip="1.2.3.4"), None)

        assert items == []

    async def test_failing_strategy_does_not_hide_the_other(self, store: FakeRelationalStore):
        store.case_references = ["c-1"]
        store.cases = [_case("c-1", "Keyword case")]
        similarity = FakeSimilaritySearch(error=RuntimeError("index offline"))

        items = await ContextRetriever(store, similarity).find_historical_context(Entities(ip="1.2.3.4"), None)

        assert [i.title for i in items] == ["Keyword case"]

    async def test_both_strategies_failing_returns_empty(self):
        class BrokenStore(FakeRelationalStore):
            async def find_case_references(self, *args, **kwargs):
                raise RuntimeError("db down")

        similarity = FakeSimilaritySearch(error=RuntimeError("index offline"))

        items = await ContextRetriever(BrokenStore(), similarity).find_historical_context(
            Entities(hash="abc"), "t"
        )

        assert items == []

    async def test_no_entities_skips_lookups(self, store: FakeRelationalStore, similarity: FakeSimilaritySearch):
        items = await ContextRetriever(store, similarity).find_historical_context(Entities(), "t")

        assert items == []
        assert store.reference_calls == []
        assert similarity.queries == []

    async def test_semantic_query_uses_present_entities(self, store: FakeRelationalStore):
        similarity = FakeSimilaritySearch()

        await ContextRetriever(store, similarity).find_historical_context(Entities(username="bob"), "t-1")

        tenant_id, query, k = similarity.queries[0]
        assert tenant_id == "t-1"
        assert k == 3
        assert "bob" in query
        assert "IP" not in query

    def test_build_semantic_query(self):
        query = build_semantic_query(Entities(ip="1.2.3.4", hash="abc"))

        assert "1.2.3.4" in query
        assert "abc" in query
