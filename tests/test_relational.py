"""Unit tests for SqlRelationalStore with a mocked session."""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from alertswarm.exceptions import PersistenceError
from alertswarm.persistence.models import AlertRecord, DirectoryUser
from alertswarm.persistence.relational import SqlRelationalStore, normalize_username


@pytest.fixture
def mock_session() -> AsyncMock:
    """Create a mock async database session."""
    session = AsyncMock(spec=AsyncSession)
    session.add = MagicMock()
    return session


@pytest.fixture
def relational(mock_session: AsyncMock) -> SqlRelationalStore:
    @asynccontextmanager
    async def factory():
        yield mock_session

    return SqlRelationalStore(factory)


def _scalars(rows) -> MagicMock:
    result = MagicMock()
    result.scalars.return_value.all.return_value = rows
    result.scalars.return_value.first.return_value = rows[0] if rows else None
    return result


class TestNormalizeUsername:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("CORP\\jdoe", "jdoe"),
            ("jdoe@corp.example", "jdoe"),
            ("  jdoe  ", "jdoe"),
            ("jdoe", "jdoe"),
        ],
    )
    def test_normalize(self, raw: str, expected: str):
        assert normalize_username(raw) == expected


class TestSqlRelationalStore:
    """Tests for SqlRelationalStore."""

    async def test_get_alert_analysis_missing_alert(self, relational, mock_session):
        mock_session.get.return_value = None

        assert await relational.get_alert_analysis("nope") == {}

    async def test_update_alert_analysis(self, relational, mock_session):
        record = AlertRecord(id="alert-1", title="t", ai_analysis={"old": 1})
        mock_session.get.return_value = record

        await relational.update_alert_analysis("alert-1", {"old": 1, "investigationStatus": "completed"})

        assert record.ai_analysis == {"old": 1, "investigationStatus": "completed"}
        mock_session.add.assert_called_once_with(record)

    async def test_update_missing_alert_raises(self, relational, mock_session):
        mock_session.get.return_value = None

        with pytest.raises(PersistenceError):
            await relational.update_alert_analysis("nope", {})

    async def test_find_case_references_dedupes(self, relational, mock_session):
        mock_session.execute.return_value = _scalars(["c-1", "c-2", "c-1", None])

        refs = await relational.find_case_references("t-1", ["1.2.3.4"], exclude_alert_id="a-1")

        assert refs == ["c-1", "c-2"]

    async def test_find_case_references_without_values(self, relational, mock_session):
        assert await relational.find_case_references("t-1", []) == []
        mock_session.execute.assert_not_awaited()

    async def test_find_user_falls_back_to_fuzzy_match(self, relational, mock_session):
        user = DirectoryUser(id="u-1", username="jdoe")
        mock_session.execute.side_effect = [_scalars([]), _scalars([user])]

        found = await relational.find_user("CORP\\jdoe")

        assert found is user
        assert mock_session.execute.await_count == 2

    async def test_find_user_exact_match_short_circuits(self, relational, mock_session):
        user = DirectoryUser(id="u-1", username="jdoe")
        mock_session.execute.return_value = _scalars([user])

        assert await relational.find_user("jdoe") is user
        assert mock_session.execute.await_count == 1
