"""Tests for SQL restaurant storage."""

import pytest
from contextlib import contextmanager
from unittest.mock import MagicMock, patch

from tablewise.services.restaurant_storage import SqlRestaurantStorage


def _session_returning(row):
    session = MagicMock()
    session.execute.return_value.fetchone.return_value = row

    @contextmanager
    def fake_session():
        yield session

    return session, fake_session


class TestSqlRestaurantStorage:
    """Test restaurant row loading."""

    @pytest.mark.asyncio
    async def test_returns_row_mapping(self):
        row = MagicMock()
        row._mapping = {"id": 3, "name": "Harbor", "timezone": "Europe/Budapest"}
        session, fake_session = _session_returning(row)

        with patch("tablewise.services.restaurant_storage.get_db_session", fake_session):
            result = await SqlRestaurantStorage().get_restaurant(3)

        assert result == {"id": 3, "name": "Harbor", "timezone": "Europe/Budapest"}
        params = session.execute.call_args.args[1]
        assert params == {"restaurant_id": 3}

    @pytest.mark.asyncio
    async def test_missing_restaurant(self):
        _, fake_session = _session_returning(None)

        with patch("tablewise.services.restaurant_storage.get_db_session", fake_session):
            assert await SqlRestaurantStorage().get_restaurant(404) is None
