"""Tests for DatabaseService."""

import pytest
from sqlalchemy import text

from webmention_relay.config import DatabaseConfig
from webmention_relay.orm import Entry
from webmention_relay.services import database


@pytest.mark.asyncio
class TestDatabaseService:
    """Test engine setup and the global accessor."""

    async def test_foreign_keys_enabled(self, db_service):
        async with db_service.session() as session:
            result = await session.execute(text("PRAGMA foreign_keys"))
            assert result.scalar_one() == 1

    async def test_failed_session_rolls_back(self, db_service):
        with pytest.raises(RuntimeError):
            async with db_service.session() as session:
                await session.execute(
                    text(
                        "INSERT INTO entries (id, url, canonical_url, published, updated, data) "
                        "VALUES ('x', 'http://a.example/', '//a.example', "
                        "'2020-01-01 00:00:00', '2020-01-01 00:00:00', '{}')"
                    )
                )
                raise RuntimeError("boom")

        assert await db_service.count(Entry) == 0

    async def test_init_from_config(self, tmp_path, monkeypatch):
        monkeypatch.setattr(database, "_db_service", None)
        with pytest.raises(RuntimeError):
            database.get_db_service()

        config = DatabaseConfig(path=str(tmp_path / "nested" / "relay.db"), busy_timeout=5)
        service = await database.init_db_service(config)
        try:
            assert database.get_db_service() is service
            assert service.database_path.exists()
            assert await service.count(Entry) == 0
        finally:
            await service.close()
