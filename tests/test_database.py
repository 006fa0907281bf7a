"""Tests for engine helpers and the request session dependency."""

import pytest
from sqlalchemy import inspect, select
from sqlalchemy.ext.asyncio import create_async_engine

from document_chat.config import DatabaseSettings
from document_chat.database import connection, session as session_module
from document_chat.database.models import Conversation

from fakes import make_settings


async def conversation_titles(session_factory):
    async with session_factory() as db:
        result = await db.execute(select(Conversation.title))
        return list(result.scalars().all())


class TestDatabaseUrl:
    """Sync URLs are rewritten to their async drivers."""

    @pytest.mark.parametrize(
        "url,expected",
        [
            ("postgresql://u:p@db/chat", "postgresql+asyncpg://u:p@db/chat"),
            ("postgresql+psycopg2://u:p@db/chat", "postgresql+asyncpg://u:p@db/chat"),
            ("sqlite:///./chat.db", "sqlite+aiosqlite:///./chat.db"),
            ("sqlite+aiosqlite:///:memory:", "sqlite+aiosqlite:///:memory:"),
        ],
    )
    def test_async_driver(self, monkeypatch, url, expected):
        settings = make_settings(database=DatabaseSettings(url=url))
        monkeypatch.setattr(connection, "get_settings", lambda: settings)

        assert connection.get_database_url() == expected


class TestEngineHelpers:
    """Table creation and connectivity checks against SQLite."""

    async def test_create_tables_and_check_connection(self, monkeypatch, tmp_path):
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'chat.db'}")
        monkeypatch.setattr(connection, "_engine", engine)

        await connection.create_tables()

        async with engine.connect() as conn:
            tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
        assert {"documents", "conversations", "messages"} <= set(tables)
        assert await connection.check_connection() is True

        await connection.close_engine()
        assert connection._engine is None

    async def test_check_connection_reports_failure(self, monkeypatch):
        def broken_engine():
            raise RuntimeError("no database")

        monkeypatch.setattr(connection, "get_engine", broken_engine)

        assert await connection.check_connection() is False


class TestSessionDependency:
    """get_session commits on success and rolls back on error."""

    async def test_commits_when_handler_returns(self, monkeypatch, session_factory):
        monkeypatch.setattr(session_module, "get_session_factory", lambda: session_factory)

        dependency = session_module.get_session()
        db = await dependency.__anext__()
        db.add(Conversation(user_id="user-1", title="Kept"))
        with pytest.raises(StopAsyncIteration):
            await dependency.__anext__()

        assert await conversation_titles(session_factory) == ["Kept"]

    async def test_rolls_back_when_handler_raises(self, monkeypatch, session_factory):
        monkeypatch.setattr(session_module, "get_session_factory", lambda: session_factory)

        dependency = session_module.get_session()
        db = await dependency.__anext__()
        db.add(Conversation(user_id="user-1", title="Dropped"))
        with pytest.raises(ValueError):
            await dependency.athrow(ValueError("handler failed"))

        assert await conversation_titles(session_factory) == []
