import pytest

from compass_api import db
from compass_api.db import run_migrations, split_statements, to_async_database_url


class _FakeResult:
    def __init__(self, row=None):
        self._row = row

    def first(self):
        return self._row


class _FakeConnection:
    def __init__(self, applied):
        self.applied = set(applied)
        self.statements = []

    async def execute(self, statement, params=None):
        sql = str(statement)
        self.statements.append(sql)
        if sql.startswith("SELECT 1 FROM schema_migrations"):
            return _FakeResult(row=(1,) if params["version"] in self.applied else None)
        return _FakeResult()


class _FakeBegin:
    def __init__(self, conn):
        self._conn = conn

    async def __aenter__(self):
        return self._conn

    async def __aexit__(self, exc_type, exc, tb):
        return False


class _FakeEngine:
    def __init__(self, conn):
        self.conn = conn

    def begin(self):
        return _FakeBegin(self.conn)


def test_psycopg_url_switches_to_asyncpg():
    url = to_async_database_url("postgresql+psycopg://u:p@localhost:5432/compass")
    assert url == "postgresql+asyncpg://u:p@localhost:5432/compass"


def test_sslmode_is_rewritten_to_ssl():
    url = to_async_database_url("postgresql://u:p@db.example.com/compass?sslmode=require&application_name=api")
    assert url.startswith("postgresql+asyncpg://u:p@db.example.com/compass?")
    assert "sslmode" not in url
    assert "ssl=require" in url
    assert "application_name=api" in url


def test_asyncpg_url_unchanged():
    url = "postgresql+asyncpg://u:p@localhost/compass"
    assert to_async_database_url(url) == url


def test_split_statements_drops_blanks():
    assert split_statements("CREATE TABLE a (x int);\n\n ; SELECT 1;") == ["CREATE TABLE a (x int)", "SELECT 1"]


@pytest.mark.asyncio
async def test_run_migrations_skips_applied_versions(tmp_path, monkeypatch):
    (tmp_path / "001_places.sql").write_text("CREATE TABLE places (ref text);", encoding="utf-8")
    (tmp_path / "002_tags.sql").write_text("ALTER TABLE places ADD COLUMN tags text[];", encoding="utf-8")
    conn = _FakeConnection(applied={"001_places.sql"})
    monkeypatch.setattr(db, "engine", _FakeEngine(conn))

    applied = await run_migrations(tmp_path)

    assert applied == ["002_tags.sql"]
    assert "ALTER TABLE places ADD COLUMN tags text[]" in conn.statements
    assert "CREATE TABLE places (ref text)" not in conn.statements


@pytest.mark.asyncio
async def test_run_migrations_without_files_is_noop(tmp_path, monkeypatch):
    conn = _FakeConnection(applied=set())
    monkeypatch.setattr(db, "engine", _FakeEngine(conn))
    assert await run_migrations(tmp_path) == []
    assert conn.statements == []
