from __future__ import annotations

import logging
from pathlib import Path
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from compass_api.config import Settings, get_settings

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parents[1] / "migrations"


def to_async_database_url(url: str) -> str:
    parsed = urlparse(url)
    query: list[tuple[str, str]] = []
    sslmode: str | None = None
    for key, value in parse_qsl(parsed.query, keep_blank_values=True):
        if key == "sslmode":
            sslmode = value
        else:
            query.append((key, value))
    if sslmode:
        # asyncpg takes `ssl`, Cloud SQL connection strings carry `sslmode`.
        query.append(("ssl", sslmode))
    url = urlunparse(parsed._replace(query=urlencode(query)))

    for prefix in ("postgresql+psycopg://", "postgresql://", "postgres://"):
        if url.startswith(prefix):
            return "postgresql+asyncpg://" + url[len(prefix):]
    return url


def build_engine(settings: Settings) -> AsyncEngine:
    return create_async_engine(
        to_async_database_url(settings.database_url),
        echo=settings.sql_echo,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout_seconds,
        pool_pre_ping=True,
    )


engine = build_engine(get_settings())
SessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def split_statements(sql: str) -> list[str]:
    return [stmt.strip() for stmt in sql.split(";") if stmt.strip()]


async def run_migrations(migrations_dir: Path = MIGRATIONS_DIR) -> list[str]:
    files = sorted(p for p in migrations_dir.glob("*.sql") if p.is_file())
    applied: list[str] = []
    if not files:
        return applied

    async with engine.begin() as conn:
        await conn.execute(
            text(
                """
                CREATE TABLE IF NOT EXISTS schema_migrations (
                  version TEXT PRIMARY KEY,
                  applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
                )
                """
            )
        )
        for migration_file in files:
            version = migration_file.name
            result = await conn.execute(
                text("SELECT 1 FROM schema_migrations WHERE version = :version"),
                {"version": version},
            )
            if result.first():
                continue

            for statement in split_statements(migration_file.read_text(encoding="utf-8")):
                await conn.execute(text(statement))
            await conn.execute(
                text("INSERT INTO schema_migrations (version) VALUES (:version)"),
                {"version": version},
            )
            applied.append(version)
            logger.info("Applied migration %s", version)
    return applied
