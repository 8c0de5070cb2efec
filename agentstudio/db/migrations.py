"""Versioned schema migrations.

Migrations run once per deployment (application startup or
``agentstudio db migrate``), never from a request handler. Applied
versions are recorded in ``schema_migrations``.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import Connection, select
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlmodel import Field, SQLModel

from agentstudio.db.models import Agent, Organization, utc_now
from agentstudio.logging import get_logger

logger = get_logger(__name__)


class SchemaMigration(SQLModel, table=True):
    """One applied migration."""

    __tablename__ = "schema_migrations"
    __table_args__ = {"extend_existing": True}

    version: int = Field(primary_key=True)
    name: str
    applied_at: datetime = Field(default_factory=utc_now)


@dataclass(frozen=True)
class Migration:
    version: int
    name: str
    apply: Callable[[Connection], None]


def _init_agent_studio(conn: Connection) -> None:
    SQLModel.metadata.create_all(
        conn,
        tables=[Organization.__table__, Agent.__table__],
    )


MIGRATIONS: list[Migration] = [
    Migration(1, "init_agent_studio", _init_agent_studio),
]


async def applied_versions(engine: AsyncEngine) -> set[int]:
    """Return the versions recorded in ``schema_migrations``."""
    async with engine.begin() as conn:
        await conn.run_sync(SchemaMigration.__table__.create, checkfirst=True)
        result = await conn.execute(select(SchemaMigration.__table__.c.version))
        return {row[0] for row in result}


async def run_migrations(engine: AsyncEngine) -> list[int]:
    """Apply every pending migration in version order.

    Each migration and its bookkeeping row commit together.

    Returns:
        The versions applied by this call (empty when up to date).
    """
    done = await applied_versions(engine)
    applied: list[int] = []
    for migration in sorted(MIGRATIONS, key=lambda m: m.version):
        if migration.version in done:
            continue
        async with engine.begin() as conn:
            await conn.run_sync(migration.apply)
            await conn.execute(
                SchemaMigration.__table__.insert().values(
                    version=migration.version,
                    name=migration.name,
                    applied_at=utc_now(),
                )
            )
        logger.info("migration_applied", version=migration.version, name=migration.name)
        applied.append(migration.version)
    return applied
