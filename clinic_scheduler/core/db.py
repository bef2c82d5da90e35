from collections.abc import AsyncGenerator
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

_APPOINTMENT_RANGE = "tsrange(appointment_date + start_time, appointment_date + end_time, '[)')"

# Same constraints as migrations/versions/001_initial_schema.py
APPOINTMENT_EXCLUSION_CONSTRAINTS = {
    "ex_appointments_resource_overlap": (
        "ALTER TABLE appointments ADD CONSTRAINT ex_appointments_resource_overlap "
        f"EXCLUDE USING gist (resource_id WITH =, {_APPOINTMENT_RANGE} WITH &&) "
        "WHERE (status <> 'cancelled' AND resource_id IS NOT NULL)"
    ),
    "ex_appointments_professional_overlap": (
        "ALTER TABLE appointments ADD CONSTRAINT ex_appointments_professional_overlap "
        f"EXCLUDE USING gist (professional_id WITH =, {_APPOINTMENT_RANGE} WITH &&) "
        "WHERE (status <> 'cancelled' AND blocks_professional AND professional_id IS NOT NULL)"
    ),
}


def to_async_database_url(database_url: str) -> str:
    """Use asyncpg for postgres URLs. asyncpg does not accept psycopg params like sslmode/channel_binding."""
    parsed = urlparse(database_url)
    if parsed.scheme not in ("postgresql", "postgres"):
        return database_url
    query = parse_qs(parsed.query, keep_blank_values=True)
    query.pop("sslmode", None)
    query.pop("channel_binding", None)
    new_query = urlencode(query, doseq=True)
    return urlunparse(
        ("postgresql+asyncpg", parsed.netloc, parsed.path, parsed.params, new_query, parsed.fragment)
    )


def build_engine(database_url: str, echo: bool = False, ssl: bool = False) -> AsyncEngine:
    url = to_async_database_url(database_url)
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=echo)
    return create_async_engine(
        url,
        echo=echo,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
        connect_args={"ssl": True} if ssl else {},
    )


def build_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Yield a session from the session maker the app was started with."""
    session_maker = request.app.state.session_maker
    async with session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(engine: AsyncEngine) -> None:
    """Create tables if using create_all; prefer Alembic in production.

    On PostgreSQL the overlap exclusion constraints from the initial migration
    are added too, so both paths reject double bookings.
    """
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
        if conn.dialect.name != "postgresql":
            return
        await conn.execute(text("CREATE EXTENSION IF NOT EXISTS btree_gist"))
        for name, ddl in APPOINTMENT_EXCLUSION_CONSTRAINTS.items():
            exists = await conn.scalar(
                text("SELECT 1 FROM pg_constraint WHERE conname = :name"), {"name": name}
            )
            if not exists:
                await conn.execute(text(ddl))
