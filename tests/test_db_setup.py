import pytest
from sqlalchemy import inspect, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from schooladmin.auth.models import User
from schooladmin.core.config import settings
from schooladmin.db import seed_super_admin as seed
from schooladmin.db.schema_check import ensure_schema
from schooladmin.db.session import Base


@pytest.fixture()
async def bare_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield engine
    await engine.dispose()


@pytest.mark.asyncio
async def test_ensure_schema_creates_missing_tables_once(bare_engine) -> None:
    created = await ensure_schema(bare_engine)

    assert set(created) == set(Base.metadata.tables)
    async with bare_engine.connect() as conn:
        tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
    assert {"users", "schools", "audit_logs", "impersonation_sessions"} <= set(tables)

    assert await ensure_schema(bare_engine) == []


@pytest.mark.asyncio
async def test_seed_runs_on_fresh_database(bare_engine, monkeypatch) -> None:
    monkeypatch.setattr(settings, "super_admin_email", "root@example.com")
    monkeypatch.setattr(settings, "super_admin_external_id", "idp_root")
    session_factory = async_sessionmaker(bind=bare_engine, class_=AsyncSession, expire_on_commit=False)
    monkeypatch.setattr(seed, "engine", bare_engine)
    monkeypatch.setattr(seed, "AsyncSessionLocal", session_factory)

    await seed.main()
    await seed.main()

    async with session_factory() as db:
        users = (await db.execute(select(User))).scalars().all()
    assert [(u.external_id, u.role, u.status) for u in users] == [
        ("idp_root", "SUPER_ADMIN", "APPROVED")
    ]
