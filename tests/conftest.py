import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./fee_ledger_test.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from typing import AsyncGenerator, Callable
from uuid import UUID

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from app.api.v1.fee_structures import service as fee_structure_service
from app.api.v1.fees.locks import record_locks
from app.core.models import StudentFeeRecord
from app.db.session import Base, get_db
from app.main import app

from .helpers import School, add_student, create_school, structure_payload


@pytest.fixture()
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Fresh SQLite file per test; separate sessions see each other's commits."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'fees.db'}", future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture()
async def db_session(session_factory: async_sessionmaker) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture()
async def client(session_factory: async_sessionmaker) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app; every request gets its own session."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def _no_leaked_locks():
    yield
    assert len(record_locks) == 0


@pytest.fixture()
async def school(db_session: AsyncSession) -> School:
    return await create_school(db_session)


@pytest.fixture()
def make_record(db_session: AsyncSession, school: School) -> Callable:
    """Create a structure with the given installments, apply it to one new student, return the record id."""

    async def _make(installments, student_name: str = "Asha Rao", **student_kwargs) -> UUID:
        total = sum(amount for _, amount in installments)
        student_id = await add_student(db_session, school, student_name, **student_kwargs)
        created = await fee_structure_service.create_fee_structure(
            db_session,
            school.tenant_id,
            structure_payload(total_amount=total, installments=installments, name=f"Fees {student_name}"),
            created_by=school.admin_id,
        )
        await fee_structure_service.apply_fee_structure(db_session, school.tenant_id, created.id)
        return (
            await db_session.execute(
                select(StudentFeeRecord.id).where(
                    StudentFeeRecord.student_id == student_id,
                    StudentFeeRecord.fee_structure_id == created.id,
                )
            )
        ).scalar_one()

    return _make
