from collections.abc import AsyncGenerator

from fastapi import Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from bookkeeping.config import Settings

# ---------------------------------------------------------------------------
# Declarative base for all models
# ---------------------------------------------------------------------------


class Base(DeclarativeBase):
    pass


# ---------------------------------------------------------------------------
# Engine & session factory (built by the application lifespan, not at import)
# ---------------------------------------------------------------------------


def build_engine(settings: Settings) -> AsyncEngine:
    kwargs = {"echo": False}
    if not settings.DATABASE_URL.startswith("sqlite"):
        kwargs.update(
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_pre_ping=True,
        )
    return create_async_engine(settings.DATABASE_URL, **kwargs)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


# ---------------------------------------------------------------------------
# Schema creation & reference data
# ---------------------------------------------------------------------------

# (id, name, normal_balance, description)
ACCOUNT_TYPES = [
    (1, "Asset", "debit", "Resources owned by the organization"),
    (2, "Liability", "credit", "Obligations owed to others"),
    (3, "Equity", "credit", "Owner's residual interest"),
    (4, "Revenue", "credit", "Income earned from operations"),
    (5, "Expense", "debit", "Costs incurred in operations"),
]


async def seed_account_types(session: AsyncSession) -> None:
    """Insert the global account types that are not present yet."""
    from bookkeeping.models.gl import AccountType

    existing = set((await session.execute(select(AccountType.id))).scalars().all())
    for type_id, name, normal_balance, description in ACCOUNT_TYPES:
        if type_id not in existing:
            session.add(AccountType(
                id=type_id,
                name=name,
                normal_balance=normal_balance,
                description=description,
            ))
    await session.commit()


async def init_db(engine: AsyncEngine) -> None:
    """Create all tables and seed reference data."""
    import bookkeeping.models  # noqa: F401  (registers every mapper)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with build_session_factory(engine)() as session:
        await seed_account_types(session)


# ---------------------------------------------------------------------------
# FastAPI dependency
# ---------------------------------------------------------------------------


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    session_factory = request.app.state.session_factory
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.close()
