"""Database configuration and connection setup"""
import asyncio

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from appointease.config.settings import get_settings

settings = get_settings()


def build_engine(url: str = None, pooled: bool = True):
    """Create an async engine; workers pass pooled=False so each asyncio.run gets fresh connections"""
    url = url or settings.DATABASE_URL
    connect_args = driver_connect_args(url)
    if not pooled or url.startswith("sqlite"):
        return create_async_engine(url, poolclass=NullPool, echo=False, connect_args=connect_args)
    return create_async_engine(
        url,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_pre_ping=True,
        echo=False,
        connect_args=connect_args,
    )


def driver_connect_args(url: str) -> dict:
    """Per-statement timeout for asyncpg; a hung query surfaces as StoreUnavailable"""
    if url.startswith("postgresql+asyncpg"):
        return {"command_timeout": settings.DB_STATEMENT_TIMEOUT_SECONDS}
    return {}


engine = build_engine()

SessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    autoflush=False,
    expire_on_commit=False,
)


async def get_db():
    """Database dependency for FastAPI"""
    async with SessionLocal() as db:
        yield db


async def create_tables():
    """Create all tables (development helper; production uses alembic)"""
    from appointease.models import Base

    print("Creating all tables...")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    print("Database tables created successfully!")


if __name__ == "__main__":
    asyncio.run(create_tables())
