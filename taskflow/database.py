import logging

from fastapi import Request
from sqlalchemy import inspect, text
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

logger = logging.getLogger(__name__)


class Database:
    """Owns the async engine and session factory for the process lifetime.

    Built once in the application lifespan and disposed at shutdown.
    """

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.engine = create_async_engine(
            url,
            echo=echo,
            future=True,
            pool_pre_ping=True,
        )
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @property
    def name(self) -> str:
        return self.engine.url.database or ""

    async def ping(self) -> None:
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def table_exists(self, table_name: str) -> bool:
        async with self.engine.connect() as conn:
            return await conn.run_sync(
                lambda sync_conn: inspect(sync_conn).has_table(table_name)
            )

    async def create_tables(self) -> None:
        """Create missing tables and their indexes (no-op for existing ones)."""
        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)

    async def close(self) -> None:
        await self.engine.dispose()
        logger.info("Database connection closed")


def get_database(request: Request) -> Database:
    return request.app.state.database


# Dependency for getting DB session
async def get_db(request: Request):
    async with get_database(request).session_factory() as session:
        yield session
