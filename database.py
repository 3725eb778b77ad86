from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

import models  # noqa: F401  registers the bookings table on SQLModel.metadata


def create_engine(database_url: str) -> AsyncEngine:
    # Fail fast rather than at the first query
    if not database_url:
        raise ValueError("DATABASE_URL is not set. Please check your .env file.")
    return create_async_engine(database_url, echo=False, future=True)


def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(engine: AsyncEngine):
    async with engine.begin() as conn:
        # This creates the tables if they don't exist
        await conn.run_sync(SQLModel.metadata.create_all)
