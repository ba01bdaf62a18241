from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from replay_browser.core.config import settings

engine = create_async_engine(settings.db_url)


async def get_db() -> AsyncGenerator[AsyncSession]:
    async with AsyncSession(
        engine, autocommit=False, autoflush=False, expire_on_commit=False
    ) as session:
        yield session


def get_session() -> AsyncSession:
    """Session for work that runs outside a request, such as the replay parser."""
    return AsyncSession(engine, expire_on_commit=False)


async def create_tables() -> None:
    # Import the models so their tables are registered on the metadata
    import replay_browser.models  # noqa: F401, PLC0415

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
