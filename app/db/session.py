from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from app.core.config import settings

# pool_pre_ping avoids handing out connections the server already closed;
# pool_recycle drops idle connections after five minutes.
engine = create_async_engine(
    settings.database_url,
    echo=False,
    future=True,
    pool_pre_ping=True,
    pool_recycle=300,
)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """One session per request; the scheduling services commit or roll back explicitly."""
    async with AsyncSessionLocal() as session:
        yield session


async def create_tables(bind: Optional[AsyncEngine] = None) -> None:
    """Create every mapped table (dev databases and tests)."""
    import app.core.models  # noqa: F401  (register mappers)
    import app.auth.models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
