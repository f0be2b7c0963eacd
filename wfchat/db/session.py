from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from wfchat.core.settings import settings
from wfchat.db.models import Base
from typing import Optional

def build_engine(url: Optional[str] = None) -> AsyncEngine:
    url = url or settings.db.url
    if not url:
        raise ValueError("DATABASE_URL is not configured")
    return create_async_engine(url, echo=settings.log_level == "DEBUG")

def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

async def init_models(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
