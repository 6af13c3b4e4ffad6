from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from fitledger.config import settings
from fitledger.db.base import Base

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
)
async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db() -> None:
    import fitledger.models  # noqa: F401 - register tables on Base.metadata

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
