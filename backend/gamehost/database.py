from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import Settings, get_settings


def build_engine(settings: Settings) -> AsyncEngine:
    options: dict[str, object] = {"echo": settings.echo_sql, "pool_pre_ping": True}
    # MySQL drops idle connections after wait_timeout.
    if settings.database_url.startswith("mysql"):
        options["pool_recycle"] = 3600
    return create_async_engine(settings.database_url, **options)


engine = build_engine(get_settings())

# Repositories commit per write, so loaded rows must stay usable after commit.
async_session = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
