from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from contextlib import asynccontextmanager
from sqlalchemy.pool import NullPool
from astrid.core.config import settings
import os

DATABASE_URL = settings.database_url

DISABLE_ASYNC_POOL = os.getenv("DISABLE_ASYNC_DB_POOL", "0") == "1"

engine_kwargs = dict(echo=False, pool_pre_ping=True)
if DISABLE_ASYNC_POOL or DATABASE_URL.startswith("sqlite"):
    engine_kwargs["poolclass"] = NullPool

engine = create_async_engine(DATABASE_URL, **engine_kwargs)

AsyncSessionLocal = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)

Base = declarative_base()

# Dependency for FastAPI routes
async def get_db():
    async with AsyncSessionLocal() as session:
        yield session

# context manager used by background services (reconcile sweep, welcome hook)
@asynccontextmanager
async def async_session():
    async with AsyncSessionLocal() as session:
        yield session
