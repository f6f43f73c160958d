"""Database engine, session factory and declarative base."""
import secrets
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from tenantpay.config import settings

engine = create_async_engine(
    settings.DATABASE_URL,
    echo=False,
    pool_pre_ping=True,
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

# Older scripts import the session factory under this name
AsyncSessionLocal = async_session_maker

Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that yields a session per request."""
    async with async_session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


def generate_id(prefix: str) -> str:
    """Generate a unique ID with a prefix, e.g. ``pay_1a2b3c4d5e6f``."""
    return f"{prefix}_{secrets.token_hex(6)}"
