"""Async engine, session factory and declarative base."""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from ledger_indexer.core.config import get_settings


class Base(DeclarativeBase):
    """Declarative base for all indexer models."""


settings = get_settings()

engine = create_async_engine(
    settings.get_database_url(),
    echo=False,
    future=True,
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

