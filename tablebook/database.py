"""
Database configuration and session management
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
import structlog

from tablebook.config import Settings

logger = structlog.get_logger()

Base = declarative_base()


def build_engine(settings: Settings) -> AsyncEngine:
    return create_async_engine(
        settings.database_url,
        pool_pre_ping=True,
        future=True,
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """Dependency to get a database session"""
    async with request.app.state.session_factory() as session:
        yield session


@asynccontextmanager
async def session_scope(settings: Settings) -> AsyncIterator[AsyncSession]:
    """Session on a short-lived engine, for work outside the web app"""
    engine = build_engine(settings)
    try:
        async with build_session_factory(engine)() as session:
            yield session
    finally:
        # Pooled connections are bound to the loop that opened them
        await engine.dispose()


@asynccontextmanager
async def unit_of_work(db: AsyncSession) -> AsyncIterator[AsyncSession]:
    """Run a block as one transaction: commit on success, roll back on any error"""
    try:
        yield db
        await db.commit()
    except Exception:
        await db.rollback()
        raise
