"""Async SQLAlchemy engine, pool configuration and session management."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, AsyncGenerator, Callable

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from rotaflow.config import Settings, settings


# ── Pool configuration ──────────────────────────────────────────────

@dataclass(frozen=True)
class PoolConfig:
    """Bounded connection-pool settings handed to :func:`build_engine`."""

    size: int = 20
    max_overflow: int = 10
    timeout: int = 5
    recycle: int = 1800
    statement_timeout_ms: int = 30000

    @classmethod
    def from_settings(cls, config: Settings) -> "PoolConfig":
        return cls(
            size=config.DB_POOL_SIZE,
            max_overflow=config.DB_MAX_OVERFLOW,
            timeout=config.DB_POOL_TIMEOUT,
            recycle=config.DB_POOL_RECYCLE,
            statement_timeout_ms=config.DB_STATEMENT_TIMEOUT_MS,
        )


def build_engine(url: str, pool: PoolConfig, *, echo: bool = False) -> AsyncEngine:
    """Create the async engine for *url* using the given pool limits.

    The statement timeout is enforced server-side through asyncpg's
    ``server_settings`` so every query on every pooled connection is bounded.
    """
    connect_args: dict[str, Any] = {}
    if url.startswith("postgresql+asyncpg"):
        connect_args["server_settings"] = {
            "statement_timeout": str(pool.statement_timeout_ms),
        }
    return create_async_engine(
        url,
        echo=echo,
        pool_size=pool.size,
        max_overflow=pool.max_overflow,
        pool_timeout=pool.timeout,
        pool_recycle=pool.recycle,
        pool_pre_ping=True,
        connect_args=connect_args,
    )


# Async engine for FastAPI
engine = build_engine(
    settings.DATABASE_URL,
    PoolConfig.from_settings(settings),
    echo=settings.ENVIRONMENT == "development",
)

# Async session factory
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


# ── Request-scoped sessions ─────────────────────────────────────────

def make_session_dependency(
    factory: async_sessionmaker[AsyncSession],
) -> Callable[[], AsyncGenerator[AsyncSession, None]]:
    """Build a FastAPI dependency that acquires one session per request.

    The primary mutation is committed first; notification events recorded on
    the session's outbox are dispatched only afterwards, so a failing side
    effect can never undo a committed decision.
    """

    async def _get_session() -> AsyncGenerator[AsyncSession, None]:
        from rotaflow.notifications.outbox import discard_pending, dispatch_pending

        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                discard_pending(session)
                raise
            await dispatch_pending(session)

    return _get_session


get_db = make_session_dependency(async_session_factory)


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """FastAPI dependency: the factory used by long-lived readers (SSE feed)."""
    return async_session_factory
