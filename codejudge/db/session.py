"""Session forge."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from codejudge.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


def build_engine(database_url: str, *, echo: bool = False) -> Engine:
    """Create an engine for ``database_url``.

    SQLite gets ``check_same_thread=False`` because the polling loop and request handlers share the
    engine; in-memory SQLite additionally pins a single connection so every session sees the same
    database.
    """
    if not database_url:
        raise RuntimeError("DATABASE_URL not configured")
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}, "echo": echo}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite+pysqlite://"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)
    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=5,
        pool_recycle=300,
        echo=echo,
    )


def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


def create_all(engine: Engine) -> None:
    """Create every registered table (used for SQLite/dev; production runs Alembic)."""
    from codejudge.db.base import Base
    import codejudge.db.models  # noqa: F401  (populate metadata)

    Base.metadata.create_all(bind=engine)
    logger.debug("Ensured tables: %s", ", ".join(sorted(Base.metadata.tables)))


_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker[Session]] = None


def get_engine(settings: Optional[Settings] = None) -> Engine:
    global _engine
    if _engine is None:
        cfg = settings or get_settings()
        _engine = build_engine(cfg.database_url, echo=cfg.debug)
    return _engine


def get_session_factory(settings: Optional[Settings] = None) -> sessionmaker[Session]:
    global _session_factory
    if _session_factory is None:
        _session_factory = build_session_factory(get_engine(settings))
    return _session_factory
