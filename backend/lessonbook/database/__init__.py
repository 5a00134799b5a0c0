"""
Engine, session factory and declarative base for lessonbook.

SQLite (file or in-memory) is supported for development and tests; any
other URL gets a bounded connection pool.
"""

from __future__ import annotations

import logging
import random
import time
from typing import Any, Callable, TypeVar

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from lessonbook.core.config import settings

logger = logging.getLogger(__name__)

_SERVER_POOL_KWARGS: dict[str, Any] = {
    "pool_size": 5,
    "max_overflow": 10,
    # Booking requests should fail rather than queue behind an exhausted pool
    "pool_timeout": 5,
    "pool_recycle": 1800,
    "pool_pre_ping": True,
}


def build_engine(db_url: str, *, echo: bool = False) -> Engine:
    if not db_url.startswith("sqlite"):
        return create_engine(db_url, echo=echo, **_SERVER_POOL_KWARGS)
    kwargs: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
    if ":memory:" in db_url:
        # One shared connection, otherwise every checkout sees an empty database
        kwargs["poolclass"] = StaticPool
    return create_engine(db_url, echo=echo, **kwargs)


engine: Engine = build_engine(settings.get_database_url(), echo=settings.sql_echo)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)

Base = declarative_base()


T = TypeVar("T")

# Lower-cased fragments of OperationalError messages worth a second attempt
_TRANSIENT_ERRORS = (
    "server closed the connection",
    "ssl connection has been closed unexpectedly",
    "database is locked",
)


def _is_transient(exc: OperationalError) -> bool:
    message = str(exc).lower()
    return any(fragment in message for fragment in _TRANSIENT_ERRORS)


def _backoff(attempt: int) -> float:
    return 0.1 * (2 ** (attempt - 1)) + random.uniform(0, 0.05 * attempt)


def with_db_retry(op_name: str, func: Callable[[], T], *, max_attempts: int = 3) -> T:
    """
    Run ``func``, retrying transient connection and lock errors.

    ``func`` must open and finish its own transaction; a retried call starts
    from scratch, so nothing partial is ever replayed.
    """
    for attempt in range(1, max_attempts + 1):
        try:
            return func()
        except OperationalError as exc:
            if attempt == max_attempts or not _is_transient(exc):
                raise
            delay = _backoff(attempt)
            logger.warning(
                "Transient database error in %s, retrying",
                op_name,
                extra={"op": op_name, "attempt": attempt, "delay": delay, "error": str(exc)},
            )
            time.sleep(delay)
    raise RuntimeError("unreachable")  # pragma: no cover


__all__ = [
    "Base",
    "SessionLocal",
    "build_engine",
    "engine",
    "with_db_retry",
]
