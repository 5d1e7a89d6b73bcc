from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from functools import lru_cache

from sqlalchemy import Engine, create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from mediaops.core.config import get_settings

logger = logging.getLogger("mediaops.api")


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    settings = get_settings()
    return create_engine(
        settings.DATABASE_URL,
        pool_pre_ping=True,
        # Shows up in pg_stat_activity next to the worker's connections.
        connect_args={"application_name": f"mediaops-{settings.APP_ENV}"},
    )


@lru_cache(maxsize=1)
def get_sessionmaker() -> sessionmaker[Session]:
    return sessionmaker(bind=get_engine(), autoflush=False, expire_on_commit=False)


@contextmanager
def session_scope() -> Iterator[Session]:
    """A session for work outside a request: the worker loop and scripts.

    Commits stay with the caller; anything uncommitted is discarded on exit.
    """
    session = get_sessionmaker()()
    try:
        yield session
    finally:
        session.close()


def get_session() -> Iterator[Session]:
    with session_scope() as session:
        yield session


@contextmanager
def best_effort_savepoint(session: Session, *, what: str, **ids: object) -> Iterator[None]:
    """Run a secondary write in a SAVEPOINT; a failure rolls back only that write."""
    try:
        with session.begin_nested():
            yield
    except SQLAlchemyError:
        logger.warning(
            "best-effort %s failed (%s)",
            what,
            ", ".join(f"{k}={v}" for k, v in sorted(ids.items())),
            exc_info=True,
        )
