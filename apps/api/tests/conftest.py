from __future__ import annotations

import os
import uuid
from collections.abc import Iterator
from contextlib import suppress
from pathlib import Path

import pytest
from alembic.config import Config
from sqlalchemy import Engine, create_engine, text
from sqlalchemy.engine.url import URL, make_url
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from alembic import command

ALEMBIC_INI = Path(__file__).resolve().parents[1] / "alembic.ini"
LOCAL_HOSTS = {"localhost", "127.0.0.1", None}


def _base_database_url() -> URL:
    raw = os.environ.get("DATABASE_URL")
    if raw is None:
        # Settings reads the repo-root `.env`, which may move Postgres off :5432.
        from mediaops.core.config import get_settings

        raw = get_settings().DATABASE_URL
    url = make_url(raw)
    if url.host not in LOCAL_HOSTS:
        raise RuntimeError(
            "Refusing to run tests against a non-local DATABASE_URL host. "
            "Set DATABASE_URL to a local/dev Postgres instance."
        )
    return url


def _point_app_at(test_url: str, blob_dir: Path) -> None:
    os.environ["DATABASE_URL"] = test_url
    os.environ.setdefault("APP_ENV", "test")
    os.environ.setdefault("ALLOW_DEV_LOGIN", "true")
    os.environ.setdefault("COOKIE_SECURE", "false")
    os.environ.setdefault("RATE_LIMIT_REQUESTS_PER_MINUTE", "0")
    os.environ.setdefault("PUBLIC_RATE_LIMIT_REQUESTS_PER_MINUTE", "0")
    os.environ["BLOB_STORE"] = "local"
    os.environ["LOCAL_BLOB_DIR"] = str(blob_dir)
    # Email and calendar handlers skip when unconfigured.
    os.environ["RESEND_API_KEY"] = ""
    os.environ["NYLAS_API_KEY"] = ""
    _reset_cached_settings()


def _reset_cached_settings() -> None:
    from mediaops.core.config import get_settings
    from mediaops.db.session import get_engine, get_sessionmaker

    get_settings.cache_clear()
    get_engine.cache_clear()
    get_sessionmaker.cache_clear()


def _drop_database(admin_engine: Engine, db_name: str) -> None:
    with admin_engine.connect() as conn:
        conn.execute(
            text(
                "SELECT pg_terminate_backend(pid) FROM pg_stat_activity "
                "WHERE datname = :db_name AND pid <> pg_backend_pid()"
            ),
            {"db_name": db_name},
        )
        conn.execute(text(f'DROP DATABASE IF EXISTS "{db_name}"'))


@pytest.fixture(scope="session")
def _test_database(tmp_path_factory: pytest.TempPathFactory) -> Iterator[None]:
    """A throwaway database migrated to head, shared by the whole session."""
    url = _base_database_url()
    db_name = f"mediaops_test_{uuid.uuid4().hex}"
    admin_engine = create_engine(
        url.set(database="postgres"), isolation_level="AUTOCOMMIT", pool_pre_ping=True
    )

    try:
        with admin_engine.connect() as conn:
            conn.execute(text(f'CREATE DATABASE "{db_name}"'))
    except OperationalError as e:
        admin_engine.dispose()
        pytest.skip(f"Postgres is not reachable: {e.orig}")

    _point_app_at(
        url.set(database=db_name).render_as_string(hide_password=False),
        tmp_path_factory.mktemp("blobs"),
    )
    command.upgrade(Config(str(ALEMBIC_INI)), "head")

    yield

    from mediaops.db.session import get_engine

    # Pooled connections would block DROP DATABASE.
    with suppress(Exception):
        get_engine().dispose()
    _reset_cached_settings()
    _drop_database(admin_engine, db_name)
    admin_engine.dispose()


@pytest.fixture()
def db_session(_test_database: None) -> Iterator[Session]:
    from mediaops.db.session import session_scope

    with session_scope() as session:
        yield session
