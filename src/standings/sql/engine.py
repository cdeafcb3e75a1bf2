"""Engine and metadata setup for the standings tables.

The database URL comes from the caller, ``STANDINGS_DATABASE_URL``,
``DATABASE_URL``, or the ``STANDINGS_DB_*`` / ``POSTGRES_*`` connection
variables, in that order.
"""

from __future__ import annotations

import os
from typing import Optional

from sqlalchemy import create_engine as _sa_create_engine
from sqlalchemy import text
from sqlalchemy.engine import URL, Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .constants import SCHEMA

Base = declarative_base()

# Connection variable suffix -> POSTGRES_* fallback name
_DB_ENV_FALLBACKS = {
    "HOST": "POSTGRES_HOST",
    "PORT": "POSTGRES_PORT",
    "NAME": "POSTGRES_DB",
    "USER": "POSTGRES_USER",
    "PASSWORD": "POSTGRES_PASSWORD",
    "SSLMODE": "POSTGRES_SSLMODE",
}


def _db_env(suffix: str) -> Optional[str]:
    return os.getenv(f"STANDINGS_DB_{suffix}") or os.getenv(_DB_ENV_FALLBACKS[suffix])


def _build_url_from_env() -> str | None:
    """Postgres URL from connection variables; None without host and user."""
    host, user = _db_env("HOST"), _db_env("USER")
    if not host or not user:
        return None
    sslmode = _db_env("SSLMODE")
    url = URL.create(
        "postgresql",
        username=user,
        password=_db_env("PASSWORD") or None,
        host=host,
        port=int(_db_env("PORT") or 5432),
        database=_db_env("NAME") or "standings_db",
        query={"sslmode": sslmode} if sslmode else {},
    )
    return url.render_as_string(hide_password=False)


def create_engine(url: Optional[str] = None, *, echo: bool = False) -> Engine:
    database_url = (
        url
        or os.getenv("STANDINGS_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or _build_url_from_env()
    )
    if not database_url:
        raise RuntimeError(
            "No standings database configured: pass --db-url or set "
            "STANDINGS_DATABASE_URL, DATABASE_URL or STANDINGS_DB_HOST/USER"
        )
    return _sa_create_engine(database_url, echo=echo, future=True)


def create_session_factory(engine: Engine):
    """Return a configured sessionmaker bound to the engine."""
    return sessionmaker(bind=engine, autoflush=False, future=True)


def ensure_schema(engine: Engine) -> None:
    """Create the standings schema if it does not exist (idempotent).

    Only Postgres has schemas to create; other dialects are left alone.
    """
    if engine.dialect.name != "postgresql":
        return
    with engine.begin() as conn:
        conn.execute(text(f"CREATE SCHEMA IF NOT EXISTS {SCHEMA}"))


def create_all(engine: Engine) -> None:
    """Create all tables in the standings schema (idempotent)."""
    from . import models  # noqa: F401 - ensure models are imported

    ensure_schema(engine)
    Base.metadata.create_all(engine)
