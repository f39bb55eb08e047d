# FILE: catalog_search/db.py
"""
Database plumbing.

Two separate stores are involved:
- the relational catalog (read-only here, sync SQLAlchemy, SQLite by default)
- the vector store (Postgres + pgvector, async SQLAlchemy over psycopg)
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()

_ASYNC_DRIVER = "postgresql+psycopg"


def create_catalog_engine(url: str) -> Engine:
    """Engine for the catalog store. Only ever used for SELECTs."""
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False  # Required for SQLite
    return create_engine(url, connect_args=connect_args, echo=False)


def catalog_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def to_async_url(connection_string: str) -> str:
    """
    Normalise a Postgres connection string to the async psycopg driver.

    Accepts postgres://, postgresql:// and postgresql+<driver>:// forms.
    """
    cs = connection_string.strip()
    if cs.startswith("postgres://"):
        cs = "postgresql://" + cs[len("postgres://"):]
    url = make_url(cs)
    if url.get_backend_name() != "postgresql":
        raise ValueError(
            f"Vector store requires a PostgreSQL connection string, got {url.get_backend_name()!r}"
        )
    return url.set(drivername=_ASYNC_DRIVER).render_as_string(hide_password=False)


def create_vector_engine(connection_string: str) -> AsyncEngine:
    """Process-wide async engine for the vector store."""
    return create_async_engine(
        to_async_url(connection_string),
        pool_pre_ping=True,
        echo=False,
    )
