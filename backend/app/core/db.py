"""数据库会话与基础模型。"""

from __future__ import annotations

from contextlib import contextmanager
from functools import lru_cache

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import get_settings


class Base(DeclarativeBase):
    """Declarative Base."""


def build_engine(database_url: str) -> Engine:
    if database_url.startswith("sqlite"):
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if database_url in {"sqlite://", "sqlite:///:memory:"}:
            # One shared connection, otherwise every session sees an empty database.
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, echo=False, future=True, **kwargs)
    return create_engine(database_url, echo=False, future=True, pool_pre_ping=True)


def _resolve_url(database_url: str | None) -> str:
    return database_url or get_settings().database_url


@lru_cache
def _engine_for(database_url: str) -> Engine:
    return build_engine(database_url)


@lru_cache
def _sessionmaker_for(database_url: str) -> sessionmaker:
    return sessionmaker(bind=_engine_for(database_url), autoflush=False, autocommit=False, future=True)


def get_engine(database_url: str | None = None) -> Engine:
    """Engine for ``database_url``; one per URL, so callers sharing a URL share a database."""
    return _engine_for(_resolve_url(database_url))


def get_sessionmaker(database_url: str | None = None) -> sessionmaker:
    return _sessionmaker_for(_resolve_url(database_url))


def create_all(database_url: str | None = None) -> None:
    from app.models import user  # noqa: F401

    Base.metadata.create_all(bind=get_engine(database_url))


@contextmanager
def get_session(database_url: str | None = None):
    session = get_sessionmaker(database_url)()
    try:
        yield session
    finally:
        session.close()
