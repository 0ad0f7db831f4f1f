"""
deferring/database.py

SQLAlchemy engine and session helpers.
The deferred relations never open sessions themselves; these helpers are for
applications and tests that want the configured defaults.
"""
from typing import Optional
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from deferring.config import settings


def create_db_engine(url: Optional[str] = None, echo: Optional[bool] = None, **kwargs) -> Engine:
    """
    Create an engine for the configured database

    Args:
        url: Database URL, defaults to settings.DATABASE_URL
        echo: SQL echo, defaults to settings.SQL_ECHO
        **kwargs: Passed through to create_engine

    Returns:
        SQLAlchemy Engine
    """
    url = url or settings.DATABASE_URL
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    return create_engine(
        url,
        echo=settings.SQL_ECHO if echo is None else echo,
        **kwargs
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    """Session factory bound to ``engine`` (no autocommit, no autoflush)"""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


__all__ = ["create_db_engine", "create_session_factory"]
