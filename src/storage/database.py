"""
SQLAlchemy engine and session handling for the engine's own tables
"""
import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from config.settings import Config

logger = logging.getLogger(__name__)

Base = declarative_base()


class Database:
    """Owns the engine and hands out transactional sessions"""

    def __init__(self, url: Optional[str] = None, echo: bool = False):
        self.url = url or Config.DATABASE_URL
        kwargs = {"echo": echo, "future": True}
        if self.url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in self.url or self.url == "sqlite://":
                # One shared connection, otherwise every session sees an empty database
                kwargs["poolclass"] = StaticPool
        self.engine = create_engine(self.url, **kwargs)
        self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)

    def create_all(self) -> None:
        # Import registers the models on Base.metadata
        from src.storage import models  # noqa: F401

        Base.metadata.create_all(self.engine)
        logger.info(f"Database ready at {self.engine.url.render_as_string(hide_password=True)}")

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        self.engine.dispose()
