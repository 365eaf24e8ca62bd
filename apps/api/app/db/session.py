"""Database client held in application state.

Lifecycle: the FastAPI lifespan constructs one Database, calls
initialize() once, stores it on app.state.database, and disposes it on
shutdown. Requests obtain sessions through app.core.deps.get_db.
"""

import logging
import threading

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.base import Base

logger = logging.getLogger(__name__)


def build_engine(database_url: str) -> Engine:
    url = make_url(database_url)
    backend = url.get_backend_name()

    connect_args: dict = {}
    engine_kwargs: dict = {"pool_pre_ping": True}
    if backend.startswith("postgresql"):
        connect_args["options"] = "-c timezone=utc"
    elif backend == "sqlite":
        connect_args["check_same_thread"] = False
        if url.database in (None, "", ":memory:"):
            # One shared connection, otherwise each checkout sees an empty DB
            engine_kwargs["poolclass"] = StaticPool

    return create_engine(database_url, connect_args=connect_args, **engine_kwargs)


class Database:
    """Engine + session factory with one-time, retryable initialization."""

    def __init__(self, database_url: str, *, auto_migrate: bool = False):
        self.engine = build_engine(database_url)
        self.session_factory = sessionmaker(
            autocommit=False, autoflush=False, bind=self.engine
        )
        self.auto_migrate = auto_migrate
        self._initialized = False
        self._init_lock = threading.Lock()

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        """
        Create or migrate the schema exactly once.

        Concurrent callers block on the lock and return once the first
        caller finishes. A failure leaves the flag unset so the next call
        retries.
        """
        if self._initialized:
            return
        with self._init_lock:
            if self._initialized:
                return
            try:
                if self.auto_migrate:
                    from app.core.migrations import ensure_migrations

                    ensure_migrations(self.engine, auto_migrate=True)
                else:
                    Base.metadata.create_all(self.engine)
            except Exception:
                logger.exception("Database initialization failed")
                raise
            self._initialized = True
            logger.info("Database initialized (%s)", self.engine.url.get_backend_name())

    def session(self) -> Session:
        return self.session_factory()

    def dispose(self) -> None:
        self.engine.dispose()
