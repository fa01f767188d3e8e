from contextlib import contextmanager
from typing import Iterator, Optional

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

import logging
logger = logging.getLogger("app.database")

Base = declarative_base()


class Database:
    """
    Engine + session factory for one process.

    Built by the application entry point at startup and disposed at shutdown;
    nothing in the package keeps a module-level engine.
    """

    def __init__(self, url: str, pool_size: int = 20, pool_timeout: int = 10,
                 pool_recycle: int = 1800, echo: bool = False):
        self.url = url
        if url.startswith("sqlite"):
            # in-memory sqlite must share a single connection across sessions
            self.engine: Engine = create_engine(
                url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
                echo=echo,
            )
            event.listen(self.engine, "connect", _enable_sqlite_fks)
        else:
            self.engine = create_engine(
                url,
                pool_size=pool_size,
                pool_timeout=pool_timeout,
                pool_recycle=pool_recycle,
                pool_pre_ping=True,
                echo=echo,
            )
        self.SessionLocal = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)

    def create_all(self):
        # import side effect: registers every table on Base.metadata
        from lab_manager.models import (  # noqa: F401
            user, lab, lab_class, computer, group, enrollment,
            timetable, lab_session, coursework,
        )
        Base.metadata.create_all(bind=self.engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        db = self.SessionLocal()
        try:
            yield db
        finally:
            db.close()

    def dispose(self):
        logger.info("Disposing database engine")
        self.engine.dispose()


def _enable_sqlite_fks(dbapi_conn, _record):
    cur = dbapi_conn.cursor()
    cur.execute("PRAGMA foreign_keys=ON")
    cur.close()


def get_db(request: Request) -> Iterator[Session]:
    database: Optional[Database] = getattr(request.app.state, "db", None)
    if database is None:
        raise RuntimeError("Database is not initialised; was the app started through its lifespan?")
    with database.session() as db:
        yield db
