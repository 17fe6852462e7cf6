"""Database handle and session management for the Sonare backend."""

from contextlib import contextmanager
from typing import Iterator

from fastapi import Request
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase, Session


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


def _enable_wal(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA journal_mode=WAL")
    finally:
        cursor.close()


class Database:
    """Owns the engine and session factory for one process run.

    Constructed by the orchestrator and handed to the app and the analytics
    recorder instead of living in module globals.
    """

    def __init__(self, url: str, **engine_kwargs):
        self.url = url
        self.engine: Engine = create_engine(url, echo=False, **engine_kwargs)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    @classmethod
    def for_sqlite_file(cls, path: str) -> "Database":
        """Open (creating if needed) a SQLite file in WAL mode."""
        db = cls(f"sqlite:///{path}", connect_args={"check_same_thread": False})
        event.listen(db.engine, "connect", _enable_wal)
        return db

    def create_all(self) -> None:
        # Import models so their tables are registered on Base.metadata
        from . import models  # noqa: F401
        Base.metadata.create_all(bind=self.engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        db = self.SessionLocal()
        try:
            yield db
        finally:
            db.close()

    def ping(self) -> None:
        """Round-trip a trivial query; raises SQLAlchemyError when down."""
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    def close(self) -> None:
        self.engine.dispose()


def init_db(path: str) -> Database:
    """Open the SQLite database at ``path`` and create missing tables."""
    db = Database.for_sqlite_file(path)
    db.ping()
    db.create_all()
    return db


def get_db(request: Request) -> Iterator[Session]:
    """Dependency for FastAPI to get a session from the app's database."""
    with request.app.state.db.session() as db:
        yield db
