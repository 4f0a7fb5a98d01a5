"""Durable path -> url store backed by a single SQLite file.

Records live in named namespaces (the ``mappings`` table keyed by
``(namespace, path)``). Each ``put`` is one write transaction; each ``get`` is
one read. SQLite runs in WAL mode so request threads read concurrently while
a single writer commits; callers never need their own locking.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from sqlalchemy import Column, ForeignKey, String, Text, create_engine, event, func, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import URL, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from redirector.src.pairs import PathUrlPair, build_map

BUSY_TIMEOUT_SECONDS = 5.0

logger = logging.getLogger(__name__)

Base = declarative_base()


class NamespaceRecord(Base):
    __tablename__ = "namespaces"

    name = Column(String(255), primary_key=True)


class PathRecord(Base):
    __tablename__ = "mappings"

    namespace = Column(
        String(255), ForeignKey("namespaces.name", ondelete="CASCADE"), primary_key=True
    )
    path = Column(Text, primary_key=True)
    url = Column(Text, nullable=False)


class StoreError(RuntimeError):
    """Base class for mapping store failures. A missing key is never one.

    ``operation`` names the store call that failed and labels the error metric.
    """

    operation = "unknown"

    def __init__(self, message: str, *, operation: str | None = None) -> None:
        super().__init__(message)
        if operation is not None:
            self.operation = operation


class StoreOpenError(StoreError):
    """The store file could not be opened or initialised."""

    operation = "open"


class StoreWriteError(StoreError):
    """A write transaction failed and was rolled back."""

    operation = "put"


class StoreReadError(StoreError):
    """A read failed for a reason other than a missing namespace or key."""

    operation = "get"


def _enable_wal(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA journal_mode=WAL")
    finally:
        cursor.close()


class MappingStore:
    """Namespaced path -> url records with transactional put/get."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._sessions = sessionmaker(bind=engine, expire_on_commit=False)

    @classmethod
    def open(cls, path: str | Path) -> MappingStore:
        """Open (creating if needed) the store file at *path*.

        Raises:
            StoreOpenError: the location is unwritable, is not a SQLite
                database, or the schema cannot be created.
        """
        engine = create_engine(
            URL.create("sqlite", database=str(path)),
            connect_args={"check_same_thread": False, "timeout": BUSY_TIMEOUT_SECONDS},
        )
        event.listen(engine, "connect", _enable_wal)
        try:
            Base.metadata.create_all(engine)
        except SQLAlchemyError as exc:
            engine.dispose()
            raise StoreOpenError(f"Cannot open mapping store at {path}: {exc}") from exc
        logger.info("Opened mapping store at %s", path)
        return cls(engine)

    def close(self) -> None:
        self._engine.dispose()

    def put(self, namespace: str, pairs: Iterable[PathUrlPair]) -> int:
        """Write *pairs* into *namespace* in one transaction and return the number of paths.

        The namespace is created when absent. Existing paths are overwritten,
        and a path repeated inside *pairs* keeps its last url. Either every
        record commits or none does.

        Raises:
            StoreWriteError: the transaction failed.
        """
        latest = build_map(pairs)
        ensure_namespace = sqlite_insert(NamespaceRecord.__table__).on_conflict_do_nothing(
            index_elements=["name"]
        )
        upsert = sqlite_insert(PathRecord.__table__)
        upsert = upsert.on_conflict_do_update(
            index_elements=["namespace", "path"],
            set_={"url": upsert.excluded.url},
        )
        try:
            with self._sessions.begin() as session:
                session.execute(ensure_namespace, {"name": namespace})
                if latest:
                    session.execute(
                        upsert,
                        [
                            {"namespace": namespace, "path": path, "url": url}
                            for path, url in latest.items()
                        ],
                    )
        except SQLAlchemyError as exc:
            raise StoreWriteError(
                f"Failed to write {len(latest)} mappings to namespace {namespace!r}: {exc}"
            ) from exc
        return len(latest)

    def get(self, namespace: str, path: str) -> str | None:
        """Return the url stored for *path*, or ``None`` when the namespace or key is absent.

        A stored empty url comes back as ``""``; deciding what that means is
        left to the caller.

        Raises:
            StoreReadError: the underlying query failed.
        """
        stmt = select(PathRecord.url).where(
            PathRecord.namespace == namespace, PathRecord.path == path
        )
        try:
            with self._sessions() as session:
                return session.scalar(stmt)
        except SQLAlchemyError as exc:
            raise StoreReadError(f"Failed to read {path!r} from namespace {namespace!r}") from exc

    def count(self, namespace: str) -> int:
        stmt = select(func.count()).select_from(PathRecord).where(PathRecord.namespace == namespace)
        try:
            with self._sessions() as session:
                return session.scalar(stmt) or 0
        except SQLAlchemyError as exc:
            raise StoreReadError(
                f"Failed to count namespace {namespace!r}", operation="count"
            ) from exc

    def namespaces(self) -> list[str]:
        try:
            with self._sessions() as session:
                return list(session.scalars(select(NamespaceRecord.name).order_by(NamespaceRecord.name)))
        except SQLAlchemyError as exc:
            raise StoreReadError("Failed to list namespaces", operation="namespaces") from exc
