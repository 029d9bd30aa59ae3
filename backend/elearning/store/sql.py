from __future__ import annotations

import contextlib
import logging
from collections.abc import Iterator, Mapping
from typing import Any

from sqlalchemy import delete, insert, or_, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from elearning.core.errors import PersistenceError
from elearning.models.document import Document
from elearning.store.base import DocumentStore, ancestors, join_path, normalize_path


log = logging.getLogger(__name__)


def _flatten(path: str, value: Any) -> Iterator[tuple[str, Any]]:
    if isinstance(value, Mapping):
        for key, child in value.items():
            yield from _flatten(join_path(path, key), child)
    elif isinstance(value, (list, tuple)):
        for idx, child in enumerate(value):
            yield from _flatten(f"{path}/{idx}", child)
    elif value is not None:
        yield path, value


class SqlDocumentStore(DocumentStore):
    """Document tree kept in the ``documents`` table, one row per leaf.

    Writes commit immediately unless they run inside ``transaction()``, in which case
    they commit together or not at all.
    """

    def __init__(self, db: Session):
        self.db = db
        self._in_transaction = False

    def get(self, path: str) -> Any | None:
        p = normalize_path(path)
        try:
            rows = self.db.execute(
                select(Document.path, Document.value).where(
                    or_(Document.path == p, Document.path.startswith(f"{p}/", autoescape=True))
                )
            ).all()
        except SQLAlchemyError as e:
            log.warning("sql_store: read failed path=%s", p)
            raise PersistenceError(f"read failed for {p}") from e

        if not rows:
            return None

        tree: dict[str, Any] = {}
        for row_path, value in rows:
            if row_path == p:
                return value
            parts = row_path[len(p) + 1 :].split("/")
            node = tree
            for part in parts[:-1]:
                node = node.setdefault(part, {})
            node[parts[-1]] = value
        return tree

    def set(self, path: str, value: Any) -> None:
        p = normalize_path(path)
        self._write({p: value})

    def update(self, path: str, values: Mapping[str, Any]) -> None:
        p = normalize_path(path)
        self._write({join_path(p, key): value for key, value in values.items()})

    def ping(self) -> None:
        try:
            self.db.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            raise PersistenceError("database not reachable") from e

    @contextlib.contextmanager
    def transaction(self) -> Iterator[None]:
        if self._in_transaction:
            yield
            return

        self._in_transaction = True
        try:
            yield
            self._commit()
        except BaseException:
            self.db.rollback()
            raise
        finally:
            self._in_transaction = False

    def _write(self, writes: dict[str, Any]) -> None:
        try:
            for p, value in writes.items():
                self.db.execute(
                    delete(Document).where(
                        or_(
                            Document.path == p,
                            Document.path.startswith(f"{p}/", autoescape=True),
                            Document.path.in_(ancestors(p)),
                        )
                    ).execution_options(synchronize_session=False)
                )
                leaves = [{"path": leaf_path, "value": leaf} for leaf_path, leaf in _flatten(p, value)]
                if leaves:
                    self.db.execute(insert(Document), leaves)
        except SQLAlchemyError as e:
            self.db.rollback()
            log.warning("sql_store: write failed paths=%s", ",".join(writes))
            raise PersistenceError("write failed") from e

        if not self._in_transaction:
            self._commit()

    def _commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError("commit failed") from e
