# sahar/backend.py
"""
Row-level gateway to the database.

Every call opens its own session and commits on its own: there is no
transaction spanning two calls. Workflows that write several tables
(checkout) must cope with a failure between two calls themselves.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import delete as sa_delete, update as sa_update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import SQLModel, Session, select

log = logging.getLogger("sahar.backend")

M = TypeVar("M", bound=SQLModel)


class BackendError(RuntimeError):
    """A backend call failed (connection, constraint, bad statement...)."""


class Backend:
    def __init__(self, engine) -> None:
        self.engine = engine

    def _session(self) -> Session:
        return Session(self.engine, expire_on_commit=False)

    def _fail(self, op: str, table: str, e: Exception) -> BackendError:
        log.exception("backend %s on %s failed", op, table)
        return BackendError(f"{op} {table} failed: {e}")

    # --- reads ---------------------------------------------------------------

    def select(
        self,
        model: Type[M],
        *where,
        order_by: Optional[Sequence[Any]] = None,
        limit: Optional[int] = None,
    ) -> List[M]:
        stmt = select(model)
        if where:
            stmt = stmt.where(*where)
        if order_by is not None:
            stmt = stmt.order_by(*order_by)
        if limit is not None:
            stmt = stmt.limit(limit)
        try:
            with self._session() as s:
                return list(s.exec(stmt).all())
        except SQLAlchemyError as e:
            raise self._fail("select", model.__tablename__, e) from e

    def first(self, model: Type[M], *where, order_by: Optional[Sequence[Any]] = None) -> Optional[M]:
        rows = self.select(model, *where, order_by=order_by, limit=1)
        return rows[0] if rows else None

    def get(self, model: Type[M], pk: Any) -> Optional[M]:
        try:
            with self._session() as s:
                return s.get(model, pk)
        except SQLAlchemyError as e:
            raise self._fail("get", model.__tablename__, e) from e

    def query(self, stmt, label: str = "query") -> list:
        """Run a prebuilt select (joined reads). Rows come back as tuples."""
        try:
            with self._session() as s:
                return list(s.exec(stmt).all())
        except SQLAlchemyError as e:
            raise self._fail("select", label, e) from e

    # --- writes --------------------------------------------------------------

    def insert(self, model: Type[M], rows: Iterable[Dict[str, Any]]) -> List[M]:
        """Insert rows and return them with generated keys filled in."""
        objs = [model(**r) for r in rows]
        if not objs:
            return []
        try:
            with self._session() as s:
                s.add_all(objs)
                s.commit()
                for o in objs:
                    s.refresh(o)
                return objs
        except SQLAlchemyError as e:
            raise self._fail("insert", model.__tablename__, e) from e

    def insert_one(self, model: Type[M], row: Dict[str, Any]) -> M:
        return self.insert(model, [row])[0]

    def update(self, model: Type[M], values: Dict[str, Any], *where) -> int:
        if not where:
            raise ValueError("update without filter refused")
        stmt = sa_update(model).where(*where).values(**values)
        try:
            with self._session() as s:
                res = s.execute(stmt)
                s.commit()
                return int(res.rowcount or 0)
        except SQLAlchemyError as e:
            raise self._fail("update", model.__tablename__, e) from e

    def delete(self, model: Type[M], *where) -> int:
        if not where:
            raise ValueError("delete without filter refused")
        stmt = sa_delete(model).where(*where)
        try:
            with self._session() as s:
                res = s.execute(stmt)
                s.commit()
                return int(res.rowcount or 0)
        except SQLAlchemyError as e:
            raise self._fail("delete", model.__tablename__, e) from e
