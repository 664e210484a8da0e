"""
Generic table access used by the services.

The services only speak in table names, plain dict rows and equality
filters, so the relational store behind them can be swapped as long as it
offers select / insert / upsert-by-key / update.
"""
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence

from fastapi import Depends
from sqlalchemy import Table, and_, func, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from exampractice.core.database import get_db
from exampractice.core.errors import BackendError
from exampractice.models.orm import Base, new_id

logger = logging.getLogger(__name__)

Row = Dict[str, Any]


def _plain(row) -> Row:
    out = dict(row)
    for k, v in out.items():
        # sqlite hands back naive datetimes; everything is stored as UTC
        if isinstance(v, datetime) and v.tzinfo is None:
            out[k] = v.replace(tzinfo=timezone.utc)
    return out


class SqlBackend:
    def __init__(self, db: Session):
        self.db = db
        self._depth = 0

    def _table(self, name: str) -> Table:
        table = Base.metadata.tables.get(name)
        if table is None:
            raise BackendError(f"Unknown table: {name}")
        return table

    def _where(self, table: Table, filters: Optional[Dict[str, Any]]):
        clauses = []
        for col, value in (filters or {}).items():
            c = table.c[col]
            if value is None:
                clauses.append(c.is_(None))
            elif isinstance(value, (list, tuple, set)):
                clauses.append(c.in_(list(value)))
            else:
                clauses.append(c == value)
        return and_(*clauses) if clauses else None

    def _with_ids(self, table: Table, rows: Iterable[Row]) -> List[Row]:
        out = []
        for r in rows:
            r = dict(r)
            if "id" in table.c and not r.get("id"):
                r["id"] = new_id()
            out.append(r)
        return out

    def _commit(self):
        if self._depth == 0:
            self.db.commit()

    def _fail(self, action: str, table: str, exc: SQLAlchemyError):
        if self._depth == 0:
            self.db.rollback()
        message = str(getattr(exc, "orig", None) or exc)
        logger.error(f"{action} on {table} failed: {message}")
        raise BackendError(message) from exc

    @contextmanager
    def atomic(self):
        """Group several writes into one transaction; nothing is committed until the block exits cleanly."""
        self._depth += 1
        try:
            yield self
        except Exception:
            self._depth -= 1
            if self._depth == 0:
                self.db.rollback()
            raise
        self._depth -= 1
        if self._depth == 0:
            try:
                self.db.commit()
            except SQLAlchemyError as e:
                self._fail("commit", "transaction", e)

    def select(self, table: str, columns: Optional[Sequence[str]] = None, filters: Optional[Dict[str, Any]] = None,
               order: Optional[Sequence[str]] = None) -> List[Row]:
        """Rows of ``table`` matching ``filters``; ``order`` names columns, ``-col`` for descending."""
        t = self._table(table)
        cols = [t.c[c] for c in columns] if columns else [t]
        stmt = select(*cols)
        where = self._where(t, filters)
        if where is not None:
            stmt = stmt.where(where)
        for o in order or []:
            stmt = stmt.order_by(t.c[o[1:]].desc() if o.startswith("-") else t.c[o].asc())
        try:
            return [_plain(r) for r in self.db.execute(stmt).mappings().all()]
        except SQLAlchemyError as e:
            self._fail("select", table, e)

    def single(self, table: str, columns: Optional[Sequence[str]] = None, filters: Optional[Dict[str, Any]] = None) -> Optional[Row]:
        rows = self.select(table, columns, filters)
        return rows[0] if rows else None

    def insert(self, table: str, rows: Iterable[Row]) -> List[Row]:
        t = self._table(table)
        payload = self._with_ids(t, rows)
        if not payload:
            return []
        try:
            self.db.execute(insert(t), payload)
            self._commit()
        except SQLAlchemyError as e:
            self._fail("insert", table, e)
        return payload

    def upsert(self, table: str, rows: Iterable[Row], conflict: Sequence[str]) -> int:
        """Insert-or-update keyed by the unique columns in ``conflict``; the last write wins."""
        t = self._table(table)
        payload = self._with_ids(t, rows)
        if not payload:
            return 0
        dialect = self.db.get_bind().dialect.name
        try:
            if dialect in ("postgresql", "sqlite"):
                if dialect == "postgresql":
                    from sqlalchemy.dialects.postgresql import insert as dialect_insert
                else:
                    from sqlalchemy.dialects.sqlite import insert as dialect_insert
                stmt = dialect_insert(t)
                changed = {k: stmt.excluded[k] for k in payload[0] if k not in conflict and k != "id"}
                if "updated_at" in t.c:
                    changed["updated_at"] = func.now()
                self.db.execute(stmt.on_conflict_do_update(index_elements=list(conflict), set_=changed), payload)
            else:
                for r in payload:
                    key = {k: r[k] for k in conflict}
                    patch = {k: v for k, v in r.items() if k not in conflict and k != "id"}
                    res = self.db.execute(update(t).where(self._where(t, key)).values(**patch))
                    if res.rowcount == 0:
                        self.db.execute(insert(t).values(**r))
            self._commit()
        except SQLAlchemyError as e:
            self._fail("upsert", table, e)
        return len(payload)

    def update(self, table: str, patch: Row, filters: Dict[str, Any]) -> int:
        t = self._table(table)
        try:
            res = self.db.execute(update(t).where(self._where(t, filters)).values(**patch))
            self._commit()
        except SQLAlchemyError as e:
            self._fail("update", table, e)
        return res.rowcount


def get_backend(db: Session = Depends(get_db)) -> SqlBackend:
    return SqlBackend(db)
