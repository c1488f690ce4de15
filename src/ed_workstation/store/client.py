"""
Generic data-access client over the relational store.

Rows go in and come out as plain dicts keyed by column name; callers address
tables by name (``"notes"``, ``"orders"``...) and never touch ORM objects.
Every call opens its own session so the client can be shared across the
threads used for parallel encounter loads.
"""

from __future__ import annotations
import logging
import uuid
from typing import Any, Iterable
from sqlalchemy import Uuid, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from ed_workstation.models import MODELS

log = logging.getLogger(__name__)

class StoreError(Exception):
    """A store operation failed; the triggering action must be aborted."""

    def __init__(self, operation: str, table: str, message: str):
        super().__init__(f"{operation} on {table} failed: {message}")
        self.operation = operation
        self.table = table

def _model_for(table: str, operation: str):
    try:
        return MODELS[table]
    except KeyError:
        raise StoreError(operation, table, "unknown table") from None

def _coerce(model, key: str, value: Any) -> Any:
    """Accept string ids for uuid columns (form and session-state values are strings)."""
    col = model.__table__.columns.get(key)
    if col is None:
        raise KeyError(key)
    if isinstance(col.type, Uuid) and isinstance(value, str):
        return uuid.UUID(value)
    return value

def _row_to_dict(obj) -> dict:
    return {c.key: getattr(obj, c.key) for c in obj.__table__.columns}

class Store:
    def __init__(self, engine: Engine):
        self.engine = engine
        self._session = sessionmaker(engine, expire_on_commit=False)

    def select(
        self,
        table: str,
        filters: dict | None = None,
        order_by: str = "created_at",
        desc: bool = True,
        limit: int | None = None,
    ) -> list[dict]:
        """Fetch rows matching equality filters, newest first by default."""
        model = _model_for(table, "select")
        try:
            stmt = select(model)
            for key, value in (filters or {}).items():
                stmt = stmt.where(getattr(model, key) == _coerce(model, key, value))
            column = getattr(model, order_by)
            stmt = stmt.order_by(column.desc() if desc else column.asc())
            if limit is not None:
                stmt = stmt.limit(limit)
            with self._session() as session:
                rows = [_row_to_dict(o) for o in session.scalars(stmt)]
        except (SQLAlchemyError, KeyError, AttributeError, ValueError) as e:
            log.error("Select on %s failed: %s", table, e)
            raise StoreError("select", table, str(e)) from e
        log.debug("Selected %d rows from %s", len(rows), table)
        return rows

    def insert(self, table: str, rows: dict | Iterable[dict]) -> list[dict]:
        """Insert one or many rows and return them with generated columns filled in."""
        model = _model_for(table, "insert")
        if isinstance(rows, dict):
            rows = [rows]
        rows = list(rows)
        if not rows:
            return []

        with self._session() as session:
            try:
                objs = [
                    model(**{k: _coerce(model, k, v) for k, v in rec.items()})
                    for rec in rows
                ]
                session.add_all(objs)
                session.commit()
            except (SQLAlchemyError, KeyError, TypeError, ValueError) as e:
                session.rollback()
                log.error("Insert into %s failed; rolled back: %s", table, e)
                raise StoreError("insert", table, str(e)) from e
            out = [_row_to_dict(o) for o in objs]

        log.info("%s: inserted %d", table, len(out))
        return out

    def update(self, table: str, row_id, values: dict) -> dict:
        model = _model_for(table, "update")
        with self._session() as session:
            try:
                obj = session.get(model, _coerce(model, "id", row_id))
                if obj is None:
                    raise StoreError("update", table, f"no row with id {row_id}")
                for key, value in values.items():
                    setattr(obj, key, _coerce(model, key, value))
                session.commit()
            except StoreError:
                raise
            except (SQLAlchemyError, KeyError, ValueError) as e:
                session.rollback()
                log.error("Update of %s %s failed; rolled back: %s", table, row_id, e)
                raise StoreError("update", table, str(e)) from e
            out = _row_to_dict(obj)

        log.info("%s: updated %s", table, row_id)
        return out
