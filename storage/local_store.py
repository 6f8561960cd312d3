"""Local mirror of remote rows, one SQLite table for every logical table."""
from __future__ import annotations

import json
import uuid
from typing import Any, Dict, Iterable, List, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from datetime_utils import utc_now
from models.record import Record
from services.errors import LocalStoreFailure
from storage.db import SessionFactory, write_scope


Row = Dict[str, Any]


def _serialise(row: Mapping[str, Any]) -> str:
    return json.dumps(dict(row), ensure_ascii=False, sort_keys=True, default=str)


def _deserialise(payload: Optional[str]) -> Row:
    if not payload:
        return {}
    try:
        data = json.loads(payload)
    except json.JSONDecodeError:
        return {}
    return data if isinstance(data, dict) else {}


def _key(record_id: Any) -> str:
    return str(record_id)


def _matches(row: Mapping[str, Any], filters: Mapping[str, Any]) -> bool:
    for key, expected in filters.items():
        actual = row.get(key)
        if actual != expected and str(actual) != str(expected):
            return False
    return True


def active_filters(filters: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Drop filters whose value is ``None`` or an empty string."""
    return {k: v for k, v in (filters or {}).items() if v is not None and v != ""}


def new_local_id() -> str:
    return f"local-{uuid.uuid4().hex[:12]}"


class LocalStore:
    """Per-table put/get/update/delete plus equality-filtered queries."""

    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory

    def put(self, table: str, row: Mapping[str, Any], *, session: Optional[Session] = None) -> Row:
        data = dict(row)
        if data.get("id") in (None, ""):
            data["id"] = new_local_id()
        try:
            with write_scope(self._session_factory, session) as active:
                record = active.get(Record, (table, _key(data["id"])))
                now = utc_now()
                if record is None:
                    record = Record(table_name=table, record_id=_key(data["id"]), created_at=now)
                record.fields_json = _serialise(data)
                record.updated_at = now
                active.add(record)
        except SQLAlchemyError as exc:
            raise LocalStoreFailure(f"put {table}/{data['id']} failed: {exc}") from exc
        return data

    def bulk_put(self, table: str, rows: Iterable[Mapping[str, Any]]) -> List[Row]:
        return [self.put(table, row) for row in rows]

    def get(self, table: str, record_id: Any) -> Optional[Row]:
        try:
            with self._session_factory() as session:
                record = session.get(Record, (table, _key(record_id)))
                return _deserialise(record.fields_json) if record else None
        except SQLAlchemyError as exc:
            raise LocalStoreFailure(f"get {table}/{record_id} failed: {exc}") from exc

    def update(
        self,
        table: str,
        record_id: Any,
        patch: Mapping[str, Any],
        *,
        session: Optional[Session] = None,
    ) -> Optional[Row]:
        try:
            with write_scope(self._session_factory, session) as active:
                record = active.get(Record, (table, _key(record_id)))
                if record is None:
                    return None
                data = _deserialise(record.fields_json)
                data.update(patch)
                data["id"] = data.get("id", record_id)
                record.fields_json = _serialise(data)
                record.updated_at = utc_now()
                active.add(record)
                return data
        except SQLAlchemyError as exc:
            raise LocalStoreFailure(f"update {table}/{record_id} failed: {exc}") from exc

    def delete(self, table: str, record_id: Any, *, session: Optional[Session] = None) -> bool:
        try:
            with write_scope(self._session_factory, session) as active:
                record = active.get(Record, (table, _key(record_id)))
                if record is None:
                    return False
                active.delete(record)
                return True
        except SQLAlchemyError as exc:
            raise LocalStoreFailure(f"delete {table}/{record_id} failed: {exc}") from exc

    def query(self, table: str, filters: Optional[Mapping[str, Any]] = None) -> List[Row]:
        wanted = active_filters(filters)
        try:
            with self._session_factory() as session:
                stmt = (
                    select(Record)
                    .where(Record.table_name == table)
                    .order_by(Record.created_at.asc(), Record.record_id.asc())
                )
                rows = [_deserialise(r.fields_json) for r in session.exec(stmt)]
        except SQLAlchemyError as exc:
            raise LocalStoreFailure(f"query {table} failed: {exc}") from exc
        return [row for row in rows if _matches(row, wanted)]


__all__ = ["LocalStore", "Row", "active_filters", "new_local_id"]
