from __future__ import annotations

import json
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from core.settings import SYNC
from datetime_utils import utc_now
from models.outbound_message import MESSAGE_STATUSES, OutboundMessage
from models.pending_op import OP_KINDS, PendingOp
from services.errors import LocalStoreFailure
from storage.db import SessionFactory, write_scope


@dataclass
class PendingOperation:
    id: int
    table: str
    kind: str
    record_id: Optional[str]
    payload: dict
    status: str
    attempts: int
    last_error: Optional[str]
    created_at: datetime


def _to_operation(row: PendingOp) -> PendingOperation:
    try:
        payload = json.loads(row.payload)
    except json.JSONDecodeError:
        payload = {}
    return PendingOperation(
        id=row.id,
        table=row.table_name,
        kind=row.kind,
        record_id=row.record_id,
        payload=payload if isinstance(payload, dict) else {},
        status=row.status,
        attempts=row.attempts,
        last_error=row.last_error,
        created_at=row.created_at,
    )


class OperationLog:
    """Durable log of pending mutations and outbound messages.

    Every write is committed before the call returns, so an entry survives a
    process restart until it is explicitly removed (mutations) or reaches a
    terminal status (messages). Writes given a session from ``transaction``
    commit together with whatever else that session holds.
    """

    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """One session committed as a unit; any error rolls every write back."""
        try:
            with self._session_factory() as session:
                with session.begin():
                    yield session
        except SQLAlchemyError as exc:
            raise LocalStoreFailure(f"transaction failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Pending mutations
    def append(
        self,
        table: str,
        kind: str,
        payload: dict,
        record_id: Any = None,
        *,
        session: Optional[Session] = None,
    ) -> int:
        if kind not in OP_KINDS:
            raise ValueError(f"Unsupported op: {kind}")
        row = PendingOp(
            table_name=table,
            kind=kind,
            record_id=None if record_id is None else str(record_id),
            payload=json.dumps(payload, ensure_ascii=False, default=str),
            created_at=utc_now(),
        )
        try:
            with write_scope(self._session_factory, session) as active:
                active.add(row)
        except SQLAlchemyError as exc:
            raise LocalStoreFailure(f"append {kind} {table} failed: {exc}") from exc
        return int(row.id)

    def list_pending(self) -> List[PendingOperation]:
        try:
            with self._session_factory() as session:
                stmt = (
                    select(PendingOp)
                    .where(PendingOp.status == "pending")
                    .order_by(PendingOp.id.asc())
                )
                rows = list(session.exec(stmt))
        except SQLAlchemyError as exc:
            raise LocalStoreFailure(f"list pending failed: {exc}") from exc
        return [_to_operation(row) for row in rows]

    def remove(self, op_id: int) -> None:
        try:
            with self._session_factory() as session:
                record = session.get(PendingOp, op_id)
                if record:
                    session.delete(record)
                    session.commit()
        except SQLAlchemyError as exc:
            raise LocalStoreFailure(f"remove op {op_id} failed: {exc}") from exc

    def record_failure(self, op_id: int, error: str) -> None:
        try:
            with self._session_factory() as session:
                record = session.get(PendingOp, op_id)
                if not record:
                    return
                record.attempts += 1
                record.last_error = error[: SYNC.error_max_length]
                session.add(record)
                session.commit()
        except SQLAlchemyError as exc:
            raise LocalStoreFailure(f"update op {op_id} failed: {exc}") from exc

    def count(self) -> int:
        try:
            with self._session_factory() as session:
                stmt = select(func.count()).select_from(PendingOp).where(PendingOp.status == "pending")
                return int(session.exec(stmt).one())
        except SQLAlchemyError as exc:
            raise LocalStoreFailure(f"count failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Outbound messages
    def append_message(
        self,
        recipient: str,
        body: str,
        *,
        category: str,
        priority: str,
    ) -> OutboundMessage:
        now = utc_now()
        message = OutboundMessage(
            recipient=recipient,
            body=body,
            category=category,
            priority=priority,
            created_at=now,
            updated_at=now,
        )
        try:
            with self._session_factory() as session:
                session.add(message)
                session.commit()
                session.refresh(message)
                return message
        except SQLAlchemyError as exc:
            raise LocalStoreFailure(f"append message failed: {exc}") from exc

    def list_messages(
        self,
        *,
        category: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[OutboundMessage]:
        if status is not None and status not in MESSAGE_STATUSES:
            raise ValueError(f"Unsupported status: {status}")
        stmt = select(OutboundMessage)
        if category is not None:
            stmt = stmt.where(OutboundMessage.category == category)
        if status is not None:
            stmt = stmt.where(OutboundMessage.status == status)
        stmt = stmt.order_by(OutboundMessage.created_at.asc(), OutboundMessage.id.asc())
        try:
            with self._session_factory() as session:
                return list(session.exec(stmt))
        except SQLAlchemyError as exc:
            raise LocalStoreFailure(f"list messages failed: {exc}") from exc

    def update_message(self, message: OutboundMessage) -> None:
        try:
            with self._session_factory() as session:
                record = session.get(OutboundMessage, message.id)
                if record is None:
                    raise LocalStoreFailure(f"message {message.id} not found")
                record.attempts = message.attempts
                record.status = message.status
                record.last_error = message.last_error
                record.provider_message_id = message.provider_message_id
                record.updated_at = utc_now()
                session.add(record)
                session.commit()
        except SQLAlchemyError as exc:
            raise LocalStoreFailure(f"update message {message.id} failed: {exc}") from exc

    def message_stats(self) -> Dict[str, int]:
        stmt = select(OutboundMessage.status, func.count()).group_by(OutboundMessage.status)
        try:
            with self._session_factory() as session:
                counts = {status: int(total) for status, total in session.exec(stmt)}
        except SQLAlchemyError as exc:
            raise LocalStoreFailure(f"message stats failed: {exc}") from exc
        stats = {status: counts.get(status, 0) for status in MESSAGE_STATUSES}
        stats["total"] = sum(stats.values())
        return stats


__all__ = ["OperationLog", "PendingOperation"]
