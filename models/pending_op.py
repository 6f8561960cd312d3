"""SQLModel table for mutations not yet confirmed by the remote store."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from datetime_utils import utc_now


OP_KINDS = ("create", "update", "delete")


class PendingOp(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    table_name: str = Field(index=True)
    kind: str
    record_id: Optional[str] = None
    payload: str
    status: str = Field(default="pending", index=True)  # pending / synced
    attempts: int = Field(default=0)
    last_error: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now, index=True)


__all__ = ["OP_KINDS", "PendingOp"]
