"""SQLModel table for templated notifications awaiting delivery."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from datetime_utils import utc_now


MESSAGE_STATUSES = ("pending", "sent", "failed")


class OutboundMessage(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    recipient: str
    body: str
    category: str = Field(default="manual", index=True)
    priority: str = "normal"      # high / normal / low
    attempts: int = Field(default=0)
    status: str = Field(default="pending", index=True)
    last_error: Optional[str] = None
    provider_message_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def is_terminal(self) -> bool:
        return self.status in ("sent", "failed")


__all__ = ["MESSAGE_STATUSES", "OutboundMessage"]
