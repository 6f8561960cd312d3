"""SQLModel table mirroring rows of the remote store."""

from __future__ import annotations

from datetime import datetime

from sqlmodel import Field, SQLModel

from datetime_utils import utc_now


class Record(SQLModel, table=True):
    table_name: str = Field(primary_key=True)
    record_id: str = Field(primary_key=True)
    fields_json: str = "{}"
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


__all__ = ["Record"]
