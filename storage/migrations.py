"""Ad-hoc database migrations for the local store."""

from __future__ import annotations

from sqlalchemy import text


def _column_exists(conn, table: str, column: str) -> bool:
    result = conn.execute(text(f"PRAGMA table_info('{table}')"))
    return any(row[1] == column for row in result)


def ensure_pending_op_columns(conn) -> None:
    columns = {
        "record_id": "TEXT",
        "status": "TEXT NOT NULL DEFAULT 'pending'",
        "attempts": "INTEGER NOT NULL DEFAULT 0",
        "last_error": "TEXT",
    }
    for name, ddl_type in columns.items():
        if not _column_exists(conn, "pendingop", name):
            conn.execute(text(f"ALTER TABLE pendingop ADD COLUMN {name} {ddl_type}"))


def ensure_outbound_message_columns(conn) -> None:
    columns = {
        "last_error": "TEXT",
        "provider_message_id": "TEXT",
    }
    for name, ddl_type in columns.items():
        if not _column_exists(conn, "outboundmessage", name):
            conn.execute(text(f"ALTER TABLE outboundmessage ADD COLUMN {name} {ddl_type}"))


def ensure_replay_index(conn) -> None:
    conn.execute(
        text(
            """
            CREATE INDEX IF NOT EXISTS ix_pendingop_status_created
            ON pendingop (status, created_at, id)
            """
        )
    )
    conn.execute(
        text(
            """
            CREATE INDEX IF NOT EXISTS ix_outboundmessage_status_created
            ON outboundmessage (status, created_at, id)
            """
        )
    )


def run_all(engine) -> None:
    with engine.begin() as conn:
        # SQLModel creates the tables; older databases may miss newer columns
        ensure_pending_op_columns(conn)
        ensure_outbound_message_columns(conn)
        ensure_replay_index(conn)


__all__ = ["run_all"]
