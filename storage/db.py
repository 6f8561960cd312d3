# loandesk/storage/db.py
from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, Optional

from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, Session, create_engine

from core.settings import BACKUP, DB_PATH
from storage.backup import ensure_daily_backup

# Ensure SQLModel metadata is populated
import models.record  # noqa: F401
import models.pending_op  # noqa: F401
import models.outbound_message  # noqa: F401
from storage import migrations


SessionFactory = Callable[[], Session]


def make_engine(db_path: Optional[Path] = None) -> Engine:
    target = Path(db_path or DB_PATH)
    target.parent.mkdir(parents=True, exist_ok=True)
    return create_engine(f"sqlite:///{target.as_posix()}", echo=False)


def init_db(engine: Engine, *, backup: bool = BACKUP.enabled) -> None:
    SQLModel.metadata.create_all(engine)
    migrations.run_all(engine)
    if backup:
        database = engine.url.database
        if database and database != ":memory:":
            ensure_daily_backup(database, BACKUP.directory, keep_days=BACKUP.keep_days)


def make_session_factory(engine: Engine) -> SessionFactory:
    def factory() -> Session:
        return Session(engine, expire_on_commit=False)

    return factory


@contextmanager
def write_scope(session_factory: SessionFactory, session: Optional[Session] = None) -> Iterator[Session]:
    """Session for a single write.

    With an outer ``session`` the changes are only flushed and the caller
    decides whether they commit; otherwise a private session is committed.
    """
    if session is not None:
        yield session
        session.flush()
        return
    with session_factory() as own:
        yield own
        own.commit()


__all__ = ["SessionFactory", "init_db", "make_engine", "make_session_factory", "write_scope"]
