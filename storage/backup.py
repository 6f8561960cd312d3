"""Daily copies of the local SQLite store."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from pathlib import Path
from shutil import copy2
from typing import List


logger = logging.getLogger("loandesk.storage")


def _parse_backup_date(path: Path, prefix: str) -> datetime | None:
    stem = path.stem
    if not stem.startswith(prefix):
        return None
    try:
        return datetime.strptime(stem[len(prefix) :], "%Y-%m-%d")
    except ValueError:
        return None


def list_backups(db_path: str | Path, backup_dir: str | Path) -> List[Path]:
    """Backups of ``db_path`` found in ``backup_dir``, oldest first."""

    db_file = Path(db_path)
    prefix = f"{db_file.stem}_"
    found = []
    for file in Path(backup_dir).glob(f"{prefix}*{db_file.suffix}"):
        stamp = _parse_backup_date(file, prefix)
        if stamp is not None:
            found.append((stamp, file))
    return [file for _, file in sorted(found)]


def ensure_daily_backup(
    db_path: str | Path,
    backup_dir: str | Path,
    *,
    keep_days: int = 7,
) -> Path | None:
    """Copy the store once per day and drop copies older than ``keep_days``."""

    db_file = Path(db_path)
    if not db_file.exists():
        return None

    backups = Path(backup_dir)
    backups.mkdir(parents=True, exist_ok=True)

    today = datetime.now().date()
    destination = backups / f"{db_file.stem}_{today.isoformat()}{db_file.suffix}"

    created: Path | None = None
    if not destination.exists():
        copy2(db_file, destination)
        logger.info("Local store backed up to %s", destination)
        created = destination

    if keep_days > 0:
        cutoff = today - timedelta(days=keep_days - 1)
        prefix = f"{db_file.stem}_"
        for file in list_backups(db_file, backups):
            stamp = _parse_backup_date(file, prefix)
            if stamp and stamp.date() < cutoff:
                try:
                    file.unlink()
                except OSError as exc:
                    logger.warning("Could not remove old backup %s: %s", file, exc)

    return created


__all__ = ["ensure_daily_backup", "list_backups"]
