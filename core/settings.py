"""Centralized application configuration."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional
import os
import sys


def get_default_data_dir(
    app_name: str,
    *,
    platform: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    home: Optional[Path] = None,
) -> Path:
    """Return an OS-specific user data directory for ``app_name``."""

    platform_id = (platform or sys.platform).lower()
    environ = dict(env or os.environ)
    home_dir = Path(home or Path.home())
    sanitized = app_name.strip() or "app"
    sanitized = sanitized.replace("/", "-").replace("\\", "-")

    if platform_id.startswith("win"):
        base = Path(environ.get("APPDATA") or home_dir / "AppData" / "Roaming")
    elif platform_id == "darwin":
        base = Path(environ.get("APPDATA") or home_dir / "Library" / "Application Support")
    else:
        base = Path(environ.get("XDG_DATA_HOME") or home_dir / ".local" / "share")

    return (base.expanduser() / sanitized)


APP_NAME = "LoanDesk"


DATA_DIR = Path(os.environ.get("LOANDESK_DATA_DIR") or get_default_data_dir(APP_NAME))
LOG_DIR = DATA_DIR / "logs"
BACKUP_DIR = DATA_DIR / "backups"


def ensure_data_dirs() -> None:
    for _dir in (DATA_DIR, LOG_DIR, BACKUP_DIR):
        _dir.mkdir(parents=True, exist_ok=True)


DB_PATH = DATA_DIR / "loandesk.db"
CONFIG_PATH = DATA_DIR / "config.json"


@dataclass(frozen=True)
class SyncSettings:
    # Tables mirrored locally; anything else is still accepted by the engine.
    tables: tuple[str, ...] = ("customers", "loans", "emis", "users")
    probe_interval_sec: int = 15
    error_max_length: int = 1000


SYNC = SyncSettings()


@dataclass(frozen=True)
class NotificationSettings:
    tick_interval_sec: float = 5.0
    max_attempts: int = 3
    min_recipient_digits: int = 10
    default_provider: str = "demo"
    demo_failure_rate: float = 0.1
    demo_latency_sec: float = 1.0
    http_timeout_sec: float = 30.0
    dialog360_api_url: str = "https://waba.360dialog.io/v1/messages"
    twilio_api_url: str = "https://api.twilio.com/2010-04-01/Accounts"


NOTIFY = NotificationSettings()


@dataclass(frozen=True)
class ReminderSettings:
    enabled: bool = True
    hour: int = 9
    minute: int = 0
    lookahead_days: int = 2
    late_fee_per_day: int = 50


REMINDERS = ReminderSettings()


@dataclass(frozen=True)
class LocaleSettings:
    locale: str = "hi-IN"
    currency_symbol: str = "₹"
    company_name: str = "JLS FINANCE LTD"
    support_phone: str = "+91-XXXXXXXXXX"


LOCALE = LocaleSettings()


@dataclass(frozen=True)
class BackupSettings:
    enabled: bool = True
    directory: Path = BACKUP_DIR
    keep_days: int = 7


BACKUP = BackupSettings()


__all__ = [
    "APP_NAME",
    "DATA_DIR",
    "LOG_DIR",
    "BACKUP_DIR",
    "DB_PATH",
    "CONFIG_PATH",
    "SYNC",
    "NOTIFY",
    "REMINDERS",
    "LOCALE",
    "BACKUP",
    "ensure_data_dirs",
    "get_default_data_dir",
]
