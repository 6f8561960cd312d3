from datetime import datetime, timedelta
from pathlib import Path
import json
import sys

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core import settings
from storage import backup as backup_module
from storage.backup import ensure_daily_backup, list_backups
from storage.config import AppConfig, load_config, save_provider_config


def test_linux_data_dir_with_xdg():
    env = {"XDG_DATA_HOME": "/tmp/xdg"}
    result = settings.get_default_data_dir(
        settings.APP_NAME,
        platform="linux",
        env=env,
        home=Path("/home/test"),
    )
    assert result == Path("/tmp/xdg") / "LoanDesk"


def test_macos_data_dir():
    result = settings.get_default_data_dir(
        settings.APP_NAME,
        platform="darwin",
        env={},
        home=Path("/Users/test"),
    )
    assert result == Path("/Users/test/Library/Application Support") / "LoanDesk"


def test_windows_data_dir_appdata():
    env = {"APPDATA": "C:/Users/test/AppData/Roaming"}
    result = settings.get_default_data_dir(
        settings.APP_NAME,
        platform="win32",
        env=env,
        home=Path("C:/Users/test"),
    )
    assert result == Path(env["APPDATA"]) / "LoanDesk"


def test_runtime_paths_inside_data_dir():
    assert settings.DB_PATH.parent == settings.DATA_DIR
    assert settings.CONFIG_PATH.parent == settings.DATA_DIR
    assert settings.LOG_DIR.parent == settings.DATA_DIR
    assert settings.BACKUP.directory == settings.BACKUP_DIR


def test_backup_rotation(monkeypatch, tmp_path):
    db_path = tmp_path / "loandesk.db"
    backup_dir = tmp_path / "backups"
    base = datetime(2024, 1, 1)

    for offset in range(5):
        db_path.write_text(f"content-{offset}", encoding="utf-8")

        class FakeDateTime(datetime):
            @classmethod
            def now(cls, tz=None):
                return base + timedelta(days=offset)

        monkeypatch.setattr(backup_module, "datetime", FakeDateTime)
        ensure_daily_backup(db_path, backup_dir, keep_days=3)

    assert ensure_daily_backup(db_path, backup_dir, keep_days=3) is None
    monkeypatch.setattr(backup_module, "datetime", datetime)

    assert [p.name for p in list_backups(db_path, backup_dir)] == [
        "loandesk_2024-01-03.db",
        "loandesk_2024-01-04.db",
        "loandesk_2024-01-05.db",
    ]


def test_backup_skips_missing_store(tmp_path):
    assert ensure_daily_backup(tmp_path / "absent.db", tmp_path / "backups") is None


def test_missing_or_broken_config_falls_back_to_demo(tmp_path):
    path = tmp_path / "config.json"
    assert load_config(path) == AppConfig()

    path.write_text("{not json", encoding="utf-8")
    assert load_config(path).provider == "demo"

    path.write_text(json.dumps({"provider": "carrier-pigeon"}), encoding="utf-8")
    assert load_config(path).provider == "demo"


def test_save_provider_config_persists_credentials(tmp_path):
    path = tmp_path / "nested" / "config.json"

    save_provider_config("twilio", {"account_sid": "AC1", "auth_token": "tok", "unknown": "x"}, path)
    save_provider_config("360dialog", {"api_key": "k-360"}, path)

    loaded = load_config(path)
    assert loaded.provider == "360dialog"
    assert loaded.dialog360.api_key == "k-360"
    assert (loaded.twilio.account_sid, loaded.twilio.auth_token) == ("AC1", "tok")
    assert not path.with_suffix(".tmp").exists()


def test_save_provider_config_rejects_unknown_provider(tmp_path):
    with pytest.raises(ValueError):
        save_provider_config("smtp", {}, tmp_path / "config.json")
