"""JSON-backed delivery provider configuration."""
from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from core.settings import CONFIG_PATH, NOTIFY


PROVIDERS = ("demo", "360dialog", "twilio")


@dataclass
class Dialog360Config:
    api_url: str = NOTIFY.dialog360_api_url
    api_key: str = ""


@dataclass
class TwilioConfig:
    api_url: str = NOTIFY.twilio_api_url
    account_sid: str = ""
    auth_token: str = ""
    from_number: str = ""


@dataclass
class AppConfig:
    """Lightweight configuration persisted to ``config.json``."""

    provider: str = NOTIFY.default_provider
    dialog360: Dialog360Config = field(default_factory=Dialog360Config)
    twilio: TwilioConfig = field(default_factory=TwilioConfig)


def _ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def _load_raw(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return {}
    return data if isinstance(data, dict) else {}


def _section(data: Dict[str, Any], key: str, cls):
    raw = data.get(key) or {}
    known = {name: value for name, value in raw.items() if name in cls.__dataclass_fields__}
    return cls(**known)


def load_config(path: Optional[Path] = None) -> AppConfig:
    target = path or CONFIG_PATH
    data = _load_raw(target)
    provider = data.get("provider")
    return AppConfig(
        provider=provider if provider in PROVIDERS else NOTIFY.default_provider,
        dialog360=_section(data, "dialog360", Dialog360Config),
        twilio=_section(data, "twilio", TwilioConfig),
    )


def save_config(config: AppConfig, path: Optional[Path] = None) -> None:
    target = path or CONFIG_PATH
    _ensure_parent(target)
    payload = json.dumps(asdict(config), ensure_ascii=False, indent=2, sort_keys=True)
    tmp = target.with_suffix(".tmp")
    try:
        tmp.write_text(payload, encoding="utf-8")
        tmp.replace(target)
    finally:
        if tmp.exists():
            try:
                tmp.unlink()
            except OSError:
                pass


def save_provider_config(provider: str, values: Dict[str, Any], path: Optional[Path] = None) -> AppConfig:
    """Store credentials for ``provider`` and make it the active one."""
    if provider not in PROVIDERS:
        raise ValueError(f"Unsupported provider: {provider}")
    target = path or CONFIG_PATH
    cfg = load_config(target)
    section = {"360dialog": cfg.dialog360, "twilio": cfg.twilio}.get(provider)
    if section is not None:
        for key, value in values.items():
            if hasattr(section, key):
                setattr(section, key, value)
    cfg.provider = provider
    save_config(cfg, target)
    return cfg


__all__ = [
    "AppConfig",
    "Dialog360Config",
    "PROVIDERS",
    "TwilioConfig",
    "load_config",
    "save_config",
    "save_provider_config",
]
