"""Composition root owning every data-layer component.

Nothing here is created on import: the application shell builds one
``AppContext`` with its remote store and keeps it for the process lifetime.
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional

from core.settings import BACKUP, DB_PATH, REMINDERS, ensure_data_dirs
from services.connectivity import ConnectivityMonitor, Probe
from services.gateways import DeliveryGateway, build_gateway
from services.lending import LendingService
from services.notification_queue import NotificationQueue
from services.notifications import NotificationService
from services.operation_log import OperationLog
from services.reminders import ReminderScheduler
from services.remote import RemoteStore
from services.sync_engine import SyncEngine
from storage.config import load_config
from storage.db import init_db, make_engine, make_session_factory
from storage.local_store import LocalStore


class AppContext:
    def __init__(
        self,
        remote: RemoteStore,
        *,
        db_path: Optional[Path] = None,
        config_path: Optional[Path] = None,
        gateway: Optional[DeliveryGateway] = None,
        online: bool = True,
        backup: bool = BACKUP.enabled,
    ) -> None:
        if db_path is None:
            ensure_data_dirs()
        self.db_engine = make_engine(db_path or DB_PATH)
        init_db(self.db_engine, backup=backup)
        session_factory = make_session_factory(self.db_engine)

        self.local = LocalStore(session_factory)
        self.log = OperationLog(session_factory)
        self.monitor = ConnectivityMonitor(online=online)
        self.sync = SyncEngine(self.local, self.log, remote, self.monitor)

        self.config = load_config(config_path)
        self.gateway = gateway or build_gateway(self.config)
        self.queue = NotificationQueue(self.log, self.gateway)
        self.lending = LendingService(self.sync)
        self.notifications = NotificationService(self.queue)
        self.reminders = ReminderScheduler(self.lending, self.notifications)

    async def start(self, probe: Optional[Probe] = None) -> None:
        self.queue.load_pending()
        self.queue.start()
        if REMINDERS.enabled:
            self.reminders.start()
        if probe is not None:
            self.monitor.start(probe)
        if self.monitor.is_online:
            self.sync.schedule_replay()

    async def shutdown(self) -> None:
        await self.monitor.stop()
        await self.reminders.stop()
        await self.queue.stop()
        await self.sync.close()
        self.db_engine.dispose()


__all__ = ["AppContext"]
