from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Mapping, Optional

from core.logs import sync_logger
from datetime_utils import to_iso_utc, utc_now
from services.connectivity import ConnectivityMonitor
from services.errors import LocalStoreFailure
from services.operation_log import OperationLog, PendingOperation
from services.remote import RemoteStore
from services.results import Result
from storage.local_store import LocalStore, active_filters


class SyncEngine:
    """Dual-write access to the remote store with a local fallback.

    Online calls go to the remote store first and are mirrored locally. When
    offline, or when the remote call fails, the change is applied to the local
    store and appended to the operation log; ``replay`` pushes the log to the
    remote store once connectivity returns.
    """

    def __init__(
        self,
        local: LocalStore,
        log: OperationLog,
        remote: RemoteStore,
        monitor: ConnectivityMonitor,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.local = local
        self.log = log
        self.remote = remote
        self.monitor = monitor
        self.logger = logger or sync_logger()
        self.last_replay_at: Optional[datetime] = None
        self._replaying = False
        self._replay_task: Optional[asyncio.Task] = None
        self._unsubscribe = monitor.subscribe(self._on_connectivity_change)

    # ------------------------------------------------------------------
    # Connectivity
    def _on_connectivity_change(self, online: bool) -> None:
        if online:
            self.schedule_replay()

    @property
    def replay_in_progress(self) -> bool:
        return self._replaying or bool(self._replay_task and not self._replay_task.done())

    def schedule_replay(self) -> Optional[asyncio.Task]:
        """Start ``replay`` in the background unless one is already running."""
        if self.replay_in_progress:
            self.logger.debug("Replay already running, trigger ignored")
            return None
        try:
            self._replay_task = asyncio.get_running_loop().create_task(self.replay())
        except RuntimeError:
            self.logger.warning("No running event loop, replay not scheduled")
            return None
        return self._replay_task

    # ------------------------------------------------------------------
    # Public API
    async def create(self, table: str, data: Mapping[str, Any]) -> Result:
        row = dict(data)
        if self.monitor.is_online:
            try:
                created = await self.remote.create(table, row)
            except Exception as exc:
                self.logger.warning("Remote create on %s failed, queued locally: %s", table, exc)
            else:
                try:
                    mirrored = self.local.put(table, created or row)
                except LocalStoreFailure as exc:
                    self.logger.error("Local mirror of %s failed: %s", table, exc)
                    return Result.fail(exc)
                return Result.ok(mirrored)

        try:
            with self.log.transaction() as session:
                stored = self.local.put(table, row, session=session)
                self.log.append(table, "create", row, record_id=stored["id"], session=session)
        except LocalStoreFailure as exc:
            self.logger.error("Offline create on %s failed: %s", table, exc)
            return Result.fail(exc)
        return Result.ok(stored)

    async def read(self, table: str, filters: Optional[Mapping[str, Any]] = None) -> Result:
        wanted = active_filters(filters)
        if self.monitor.is_online:
            try:
                rows = list(await self.remote.read(table, wanted) or [])
            except Exception as exc:
                self.logger.warning("Remote read on %s failed, serving local mirror: %s", table, exc)
            else:
                try:
                    self.local.bulk_put(table, [r for r in rows if r.get("id") is not None])
                except LocalStoreFailure as exc:
                    self.logger.error("Local mirror of %s failed: %s", table, exc)
                    return Result.fail(exc)
                return Result.ok(rows)

        try:
            return Result.ok(self.local.query(table, wanted))
        except LocalStoreFailure as exc:
            self.logger.error("Local read on %s failed: %s", table, exc)
            return Result.fail(exc)

    async def update(self, table: str, record_id: Any, patch: Mapping[str, Any]) -> Result:
        changes = dict(patch)
        changes.pop("id", None)
        if self.monitor.is_online:
            try:
                updated = await self.remote.update(table, record_id, changes)
            except Exception as exc:
                self.logger.warning("Remote update %s/%s failed, queued locally: %s", table, record_id, exc)
            else:
                try:
                    if isinstance(updated, Mapping) and updated.get("id") is not None:
                        local_row = self.local.put(table, updated)
                    else:
                        local_row = self.local.update(table, record_id, changes)
                except LocalStoreFailure as exc:
                    self.logger.error("Local mirror of %s/%s failed: %s", table, record_id, exc)
                    return Result.fail(exc)
                return Result.ok(local_row)

        try:
            with self.log.transaction() as session:
                local_row = self.local.update(table, record_id, changes, session=session)
                self.log.append(
                    table, "update", {**changes, "id": record_id}, record_id=record_id, session=session
                )
        except LocalStoreFailure as exc:
            self.logger.error("Offline update %s/%s failed: %s", table, record_id, exc)
            return Result.fail(exc)
        return Result.ok(local_row)

    async def delete(self, table: str, record_id: Any) -> Result:
        if self.monitor.is_online:
            try:
                await self.remote.delete(table, record_id)
            except Exception as exc:
                self.logger.warning("Remote delete %s/%s failed, queued locally: %s", table, record_id, exc)
            else:
                try:
                    self.local.delete(table, record_id)
                except LocalStoreFailure as exc:
                    self.logger.error("Local delete %s/%s failed: %s", table, record_id, exc)
                    return Result.fail(exc)
                return Result.ok({"id": record_id})

        try:
            with self.log.transaction() as session:
                self.local.delete(table, record_id, session=session)
                self.log.append(table, "delete", {"id": record_id}, record_id=record_id, session=session)
        except LocalStoreFailure as exc:
            self.logger.error("Offline delete %s/%s failed: %s", table, record_id, exc)
            return Result.fail(exc)
        return Result.ok({"id": record_id})

    async def replay(self) -> Result:
        """Push pending operations to the remote store in creation order."""
        if self._replaying:
            return Result.ok({"skipped": True})
        self._replaying = True
        applied = failed = 0
        try:
            try:
                pending = self.log.list_pending()
            except LocalStoreFailure as exc:
                self.logger.error("Replay could not read the operation log: %s", exc)
                return Result.fail(exc)
            if pending:
                self.logger.info("Replaying %d pending operations", len(pending))

            for entry in pending:
                try:
                    await self._apply_remote(entry)
                except Exception as exc:
                    failed += 1
                    self.logger.warning("Replay of op %s (%s %s) failed: %s", entry.id, entry.kind, entry.table, exc)
                    try:
                        self.log.record_failure(entry.id, str(exc))
                    except LocalStoreFailure as err:
                        self.logger.error("Could not record failure of op %s: %s", entry.id, err)
                    continue
                try:
                    self.log.remove(entry.id)
                except LocalStoreFailure as exc:
                    self.logger.error("Op %s applied remotely but not removed: %s", entry.id, exc)
                    return Result.fail(exc)
                applied += 1

            self.last_replay_at = utc_now()
            remaining = self.log.count()
        except LocalStoreFailure as exc:
            return Result.fail(exc)
        finally:
            self._replaying = False

        if pending:
            self.logger.info("Replay finished: %d applied, %d failed, %d remaining", applied, failed, remaining)
        return Result.ok({"applied": applied, "failed": failed, "remaining": remaining})

    def status(self) -> dict:
        """Snapshot for the shell; ``queueSize`` is ``None`` and ``error`` set when the log is unreadable."""
        queue_size: Optional[int] = None
        error: Optional[str] = None
        try:
            queue_size = self.log.count()
        except LocalStoreFailure as exc:
            self.logger.error("Could not count pending operations: %s", exc)
            error = str(exc)
        return {
            "online": self.monitor.is_online,
            "replaying": self.replay_in_progress,
            "queueSize": queue_size,
            "lastReplayAt": to_iso_utc(self.last_replay_at),
            "error": error,
        }

    async def close(self) -> None:
        self._unsubscribe()
        task, self._replay_task = self._replay_task, None
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    # ------------------------------------------------------------------
    async def _apply_remote(self, entry: PendingOperation) -> None:
        payload = dict(entry.payload)
        if entry.kind == "create":
            await self.remote.create(entry.table, payload)
        elif entry.kind == "update":
            record_id = payload.pop("id", entry.record_id)
            await self.remote.update(entry.table, record_id, payload)
        elif entry.kind == "delete":
            await self.remote.delete(entry.table, payload.get("id", entry.record_id))
        else:
            raise ValueError(f"Unsupported op: {entry.kind}")


__all__ = ["SyncEngine"]
