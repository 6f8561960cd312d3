from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Dict, Optional

from core.logs import sync_logger
from core.settings import SYNC


Listener = Callable[[bool], object]
Probe = Callable[[], Awaitable[bool]]


class ConnectivityMonitor:
    """Tracks online/offline state and notifies subscribers on transitions.

    The application shell reports what it observes through ``set_online``;
    alternatively ``start`` polls an async reachability probe. Subscribers are
    only called when the state actually flips.
    """

    def __init__(self, *, online: bool = True, logger: Optional[logging.Logger] = None) -> None:
        self._online = bool(online)
        self._listeners: Dict[int, Listener] = {}
        self._next_token = 0
        self._probe_task: Optional[asyncio.Task] = None
        self._pending: set[asyncio.Task] = set()
        self.logger = logger or sync_logger()

    @property
    def is_online(self) -> bool:
        return self._online

    def subscribe(self, callback: Listener) -> Callable[[], None]:
        token = self._next_token
        self._next_token += 1
        self._listeners[token] = callback

        def unsubscribe() -> None:
            self._listeners.pop(token, None)

        return unsubscribe

    def set_online(self, online: bool) -> bool:
        """Record the observed state; returns True when it was a transition."""
        online = bool(online)
        if online == self._online:
            return False
        self._online = online
        self.logger.info("Connectivity changed: %s", "online" if online else "offline")
        for listener in list(self._listeners.values()):
            self._notify(listener, online)
        return True

    def _notify(self, listener: Listener, online: bool) -> None:
        try:
            outcome = listener(online)
        except Exception as exc:
            self.logger.error("Connectivity listener %r failed: %s", listener, exc)
            return
        if inspect.isawaitable(outcome):
            task = asyncio.ensure_future(outcome)
            self._pending.add(task)
            task.add_done_callback(self._listener_done)

    def _listener_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            self.logger.error("Connectivity listener failed: %s", task.exception())

    # ------------------------------------------------------------------
    # Optional polling
    def start(self, probe: Probe, interval: float = SYNC.probe_interval_sec) -> None:
        if self._probe_task and not self._probe_task.done():
            return

        async def _loop() -> None:
            while True:
                try:
                    reachable = await probe()
                except Exception as exc:
                    self.logger.debug("Connectivity probe failed: %s", exc)
                    reachable = False
                self.set_online(reachable)
                await asyncio.sleep(interval)

        self._probe_task = asyncio.create_task(_loop())

    async def stop(self) -> None:
        task, self._probe_task = self._probe_task, None
        if task:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass


__all__ = ["ConnectivityMonitor"]
