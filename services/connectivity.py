"""Online/offline tracking and the periodic fallback sync timer."""
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional

from core.logs import get_child_logger
from core.settings import SYNC
from models.events import ConnectivityChanged
from services.event_bus import EventBus


Probe = Callable[[], Awaitable[bool]]
Tick = Callable[[], Awaitable[object]]

logger = get_child_logger("connectivity")


class ConnectivityMonitor:
    def __init__(
        self,
        bus: EventBus,
        *,
        online: bool = True,
        probe: Optional[Probe] = None,
        interval_sec: float = SYNC.fallback_interval_sec,
    ) -> None:
        self.bus = bus
        self.probe = probe
        self.interval_sec = interval_sec
        self._online = bool(online)
        self._timer: Optional[asyncio.Task] = None

    @property
    def is_online(self) -> bool:
        return self._online

    async def set_online(self, online: bool) -> bool:
        """Record the connectivity state; publish only on a transition."""

        online = bool(online)
        if online == self._online:
            return False
        self._online = online
        logger.info("Connectivity changed: %s", "online" if online else "offline")
        await self.bus.publish(ConnectivityChanged(is_online=online))
        return True

    async def refresh(self) -> bool:
        """Ask the probe whether the backend is reachable and record the answer."""

        if self.probe is None:
            return self._online
        try:
            reachable = bool(await self.probe())
        except Exception as exc:
            logger.warning("Connectivity probe failed: %s", exc)
            reachable = False
        await self.set_online(reachable)
        return self._online

    # ------------------------------------------------------------------
    # Fallback timer
    @property
    def timer_running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def start(self, on_tick: Tick) -> asyncio.Task:
        """Run ``on_tick`` every ``interval_sec`` on the running event loop."""

        self.stop()

        async def _loop():
            while True:
                await asyncio.sleep(self.interval_sec)
                try:
                    await self.refresh()
                    await on_tick()
                except asyncio.CancelledError:
                    raise
                except Exception:
                    logger.exception("Fallback sync tick failed")

        self._timer = asyncio.get_running_loop().create_task(_loop())
        return self._timer

    def stop(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None


__all__ = ["ConnectivityMonitor", "Probe"]
