"""Replay of the operation log against the bound transports.

The coordinator is either idle or syncing. A cycle starts only when it is
idle, the device is online and transports are configured; a request made
while a cycle is running is dropped, not deferred. The guard is a plain flag:
the engine expects a single-threaded asyncio caller.

Every failure is retried the same way, whether the backend is unreachable or
rejected the payload; an operation is dropped for good once it has failed
``max_retries`` times and is then only reported through ``OperationFailed``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from core.logs import get_child_logger
from core.settings import SYNC
from datetime_utils import utc_now
from models.events import OperationFailed, SyncCompleted, SyncStarted
from models.pending_op import PendingOperation
from services.connectivity import ConnectivityMonitor
from services.event_bus import EventBus
from services.operation_log import OperationLog
from services.transport_registry import TransportRegistry


@dataclass
class SyncReport:
    success: bool
    processed: int = 0
    failed: int = 0
    dropped: int = 0
    finished_at: datetime = field(default_factory=utc_now)


class SyncCoordinator:
    def __init__(
        self,
        log: OperationLog,
        bus: EventBus,
        connectivity: ConnectivityMonitor,
        *,
        registry: Optional[TransportRegistry] = None,
        max_retries: int = SYNC.max_retries,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.log = log
        self.bus = bus
        self.connectivity = connectivity
        self.registry = registry
        self.max_retries = max_retries
        self.logger = logger or get_child_logger("coordinator")
        self.last_report: Optional[SyncReport] = None
        self._syncing = False

    def configure(self, registry: Optional[TransportRegistry]) -> None:
        self.registry = registry

    @property
    def is_syncing(self) -> bool:
        return self._syncing

    def can_start(self) -> bool:
        return not self._syncing and self.connectivity.is_online and self.registry is not None

    async def sync(self) -> bool:
        """Run one replay cycle; return ``True`` when no operation was kept for retry.

        Returns ``False`` without doing anything when a cycle is already
        running, the device is offline, or no transports are configured.
        """

        if not self.can_start():
            self.logger.debug(
                "Sync not started (syncing=%s, online=%s, configured=%s)",
                self._syncing,
                self.connectivity.is_online,
                self.registry is not None,
            )
            return False

        self._syncing = True
        try:
            await self.bus.publish(SyncStarted())
            operations = self.log.list()
            if operations:
                report = await self._replay(operations)
            else:
                report = SyncReport(success=True)
        except Exception:
            self._syncing = False
            self.logger.exception("Sync cycle aborted")
            await self.bus.publish(SyncCompleted(success=False))
            raise

        self._syncing = False
        self.last_report = report
        if operations:
            self.logger.info(
                "Sync cycle done: %d processed, %d failed (%d dropped)",
                report.processed,
                report.failed,
                report.dropped,
            )
        await self.bus.publish(
            SyncCompleted(success=report.success, processed=report.processed, failed=report.failed)
        )
        return report.success

    async def _replay(self, operations: List[PendingOperation]) -> SyncReport:
        succeeded: List[str] = []
        retained: List[PendingOperation] = []
        dropped: List[str] = []

        for operation in operations:
            try:
                await self.registry.apply(operation)
            except Exception as exc:
                if operation.record_failure(exc, self.max_retries):
                    self.logger.warning(
                        "Replay of %s %s (%s) failed, attempt %d/%d: %s",
                        operation.operation_type.value,
                        operation.entity_type,
                        operation.id,
                        operation.retry_count,
                        self.max_retries,
                        exc,
                    )
                    retained.append(operation)
                else:
                    self.logger.error(
                        "Dropping %s %s (%s) after %d failed attempts: %s",
                        operation.operation_type.value,
                        operation.entity_type,
                        operation.id,
                        operation.retry_count,
                        exc,
                    )
                    dropped.append(operation.id)
                    await self.bus.publish(OperationFailed(operation=operation, error=exc))
            else:
                self.logger.debug("Replayed %s", operation.id)
                succeeded.append(operation.id)

        self.log.remove(succeeded + dropped)
        self.log.save_retries(retained)
        return SyncReport(
            success=not retained,
            processed=len(succeeded),
            failed=len(retained) + len(dropped),
            dropped=len(dropped),
        )


__all__ = ["SyncCoordinator", "SyncReport"]
