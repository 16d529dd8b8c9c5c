"""Engine handle tying the offline queue, cache, connectivity and replay together.

Build one with :func:`create_offline_manager`, hand it the transports with
:meth:`OfflineManager.initialize` and call :meth:`OfflineManager.shutdown` on
teardown. Instances are independent of each other, but two instances must
never share the same persisted store: nothing locks the store across
instances, and concurrent writers would overwrite each other's queue.
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Type, Union

from core.logs import get_sync_logger
from core.settings import LOGGING, STORAGE, SYNC, LogSettings, StorageSettings, SyncSettings
from models.events import ConnectivityChanged, SyncEvent
from models.pending_op import OperationType, PendingOperation
from services.connectivity import ConnectivityMonitor, Probe
from services.event_bus import EventBus, Handler
from services.offline_client import OfflineClient
from services.operation_log import OperationLog
from services.snapshot_cache import SnapshotCache
from services.sync_coordinator import SyncCoordinator
from services.transport_registry import TransportRegistry, validate_payload
from storage.config import EngineConfig, load_config
from storage.db import init_db, make_engine, session_factory
from storage.store import CollectionStore, SqlCollectionStore


class OfflineManager:
    def __init__(
        self,
        store: CollectionStore,
        *,
        config: Optional[EngineConfig] = None,
        sync_settings: SyncSettings = SYNC,
        storage_settings: StorageSettings = STORAGE,
        online: bool = True,
        probe: Optional[Probe] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        config = config or EngineConfig()
        self.config = config
        self.sync_on_enqueue = sync_settings.sync_on_enqueue
        self.logger = logger or logging.getLogger(LOGGING.logger_name)

        self.store = store
        self.bus = EventBus()
        self.log = OperationLog(store, storage_settings.operations_key)
        self.cache = SnapshotCache(
            store, storage_settings.cache_key, max_entries=config.cache_max_entries
        )
        self.connectivity = ConnectivityMonitor(
            self.bus,
            online=online,
            probe=probe,
            interval_sec=config.fallback_interval_sec,
        )
        self.coordinator = SyncCoordinator(
            self.log,
            self.bus,
            self.connectivity,
            max_retries=sync_settings.max_retries,
        )
        self.registry: Optional[TransportRegistry] = None
        self._clients: Dict[str, OfflineClient] = {}
        self.bus.subscribe(ConnectivityChanged, self._on_connectivity_change)

    # ------------------------------------------------------------------
    # Lifecycle
    def initialize(self, bindings: Union[TransportRegistry, Mapping[str, Any]]) -> TransportRegistry:
        """Register the transports and, inside a running loop, start the fallback timer."""

        registry = bindings if isinstance(bindings, TransportRegistry) else TransportRegistry(bindings)
        self.registry = registry
        self.coordinator.configure(registry)
        self._clients.clear()
        self.logger.info("Offline manager initialised for %s", ", ".join(registry.entity_types) or "no entities")

        if self.config.auto_sync:
            try:
                asyncio.get_running_loop()
            except RuntimeError:
                self.logger.info("No running event loop; fallback sync timer not started")
            else:
                self.connectivity.start(self._fallback_tick)
        return registry

    def shutdown(self) -> None:
        self.connectivity.stop()
        self.coordinator.configure(None)
        self.registry = None
        self._clients.clear()

    @property
    def initialized(self) -> bool:
        return self.registry is not None

    async def _on_connectivity_change(self, event: ConnectivityChanged) -> None:
        if event.is_online and self.config.auto_sync:
            await self.sync_changes()

    async def _fallback_tick(self) -> None:
        if self.connectivity.is_online and self.has_pending_changes():
            await self.sync_changes()

    # ------------------------------------------------------------------
    # Connectivity
    @property
    def is_online(self) -> bool:
        return self.connectivity.is_online

    async def set_online(self, online: bool) -> bool:
        return await self.connectivity.set_online(online)

    # ------------------------------------------------------------------
    # Operation log
    async def add_change(
        self,
        entity_type: str,
        operation_type: Union[OperationType, str],
        data: Any,
    ) -> PendingOperation:
        """Queue a mutation; sync right away when online and ``sync_on_enqueue`` is set."""

        op_type = OperationType.parse(operation_type)
        validate_payload(op_type, data)
        operation = PendingOperation(entity_type=entity_type, operation_type=op_type, payload=data)
        self.log.append(operation)
        if self.sync_on_enqueue and self.is_online:
            await self.sync_changes()
        return operation

    async def sync_changes(self) -> bool:
        return await self.coordinator.sync()

    def has_pending_changes(self) -> bool:
        return self.get_pending_changes_count() > 0

    def get_pending_changes_count(self) -> int:
        return self.log.count()

    def pending_operations(self) -> List[PendingOperation]:
        return self.log.list()

    # ------------------------------------------------------------------
    # Snapshot cache
    def store_offline_data(self, key: str, data: Any) -> None:
        self.cache.put(key, data)

    def get_offline_data(self, key: str) -> Any:
        entry = self.cache.get(key)
        return entry.value if entry is not None else None

    def clear_all(self) -> None:
        self.log.clear()
        self.cache.clear()
        self.logger.info("Offline queue and cache cleared")

    # ------------------------------------------------------------------
    # Facade and events
    def client(self, entity_type: str) -> OfflineClient:
        if self.registry is None:
            raise RuntimeError("OfflineManager.initialize() has not been called")
        client = self._clients.get(entity_type)
        if client is None:
            client = OfflineClient(
                entity_type,
                self.registry.resolve(entity_type),
                log=self.log,
                cache=self.cache,
                connectivity=self.connectivity,
            )
            self._clients[entity_type] = client
        return client

    def subscribe(self, event_type: Type[SyncEvent], handler: Handler):
        return self.bus.subscribe(event_type, handler)

    def unsubscribe(self, event_type: Type[SyncEvent], handler: Handler) -> None:
        self.bus.unsubscribe(event_type, handler)

    def status(self) -> dict:
        report = self.coordinator.last_report
        return {
            "online": self.is_online,
            "syncing": self.coordinator.is_syncing,
            "pendingCount": self.get_pending_changes_count(),
            "cachedCount": len(self.cache),
            "entityTypes": list(self.registry.entity_types) if self.registry else [],
            "lastSync": None
            if report is None
            else {
                "success": report.success,
                "processed": report.processed,
                "failed": report.failed,
                "finishedAt": report.finished_at.isoformat(),
            },
        }


def create_offline_manager(
    *,
    store: Optional[CollectionStore] = None,
    db_path: Optional[Union[Path, str]] = None,
    config: Optional[EngineConfig] = None,
    config_path: Optional[Path] = None,
    sync_settings: SyncSettings = SYNC,
    storage_settings: StorageSettings = STORAGE,
    log_settings: LogSettings = LOGGING,
    online: bool = True,
    probe: Optional[Probe] = None,
) -> OfflineManager:
    """Build an isolated :class:`OfflineManager`.

    Without an explicit ``store`` a SQLite database is opened at ``db_path``
    (default: the data directory) and migrated.
    """

    logger = get_sync_logger(log_settings)
    if config is None:
        config = load_config(config_path)
    if store is None:
        engine = make_engine(db_path if db_path is not None else storage_settings.db_path)
        init_db(engine)
        store = SqlCollectionStore(
            session_factory(engine),
            schema_version=storage_settings.schema_version,
            strict_reads=storage_settings.strict_reads,
        )
    return OfflineManager(
        store,
        config=config,
        sync_settings=sync_settings,
        storage_settings=storage_settings,
        online=online,
        probe=probe,
        logger=logger,
    )


__all__ = ["OfflineManager", "create_offline_manager"]
