import asyncio

import pytest

from core.settings import SyncSettings
from models.events import ConnectivityChanged, SyncCompleted, SyncEvent
from services.errors import TransportBindingError
from services.offline_client import QueuedAck
from services.offline_manager import create_offline_manager
from storage.config import EngineConfig

from conftest import FakeTransport


@pytest.mark.asyncio
async def test_offline_delete_replays_when_back_online(manager):
    tasks = FakeTransport()
    manager.initialize({"task": tasks})
    events = []
    manager.subscribe(SyncEvent, events.append)

    await manager.set_online(False)
    ack = await manager.client("task").delete("T123")
    assert isinstance(ack, QueuedAck)
    assert manager.get_pending_changes_count() == 1

    await manager.set_online(True)

    assert tasks.calls == [("task", "delete", ("T123",))]
    assert manager.get_pending_changes_count() == 0
    assert not manager.has_pending_changes()
    assert ConnectivityChanged(is_online=True) in events
    assert [e for e in events if isinstance(e, SyncCompleted)] == [
        SyncCompleted(success=True, processed=1, failed=0)
    ]


@pytest.mark.asyncio
async def test_add_change_syncs_immediately_when_online(manager):
    tasks = FakeTransport()
    manager.initialize({"task": tasks})

    await manager.add_change("task", "create", {"title": "Write docs"})

    assert tasks.calls == [("task", "create", ({"title": "Write docs"},))]
    assert manager.get_pending_changes_count() == 0


@pytest.mark.asyncio
async def test_add_change_before_initialize_stays_queued(manager):
    op = await manager.add_change("task", "update", {"id": "T1", "title": "x"})

    assert manager.pending_operations()[0].id == op.id
    assert await manager.sync_changes() is False


@pytest.mark.asyncio
async def test_add_change_validates_arguments(manager):
    with pytest.raises(ValueError):
        await manager.add_change("task", "archive", {"id": "T1"})
    with pytest.raises(ValueError):
        await manager.add_change("task", "delete", {"title": "no id"})
    assert manager.get_pending_changes_count() == 0


@pytest.mark.asyncio
async def test_direct_cache_access_and_clear_all(manager):
    manager.store_offline_data("dashboard:summary", {"open": 4})
    assert manager.get_offline_data("dashboard:summary") == {"open": 4}
    assert manager.get_offline_data("unknown") is None

    await manager.set_online(False)
    await manager.add_change("task", "create", {"title": "x"})
    manager.clear_all()

    assert manager.get_offline_data("dashboard:summary") is None
    assert manager.get_pending_changes_count() == 0


@pytest.mark.asyncio
async def test_fallback_timer_replays_pending_work(store, quiet_logs, tmp_path):
    manager = create_offline_manager(
        store=store,
        config=EngineConfig(auto_sync=True, fallback_interval_sec=0.01),
        sync_settings=SyncSettings(sync_on_enqueue=False),
        log_settings=quiet_logs,
    )
    tasks = FakeTransport()
    try:
        await manager.add_change("task", "create", {"title": "later"})
        manager.initialize({"task": tasks})
        assert manager.connectivity.timer_running

        for _ in range(200):
            if not manager.has_pending_changes():
                break
            await asyncio.sleep(0.01)

        assert tasks.calls == [("task", "create", ({"title": "later"},))]
    finally:
        manager.shutdown()
        await asyncio.sleep(0)
    assert not manager.connectivity.timer_running
    assert not manager.initialized


@pytest.mark.asyncio
async def test_client_requires_registered_entity(manager):
    with pytest.raises(RuntimeError):
        manager.client("task")
    manager.initialize({"task": FakeTransport()})
    with pytest.raises(TransportBindingError):
        manager.client("template")
    assert manager.client("task") is manager.client("task")


@pytest.mark.asyncio
async def test_status_summarises_engine_state(manager):
    manager.initialize({"task": FakeTransport(), "project": FakeTransport("project")})
    await manager.sync_changes()

    status = manager.status()
    assert status["online"] is True
    assert status["pendingCount"] == 0
    assert status["entityTypes"] == ["task", "project"]
    assert status["lastSync"]["success"] is True


def test_factory_opens_sqlite_file_and_instances_are_isolated(tmp_path, quiet_logs):
    first = create_offline_manager(
        db_path=tmp_path / "a.db", config_path=tmp_path / "cfg.json", log_settings=quiet_logs
    )
    second = create_offline_manager(
        db_path=tmp_path / "b.db", config_path=tmp_path / "cfg.json", log_settings=quiet_logs
    )

    first.store_offline_data("k", 1)
    assert first.get_offline_data("k") == 1
    assert second.get_offline_data("k") is None
    assert (tmp_path / "a.db").exists()

    reopened = create_offline_manager(
        db_path=tmp_path / "a.db", config_path=tmp_path / "cfg.json", log_settings=quiet_logs
    )
    assert reopened.get_offline_data("k") == 1


@pytest.mark.asyncio
async def test_offline_update_replays_the_original_arguments(manager):
    tasks = FakeTransport()
    manager.initialize({"task": tasks})

    await manager.set_online(False)
    await manager.client("task").update("T1", "done")
    await manager.client("task").update("T2", {"title": "renamed"})
    await manager.set_online(True)

    assert tasks.calls == [
        ("task", "update", ("T1", "done")),
        ("task", "update", ("T2", {"title": "renamed"})),
    ]
