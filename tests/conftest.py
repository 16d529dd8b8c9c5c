import asyncio
from pathlib import Path
import sys

import pytest
import pytest_asyncio

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core.settings import LogSettings
from services.offline_manager import create_offline_manager
from storage.config import EngineConfig
from storage.db import init_db, make_engine, session_factory as make_session_factory
from storage.store import SqlCollectionStore


class TransportDown(Exception):
    pass


class FakeTransport:
    """Records calls; raises for any method listed in ``failing``."""

    def __init__(self, name="task", failing=(), results=None):
        self.name = name
        self.calls = []
        self.failing = set(failing)
        self.results = dict(results or {})
        self.gate = None

    async def _record(self, method, *args):
        self.calls.append((self.name, method, args))
        if self.gate is not None:
            await self.gate.wait()
        if method in self.failing:
            raise TransportDown(f"{self.name}.{method} unavailable")
        return self.results.get(method, {"ok": True, "method": method, "args": list(args)})

    async def create(self, data):
        return await self._record("create", data)

    async def update(self, record_id, data):
        return await self._record("update", record_id, data)

    async def delete(self, record_id):
        return await self._record("delete", record_id)

    async def get(self, record_id):
        return await self._record("get", record_id)

    async def list(self, **filters):
        return await self._record("list", filters)

    def describe(self):
        return f"transport:{self.name}"


@pytest.fixture()
def session_factory():
    engine = make_engine(":memory:")
    init_db(engine)
    return make_session_factory(engine)


@pytest.fixture()
def store(session_factory):
    return SqlCollectionStore(session_factory)


@pytest.fixture()
def quiet_logs():
    return LogSettings(file_enabled=False)


@pytest_asyncio.fixture()
async def manager(store, quiet_logs, tmp_path):
    instance = create_offline_manager(
        store=store,
        config=EngineConfig(auto_sync=True, fallback_interval_sec=3600),
        config_path=tmp_path / "config.json",
        log_settings=quiet_logs,
    )
    yield instance
    instance.shutdown()
    await asyncio.sleep(0)
