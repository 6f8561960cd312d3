import asyncio
import os
import sys
import tempfile
from collections import defaultdict
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Keep log files and backups of the test run out of the real user data dir.
os.environ.setdefault("LOANDESK_DATA_DIR", tempfile.mkdtemp(prefix="loandesk-tests-"))

from services.connectivity import ConnectivityMonitor  # noqa: E402
from services.errors import NetworkFailure  # noqa: E402
from services.gateways import DeliveryResult  # noqa: E402
from services.operation_log import OperationLog  # noqa: E402
from services.sync_engine import SyncEngine  # noqa: E402
from storage.db import init_db, make_engine, make_session_factory  # noqa: E402
from storage.local_store import LocalStore  # noqa: E402


class FakeRemoteStore:
    """In-memory remote store recording every call it receives."""

    def __init__(self):
        self.tables = defaultdict(dict)
        self.calls = []
        self.fail = False
        self.fail_ids = set()
        self.gate = None
        self._next_id = 1000

    async def _enter(self, op, table, record_id=None, payload=None):
        self.calls.append((op, table, record_id, payload))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail or (record_id is not None and str(record_id) in self.fail_ids):
            raise NetworkFailure("remote unreachable")

    async def create(self, table, row):
        await self._enter("create", table, row.get("id"), dict(row))
        data = dict(row)
        if data.get("id") is None:
            data["id"] = self._next_id
            self._next_id += 1
        self.tables[table][str(data["id"])] = data
        return dict(data)

    async def read(self, table, filters):
        await self._enter("read", table, None, dict(filters))
        return [
            dict(row)
            for row in self.tables[table].values()
            if all(row.get(key) == value for key, value in filters.items())
        ]

    async def update(self, table, record_id, patch):
        await self._enter("update", table, record_id, dict(patch))
        row = self.tables[table].get(str(record_id))
        if row is None:
            raise NetworkFailure(f"{table}/{record_id} not found")
        row.update(patch)
        return dict(row)

    async def delete(self, table, record_id):
        await self._enter("delete", table, record_id)
        self.tables[table].pop(str(record_id), None)

    def writes(self):
        return [call for call in self.calls if call[0] != "read"]

    def seed(self, table, *rows):
        for row in rows:
            self.tables[table][str(row["id"])] = dict(row)


class FakeGateway:
    """Scripted delivery gateway: pops outcomes, defaults to success."""

    name = "fake"

    def __init__(self, outcomes=None):
        self.outcomes = list(outcomes or [])
        self.sent = []
        self.gate = None

    async def send(self, recipient, text):
        self.sent.append((recipient, text))
        if self.gate is not None:
            await self.gate.wait()
        outcome = self.outcomes.pop(0) if self.outcomes else True
        if isinstance(outcome, Exception):
            raise outcome
        if outcome:
            return DeliveryResult.sent(f"msg-{len(self.sent)}")
        return DeliveryResult.rejected("gateway rejected")


async def drain_replay(engine):
    for _ in range(1000):
        if not engine.replay_in_progress:
            return
        await asyncio.sleep(0)
    raise AssertionError("replay did not finish")


@pytest.fixture()
def db_engine(tmp_path):
    engine = make_engine(tmp_path / "loandesk.db")
    init_db(engine, backup=False)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(db_engine):
    return make_session_factory(db_engine)


@pytest.fixture()
def local_store(session_factory):
    return LocalStore(session_factory)


@pytest.fixture()
def op_log(session_factory):
    return OperationLog(session_factory)


@pytest.fixture()
def remote():
    return FakeRemoteStore()


@pytest.fixture()
def monitor():
    return ConnectivityMonitor(online=True)


@pytest.fixture()
def engine(local_store, op_log, remote, monitor):
    return SyncEngine(local_store, op_log, remote, monitor)
