import asyncio
import copy
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from pymongo import ReturnDocument

from app.dal.session_dal import MongoSessionBackend
from app.db.mongodb import MongoConnection, SavePath

DB_NAME = "sessions_db"


# =============================================================================
# In-process stand-in for the motor client: only the commands the store issues.
# Every command yields once before applying so concurrent callers interleave,
# then applies atomically like a single-document server update.
# =============================================================================


def _matches(doc, flt):
    for key, cond in flt.items():
        if isinstance(cond, dict):
            for op, val in cond.items():
                if op != "$lt":
                    raise NotImplementedError(op)
                if doc.get(key) is None or not doc[key] < val:
                    return False
        elif doc.get(key) != cond:
            return False
    return True


def _apply(doc, update):
    for key, val in update.get("$inc", {}).items():
        doc[key] = doc.get(key, 0) + val
    for key, val in update.get("$set", {}).items():
        doc[key] = val


class FakeCollection:
    def __init__(self, name):
        self.name = name
        self.docs = {}
        self.indexes = []
        self.find_and_modify_error = None
        self.index_error = None
        self.index_delay = 0
        self.update_error = None

    async def create_index(self, keys, **kwargs):
        await asyncio.sleep(0)
        for _ in range(self.index_delay):
            await asyncio.sleep(0)
        if self.index_error:
            raise self.index_error
        self.indexes.append(keys)
        return "_".join(f"{k}_{d}" for k, d in keys)

    async def find_one_and_update(self, flt, update, projection=None, upsert=False,
                                  return_document=ReturnDocument.BEFORE):
        await asyncio.sleep(0)
        if self.find_and_modify_error:
            raise self.find_and_modify_error
        doc = self.docs.get(flt["_id"])
        before = copy.deepcopy(doc)
        if doc is None:
            if not upsert:
                return None
            doc = self.docs[flt["_id"]] = {"_id": flt["_id"]}
        _apply(doc, update)
        result = doc if return_document == ReturnDocument.AFTER else before
        if result is None:
            return None
        if projection:
            return {k: v for k, v in result.items() if k == "_id" or projection.get(k)}
        return copy.deepcopy(result)

    async def update_one(self, flt, update, upsert=False):
        await asyncio.sleep(0)
        if self.update_error:
            raise self.update_error
        for doc in self.docs.values():
            if _matches(doc, flt):
                _apply(doc, update)
                return SimpleNamespace(matched_count=1, modified_count=1)
        return SimpleNamespace(matched_count=0, modified_count=0)

    async def delete_one(self, flt):
        await asyncio.sleep(0)
        for sid, doc in list(self.docs.items()):
            if _matches(doc, flt):
                del self.docs[sid]
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)

    async def delete_many(self, flt):
        await asyncio.sleep(0)
        doomed = [sid for sid, doc in self.docs.items() if _matches(doc, flt)]
        for sid in doomed:
            del self.docs[sid]
        return SimpleNamespace(deleted_count=len(doomed))


class FakeDatabase:
    def __init__(self, name):
        self.name = name
        self._collections = {}

    def __getitem__(self, name):
        return self._collections.setdefault(name, FakeCollection(name))


class FakeAdmin:
    def __init__(self, client):
        self._client = client

    async def command(self, name):
        self._client.commands.append(name)
        if self._client.ping_error:
            raise self._client.ping_error
        return {"ok": 1.0}


class FakeMotorClient:
    """Callable as a client factory; every call returns this same client."""

    def __init__(self):
        self.uri = None
        self.options = {}
        self.commands = []
        self.ping_error = None
        self.closed = False
        self.admin = FakeAdmin(self)
        self._databases = {}

    def __call__(self, uri, **options):
        self.uri = uri
        self.options = options
        self.closed = False
        return self

    def __getitem__(self, name):
        return self._databases.setdefault(name, FakeDatabase(name))

    def close(self):
        self.closed = True


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def mongo_client():
    return FakeMotorClient()


@pytest.fixture
def coll(mongo_client):
    return mongo_client[DB_NAME]["sessions"]


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def fake_sleep(sleeps):
    async def sleep(delay):
        sleeps.append(delay)
    return sleep


@pytest.fixture
def make_backend(mongo_client, clock, fake_sleep):
    def make(**overrides):
        conn = MongoConnection(
            SavePath(uri=f"mongodb://fake:27017/{DB_NAME}", database=DB_NAME),
            client_factory=mongo_client,
        )
        kwargs = dict(owner="P1", lifetime=3600, clock=clock, sleep=fake_sleep)
        kwargs.update(overrides)
        return MongoSessionBackend(conn, **kwargs)
    return make


@pytest.fixture
async def backend(make_backend):
    b = make_backend()
    assert await b.has_connection()
    return b
