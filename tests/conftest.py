"""
Shared fixtures: an in-memory stand-in for the Motor database and an API
client with authentication overridden.
"""
import copy
from decimal import Decimal
from types import SimpleNamespace

import pytest
from bson import Decimal128, ObjectId

from estate_commissions.config.database import db_config

COMPANY_ID = "65f000000000000000000001"
USER = {"sub": "user-1", "company_id": COMPANY_ID, "role": "accountant"}


def _matches(doc, query):
    for key, expected in query.items():
        actual = doc.get(key)
        if isinstance(expected, dict) and any(k.startswith("$") for k in expected):
            for op, operand in expected.items():
                if op == "$ne" and actual == operand:
                    return False
                if op == "$in" and actual not in operand:
                    return False
        elif actual != expected:
            return False
    return True


def _add(current, delta):
    def dec(v):
        if v is None:
            return Decimal("0")
        return v.to_decimal() if isinstance(v, Decimal128) else Decimal(str(v))
    return Decimal128(dec(current) + dec(delta))


class FakeCursor:
    def __init__(self, docs):
        self._docs = docs

    def sort(self, key_or_list, direction=1):
        keys = key_or_list if isinstance(key_or_list, list) else [(key_or_list, direction)]
        for key, order in reversed(keys):
            self._docs.sort(key=lambda d: (d.get(key) is None, d.get(key)), reverse=order < 0)
        return self

    def skip(self, n):
        self._docs = self._docs[n:]
        return self

    def limit(self, n):
        if n:
            self._docs = self._docs[:n]
        return self

    async def to_list(self, length=None):
        return self._docs if length is None else self._docs[:length]

    def __aiter__(self):
        self._iter = iter(self._docs)
        return self

    async def __anext__(self):
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration


class FakeCollection:
    def __init__(self):
        self.docs = []

    def find(self, query=None):
        return FakeCursor([copy.deepcopy(d) for d in self.docs if _matches(d, query or {})])

    async def find_one(self, query):
        for doc in self.docs:
            if _matches(doc, query):
                return copy.deepcopy(doc)
        return None

    async def insert_one(self, doc):
        doc.setdefault("_id", ObjectId())
        self.docs.append(copy.deepcopy(doc))
        return SimpleNamespace(inserted_id=doc["_id"])

    async def find_one_and_update(self, query, update, upsert=False, return_document=None):
        target = next((d for d in self.docs if _matches(d, query)), None)
        if target is None:
            if not upsert:
                return None
            target = {"_id": ObjectId(), **{k: v for k, v in query.items() if not isinstance(v, dict)}}
            target.update(update.get("$setOnInsert", {}))
            self.docs.append(target)
        target.update(update.get("$set", {}))
        for field, delta in update.get("$inc", {}).items():
            target[field] = _add(target.get(field), delta)
        return copy.deepcopy(target)

    async def create_index(self, *args, **kwargs):
        return "index"


class FakeDatabase(dict):
    def __missing__(self, name):
        self[name] = FakeCollection()
        return self[name]


@pytest.fixture
def fake_db(monkeypatch):
    database = FakeDatabase()
    monkeypatch.setattr(db_config, "database", database)
    return database


@pytest.fixture
def user():
    return dict(USER)


@pytest.fixture
def client(fake_db):
    from fastapi.testclient import TestClient

    from estate_commissions.main import app
    from estate_commissions.utils.auth import get_current_user

    app.dependency_overrides[get_current_user] = lambda: dict(USER)
    yield TestClient(app)
    app.dependency_overrides.clear()
