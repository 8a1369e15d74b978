from datetime import datetime
from typing import Any, Dict, List, Set

import mongomock
import pytest
from pymongo import DeleteOne
from pymongo.errors import AutoReconnect, BulkWriteError

from docstore import DocumentCollection, StoreConfig

FIXED_NOW = datetime(2026, 1, 2, 3, 4, 5)


class RecordingCollection:
    """mongomock collection whose bulk writes are recorded and can be made to fail.

    Each `bulk_write` call is applied op by op with update_one / delete_one.
    """

    def __init__(self, inner):
        self._inner = inner
        self.bulk_calls: List[List[Any]] = []
        self.fail_calls: Set[int] = set()
        self.fail_ids: Set[Any] = set()

    def __getattr__(self, name):
        return getattr(self._inner, name)

    def bulk_write(self, requests, ordered=True):
        ops = list(requests)
        call_no = len(self.bulk_calls)
        self.bulk_calls.append(ops)
        if call_no in self.fail_calls:
            raise AutoReconnect("connection closed")

        write_errors: List[Dict[str, Any]] = []
        for index, op in enumerate(ops):
            if op._filter["_id"] in self.fail_ids:
                write_errors.append({"index": index, "code": 121, "errmsg": "Document failed validation"})
                continue
            if isinstance(op, DeleteOne):
                self._inner.delete_one(op._filter)
            else:
                self._inner.update_one(op._filter, op._doc)

        if write_errors:
            raise BulkWriteError({
                "writeErrors": write_errors,
                "writeConcernErrors": [],
                "nInserted": 0,
                "nUpserted": 0,
                "nMatched": len(ops) - len(write_errors),
                "nModified": len(ops) - len(write_errors),
                "nRemoved": 0,
                "upserted": [],
            })
        return None


class RecordingDatabase:
    def __init__(self):
        self._db = mongomock.MongoClient().db
        self._cols: Dict[str, RecordingCollection] = {}

    def __getitem__(self, name: str) -> RecordingCollection:
        if name not in self._cols:
            self._cols[name] = RecordingCollection(self._db[name])
        return self._cols[name]


@pytest.fixture
def db() -> RecordingDatabase:
    return RecordingDatabase()


@pytest.fixture
def config() -> StoreConfig:
    return StoreConfig()


@pytest.fixture
def users(db, config) -> DocumentCollection:
    return DocumentCollection(db, "users", config, clock=lambda: FIXED_NOW)


@pytest.fixture
def seeded(users) -> DocumentCollection:
    """60 users: seq 0..59, team alternating A/B, every 10th soft-deleted."""
    for seq in range(60):
        users.add_doc_with_id(
            f"u{seq:02d}",
            None,
            {"seq": seq, "team": "A" if seq % 2 == 0 else "B", "tags": ["even"] if seq % 2 == 0 else ["odd"]},
        )
        if seq % 10 == 0:
            users.delete_doc(f"u{seq:02d}", soft_delete=True)
    return users
