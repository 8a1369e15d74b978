# docstore/base.py
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional

from pymongo.collection import Collection
from pymongo.errors import BulkWriteError

from .config import StoreConfig
from .errors import DatabaseError

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BaseRepository:
    def __init__(self, db, collection_name: str, config: Optional[StoreConfig] = None, clock: Optional[Clock] = None):
        self.db = db
        self.path = collection_name
        self.col: Collection = db[collection_name]
        self.config = config or StoreConfig()
        self._clock = clock or utcnow

    def now(self) -> datetime:
        return self._clock()

    def bulk_write_safe(self, ops: Iterable[Any]):
        """Unordered bulk write.

        A partial failure re-raises `BulkWriteError` unchanged so the caller
        can read the per-write details; anything else becomes `DatabaseError`.
        """
        try:
            return self.col.bulk_write(list(ops), ordered=False)
        except BulkWriteError:
            raise
        except Exception as e:
            raise DatabaseError(f"[{self.col.name}] bulk_write failed: {e}") from e
