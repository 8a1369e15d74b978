"""Entry point of the document store.

This module defines:
- `DocumentStore`: owns the database handle and the `StoreConfig`, and hands
  out `DocumentCollection` objects by path.

Notes:
    - Import-safe: no DB side effects on import or construction (pymongo
      connects lazily).
    - One store per process is enough; the pymongo handle is thread safe and
      the store holds no other mutable state.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Union

from pymongo.database import Database

from .base import Clock
from .collection import DocumentCollection
from .config import MongoSettings, StoreConfig
from .connection import get_db


class DocumentStore:
    def __init__(self, db: Database, config: Optional[StoreConfig] = None, clock: Optional[Clock] = None):
        self.db = db
        self.config = config or StoreConfig()
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: Union[MongoSettings, Mapping[str, Any]],
        config: Optional[StoreConfig] = None,
        **client_options: Any,
    ) -> "DocumentStore":
        """Build a store from `MongoSettings` or a secrets-style mapping."""
        return cls(get_db(settings, **client_options), config)

    def collection(self, path: str) -> DocumentCollection:
        return DocumentCollection(self.db, path, self.config, self._clock)

    def __getitem__(self, path: str) -> DocumentCollection:
        return self.collection(path)
