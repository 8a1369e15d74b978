# docstore/__init__.py

"""Condition-driven convenience layer over MongoDB.

Contains:
    - DocumentStore / DocumentCollection: CRUD, paging and batch helpers
    - compile_query: condition sequence -> Query
    - BatchUpdater: diff-based bulk updates
    - StoreConfig / MongoSettings: explicit configuration values
    - DatabaseError / ApplicationError and their subclasses
"""

from .batch import BatchResult, BatchUpdater, WriteOutcome, clone_value, make_update_delta
from .collection import DocumentCollection
from .conditions import Filter, OrderBy, Options, parse_conditions, parse_order_by
from .config import MongoSettings, StoreConfig
from .errors import (
    ApplicationError,
    BatchWriteError,
    DatabaseError,
    DocumentNotFoundError,
    DocumentWriteError,
    InvalidConditionError,
    NothingToBatchError,
)
from .query import Query, compile_query
from .store import DocumentStore

__all__ = [
    "ApplicationError",
    "BatchResult",
    "BatchUpdater",
    "BatchWriteError",
    "DatabaseError",
    "DocumentCollection",
    "DocumentNotFoundError",
    "DocumentStore",
    "DocumentWriteError",
    "Filter",
    "InvalidConditionError",
    "MongoSettings",
    "NothingToBatchError",
    "Options",
    "OrderBy",
    "Query",
    "StoreConfig",
    "WriteOutcome",
    "clone_value",
    "compile_query",
    "make_update_delta",
    "parse_conditions",
    "parse_order_by",
]
