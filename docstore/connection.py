# docstore/connection.py
from __future__ import annotations

from typing import Any, Mapping, Union

from pymongo import MongoClient
from pymongo.database import Database

from .config import MongoSettings


def get_client(settings: MongoSettings, **client_options: Any) -> MongoClient:
    """Create a client for `settings`. No network I/O happens until first use."""
    return MongoClient(settings.to_uri(), **client_options)


def get_db(settings: Union[MongoSettings, Mapping[str, Any]], **client_options: Any) -> Database:
    """Return a db handle built from settings or from a secrets mapping.

    The handle is not cached here; callers share the returned object.
    """
    if not isinstance(settings, MongoSettings):
        settings = MongoSettings.from_secrets(settings)
    client = get_client(settings, **client_options)
    return client[settings.database_name]
