"""Configuration values for the document store.

Nothing here is process-wide: build a `StoreConfig` / `MongoSettings` once
and pass it to the components that need it.

Both models also read environment variables (prefixes `DOCSTORE_` and
`DOCSTORE_MONGO_`), so a deployment can configure the store without code.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional
from urllib.parse import quote_plus

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ApplicationError
from .utils.constants import (
    CREATED_AT_FIELD,
    DEFAULT_PER_PAGE,
    DELETED_AT_FIELD,
    ID_FIELD,
    MAX_BATCH_SIZE,
    UID_FIELD,
    UPDATED_AT_FIELD,
)


class StoreConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="DOCSTORE_",
        extra="ignore",
        frozen=True,
    )

    # Managed field names
    id_field: str = ID_FIELD
    uid_field: str = UID_FIELD
    created_at_field: str = CREATED_AT_FIELD
    updated_at_field: str = UPDATED_AT_FIELD
    deleted_at_field: str = DELETED_AT_FIELD

    default_per_page: int = Field(default=DEFAULT_PER_PAGE, ge=1)
    batch_size: int = Field(default=MAX_BATCH_SIZE, ge=1, le=MAX_BATCH_SIZE)

    # Log every compiled query at DEBUG level
    debug: bool = False


class MongoSettings(BaseSettings):
    """Connection settings.

    Either give a full `uri`, or the Atlas triple `username` / `password` /
    `cluster_url` from which a `mongodb+srv://` URI is assembled.
    """

    model_config = SettingsConfigDict(
        env_prefix="DOCSTORE_MONGO_",
        extra="ignore",
        frozen=True,
    )

    uri: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    cluster_url: Optional[str] = None
    database_name: str

    @model_validator(mode="after")
    def _check_target(self) -> "MongoSettings":
        if not self.uri and not (self.username and self.password and self.cluster_url):
            raise ValueError("either 'uri' or 'username', 'password' and 'cluster_url' are required")
        return self

    @classmethod
    def from_secrets(cls, secrets: Mapping[str, Any]) -> "MongoSettings":
        """Build settings from a secrets-style mapping.

        Recognized keys: `mongo_uri`, `mongo_username`, `mongo_password`,
        `mongo_cluster_url`, `database_name`.
        """
        try:
            return cls(
                uri=secrets.get("mongo_uri"),
                username=secrets.get("mongo_username"),
                password=secrets.get("mongo_password"),
                cluster_url=secrets.get("mongo_cluster_url"),
                database_name=secrets["database_name"],
            )
        except KeyError as e:
            raise ApplicationError(f"MongoSettings.from_secrets: missing key {e}") from e

    def to_uri(self) -> str:
        if self.uri:
            return self.uri
        username = quote_plus(self.username)
        password = quote_plus(self.password)
        return f"mongodb+srv://{username}:{password}@{self.cluster_url}/?retryWrites=true&w=majority"
