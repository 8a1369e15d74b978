"""Diff-based batch updates and bulk deletes.

`BatchUpdater.apply_batch` clones each document, runs the caller's transform
on the clone, and writes only the fields that changed. Writes go out in
groups of at most `StoreConfig.batch_size` (500) through one unordered
`bulk_write` per group. Failures never stop the batch: they are collected in
`BatchResult.errors` next to the outcomes of the writes that went through.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, TypeVar

from pymongo import DeleteOne, UpdateOne
from pymongo.errors import BulkWriteError

from .base import BaseRepository
from .errors import (
    ApplicationError,
    BatchWriteError,
    DatabaseError,
    DocumentWriteError,
    NothingToBatchError,
)
from .utils.constants import RECORD_ID_KEY, RECORD_REF_KEY

logger = logging.getLogger(__name__)

T = TypeVar("T")

Transform = Callable[[Dict[str, Any]], Optional[Dict[str, Any]]]


def clone_value(value: Any) -> Any:
    """Structural copy over mappings, lists and tuples; other values are shared."""
    if isinstance(value, Mapping):
        return {key: clone_value(val) for key, val in value.items()}
    if isinstance(value, list):
        return [clone_value(item) for item in value]
    if isinstance(value, tuple):
        return tuple(clone_value(item) for item in value)
    return value


def chunked(items: Sequence[T], size: int) -> List[Sequence[T]]:
    return [items[i:i + size] for i in range(0, len(items), size)]


def make_update_delta(
    doc: Mapping[str, Any],
    transform: Optional[Transform],
    *,
    id_field: str,
) -> Dict[str, Any]:
    """Fields whose value differs between `doc` and the transformed clone.

    The transform may return a new mapping or mutate its argument and
    return None. Removed fields are written as None. The id field and the
    record metadata never appear in the delta.
    """
    after = clone_value(doc)
    if transform is not None:
        result = transform(after)
        if result is not None:
            after = result

    skip = {id_field, RECORD_ID_KEY, RECORD_REF_KEY}
    delta: Dict[str, Any] = {}
    for key, old in doc.items():
        if key in skip:
            continue
        new = after.get(key)
        if new != old:
            delta[key] = new
    for key, new in after.items():
        if key not in doc and key not in skip:
            delta[key] = new
    return delta


@dataclass
class WriteOutcome:
    doc_id: Any
    operation: str
    written_at: datetime


@dataclass
class BatchResult:
    outcomes: List[WriteOutcome] = field(default_factory=list)
    errors: List[Exception] = field(default_factory=list)

    @property
    def error(self) -> Optional[BatchWriteError]:
        if not self.errors:
            return None
        return BatchWriteError(f"{len(self.errors)} batch write error(s)", self.errors)

    @property
    def ok(self) -> bool:
        return not self.errors

    def raise_for_errors(self) -> "BatchResult":
        err = self.error
        if err is not None:
            raise err
        return self


class BatchUpdater(BaseRepository):
    """Group-wise bulk writer for one collection."""

    def _doc_id(self, doc: Mapping[str, Any]) -> Any:
        if RECORD_ID_KEY in doc:
            return doc[RECORD_ID_KEY]
        if self.config.id_field in doc:
            return doc[self.config.id_field]
        raise ApplicationError(f"[{self.path}] document has no identifier: {dict(doc)!r}")

    # ---------- Public ----------
    def apply_batch(self, documents: Sequence[Mapping[str, Any]], transform: Optional[Transform]) -> BatchResult:
        """Write the transform's field-level changes for every document.

        Raises:
            NothingToBatchError: if `documents` is empty.
        """
        docs = list(documents or [])
        if not docs:
            raise NothingToBatchError(f"[{self.path}] no docs to batch")

        result = BatchResult()
        for index, group in enumerate(chunked(docs, self.config.batch_size)):
            self._update_group(index, group, transform, result)
        return result

    def delete_batch(self, documents: Sequence[Mapping[str, Any]], soft_delete: bool = False) -> BatchResult:
        """Delete (or mark as deleted) every document, group by group.

        Raises:
            NothingToBatchError: if `documents` is empty.
        """
        docs = list(documents or [])
        if not docs:
            raise NothingToBatchError(f"[{self.path}] no docs to delete")

        result = BatchResult()
        for index, group in enumerate(chunked(docs, self.config.batch_size)):
            self._delete_group(index, group, soft_delete, result)
        return result

    # ---------- Groups ----------
    def _update_group(
        self,
        index: int,
        docs: Sequence[Mapping[str, Any]],
        transform: Optional[Transform],
        result: BatchResult,
    ) -> None:
        if not docs:
            raise NothingToBatchError(f"[{self.path}] no docs to batch")

        now = self.now()
        doc_ids: List[Any] = []
        ops: List[UpdateOne] = []
        for doc in docs:
            delta = make_update_delta(doc, transform, id_field=self.config.id_field)
            if not delta:
                continue
            try:
                doc_id = self._doc_id(doc)
            except ApplicationError as e:
                result.errors.append(e)
                continue
            delta[self.config.updated_at_field] = now
            doc_ids.append(doc_id)
            ops.append(UpdateOne({RECORD_ID_KEY: doc_id}, {"$set": delta}))

        self._submit(index, "update", doc_ids, ops, now, result)

    def _delete_group(
        self,
        index: int,
        docs: Sequence[Mapping[str, Any]],
        soft_delete: bool,
        result: BatchResult,
    ) -> None:
        if not docs:
            raise NothingToBatchError(f"[{self.path}] no docs to delete")

        now = self.now()
        doc_ids: List[Any] = []
        ops: List[Any] = []
        for doc in docs:
            try:
                doc_id = self._doc_id(doc)
            except ApplicationError as e:
                result.errors.append(e)
                continue
            doc_ids.append(doc_id)
            if soft_delete:
                ops.append(UpdateOne(
                    {RECORD_ID_KEY: doc_id},
                    {"$set": {
                        self.config.deleted_at_field: now,
                        self.config.updated_at_field: now,
                    }},
                ))
            else:
                ops.append(DeleteOne({RECORD_ID_KEY: doc_id}))

        self._submit(index, "soft_delete" if soft_delete else "delete", doc_ids, ops, now, result)

    def _submit(
        self,
        index: int,
        operation: str,
        doc_ids: List[Any],
        ops: List[Any],
        now: datetime,
        result: BatchResult,
    ) -> None:
        # a group where nothing changed issues no write at all
        if not ops:
            return

        failed: Dict[int, Exception] = {}
        try:
            self.bulk_write_safe(ops)
        except BulkWriteError as e:
            details = e.details or {}
            for write_error in details.get("writeErrors", []):
                pos = write_error.get("index")
                doc_id = doc_ids[pos] if isinstance(pos, int) and 0 <= pos < len(doc_ids) else None
                failed[pos] = DocumentWriteError(
                    doc_id,
                    write_error.get("errmsg", "unknown error"),
                    code=write_error.get("code"),
                    details=write_error,
                )
            for concern_error in details.get("writeConcernErrors", []):
                result.errors.append(DatabaseError(
                    f"[{self.path}] batch group {index}: write concern error: {concern_error.get('errmsg')}"
                ))
            logger.warning("[%s] batch group %d: %d of %d writes failed", self.path, index, len(failed), len(ops))
        except DatabaseError as e:
            logger.warning("[%s] batch group %d failed: %s", self.path, index, e)
            result.errors.append(e)
            return

        result.errors.extend(failed.values())
        result.outcomes.extend(
            WriteOutcome(doc_id=doc_id, operation=operation, written_at=now)
            for pos, doc_id in enumerate(doc_ids)
            if pos not in failed
        )
