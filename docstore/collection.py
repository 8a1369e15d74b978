# docstore/collection.py
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import pandas as pd
from bson import ObjectId
from pymongo.results import DeleteResult, UpdateResult

from .base import BaseRepository, Clock
from .batch import BatchResult, BatchUpdater, Transform
from .conditions import Options
from .config import StoreConfig
from .errors import DocumentNotFoundError, NothingToBatchError
from .query import Query, compile_query
from .records import docs_to_records, make_doc_response, records_to_df
from .utils.constants import RECORD_ID_KEY, RECORD_REF_KEY


def _is_options(cond: Any) -> bool:
    return isinstance(cond, (Mapping, Options))


def _with_options(conditions: Optional[Sequence[Any]], **updates: Any) -> List[Any]:
    """Copy of `conditions` whose trailing options carry `updates`.

    The caller's sequence and mapping are left untouched.
    """
    conds = list(conditions or [])
    if conds and isinstance(conds[-1], Options):
        conds[-1] = conds[-1].model_copy(update=updates)
    elif conds and isinstance(conds[-1], Mapping):
        # drop e.g. "Limit" before setting "limit", keys are case-insensitive
        merged = {k: v for k, v in conds[-1].items() if str(k).lower() not in updates}
        merged.update(updates)
        conds[-1] = merged
    else:
        conds.append(dict(updates))
    return conds


def _without_options(conditions: Optional[Sequence[Any]]) -> List[Any]:
    conds = list(conditions or [])
    if conds and _is_options(conds[-1]):
        conds = conds[:-1]
    return conds


class DocumentCollection(BaseRepository):
    """Condition-driven access to one collection.

    Conditions are sequences of `(field, op, value)` clauses with an optional
    trailing options mapping, see `docstore.conditions`.

    Every document written through this class carries `id`, `uid` (when
    given), `createdAt`, `updatedAt` and `deletedAt`. Soft-deleted documents
    are NOT filtered out of reads; add `("deletedAt", "==", None)` yourself.
    """

    def __init__(self, db, path: str, config: Optional[StoreConfig] = None, clock: Optional[Clock] = None):
        super().__init__(db, path, config, clock)
        self._updater = BatchUpdater(db, path, self.config, self._clock)

    @property
    def ref(self):
        return self.col

    def _writable(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        doc = dict(data)
        doc.pop(RECORD_ID_KEY, None)
        doc.pop(RECORD_REF_KEY, None)
        return doc

    # ---------- Write ----------
    def add_doc_data(self, data: Mapping[str, Any], id_prefix: str = "") -> Tuple[str, UpdateResult]:
        return self.add_doc(None, data, id_prefix)

    def add_doc(self, uid: Optional[str], data: Mapping[str, Any], id_prefix: str = "") -> Tuple[str, UpdateResult]:
        """Insert `data` under a generated id (`id_prefix` + ObjectId hex)."""
        doc_id = f"{id_prefix}{ObjectId()}"
        return self.add_doc_with_id(doc_id, uid, data)

    def add_doc_with_id(
        self,
        doc_id: Optional[str],
        uid: Optional[str],
        data: Mapping[str, Any],
    ) -> Tuple[str, UpdateResult]:
        """Write `data` as the full document `doc_id`, replacing any existing one.

        Side-effects:
            - Sets `uid` (if given), `createdAt`, `updatedAt`, `deletedAt=None`.
            - Sets the `id` field to the document id.

        Returns:
            (doc_id, pymongo UpdateResult)
        """
        if doc_id is None:
            doc_id = str(ObjectId())

        doc = self._writable(data)
        if uid is not None:
            doc[self.config.uid_field] = uid
        now = self.now()
        doc[self.config.created_at_field] = now
        doc[self.config.updated_at_field] = now
        doc[self.config.deleted_at_field] = None
        doc[self.config.id_field] = doc_id
        doc[RECORD_ID_KEY] = doc_id

        res = self.col.replace_one({RECORD_ID_KEY: doc_id}, doc, upsert=True)
        return doc_id, res

    def update_doc(self, doc_id: Any, data: Mapping[str, Any]) -> UpdateResult:
        """Merge `data` into the document (created if missing) and bump `updatedAt`."""
        doc = self._writable(data)
        doc[self.config.updated_at_field] = self.now()
        return self.col.update_one({RECORD_ID_KEY: doc_id}, {"$set": doc}, upsert=True)

    def delete_doc(self, doc_id: Any, soft_delete: bool = False):
        """Delete one document, or only set its `deletedAt` when `soft_delete`."""
        if soft_delete:
            return self.update_doc(doc_id, {self.config.deleted_at_field: self.now()})
        res: DeleteResult = self.col.delete_one({RECORD_ID_KEY: doc_id})
        return res

    def delete_docs(self, conditions: Optional[Sequence[Any]], soft_delete: bool = False) -> BatchResult:
        """Delete every matching document through bulk writes.

        Raises:
            NothingToBatchError: if nothing matches.
        """
        docs = self.list_docs(conditions)
        if not docs:
            raise NothingToBatchError(f"[{self.path}] no docs to delete")
        return self._updater.delete_batch(docs, soft_delete=soft_delete)

    def batch_docs(self, conditions: Optional[Sequence[Any]], transform: Optional[Transform]) -> BatchResult:
        """Run `transform` over every matching document and write the changed fields.

        Returns:
            BatchResult with one outcome per write that went through and the
            errors of the ones that did not.

        Raises:
            NothingToBatchError: if nothing matches.
        """
        docs = self.list_docs(conditions)
        if not docs:
            raise NothingToBatchError(f"[{self.path}] no docs to batch")
        return self._updater.apply_batch(docs, transform)

    # ---------- Read ----------
    def make_query(self, conditions: Optional[Sequence[Any]]) -> Query:
        return compile_query(conditions, debug=self.config.debug, label=self.path)

    def list_docs(self, conditions: Optional[Sequence[Any]]) -> List[Dict[str, Any]]:
        query = self.make_query(conditions)
        return docs_to_records(query.cursor_on(self.col), self.path)

    def list_docs_df(self, conditions: Optional[Sequence[Any]], *, drop_metadata: bool = False) -> pd.DataFrame:
        """Return matching records as a pandas DataFrame."""
        return records_to_df(self.list_docs(conditions), drop_metadata=drop_metadata)

    def find_doc(self, conditions: Optional[Sequence[Any]]) -> Optional[Dict[str, Any]]:
        """First matching record, or None."""
        docs = self.list_docs(_with_options(conditions, limit=1))
        if not docs:
            return None
        return docs[0]

    def get_doc(self, doc_id: Any) -> Dict[str, Any]:
        """Fetch by id.

        Raises:
            DocumentNotFoundError: if no document has this id.
        """
        doc = self.col.find_one({RECORD_ID_KEY: doc_id})
        if doc is None:
            raise DocumentNotFoundError(doc_id)
        return make_doc_response(doc, self.path)

    def check_exists(self, conditions: Optional[Sequence[Any]]) -> bool:
        return self.find_doc(conditions) is not None

    def count_docs(self, conditions: Optional[Sequence[Any]]) -> int:
        """Count matches. A trailing options clause (paging, cursors) is ignored."""
        query = self.make_query(_without_options(conditions))
        return self.col.count_documents(query.to_filter())

    # ---------- Paging ----------
    def paginate(self, conditions: Optional[Sequence[Any]], page: int = 0, per_page: int = 0) -> Dict[str, Any]:
        """One page of matching records.

        Args:
            page: 1-based page number; 0 means the first page.
            per_page: page size; 0 means `StoreConfig.default_per_page`.

        Returns:
            {"docs": [...], "page": int, "perPage": int}
        """
        if page == 0:
            page = 1
        if per_page == 0:
            per_page = self.config.default_per_page

        conds = _with_options(conditions, limit=per_page, offset=(page - 1) * per_page)
        docs = self.list_docs(conds)
        return {
            "docs": docs,
            "page": page,
            "perPage": per_page,
        }

    def paginate_with_count(
        self,
        conditions: Optional[Sequence[Any]],
        page: int = 0,
        per_page: int = 0,
    ) -> Dict[str, Any]:
        """`paginate` plus `count` (all matches) and `totalPage`."""
        if per_page == 0:
            per_page = self.config.default_per_page
        if page == 0:
            page = 1

        result = self.paginate(conditions, page, per_page)
        count = self.count_docs(conditions)

        total_page, rest = divmod(count, per_page)
        if rest:
            total_page += 1

        result.update({"count": count, "totalPage": total_page})
        return result
