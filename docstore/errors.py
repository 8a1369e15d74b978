from __future__ import annotations

from typing import Any, Dict, Optional, Sequence


class DatabaseError(Exception):
    """Errors raised when MongoDB operations fail."""


class ApplicationError(Exception):
    """Errors raised in our own application logic (not DB-related)."""


class InvalidConditionError(ApplicationError):
    """A condition clause has a shape the compiler cannot interpret."""


class NothingToBatchError(ApplicationError):
    """No documents to operate on (nothing matched, or an empty group)."""


class DocumentNotFoundError(DatabaseError):
    def __init__(self, doc_id: Any):
        super().__init__(f"document not found: {doc_id}")
        self.doc_id = doc_id


class DocumentWriteError(DatabaseError):
    """One write inside a bulk submission was rejected by the server."""

    def __init__(
        self,
        doc_id: Any,
        message: str,
        code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(f"write failed for document {doc_id}: {message}")
        self.doc_id = doc_id
        self.code = code
        self.details = details or {}


class BatchWriteError(ExceptionGroup):
    """Joined error of a batch call: every per-document and per-group failure."""

    def __new__(cls, message: str, errors: Sequence[Exception]):
        return super().__new__(cls, message, list(errors))

    def derive(self, excs):
        return BatchWriteError(self.message, excs)
