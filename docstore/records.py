# docstore/records.py
from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Mapping

import pandas as pd

from .utils.constants import RECORD_ID_KEY, RECORD_REF_KEY


def make_doc_response(doc: Mapping[str, Any], path: str) -> Dict[str, Any]:
    """Plain dict of the document plus `_id` and its `_ref` path (`<collection>/<id>`)."""
    record = dict(doc)
    record[RECORD_REF_KEY] = f"{path}/{record.get(RECORD_ID_KEY)}"
    return record


def docs_to_records(docs: Iterable[Mapping[str, Any]], path: str) -> List[Dict[str, Any]]:
    return [make_doc_response(doc, path) for doc in docs]


def records_to_df(records: Iterable[Mapping[str, Any]], *, drop_metadata: bool = False) -> pd.DataFrame:
    """Return records as a DataFrame, one row per record.

    Args:
        drop_metadata: drop the `_id` / `_ref` columns.
    """
    df = pd.DataFrame(list(records))
    if drop_metadata:
        df = df.drop(columns=[RECORD_ID_KEY, RECORD_REF_KEY], errors="ignore")
    return df


def filter_docs(docs: Iterable[Dict[str, Any]], predicate: Callable[[Dict[str, Any]], bool]) -> List[Dict[str, Any]]:
    return [doc for doc in docs if predicate(doc)]


def transform_docs(
    docs: Iterable[Dict[str, Any]],
    transform: Callable[[Dict[str, Any]], Dict[str, Any]],
) -> List[Dict[str, Any]]:
    return [transform(doc) for doc in docs]
