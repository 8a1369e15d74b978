# docstore/query.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from pymongo import ASCENDING
from pymongo.collection import Collection
from pymongo.cursor import Cursor

from .conditions import Filter, Options, parse_conditions
from .utils.constants import OPERATORS, RECORD_ID_KEY

logger = logging.getLogger(__name__)

# (strict, inclusive) operators for a bound, keyed by "is this a lower bound
# in index order"
_BOUND_OPS = {True: ("$gt", "$gte"), False: ("$lt", "$lte")}


def mongo_operator(op: str) -> str:
    """Map a condition operator symbol to a MongoDB query operator.

    Unknown symbols are passed through as `$<op>`; the server rejects them
    when the query runs.
    """
    if op in OPERATORS:
        return OPERATORS[op]
    if op.startswith("$"):
        return op
    return f"${op}"


def filter_document(field_path: str, op: str, value: Any) -> Dict[str, Any]:
    mongo_op = mongo_operator(op)
    if op == "array-contains":
        value = [value]
    return {field_path: {mongo_op: value}}


@dataclass
class Query:
    """Compiled query: filters and order-by keep the order they were added in."""

    filters: List[Dict[str, Any]] = field(default_factory=list)
    order_by: List[Tuple[str, int]] = field(default_factory=list)
    limit: Optional[int] = None
    offset: Optional[int] = None
    start_at: Any = None
    start_after: Any = None
    end_at: Any = None
    end_before: Any = None

    # ---------- Builders ----------
    def where(self, field_path: str, op: str, value: Any) -> "Query":
        self.filters.append(filter_document(field_path, op, value))
        return self

    def apply_options(self, options: Options) -> "Query":
        for ob in options.order_by:
            self.order_by.append((ob.field, ob.direction))
        if options.limit is not None:
            self.limit = options.limit
        if options.offset is not None:
            self.offset = options.offset
        for name in ("start_at", "start_after", "end_at", "end_before"):
            value = getattr(options, name)
            if value is not None:
                setattr(self, name, value)
        return self

    # ---------- Cursors ----------
    @property
    def has_cursor(self) -> bool:
        return any(
            v is not None for v in (self.start_at, self.start_after, self.end_at, self.end_before)
        )

    def sort_spec(self) -> List[Tuple[str, int]]:
        """Order-by list closed by an `_id` tie-breaker.

        `_id` follows the direction of the last order-by field. Without an
        order-by, documents are ordered by `_id` only when a cursor is set.
        """
        if self.order_by:
            spec = list(self.order_by)
            if all(name != RECORD_ID_KEY for name, _ in spec):
                spec.append((RECORD_ID_KEY, spec[-1][1]))
            return spec
        if self.has_cursor:
            return [(RECORD_ID_KEY, ASCENDING)]
        return []

    def _cursor_values(self, cursor: Any, fields: Sequence[Tuple[str, int]]) -> List[Any]:
        # A record supplies its own values for the sort fields, up to the first
        # one it lacks; a tuple lines up with them; anything else is the value
        # of the first field.
        if isinstance(cursor, Mapping):
            values = []
            for name, _ in fields:
                if name not in cursor:
                    break
                values.append(cursor[name])
            return values
        if isinstance(cursor, tuple):
            return list(cursor)
        return [cursor]

    def _bound(self, cursor: Any, *, start: bool, inclusive: bool) -> Optional[Dict[str, Any]]:
        fields = self.sort_spec()
        pairs = list(zip(fields, self._cursor_values(cursor, fields)))
        if not pairs:
            return None

        branches: List[Dict[str, Any]] = []
        for i, ((name, direction), value) in enumerate(pairs):
            lower = (direction == ASCENDING) == start
            strict_op, inclusive_op = _BOUND_OPS[lower]
            op = inclusive_op if inclusive and i == len(pairs) - 1 else strict_op
            branch = {prev_name: prev_value for (prev_name, _), prev_value in pairs[:i]}
            branch[name] = {op: value}
            branches.append(branch)

        if len(branches) == 1:
            return branches[0]
        return {"$or": branches}

    def cursor_filters(self) -> List[Dict[str, Any]]:
        bounds = [
            (self.start_at, True, True),
            (self.start_after, True, False),
            (self.end_at, False, True),
            (self.end_before, False, False),
        ]
        out: List[Dict[str, Any]] = []
        for cursor, start, inclusive in bounds:
            if cursor is None:
                continue
            bound = self._bound(cursor, start=start, inclusive=inclusive)
            if bound is not None:
                out.append(bound)
        return out

    # ---------- Execution ----------
    def to_filter(self) -> Dict[str, Any]:
        clauses = self.filters + self.cursor_filters()
        if not clauses:
            return {}
        return {"$and": clauses}

    def cursor_on(self, col: Collection, projection: Optional[Dict[str, Any]] = None) -> Cursor:
        """Build a pymongo cursor. limit/offset are handed over as given."""
        cur = col.find(self.to_filter(), projection)
        sort = self.sort_spec()
        if sort:
            cur = cur.sort(sort)
        if self.offset is not None:
            cur = cur.skip(self.offset)
        if self.limit is not None:
            cur = cur.limit(self.limit)
        return cur


def compile_query(conditions: Optional[Sequence[Any]], *, debug: bool = False, label: str = "") -> Query:
    """Compile a condition sequence into a `Query`.

    Raises:
        InvalidConditionError: on a malformed clause; nothing is compiled.
    """
    clauses = parse_conditions(conditions)
    query = Query()

    if debug:
        logger.debug("compiling query for %s", label or "<collection>")

    for clause in clauses:
        if isinstance(clause, Filter):
            if debug:
                logger.debug("  where %s %s %r", clause.field, clause.op, clause.value)
            query.where(clause.field, clause.op, clause.value)
        else:
            if debug:
                logger.debug("  options %r", clause.model_dump(exclude_defaults=True))
            query.apply_options(clause)

    if debug:
        logger.debug("compiled filter=%r sort=%r limit=%r offset=%r",
                     query.to_filter(), query.sort_spec(), query.limit, query.offset)
    return query
