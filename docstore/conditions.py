"""Typed condition clauses.

A condition sequence is what callers hand to every read helper, e.g.::

    [
        ("team", "==", "U18"),
        ("age", ">=", 16),
        {"orderBy": ["age:desc", "name"], "limit": 20},
    ]

`parse_conditions` turns that loose grammar into a list of `Filter` and
`Options` clauses. Typed clauses can be mixed in directly.
"""

from __future__ import annotations

from typing import Any, Iterable, List, Mapping, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, StrictInt, ValidationError
from pymongo import ASCENDING, DESCENDING

from .errors import InvalidConditionError


class OrderBy(BaseModel):
    model_config = ConfigDict(frozen=True)

    field: str
    direction: int = ASCENDING


class Filter(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    field: str
    op: str
    value: Any = None


class Options(BaseModel):
    """Query modifiers of a trailing options clause.

    A cursor left as None is not applied.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    order_by: List[OrderBy] = []
    limit: Optional[StrictInt] = None
    offset: Optional[StrictInt] = None
    start_at: Any = None
    start_after: Any = None
    end_at: Any = None
    end_before: Any = None

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "Options":
        """Read recognized keys case-insensitively; everything else is ignored."""
        values: dict[str, Any] = {}
        order_by: List[OrderBy] = []
        for key, val in mapping.items():
            name = str(key).lower()
            if name == "orderby":
                order_by.extend(parse_order_by_list(val))
            elif name == "limit":
                values["limit"] = val
            elif name == "offset":
                values["offset"] = val
            elif name == "startat":
                values["start_at"] = val
            elif name == "startafter":
                values["start_after"] = val
            elif name == "endat":
                values["end_at"] = val
            elif name == "endbefore":
                values["end_before"] = val
        try:
            return cls(order_by=order_by, **values)
        except ValidationError as e:
            raise InvalidConditionError(f"invalid options clause {dict(mapping)!r}: {e}") from e


Clause = Union[Filter, Options]


def parse_order_by(spec: Any) -> Optional[OrderBy]:
    """Parse `field:direction`. Direction defaults to ascending.

    Returns None for an empty spec or an empty field name.
    """
    if isinstance(spec, OrderBy):
        return spec
    if not isinstance(spec, str) or not spec:
        return None
    parts = spec.split(":")
    field = parts[0].strip()
    if not field:
        return None
    direction = parts[1].strip().lower() if len(parts) > 1 else "asc"
    return OrderBy(field=field, direction=DESCENDING if direction == "desc" else ASCENDING)


def parse_order_by_list(value: Any) -> List[OrderBy]:
    # orderBy = str | [str, ...]; anything else is ignored
    if isinstance(value, (str, OrderBy)):
        specs: Iterable[Any] = [value]
    elif isinstance(value, (list, tuple)):
        specs = value
    else:
        return []
    out: List[OrderBy] = []
    for spec in specs:
        parsed = parse_order_by(spec)
        if parsed is not None:
            out.append(parsed)
    return out


def equality_filters(mapping: Mapping[str, Any]) -> List[Filter]:
    return [Filter(field=str(key), op="==", value=val) for key, val in mapping.items()]


def parse_conditions(conditions: Optional[Sequence[Any]]) -> List[Clause]:
    """Turn a loose condition sequence into typed clauses.

    Rules, by position:
        - `(field, op, value)` -> `Filter`
        - a mapping that is not last -> one `==` filter per key
        - a mapping that is last -> `Options`
        - `Filter` / `Options` instances pass through (`Options` only last)

    Raises:
        InvalidConditionError: for any other clause shape.
    """
    items = list(conditions or [])
    last = len(items) - 1
    clauses: List[Clause] = []

    for idx, cond in enumerate(items):
        if isinstance(cond, Filter):
            clauses.append(cond)
        elif isinstance(cond, Options):
            if idx != last:
                raise InvalidConditionError(f"options clause must be last, found at position {idx}")
            clauses.append(cond)
        elif isinstance(cond, Mapping):
            if idx == last:
                clauses.append(Options.from_mapping(cond))
            else:
                clauses.extend(equality_filters(cond))
        elif isinstance(cond, (list, tuple)):
            if len(cond) != 3:
                raise InvalidConditionError(
                    f"filter clause at position {idx} must be (field, op, value), got {cond!r}"
                )
            field, op, value = cond
            if not isinstance(field, str) or not isinstance(op, str):
                raise InvalidConditionError(
                    f"filter clause at position {idx} needs a string field and operator, got {cond!r}"
                )
            clauses.append(Filter(field=field, op=op, value=value))
        else:
            raise InvalidConditionError(f"unsupported condition clause at position {idx}: {cond!r}")

    return clauses
