import logging

import pytest
from pymongo import ASCENDING, DESCENDING

from docstore.conditions import Filter, Options
from docstore.errors import InvalidConditionError
from docstore.query import Query, compile_query, mongo_operator


def same_members(a, b):
    return len(a) == len(b) and all(item in b for item in a) and all(item in a for item in b)


class TestOperators:
    @pytest.mark.parametrize(
        "op, expected",
        [
            ("==", "$eq"),
            ("!=", "$ne"),
            ("<", "$lt"),
            ("<=", "$lte"),
            (">", "$gt"),
            (">=", "$gte"),
            ("in", "$in"),
            ("not-in", "$nin"),
            ("array-contains-any", "$in"),
        ],
    )
    def test_known_symbols(self, op, expected):
        assert mongo_operator(op) == expected

    def test_dollar_operators_pass_through(self):
        assert mongo_operator("$regex") == "$regex"

    def test_unknown_symbols_are_not_validated(self):
        assert mongo_operator("near") == "$near"

    def test_array_contains_wraps_value(self):
        q = compile_query([("tags", "array-contains", "red")])
        assert q.filters == [{"tags": {"$all": ["red"]}}]


class TestCompileFilters:
    def test_empty_sequence_is_unfiltered(self):
        q = compile_query([])
        assert q.to_filter() == {}
        assert q.sort_spec() == []
        assert q.limit is None and q.offset is None

    def test_filters_keep_input_order(self):
        q = compile_query([("b", ">", 1), ("a", "<", 2), ("b", "<", 9)])
        assert q.filters == [
            {"b": {"$gt": 1}},
            {"a": {"$lt": 2}},
            {"b": {"$lt": 9}},
        ]
        assert q.to_filter() == {"$and": q.filters}

    def test_reordering_tuple_clauses_yields_same_filter_set(self):
        clauses = [("a", "==", 1), ("b", ">", 2), ("c", "in", [1, 2]), ("d", "!=", None)]
        forward = compile_query(clauses).filters
        backward = compile_query(list(reversed(clauses))).filters
        assert same_members(forward, backward)

    def test_tuple_only_sequence_has_no_modifiers(self):
        q = compile_query([("a", "==", 1)])
        assert q.order_by == []
        assert q.limit is None and q.offset is None
        assert not q.has_cursor

    def test_non_final_mapping_is_equality_filters(self):
        q = compile_query([{"team": "A", "limit": 3}, ("age", ">", 1)])
        assert same_members(q.filters[:2], [{"team": {"$eq": "A"}}, {"limit": {"$eq": 3}}])
        assert q.filters[2] == {"age": {"$gt": 1}}
        assert q.limit is None

    def test_operator_value_legality_is_not_checked(self):
        q = compile_query([("age", "array-contains-any", "not-a-list")])
        assert q.filters == [{"age": {"$in": "not-a-list"}}]

    def test_soft_deleted_documents_are_not_excluded(self):
        assert compile_query([("a", "==", 1)]).filters == [{"a": {"$eq": 1}}]

    def test_malformed_clause_raises(self):
        with pytest.raises(InvalidConditionError):
            compile_query([("a", "==", 1), 42])


class TestCompileOptions:
    def test_order_by_desc(self):
        q = compile_query([("a", "==", 1), {"orderBy": "createdAt:desc"}])
        assert q.order_by == [("createdAt", DESCENDING)]

    def test_order_by_default_direction(self):
        q = compile_query([{"orderBy": "createdAt"}])
        assert q.order_by == [("createdAt", ASCENDING)]

    def test_order_by_list_keeps_sequence_order(self):
        q = compile_query([{"orderBy": ["team", "age:desc", " :asc", "name:asc"]}])
        assert q.order_by == [("team", ASCENDING), ("age", DESCENDING), ("name", ASCENDING)]

    def test_options_only_applies_modifiers(self):
        q = compile_query([{"limit": 10, "offset": 20}])
        assert q.filters == []
        assert q.limit == 10
        assert q.offset == 20

    def test_limit_and_offset_are_not_clamped(self):
        q = compile_query([{"limit": -5, "offset": 0}])
        assert q.limit == -5
        assert q.offset == 0

    def test_unknown_option_keys_are_ignored(self):
        q = compile_query([("a", "==", 1), {"team": "A", "select": ["a"]}])
        assert q.filters == [{"a": {"$eq": 1}}]

    def test_typed_clauses(self):
        q = compile_query([Filter(field="a", op=">=", value=2), Options(limit=4)])
        assert q.filters == [{"a": {"$gte": 2}}]
        assert q.limit == 4

    def test_debug_logs_compiled_query(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="docstore.query"):
            compile_query([("a", "==", 1), {"limit": 2}], debug=True, label="users")
        assert "users" in caplog.text
        assert "where a == 1" in caplog.text


class TestCursors:
    def test_start_at_single_field(self):
        q = compile_query([{"orderBy": "age", "startAt": 18}])
        assert q.cursor_filters() == [{"age": {"$gte": 18}}]

    def test_start_after_on_descending_field(self):
        q = compile_query([{"orderBy": "age:desc", "startAfter": 18}])
        assert q.cursor_filters() == [{"age": {"$lt": 18}}]

    def test_end_at_and_end_before(self):
        q = compile_query([{"orderBy": "age", "endAt": 30}])
        assert q.cursor_filters() == [{"age": {"$lte": 30}}]
        q = compile_query([{"orderBy": "age:desc", "endBefore": 30}])
        assert q.cursor_filters() == [{"age": {"$gt": 30}}]

    def test_tuple_cursor_is_lexicographic(self):
        q = compile_query([{"orderBy": ["team", "age:desc"], "startAfter": ("A", 20)}])
        assert q.cursor_filters() == [
            {"$or": [
                {"team": {"$gt": "A"}},
                {"team": "A", "age": {"$lt": 20}},
            ]}
        ]

    def test_record_cursor_uses_sort_fields_and_id(self):
        record = {"_id": "x", "team": "B", "age": 40, "name": "n"}
        q = compile_query([{"orderBy": ["team", "age"], "startAt": record}])
        assert q.cursor_filters() == [
            {"$or": [
                {"team": {"$gt": "B"}},
                {"team": "B", "age": {"$gt": 40}},
                {"team": "B", "age": 40, "_id": {"$gte": "x"}},
            ]}
        ]

    def test_record_cursor_stops_at_missing_field(self):
        q = compile_query([{"orderBy": ["team", "age"], "startAfter": {"team": "B"}}])
        assert q.cursor_filters() == [{"team": {"$gt": "B"}}]

    def test_id_tie_breaker_follows_last_direction(self):
        assert compile_query([{"orderBy": ["team", "age:desc"]}]).sort_spec() == [
            ("team", ASCENDING),
            ("age", DESCENDING),
            ("_id", DESCENDING),
        ]

    def test_explicit_id_order_is_not_doubled(self):
        q = compile_query([{"orderBy": ["_id:desc", "team"]}])
        assert q.sort_spec() == [("_id", DESCENDING), ("team", ASCENDING)]

    def test_cursor_without_order_by_uses_id(self):
        q = compile_query([{"startAfter": "u10"}])
        assert q.sort_spec() == [("_id", ASCENDING)]
        assert q.cursor_filters() == [{"_id": {"$gt": "u10"}}]

    def test_list_cursor_is_one_value(self):
        q = compile_query([{"orderBy": ["a", "b"], "startAt": [1, 2]}])
        assert q.cursor_filters() == [{"a": {"$gte": [1, 2]}}]

    def test_cursor_filters_follow_plain_filters(self):
        q = compile_query([("team", "==", "A"), {"orderBy": "age", "startAt": 1, "endBefore": 9}])
        assert q.to_filter() == {
            "$and": [
                {"team": {"$eq": "A"}},
                {"age": {"$gte": 1}},
                {"age": {"$lt": 9}},
            ]
        }


def test_query_builders_chain():
    q = Query().where("a", "==", 1).apply_options(Options(limit=1))
    assert q.filters == [{"a": {"$eq": 1}}]
    assert q.limit == 1
