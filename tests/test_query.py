"""
Tests for find query serialization in maxflow.query.
"""

import json
from urllib.parse import unquote

import pytest
from pydantic import ValidationError

from maxflow.models import FindData, MatchCondition, OrderBy
from maxflow.query import build_query, build_query_document, encode_query


def test_match_list_prefixes_operator():
    query = build_query_document(
        {"match": [{"field": "status", "operator": "eq", "value": "active"}]}
    )

    assert query == {"match": {"status": {"$eq": "active"}}}


def test_match_list_last_condition_on_a_field_wins():
    """Conditions on the same field overwrite each other instead of merging."""
    query = build_query_document(
        {
            "match": [
                {"field": "a", "operator": "eq", "value": 1},
                {"field": "a", "operator": "gt", "value": 2},
            ]
        }
    )

    assert query["match"] == {"a": {"$gt": 2}}


def test_match_mapping_is_copied_as_is():
    match = {"status": {"$in": ["active", "paused"]}, "score": {"$gte": 3}}

    query = build_query_document({"match": match})

    assert query["match"] == match


def test_unknown_operators_pass_through():
    query = build_query_document(
        FindData(match=[MatchCondition(field="tags", operator="notAnOperator", value=None)])
    )

    assert query["match"] == {"tags": {"$notAnOperator": None}}


def test_pagination_passes_through_when_present():
    assert build_query_document({"page": 2, "pageSize": 50}) == {"page": 2, "pageSize": 50}
    assert build_query_document(FindData(page=1)) == {"page": 1}
    assert build_query_document({}) == {}


@pytest.mark.parametrize(
    ("order_by", "expected_direction"),
    [
        ({"field": "ts", "order": "desc"}, -1),
        ({"field": "ts", "order": "asc"}, 1),
        ({"field": "ts"}, 1),
        ({"field": "ts", "direction": 5}, 5),
        ({"field": "ts", "order": "asc", "direction": -1}, -1),
        ({"field": "ts", "order": "desc", "direction": 0}, 0),
    ],
)
def test_order_by_direction(order_by, expected_direction):
    query = build_query_document({"orderBy": [order_by]})

    assert query["orderBy"] == [{"field": "ts", "direction": expected_direction}]


def test_order_by_keeps_entry_order():
    query = build_query_document(
        FindData(order_by=[OrderBy(field="ts", order="desc"), OrderBy(field="name")])
    )

    assert query["orderBy"] == [
        {"field": "ts", "direction": -1},
        {"field": "name", "direction": 1},
    ]


def test_search_passes_through():
    search = {"fields": ["title", "body"], "text": "hello world"}

    assert build_query_document({"search": search}) == {"search": search}


def test_invalid_descriptor_raises():
    with pytest.raises(ValidationError):
        build_query_document({"match": [{"field": "a"}]})


def test_build_query_is_encoded_compact_json():
    encoded = build_query(
        {
            "match": [{"field": "status", "operator": "eq", "value": "active"}],
            "page": 1,
            "orderBy": [{"field": "ts", "order": "desc"}],
        }
    )

    assert encoded.startswith("%7B%22match%22")
    for reserved in ("{", "}", '"', ":", ",", " ", "$", "&", "="):
        assert reserved not in encoded
    assert json.loads(unquote(encoded)) == {
        "match": {"status": {"$eq": "active"}},
        "page": 1,
        "orderBy": [{"field": "ts", "direction": -1}],
    }


def test_encode_query_matches_uri_component_encoding():
    assert encode_query({"q": "a b/c?d"}) == "%7B%22q%22%3A%22a%20b%2Fc%3Fd%22%7D"
    assert encode_query({"q": "it's (ok)!~*"}) == "%7B%22q%22%3A%22it's%20(ok)!~*%22%7D"
