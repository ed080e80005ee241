"""
Serialization of filter descriptors into the ``o`` query parameter of
``GET /api/pulse/``.
"""

from __future__ import annotations

import json
import typing as t
from urllib.parse import quote

from maxflow.models import FindData, OrderBy

QUERY_PARAM = "o"
# characters encodeURIComponent leaves untouched on top of quote()'s defaults
_URI_COMPONENT_SAFE = "!~*'()"


def _normalize_direction(*, order_by: OrderBy) -> int | float:
    """
    Resolve the numeric sort direction of an ordering entry.

    Parameters
    ----------
    order_by : OrderBy
        Ordering entry.

    Returns
    -------
    int | float
        Explicit ``direction`` when given, else ``-1`` for ``order="desc"``
        and ``1`` otherwise.
    """
    if order_by.direction is not None:
        return order_by.direction
    return -1 if order_by.order == "desc" else 1


def build_query_document(find_data: FindData | t.Mapping[str, t.Any]) -> dict[str, t.Any]:
    """
    Build the query mapping sent to the find endpoint.

    Parameters
    ----------
    find_data : FindData | typing.Mapping[str, typing.Any]
        Filter descriptor, as a model or a mapping using wire names
        (``pageSize``, ``orderBy``).

    Returns
    -------
    dict[str, typing.Any]
        Query document with only the keys present in the descriptor.

    Notes
    -----
    List-shaped ``match`` entries targeting the same field overwrite each
    other: the last condition wins, conditions are not AND-merged.
    Mapping-shaped ``match`` is copied through without operator prefixing.
    """
    if not isinstance(find_data, FindData):
        find_data = FindData.model_validate(find_data)

    query: dict[str, t.Any] = {}
    if find_data.match is not None:
        if isinstance(find_data.match, list):
            match: dict[str, t.Any] = {}
            for condition in find_data.match:
                match[condition.field] = {f"${condition.operator}": condition.value}
            query["match"] = match
        else:
            query["match"] = dict(find_data.match)
    if find_data.page is not None:
        query["page"] = find_data.page
    if find_data.page_size is not None:
        query["pageSize"] = find_data.page_size
    if find_data.search is not None:
        query["search"] = find_data.search.model_dump()
    if find_data.order_by is not None:
        query["orderBy"] = [
            {"field": item.field, "direction": _normalize_direction(order_by=item)}
            for item in find_data.order_by
        ]
    return query


def encode_query(query: t.Mapping[str, t.Any]) -> str:
    """Serialize a query document to compact, percent-encoded JSON."""
    return quote(
        json.dumps(query, separators=(",", ":"), ensure_ascii=False),
        safe=_URI_COMPONENT_SAFE,
    )


def build_query(find_data: FindData | t.Mapping[str, t.Any]) -> str:
    """
    Build the encoded value of the ``o`` query parameter.

    Parameters
    ----------
    find_data : FindData | typing.Mapping[str, typing.Any]
        Filter descriptor.

    Returns
    -------
    str
        URL-safe string, ready to embed as ``?o=<value>``.
    """
    return encode_query(build_query_document(find_data))
