"""
Global admin search across businesses and consumers.

One query fans out to six lookups (name, email, phone for each entity type).
Hits are tagged with the field that matched, then merged per entity type so
each record appears once, under the first field that found it.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Iterable, List, Optional, Sequence

from kymaclub.utils.logger import get_logger, log_operation

logger = get_logger(__name__)

MIN_QUERY_LENGTH = 2
RESULT_LIMIT = 7

# Merge order; earlier fields win when a record matches several.
MATCH_FIELDS = (("name", "Name"), ("email", "Email"), ("phone", "Phone"))


def tag_results(items: Iterable[Dict[str, Any]], match_type: str) -> List[Dict[str, Any]]:
    """Copy each item with a ``matchType`` key added."""
    return [{**item, "matchType": match_type} for item in items]


def merge_and_dedupe_by_id(lists: Sequence[Sequence[Dict[str, Any]]], limit: int) -> List[Dict[str, Any]]:
    """
    Concatenate ranked lists, keeping the first occurrence of each ``_id``.

    Stops as soon as ``limit`` items are collected.
    """
    seen = set()
    result: List[Dict[str, Any]] = []

    for items in lists:
        for item in items:
            if item["_id"] in seen:
                continue
            seen.add(item["_id"])
            result.append(item)
            if len(result) >= limit:
                return result

    return result


def _to_result(item: Dict[str, Any], id_attribute: str) -> Dict[str, Any]:
    result = {k: v for k, v in item.items() if not k.endswith("_search") and k != id_attribute}
    result["_id"] = item[id_attribute]
    return result


def _lookup(index: Any, field: str, query: str, limit: int) -> List[Dict[str, Any]]:
    return [_to_result(item, index.id_attribute) for item in index.search(field, query, limit)]


@log_operation("search_global")
def search_global(
    query: Optional[str],
    business_index: Any,
    consumer_index: Any,
    limit: int = RESULT_LIMIT,
    min_query_length: int = MIN_QUERY_LENGTH,
) -> Dict[str, List[Dict[str, Any]]]:
    """
    Search businesses and consumers by name, email and phone.

    Args:
        query: Free text typed by the admin
        business_index: Lookup over businesses (``search(field, query, limit)``
            plus ``id_attribute``)
        consumer_index: Same for consumers
        limit: Cap per lookup and per merged entity list
        min_query_length: Shorter queries return empty results without
            touching the store

    Returns:
        {"businesses": [...], "consumers": [...]}, each item carrying ``_id``
        and ``matchType`` ("Name", "Email" or "Phone")
    """
    if not query or len(query) < min_query_length:
        return {"businesses": [], "consumers": []}

    with ThreadPoolExecutor(max_workers=len(MATCH_FIELDS) * 2) as executor:
        business_futures = [
            (label, executor.submit(_lookup, business_index, field, query, limit))
            for field, label in MATCH_FIELDS
        ]
        consumer_futures = [
            (label, executor.submit(_lookup, consumer_index, field, query, limit))
            for field, label in MATCH_FIELDS
        ]

        businesses = merge_and_dedupe_by_id(
            [tag_results(future.result(), label) for label, future in business_futures],
            limit,
        )
        consumers = merge_and_dedupe_by_id(
            [tag_results(future.result(), label) for label, future in consumer_futures],
            limit,
        )

    logger.info(
        "Search completed",
        operation="search_global",
        context={
            "query_length": len(query),
            "businesses": len(businesses),
            "consumers": len(consumers),
        },
    )
    return {"businesses": businesses, "consumers": consumers}
