"""
Substring search over business and consumer tables.

DynamoDB has no full-text index, so a lookup scans one table with a
``contains`` filter on the lower-cased ``<field>_search`` attribute the
repositories maintain. Lookups use the resource's thread-safe client so
several can run concurrently from worker threads.
"""

from typing import Any, Dict, List, Optional

from kymaclub.domain.business import SEARCHABLE_FIELDS
from kymaclub.utils.logger import get_logger
from .dynamodb_client import DynamoRepository

logger = get_logger(__name__)


class SearchIndex(DynamoRepository):
    """
    Field lookups against one entity table.

    Attributes:
        table_name: Table to scan (e.g. "businesses" or "users")
        id_attribute: Partition key attribute of the table
    """

    def __init__(
        self,
        table_name: str,
        id_attribute: str,
        dynamodb_resource: Optional[Any] = None,
        max_retries: int = 3,
        backoff_base: float = 1.0,
    ):
        super().__init__(table_name, dynamodb_resource, max_retries, backoff_base)
        self.id_attribute = id_attribute

    def search(self, field: str, query: str, limit: int) -> List[Dict[str, Any]]:
        """
        Return up to ``limit`` items whose ``field`` contains ``query``.

        Matching is case-insensitive. Items come back in table scan order.

        Raises:
            ValueError: If ``field`` is not a searchable attribute
        """
        if field not in SEARCHABLE_FIELDS:
            raise ValueError(f"Unsupported search field: {field}")

        context = {"table": self.table_name, "field": field, "limit": limit}
        results: List[Dict[str, Any]] = []
        exclusive_start = None

        while len(results) < limit:
            kwargs: Dict[str, Any] = {
                "TableName": self.table_name,
                "FilterExpression": "contains(#field, :query)",
                "ExpressionAttributeNames": {"#field": f"{field}_search"},
                "ExpressionAttributeValues": {":query": query.lower()},
            }
            if exclusive_start:
                kwargs["ExclusiveStartKey"] = exclusive_start

            response = self._execute("search", lambda: self.client.scan(**kwargs), context)
            results.extend(response.get("Items", []))

            exclusive_start = response.get("LastEvaluatedKey")
            if not exclusive_start:
                break

        logger.debug(
            f"Search matched {min(len(results), limit)} items",
            operation="search",
            context=context,
        )
        return results[:limit]
