"""
DynamoDB repository implementations for bookings, businesses, consumers and
booking handoffs.

All repositories take an optional boto3 DynamoDB resource for dependency
injection, retry throttled calls with exponential backoff, and translate
botocore errors into the exceptions in ``kymaclub.database.exceptions``.

Calls that may run on worker threads (metric counts, search) go through
``resource.meta.client``, which is thread-safe and still converts plain Python
values to and from DynamoDB types; resource tables are only used from the
calling thread.
"""

import json
import time
import uuid
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple

import boto3
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import BotoCoreError, ClientError

from kymaclub.domain.booking import Booking
from kymaclub.domain.business import Business, Consumer
from kymaclub.domain.handoff import BookingHandoff, validate_ttl_seconds
from kymaclub.utils.logger import get_logger, mask_email
from .exceptions import (
    ConditionalCheckError,
    DynamoDBException,
    NetworkError,
    PermissionError,
    ThrottlingError,
)

logger = get_logger(__name__)

THROTTLING_CODES = {"ProvisionedThroughputExceededException", "ThrottlingException"}
NOT_DELETED_EXPRESSION = "attribute_not_exists(deleted) OR deleted = :not_deleted"


def not_deleted_filter():
    return Attr("deleted").not_exists() | Attr("deleted").eq(False)


class DynamoRepository:
    """
    Shared plumbing: table wiring, retries and error translation.
    """

    def __init__(
        self,
        table_name: str,
        dynamodb_resource: Optional[Any] = None,
        max_retries: int = 3,
        backoff_base: float = 1.0,
    ):
        """
        Args:
            table_name: DynamoDB table name
            dynamodb_resource: boto3 DynamoDB resource (default: creates new)
            max_retries: Attempts for throttled calls
            backoff_base: Base exponential backoff multiplier (seconds)
        """
        self.table_name = table_name
        self.dynamodb = dynamodb_resource or boto3.resource("dynamodb")
        self.table = self.dynamodb.Table(table_name)
        self.client = self.dynamodb.meta.client
        self.max_retries = max_retries
        self.backoff_base = backoff_base

    def _execute(  # type: ignore[return]
        self,
        operation: str,
        call: Callable[[], Any],
        context: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Run a DynamoDB call with throttling retries and exception translation.

        Raises:
            ThrottlingError: If throttled after max retries
            ConditionalCheckError: If a condition or transaction check failed
            PermissionError: If IAM permissions are insufficient
            NetworkError: If the connection fails
            DynamoDBException: For any other DynamoDB error
        """
        for attempt in range(self.max_retries):
            try:
                start_time = time.time()
                result = call()
                duration_ms = (time.time() - start_time) * 1000
                logger.debug(
                    f"DynamoDB call succeeded in {duration_ms:.1f}ms",
                    operation=operation,
                    context=context,
                )
                return result

            except ClientError as e:
                error_code = e.response.get("Error", {}).get("Code", "Unknown")

                if error_code in THROTTLING_CODES:
                    if attempt < self.max_retries - 1:
                        wait_time = self.backoff_base * (2**attempt)
                        logger.warning(
                            f"Throttled, retrying after {wait_time}s",
                            operation=operation,
                            context=context,
                            error=error_code,
                        )
                        time.sleep(wait_time)
                        continue
                    logger.error(
                        "Throttling after max retries",
                        operation=operation,
                        context=context,
                        error=error_code,
                    )
                    raise ThrottlingError(
                        f"DynamoDB throttled after {self.max_retries} retries"
                    )

                if error_code in ("ConditionalCheckFailedException", "TransactionCanceledException"):
                    logger.warning(
                        "Conditional write rejected",
                        operation=operation,
                        context=context,
                        error=error_code,
                    )
                    raise ConditionalCheckError(
                        "The record was modified concurrently; reload and try again"
                    )

                if error_code == "AccessDeniedException":
                    logger.error(
                        "Permission denied",
                        operation=operation,
                        context=context,
                        error=error_code,
                    )
                    raise PermissionError(f"Insufficient IAM permissions: {error_code}")

                logger.error(
                    "DynamoDB error",
                    operation=operation,
                    context=context,
                    error=str(e),
                )
                raise DynamoDBException(f"DynamoDB error: {error_code}")

            except (BotoCoreError, OSError) as e:
                logger.error(
                    "Network error",
                    operation=operation,
                    context=context,
                    error=str(e),
                )
                raise NetworkError(f"Network error: {e}")


class BookingRepository(DynamoRepository):
    """
    Repository for bookings.

    Table Schema:
        Partition Key: booking_id
        GSI by_status_booked_at: status (HASH), booked_at (RANGE, N)
        GSI by_user_booked_at: user_id (HASH), booked_at (RANGE, N)
    """

    def __init__(
        self,
        table_name: str = "bookings",
        dynamodb_resource: Optional[Any] = None,
        status_index: str = "by_status_booked_at",
        user_index: str = "by_user_booked_at",
        max_retries: int = 3,
        backoff_base: float = 1.0,
    ):
        super().__init__(table_name, dynamodb_resource, max_retries, backoff_base)
        self.status_index = status_index
        self.user_index = user_index

    def put_booking(self, booking: Booking) -> bool:
        item = booking.to_dict()
        context = {"booking_id": booking.booking_id, "status": booking.status}
        self._execute("put_booking", lambda: self.table.put_item(Item=item), context)
        logger.info("Booking stored", operation="put_booking", context=context)
        return True

    def get_booking(self, booking_id: str) -> Optional[Booking]:
        """Return the booking, or None when it does not exist."""
        context = {"booking_id": booking_id}
        response = self._execute(
            "get_booking",
            lambda: self.table.get_item(Key={"booking_id": booking_id}),
            context,
        )
        item = response.get("Item")
        if item is None:
            logger.debug("Booking not found", operation="get_booking", context=context)
            return None
        return Booking.from_dict(item)

    def query_status_page(
        self,
        status: str,
        start_key: Optional[Dict[str, Any]],
        limit: int,
    ) -> Tuple[List[Booking], bool]:
        """
        Read up to ``limit`` non-deleted bookings of one status, newest first.

        Args:
            status: Booking status partition
            start_key: Index key of the last booking already returned
                (exclusive), or None to start from the newest
            limit: Maximum number of bookings to return

        Returns:
            (bookings, has_more). ``has_more`` is False only when the
            partition is known to be exhausted.
        """
        context = {"status": status, "limit": limit}
        bookings: List[Booking] = []
        exclusive_start = start_key

        while len(bookings) < limit:
            kwargs: Dict[str, Any] = {
                "IndexName": self.status_index,
                "KeyConditionExpression": Key("status").eq(status),
                "FilterExpression": not_deleted_filter(),
                "ScanIndexForward": False,
                "Limit": limit - len(bookings),
            }
            if exclusive_start:
                kwargs["ExclusiveStartKey"] = exclusive_start

            response = self._execute(
                "query_status_page", lambda: self.table.query(**kwargs), context
            )
            bookings.extend(Booking.from_dict(item) for item in response.get("Items", []))

            exclusive_start = response.get("LastEvaluatedKey")
            if not exclusive_start:
                return bookings[:limit], False

        return bookings[:limit], True

    def count_status_in_range(self, status: str, start_ms: int, end_ms: int) -> int:
        """
        Count non-deleted bookings of a status with booked_at in [start, end].

        Safe to call from worker threads.
        """
        context = {"status": status, "start_ms": start_ms, "end_ms": end_ms}
        total = 0
        exclusive_start = None

        while True:
            kwargs: Dict[str, Any] = {
                "TableName": self.table_name,
                "IndexName": self.status_index,
                "KeyConditionExpression": "#status = :status AND booked_at BETWEEN :start AND :end",
                "FilterExpression": NOT_DELETED_EXPRESSION,
                "ExpressionAttributeNames": {"#status": "status"},
                "ExpressionAttributeValues": {
                    ":status": status,
                    ":start": start_ms,
                    ":end": end_ms,
                    ":not_deleted": False,
                },
                "Select": "COUNT",
            }
            if exclusive_start:
                kwargs["ExclusiveStartKey"] = exclusive_start

            response = self._execute(
                "count_status_in_range", lambda: self.client.query(**kwargs), context
            )
            total += int(response.get("Count", 0))

            exclusive_start = response.get("LastEvaluatedKey")
            if not exclusive_start:
                return total

    def count_user_bookings(self, user_id: str) -> int:
        """Count a consumer's non-deleted bookings across all statuses."""
        context = {"user_id": user_id}
        total = 0
        exclusive_start = None

        while True:
            kwargs: Dict[str, Any] = {
                "IndexName": self.user_index,
                "KeyConditionExpression": Key("user_id").eq(user_id),
                "FilterExpression": not_deleted_filter(),
                "Select": "COUNT",
            }
            if exclusive_start:
                kwargs["ExclusiveStartKey"] = exclusive_start

            response = self._execute(
                "count_user_bookings", lambda: self.table.query(**kwargs), context
            )
            total += int(response.get("Count", 0))

            exclusive_start = response.get("LastEvaluatedKey")
            if not exclusive_start:
                logger.info(
                    f"User has {total} bookings",
                    operation="count_user_bookings",
                    context=context,
                )
                return total


class BusinessRepository(DynamoRepository):
    """
    Repository for businesses and their fee-rate audit trail.

    Table Schema:
        businesses: Partition Key business_id
        system_audit_logs: Partition Key audit_id
    """

    def __init__(
        self,
        table_name: str = "businesses",
        audit_table_name: str = "system_audit_logs",
        dynamodb_resource: Optional[Any] = None,
        max_retries: int = 3,
        backoff_base: float = 1.0,
    ):
        super().__init__(table_name, dynamodb_resource, max_retries, backoff_base)
        self.audit_table_name = audit_table_name

    def put_business(self, business: Business) -> bool:
        item = business.to_dict()
        context = {"business_id": business.business_id, "email_masked": mask_email(business.email)}
        self._execute("put_business", lambda: self.table.put_item(Item=item), context)
        logger.info("Business stored", operation="put_business", context=context)
        return True

    def get_business(self, business_id: str) -> Optional[Business]:
        context = {"business_id": business_id}
        response = self._execute(
            "get_business",
            lambda: self.table.get_item(Key={"business_id": business_id}),
            context,
        )
        item = response.get("Item")
        if item is None:
            logger.debug("Business not found", operation="get_business", context=context)
            return None
        return Business.from_dict(item)

    def update_fee_rate(
        self,
        business: Business,
        new_rate: Decimal,
        audit_entry: Dict[str, Any],
        updated_by: Optional[str] = None,
        now_ms: Optional[int] = None,
    ) -> bool:
        """
        Commit a new base fee rate together with its audit entry.

        Both writes go through one transaction. The business update is
        conditioned on the fee rate read by the caller, so a concurrent change
        cancels the whole transaction instead of being overwritten.

        Raises:
            ConditionalCheckError: If the stored rate changed since it was read
        """
        now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
        stored_rate = business.fee_structure.get("base_fee_rate")

        fee_structure = {
            k: Decimal(str(v)) if isinstance(v, float) else v
            for k, v in business.fee_structure.items()
        }
        fee_structure["base_fee_rate"] = new_rate

        values: Dict[str, Any] = {
            ":fee_structure": fee_structure,
            ":now": now_ms,
            ":updated_by": updated_by or "system",
        }
        if stored_rate is None:
            condition = "attribute_exists(business_id) AND attribute_not_exists(fee_structure.base_fee_rate)"
        else:
            condition = "attribute_exists(business_id) AND fee_structure.base_fee_rate = :previous"
            values[":previous"] = Decimal(str(stored_rate))

        audit_item = dict(audit_entry)
        audit_item.setdefault("audit_id", str(uuid.uuid4()))
        audit_item.setdefault("created_at", now_ms)

        transact_items = [
            {
                "Update": {
                    "TableName": self.table_name,
                    "Key": {"business_id": business.business_id},
                    "UpdateExpression": (
                        "SET fee_structure = :fee_structure, updated_at = :now, "
                        "updated_by = :updated_by"
                    ),
                    "ConditionExpression": condition,
                    "ExpressionAttributeValues": values,
                }
            },
            {
                "Put": {
                    "TableName": self.audit_table_name,
                    "Item": audit_item,
                    "ConditionExpression": "attribute_not_exists(audit_id)",
                }
            },
        ]

        context = {
            "business_id": business.business_id,
            "new_rate": str(new_rate),
            "audit_id": audit_item["audit_id"],
        }
        self._execute(
            "update_fee_rate",
            lambda: self.client.transact_write_items(TransactItems=transact_items),
            context,
        )
        logger.info("Fee rate committed", operation="update_fee_rate", context=context)
        return True

    def get_audit_entry(self, audit_id: str) -> Optional[Dict[str, Any]]:
        audit_table = self.dynamodb.Table(self.audit_table_name)
        response = self._execute(
            "get_audit_entry",
            lambda: audit_table.get_item(Key={"audit_id": audit_id}),
            {"audit_id": audit_id},
        )
        item = response.get("Item")
        return dict(item) if item is not None else None


class ConsumerRepository(DynamoRepository):
    """
    Repository for consumer accounts.

    Table Schema:
        Partition Key: user_id
    """

    def __init__(
        self,
        table_name: str = "users",
        dynamodb_resource: Optional[Any] = None,
        max_retries: int = 3,
        backoff_base: float = 1.0,
    ):
        super().__init__(table_name, dynamodb_resource, max_retries, backoff_base)

    def put_consumer(self, consumer: Consumer) -> bool:
        item = consumer.to_dict()
        context = {"user_id": consumer.user_id, "email_masked": mask_email(consumer.email)}
        self._execute("put_consumer", lambda: self.table.put_item(Item=item), context)
        return True

    def get_consumer(self, user_id: str) -> Optional[Consumer]:
        response = self._execute(
            "get_consumer",
            lambda: self.table.get_item(Key={"user_id": user_id}),
            {"user_id": user_id},
        )
        item = response.get("Item")
        return Consumer.from_dict(item) if item is not None else None


class HandoffRepository(DynamoRepository):
    """
    Short-lived booking handoffs.

    Table Schema:
        Partition Key: handoff_key
        TTL attribute: expires_at (epoch seconds)

    DynamoDB TTL deletion is lazy, so expiry is also enforced on read.
    """

    def __init__(
        self,
        table_name: str = "booking_handoffs",
        dynamodb_resource: Optional[Any] = None,
        default_ttl_seconds: int = 900,
        max_retries: int = 3,
        backoff_base: float = 1.0,
    ):
        super().__init__(table_name, dynamodb_resource, max_retries, backoff_base)
        self.default_ttl_seconds = default_ttl_seconds

    def put(
        self,
        user_id: str,
        class_instance_id: str,
        payload: Optional[Dict[str, Any]] = None,
        ttl_seconds: Optional[int] = None,
        now: Optional[float] = None,
    ) -> BookingHandoff:
        """
        Store a new handoff.

        Raises:
            ValidationError: ttl_seconds given but not an integer in 60..86400
        """
        ttl = self.default_ttl_seconds if ttl_seconds is None else validate_ttl_seconds(ttl_seconds)
        current = time.time() if now is None else now
        handoff = BookingHandoff(
            handoff_key=uuid.uuid4().hex,
            user_id=user_id,
            class_instance_id=class_instance_id,
            expires_at=int(current + ttl),
            # DynamoDB rejects float attributes
            payload=json.loads(json.dumps(payload or {}), parse_float=Decimal),
        )
        context = {"user_id": user_id, "class_instance_id": class_instance_id}
        self._execute(
            "put_handoff",
            lambda: self.table.put_item(
                Item=handoff.to_dict(),
                ConditionExpression="attribute_not_exists(handoff_key)",
            ),
            context,
        )
        logger.info("Handoff stored", operation="put_handoff", context=context)
        return handoff

    def get(self, handoff_key: str, now: Optional[float] = None) -> Optional[BookingHandoff]:
        """Return the handoff, or None when missing or expired."""
        context = {"handoff_key": handoff_key}
        response = self._execute(
            "get_handoff",
            lambda: self.table.get_item(Key={"handoff_key": handoff_key}),
            context,
        )
        item = response.get("Item")
        if item is None:
            return None

        handoff = BookingHandoff.from_dict(item)
        if handoff.is_expired(now):
            logger.debug("Handoff expired", operation="get_handoff", context=context)
            return None
        return handoff

    def consume(
        self,
        handoff_key: str,
        user_id: Optional[str] = None,
        now: Optional[float] = None,
    ) -> Optional[BookingHandoff]:
        """
        Delete a handoff and return what was stored, so it can be used once.

        The delete is conditional, so of two concurrent callers only one gets
        the item back. When user_id is given, another user's handoff is left
        in place.

        Returns:
            The handoff, or None when missing, owned by someone else or expired
        """
        context = {"handoff_key": handoff_key}
        request: Dict[str, Any] = {
            "Key": {"handoff_key": handoff_key},
            "ConditionExpression": "attribute_exists(handoff_key)",
            "ReturnValues": "ALL_OLD",
        }
        if user_id is not None:
            request["ConditionExpression"] += " AND user_id = :user_id"
            request["ExpressionAttributeValues"] = {":user_id": user_id}

        try:
            response = self._execute(
                "consume_handoff", lambda: self.table.delete_item(**request), context
            )
        except ConditionalCheckError:
            return None

        handoff = BookingHandoff.from_dict(response["Attributes"])
        if handoff.is_expired(now):
            logger.debug("Handoff expired", operation="consume_handoff", context=context)
            return None
        logger.info("Handoff consumed", operation="consume_handoff", context=context)
        return handoff
