"""
Lambda handler - entry point for the platform rules and query layer.

Routes ``event["action"]`` to one operation and wraps the outcome in an
API Gateway style response. Every failure becomes a single error message.
"""

import json
import time
from decimal import Decimal
from typing import Any, Callable, Dict, Optional

import boto3

from kymaclub.api.bookings import get_all_bookings, get_bookings_metric
from kymaclub.api.businesses import update_business_fee_rate
from kymaclub.api.membership import get_user_membership
from kymaclub.api.search import search_global
from kymaclub.config.settings import Settings
from kymaclub.database.dynamodb_client import (
    BookingRepository,
    BusinessRepository,
    HandoffRepository,
)
from kymaclub.database.search_index import SearchIndex
from kymaclub.domain.exceptions import NotFoundError, PlatformError, ValidationError
from kymaclub.notifications.slack_service import SlackWebhookClient
from kymaclub.utils.logger import get_logger

logger = get_logger(__name__)


class Services:
    """
    Repositories and clients wired from Settings.

    Built once per Lambda container and reused across invocations.
    """

    def __init__(self, settings: Settings, dynamodb_resource: Optional[Any] = None):
        self.settings = settings
        dynamodb = dynamodb_resource or boto3.resource("dynamodb", region_name=settings.region_name)

        self.bookings = BookingRepository(
            table_name=settings.table_name("bookings"),
            dynamodb_resource=dynamodb,
            status_index=settings.index_name("bookings_by_status"),
            user_index=settings.index_name("bookings_by_user"),
        )
        self.businesses = BusinessRepository(
            table_name=settings.table_name("businesses"),
            audit_table_name=settings.table_name("audit_logs"),
            dynamodb_resource=dynamodb,
        )
        self.handoffs = HandoffRepository(
            table_name=settings.table_name("handoffs"),
            dynamodb_resource=dynamodb,
            default_ttl_seconds=settings.handoff_ttl_seconds,
        )
        self.business_index = SearchIndex(
            settings.table_name("businesses"), "business_id", dynamodb_resource=dynamodb
        )
        self.consumer_index = SearchIndex(
            settings.table_name("consumers"), "user_id", dynamodb_resource=dynamodb
        )
        self.slack = SlackWebhookClient(webhook_url=settings.load_slack_webhook_url())


_services: Optional[Services] = None


def get_services() -> Services:
    global _services
    if _services is None:
        settings = Settings()
        _services = Services(settings)
        settings.setup_redaction_filter(_services.slack.webhook_url)
    return _services


def _require(event: Dict[str, Any], key: str) -> Any:
    value = event.get(key)
    if value is None or value == "":
        raise ValidationError(f"{key} is required", field=key, code="MISSING_ARGUMENT")
    return value


def _search_global(services: Services, event: Dict[str, Any]) -> Any:
    return search_global(
        event.get("query"),
        services.business_index,
        services.consumer_index,
        limit=services.settings.search_result_limit,
        min_query_length=services.settings.search_min_query_length,
    )


def _get_all_bookings(services: Services, event: Dict[str, Any]) -> Any:
    return get_all_bookings(
        services.bookings,
        _require(event, "paginationOpts"),
        status=event.get("status"),
        latest_statuses=services.settings.latest_statuses,
    )


def _get_bookings_metric(services: Services, event: Dict[str, Any]) -> Any:
    return get_bookings_metric(
        services.bookings,
        trend_months=services.settings.metrics_trend_months,
        max_workers=services.settings.metrics_max_workers,
    )


def _update_business_fee_rate(services: Services, event: Dict[str, Any]) -> Any:
    # 0 is a valid rate, so only absence counts as missing
    if event.get("newFeeRate") is None:
        raise ValidationError("newFeeRate is required", field="newFeeRate", code="MISSING_ARGUMENT")
    return update_business_fee_rate(
        services.businesses,
        _require(event, "businessId"),
        event["newFeeRate"],
        event.get("reason"),
        actor=event.get("actor"),
        notifier=services.slack,
        default_fee_rate=services.settings.default_fee_rate,
    )


def _get_membership_tier(services: Services, event: Dict[str, Any]) -> Any:
    return get_user_membership(services.bookings, _require(event, "userId"))


def _create_booking_handoff(services: Services, event: Dict[str, Any]) -> Any:
    handoff = services.handoffs.put(
        _require(event, "userId"),
        _require(event, "classInstanceId"),
        payload=event.get("payload"),
        ttl_seconds=event.get("ttlSeconds"),
    )
    return handoff.to_response()


def _consume_booking_handoff(services: Services, event: Dict[str, Any]) -> Any:
    handoff_key = _require(event, "handoffKey")
    user_id = _require(event, "userId")

    handoff = services.handoffs.consume(handoff_key, user_id=user_id)
    if handoff is None:
        raise NotFoundError("Booking handoff not found or expired")
    return handoff.to_response()


ACTIONS: Dict[str, Callable[[Services, Dict[str, Any]], Any]] = {
    "searchGlobal": _search_global,
    "getAllBookings": _get_all_bookings,
    "getBookingsMetric": _get_bookings_metric,
    "updateBusinessFeeRate": _update_business_fee_rate,
    "getMembershipTier": _get_membership_tier,
    "createBookingHandoff": _create_booking_handoff,
    "consumeBookingHandoff": _consume_booking_handoff,
}


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _response(status_code: int, body: Any) -> Dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(body, ensure_ascii=False, default=_json_default),
    }


def lambda_handler(event, context, services: Optional[Services] = None):
    """
    Dispatch one operation.

    Args:
        event: {"action": <name>, ...operation arguments}
        context: Lambda context (only used for request id logging)
        services: Injected wiring for tests; defaults to the container-wide one

    Returns:
        dict: statusCode 200 with the operation result, 4xx/5xx with
        {"error": message}
    """
    start_time = time.time()
    action = (event or {}).get("action")
    log_context = {
        "action": action,
        "aws_request_id": getattr(context, "aws_request_id", "local") if context else "local",
    }

    handler = ACTIONS.get(action)
    if handler is None:
        logger.warning("Unknown action", operation="lambda_handler", context=log_context)
        return _response(400, {"error": f"Unknown action: {action}"})

    try:
        result = handler(services or get_services(), event)
    except PlatformError as e:
        level = logger.warning if e.status_code < 500 else logger.error
        level(
            "Operation failed",
            operation="lambda_handler",
            context=log_context,
            error=e.message,
        )
        body: Dict[str, Any] = {"error": e.message}
        if isinstance(e, ValidationError):
            body["code"] = e.code
            if e.field:
                body["field"] = e.field
        return _response(e.status_code, body)
    except Exception as e:  # noqa: BLE001
        logger.error(
            "Unexpected failure",
            operation="lambda_handler",
            context=log_context,
            error=str(e),
            duration_ms=(time.time() - start_time) * 1000,
        )
        return _response(500, {"error": "Internal error"})

    logger.info(
        "Action completed",
        operation="lambda_handler",
        context=log_context,
        duration_ms=(time.time() - start_time) * 1000,
    )
    return _response(200, result)
