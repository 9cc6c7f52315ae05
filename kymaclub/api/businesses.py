"""
Business administration mutations.
"""

from typing import Any, Dict, Optional

from kymaclub.domain.exceptions import NotFoundError, ValidationError
from kymaclub.domain.fees import (
    fee_change_message,
    rate_to_percent,
    to_rate_decimal,
    validate_fee_rate,
    validate_reason,
)
from kymaclub.utils.logger import get_logger, log_operation, mask_email

logger = get_logger(__name__)

BUSINESS_FEE_CHANGE = "business_fee_change"


@log_operation("update_business_fee_rate")
def update_business_fee_rate(
    repository: Any,
    business_id: str,
    new_fee_rate: Any,
    reason: Any,
    actor: Optional[Dict[str, Any]] = None,
    notifier: Optional[Any] = None,
    default_fee_rate: float = 0.2,
) -> Dict[str, Any]:
    """
    Change a business's platform fee rate and record why.

    Validation happens before any read: the rate must be an allowed value and
    the trimmed reason at least three characters. The update and its audit
    entry are committed in one transaction guarded on the rate that was read,
    so a failure leaves the business untouched.

    Args:
        repository: BusinessRepository
        business_id: Target business
        new_fee_rate: One of 0, 0.05, 0.1, 0.15, 0.2, 0.25, 0.3
        reason: Free-text justification for the audit log
        actor: {"userId": ..., "email": ...} of the admin making the change
        notifier: Optional SlackWebhookClient, notified after commit
        default_fee_rate: Rate assumed when the business never had one

    Returns:
        {"success": True, "previousFeeRate", "newFeeRate", "message"}

    Raises:
        ValidationError: Invalid rate, short reason, or unchanged rate
        NotFoundError: Unknown business
        DynamoDBException: Persistence failure (nothing is written)
    """
    new_rate = validate_fee_rate(new_fee_rate)
    trimmed_reason = validate_reason(reason)

    business = repository.get_business(business_id)
    if business is None:
        raise NotFoundError("Business not found")

    stored_rate = business.fee_structure.get("base_fee_rate")
    previous_rate = to_rate_decimal(default_fee_rate if stored_rate is None else stored_rate)

    if previous_rate == new_rate:
        raise ValidationError(
            "Fee rate unchanged", field="newFeeRate", code="FEE_RATE_UNCHANGED"
        )

    actor = actor or {}
    audit_entry: Dict[str, Any] = {
        "audit_type": BUSINESS_FEE_CHANGE,
        "entity_type": "business",
        "entity_id": business_id,
        "reason": trimmed_reason,
        "before": {"fee_rate": previous_rate},
        "after": {"fee_rate": new_rate},
        "actor": {k: v for k, v in (("user_id", actor.get("userId")), ("email", actor.get("email"))) if v},
    }

    repository.update_fee_rate(
        business,
        new_rate,
        audit_entry,
        updated_by=actor.get("userId"),
    )

    message = fee_change_message(previous_rate, new_rate)
    logger.info(
        message,
        operation="update_business_fee_rate",
        context={
            "business_id": business_id,
            "actor_email": mask_email(actor.get("email")),
        },
    )

    if notifier is not None:
        notifier.send_fee_rate_changed(
            business_id=business_id,
            business_name=business.name,
            previous_percent=rate_to_percent(previous_rate),
            new_percent=rate_to_percent(new_rate),
            reason=trimmed_reason,
            actor=actor.get("email") or actor.get("userId"),
        )

    return {
        "success": True,
        "previousFeeRate": float(previous_rate),
        "newFeeRate": float(new_rate),
        "message": message,
    }
