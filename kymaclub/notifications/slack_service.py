"""
Slack webhook notifications for admin-side changes.

Delivery is best effort: a failed notification is logged and never fails
the operation that triggered it.
"""

from __future__ import annotations

import json
import time
from typing import Any, Dict, Optional

import requests

from kymaclub.utils.logger import get_logger, StructuredLogger


class SlackServiceError(Exception):
    """Raised when Slack rejects a message."""


class SlackWebhookClient:
    """
    Client for sending notifications through a Slack incoming webhook.

    A client built without a webhook URL is a no-op.
    """

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        http_client: Optional[requests.Session] = None,
        logger: Optional[StructuredLogger] = None,
        max_retries: int = 3,
        retry_delay_seconds: float = 0.5,
    ) -> None:
        self.logger = logger or get_logger(__name__)
        self.http_client = http_client or requests.Session()
        self.max_retries = max_retries
        self.retry_delay_seconds = retry_delay_seconds
        self.webhook_url = webhook_url or None

    @property
    def enabled(self) -> bool:
        return self.webhook_url is not None

    def send_fee_rate_changed(
        self,
        business_id: str,
        business_name: str,
        previous_percent: int,
        new_percent: int,
        reason: str,
        actor: Optional[str] = None,
    ) -> bool:
        """
        Announce a platform fee change.

        Returns:
            True if Slack accepted the message, False if disabled or failed
        """
        if not self.enabled:
            return False

        direction = "⬆️" if new_percent > previous_percent else "⬇️"
        payload = {
            "blocks": [
                {
                    "type": "section",
                    "text": {
                        "type": "mrkdwn",
                        "text": f"{direction} *Platform fee changed*\n"
                        f"Business: *{business_name}* (`{business_id}`)\n"
                        f"Rate: `{previous_percent}%` → `{new_percent}%`\n"
                        f"Reason: {reason}\n"
                        f"By: `{actor or 'system'}`",
                    },
                }
            ]
        }
        return self._dispatch(payload, action="send_fee_rate_changed")

    def _dispatch(self, payload: Dict[str, Any], action: str) -> bool:
        body = json.dumps(payload)

        for attempt in range(1, self.max_retries + 1):
            try:
                response = self.http_client.post(
                    self.webhook_url,
                    headers={"Content-Type": "application/json"},
                    data=body,
                    timeout=10,
                )

                if response.status_code == 429:
                    retry_after = int(response.headers.get("Retry-After", 1))
                    self.logger.warning(
                        "Slack rate limited",
                        operation=action,
                        context={"attempt": attempt, "retry_after": retry_after},
                    )
                    if attempt < self.max_retries:
                        time.sleep(min(retry_after, self.retry_delay_seconds * attempt))
                        continue
                    raise SlackServiceError(f"Rate limited; retry after {retry_after}s")

                if response.status_code >= 400:
                    raise SlackServiceError(
                        f"Slack responded with {response.status_code}: {response.text}"
                    )

                self.logger.debug(
                    "Slack notification delivered",
                    operation=action,
                    context={"attempt": attempt},
                )
                return True

            except (requests.RequestException, SlackServiceError) as exc:
                if attempt >= self.max_retries:
                    self.logger.error(
                        "Slack delivery failed",
                        operation=action,
                        context={"attempt": attempt},
                        error=str(exc),
                    )
                    return False

                self.logger.warning(
                    "Retrying Slack delivery",
                    operation=action,
                    context={"attempt": attempt},
                    error=str(exc),
                )
                time.sleep(self.retry_delay_seconds * attempt)

        return False
