"""Outbound notifications."""

from .slack_service import SlackWebhookClient, SlackServiceError

__all__ = ["SlackWebhookClient", "SlackServiceError"]
