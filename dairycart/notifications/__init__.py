"""Delivery of committed catalog events to subscribers."""

from dairycart.notifications.models import Webhook, WebhookExecutionLog
from dairycart.notifications.webhooks import InMemoryNotifier, Notifier, WebhookNotifier

__all__ = [
    "InMemoryNotifier",
    "Notifier",
    "Webhook",
    "WebhookExecutionLog",
    "WebhookNotifier",
]
