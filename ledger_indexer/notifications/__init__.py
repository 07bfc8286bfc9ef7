"""
Downstream notifications.

Best-effort delivery of indexed events to a webhook receiver.
"""

from ledger_indexer.notifications.models import DeliveryStatus, WebhookPayload
from ledger_indexer.notifications.notifier import WebhookNotifier

__all__ = ["DeliveryStatus", "WebhookPayload", "WebhookNotifier"]
