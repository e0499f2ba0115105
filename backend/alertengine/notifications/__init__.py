"""Notification channels and dispatch."""

from alertengine.notifications.channels import (
    DeliveryError,
    EmailChannel,
    InAppChannel,
    NotificationChannel,
    SmsChannel,
    WebhookChannel,
)
from alertengine.notifications.dispatcher import DispatchReport, NotificationDispatcher
from alertengine.notifications.recipients import partition_recipients

__all__ = [
    "DeliveryError",
    "EmailChannel",
    "InAppChannel",
    "NotificationChannel",
    "SmsChannel",
    "WebhookChannel",
    "DispatchReport",
    "NotificationDispatcher",
    "partition_recipients",
]
