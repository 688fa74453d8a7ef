"""
API Services
Business logic shared by the routers and background tasks.
"""

from .email_service import EmailService
from .notifications import NOTIFICATION_TYPES, create_notification, notify_reply_recipients
from .sms import LoggingSmsSender, SmsDeliveryError, TwilioSmsSender
from .storage import InMemoryStorageClient, S3StorageClient, StorageClient, StorageError

__all__ = [
    "EmailService",
    "NOTIFICATION_TYPES",
    "create_notification",
    "notify_reply_recipients",
    "LoggingSmsSender",
    "SmsDeliveryError",
    "TwilioSmsSender",
    "InMemoryStorageClient",
    "S3StorageClient",
    "StorageClient",
    "StorageError",
]
