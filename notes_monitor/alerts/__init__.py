from .dispatcher import AlertDispatcher, DispatchConfig, DispatchOutcome, DispatchResult
from .notification_service import LoggingNotifier, Notifier, WebhookNotifier, build_notifier
from .repository import AlertRecord, AlertRepository, AlertStoreError, make_dedup_key

__all__ = [
    "AlertDispatcher",
    "DispatchConfig",
    "DispatchOutcome",
    "DispatchResult",
    "Notifier",
    "LoggingNotifier",
    "WebhookNotifier",
    "build_notifier",
    "AlertRecord",
    "AlertRepository",
    "AlertStoreError",
    "make_dedup_key",
]
