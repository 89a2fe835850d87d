"""Dispatch client services."""

from .callback_registry import OfferCallbackRegistry
from .alert_backends import AlertBackend, BackgroundServiceBackend, InProcessAlertBackend
from .offer_announcer import OfferAnnouncer
from .realtime_transport import RealtimeTransport
from .push_notifier import PushNotifier
from .claim_resolver import ClaimResolver
from .dispatch_service import DispatchService

__all__ = [
    "OfferCallbackRegistry",
    "AlertBackend",
    "BackgroundServiceBackend",
    "InProcessAlertBackend",
    "OfferAnnouncer",
    "RealtimeTransport",
    "PushNotifier",
    "ClaimResolver",
    "DispatchService",
]
