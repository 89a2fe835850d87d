"""Application context wiring the dispatch components together."""

import time
from typing import Any, Callable, Dict, Optional, Union

import structlog

from ..config.settings import DispatchConfig, get_config
from ..devices.audio import AudioPlayer, HeadlessAudioPlayer
from ..devices.background import BackgroundAlertBridge
from ..devices.haptics import Vibrator, LoggingVibrator
from ..models.schemas import JobOffer, JobRecord, ProviderProfile, ClaimResult
from ..stores import build_store
from ..stores.base import JobStore
from .alert_backends import BackgroundServiceBackend, InProcessAlertBackend
from .callback_registry import OfferCallbackRegistry
from .claim_resolver import ClaimResolver
from .offer_announcer import OfferAnnouncer
from .push_notifier import PushNotifier
from .realtime_transport import RealtimeTransport

logger = structlog.get_logger(__name__)


class DispatchService:
    """Owns one transport, announcer, registry, resolver, store and notifier."""

    def __init__(
        self,
        config: DispatchConfig,
        store: JobStore,
        registry: OfferCallbackRegistry,
        announcer: OfferAnnouncer,
        transport: RealtimeTransport,
        resolver: ClaimResolver,
        notifier: Optional[PushNotifier] = None,
    ):
        self.config = config
        self.store = store
        self.registry = registry
        self.announcer = announcer
        self.transport = transport
        self.resolver = resolver
        self.notifier = notifier

        self.provider_id: Optional[str] = None
        self.provider_profile: Optional[ProviderProfile] = None
        self.started = False
        self.started_at: Optional[float] = None
        self.accepted = 0
        self.rejected = 0

    @classmethod
    def from_config(
        cls,
        config: Optional[DispatchConfig] = None,
        store: Optional[JobStore] = None,
        player: Optional[AudioPlayer] = None,
        vibrator: Optional[Vibrator] = None,
        bridge: Optional[BackgroundAlertBridge] = None,
        socket_factory: Optional[Callable[[], Any]] = None,
    ) -> "DispatchService":
        """Build a service from configuration, with optional device and store overrides."""
        config = config or get_config()
        store = store or build_store(config)

        notifier = None
        if config.push_server_url:
            notifier = PushNotifier(
                store,
                config.push_server_url,
                timeout=config.notify_timeout,
                breaker_config=config.circuit_breaker_config(),
            )

        registry = OfferCallbackRegistry(
            policy=config.late_subscriber_policy,
            late_offer_ttl=config.late_offer_ttl,
        )
        in_process = InProcessAlertBackend(
            player or HeadlessAudioPlayer(config.alert_asset_path),
            vibrator or LoggingVibrator(),
            interval=config.alert_interval,
            load_poll_interval=config.alert_load_poll_interval,
            load_timeout=config.alert_load_timeout,
            reload_attempts=config.alert_reload_attempts,
            vibration_pattern=config.vibration_pattern,
        )
        background = BackgroundServiceBackend(bridge) if bridge is not None else None
        announcer = OfferAnnouncer(in_process, background)
        transport = RealtimeTransport(config, registry, announcer, socket_factory=socket_factory)
        resolver = ClaimResolver(store, notifier, rejection_reason=config.rejection_reason)

        return cls(config, store, registry, announcer, transport, resolver, notifier)

    async def start(self):
        """Open the store and notifier."""
        if self.started:
            return
        await self.store.initialize()
        if self.notifier is not None:
            await self.notifier.initialize()
        self.started = True
        self.started_at = time.time()
        logger.info("Dispatch service started", store=type(self.store).__name__)

    def on_new_offer(self, callback: Callable[[JobOffer], Any]) -> Callable[[], None]:
        """Subscribe a presentation callback. Returns its unsubscribe function."""
        return self.registry.subscribe(callback)

    async def go_online(self, provider_id: Optional[str] = None,
                        provider_profile: Optional[Union[ProviderProfile, dict]] = None) -> bool:
        """Start listening for offers as ``provider_id``."""
        await self.start()
        provider_id = provider_id or self.config.provider_id
        if provider_profile is not None:
            self.provider_profile = ProviderProfile.from_any(provider_profile)
        if provider_id:
            self.provider_id = str(provider_id).strip() or None
        return await self.transport.connect(provider_id)

    async def go_offline(self):
        """Stop listening. Claims already in flight still complete."""
        await self.announcer.stop_continuous_alert()
        await self.transport.disconnect()
        logger.info("Provider offline", provider_id=self.provider_id)

    async def accept(
        self,
        offer: Union[JobOffer, dict],
        provider_profile: Optional[Union[ProviderProfile, dict]] = None,
        provider_id: Optional[str] = None,
    ) -> ClaimResult:
        await self.announcer.stop_continuous_alert()
        provider_id = provider_id or self.transport.provider_id or self.provider_id
        result = await self.resolver.accept_offer(offer, provider_id, provider_profile or self.provider_profile)
        if not result.already_owned:
            self.accepted += 1
        return result

    async def reject(self, offer: Union[JobOffer, dict], reason: Optional[str] = None) -> JobRecord:
        await self.announcer.stop_continuous_alert()
        record = await self.resolver.reject_offer(offer, reason)
        self.rejected += 1
        return record

    async def dismiss(self):
        """Silence the alert without deciding on the offer."""
        await self.announcer.stop_continuous_alert()

    async def close(self):
        """Go offline and release every resource."""
        logger.info("Closing dispatch service")
        await self.go_offline()
        await self.announcer.release()
        await self.resolver.drain_notifications()
        if self.notifier is not None:
            await self.notifier.close()
        if self.started:
            await self.store.close()
        self.registry.clear()
        self.started = False
        logger.info("Dispatch service closed")

    def get_status(self) -> Dict[str, Any]:
        status = {
            "provider_id": self.provider_id,
            "connection": self.transport.get_status(),
            "alert": {
                "state": self.announcer.state.value,
                "backend": self.announcer.active_backend,
                "pulses": self.announcer.in_process.pulse_count,
            },
            "subscribers": self.registry.subscriber_count,
            "accepted": self.accepted,
            "rejected": self.rejected,
            "pending_notifications": self.resolver.pending_notifications,
        }
        if self.started_at:
            status["uptime_seconds"] = round(time.time() - self.started_at, 1)
        if self.notifier is not None:
            status["notifier"] = self.notifier.breaker.get_state_info()
        return status
