"""Realtime Socket.IO transport scoped to one provider."""

import asyncio
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlencode

import socketio
import structlog

from ..config.settings import DispatchConfig
from ..exceptions import RealtimeConnectionError, ValidationError
from ..models.enums import ConnectionState
from ..models.schemas import JobOffer
from ..utils.retry import RetryHandler
from .callback_registry import OfferCallbackRegistry
from .offer_announcer import OfferAnnouncer

logger = structlog.get_logger(__name__)

NAMESPACE = "/"
CLIENT_TYPE = "provider-app"


def default_socket_factory() -> socketio.AsyncClient:
    # Backoff is driven by RealtimeTransport, not by the client library
    return socketio.AsyncClient(reconnection=False, logger=False, engineio_logger=False)


class RealtimeTransport:
    """Keeps one Socket.IO connection open for the current provider.

    Each (re)connect joins the provider's room and re-attaches the offer
    listener. An offer starts the alert before it is published so the
    provider hears it even when no screen is subscribed. Connection problems
    are logged and retried in the background, never raised.
    """

    def __init__(
        self,
        config: DispatchConfig,
        registry: OfferCallbackRegistry,
        announcer: OfferAnnouncer,
        socket_factory: Optional[Callable[[], Any]] = None,
    ):
        self.config = config
        self.registry = registry
        self.announcer = announcer
        self._socket_factory = socket_factory or default_socket_factory
        self._retry = RetryHandler(config.retry_config())

        self._socket = None
        self._provider_id: Optional[str] = None
        self._state = ConnectionState.DISCONNECTED
        self._reconnect_task: Optional[asyncio.Task] = None
        self._closing = False
        self.offers_received = 0

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def provider_id(self) -> Optional[str]:
        return self._provider_id

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    def is_configured(self) -> bool:
        return self.config.is_socket_configured()

    async def connect(self, provider_id: Optional[str]) -> bool:
        """Connect for ``provider_id``. Returns whether the transport is connected."""
        if not provider_id or not str(provider_id).strip():
            logger.warning("Cannot connect without a provider id")
            return False

        if not self.is_configured():
            error = RealtimeConnectionError("Dispatch server URL is not configured", url=self.config.socket_url)
            logger.warning(error.message, url=error.url, code=error.code)
            return False

        provider_id = str(provider_id).strip()

        if self._provider_id == provider_id and self._state != ConnectionState.DISCONNECTED:
            self._attach_offer_listener()
            logger.debug("Already connected for provider", provider_id=provider_id, state=self._state.value)
            return self.is_connected

        if self._socket is not None:
            logger.info("Switching provider", old_provider_id=self._provider_id, provider_id=provider_id)
            await self.disconnect()

        if not self.registry.has_subscribers():
            logger.warning("Connecting with no offer subscribers", provider_id=provider_id)

        self._closing = False
        self._provider_id = provider_id
        self._socket = self._socket_factory()
        self._register_handlers()
        self._state = ConnectionState.CONNECTING

        try:
            await self._open()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            error = RealtimeConnectionError(f"Failed to connect to dispatch server: {e}", url=self.config.socket_url)
            logger.error(error.message, provider_id=provider_id, code=error.code)
            self._schedule_reconnect()

        return self.is_connected

    async def disconnect(self):
        """Close the connection and forget the provider. Safe when not connected."""
        self._closing = True

        task, self._reconnect_task = self._reconnect_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        sock, self._socket = self._socket, None
        if sock is not None:
            sock.handlers.clear()
            try:
                await sock.disconnect()
            except Exception as e:
                logger.warning("Error closing socket", error=str(e))

        if self._provider_id is not None:
            logger.info("Disconnected from dispatch server", provider_id=self._provider_id)
        self._provider_id = None
        self._state = ConnectionState.DISCONNECTED

    async def reconnect(self) -> bool:
        """Drop the connection and open a fresh one for the current provider."""
        provider_id = self._provider_id
        if not provider_id:
            logger.warning("Nothing to reconnect, no provider connected")
            return False
        await self.disconnect()
        return await self.connect(provider_id)

    def get_status(self) -> Dict[str, Any]:
        return {
            "state": self._state.value,
            "provider_id": self._provider_id,
            "url": self.config.socket_url,
            "reconnecting": self._reconnect_task is not None and not self._reconnect_task.done(),
            "offers_received": self.offers_received,
        }

    def _connection_url(self) -> str:
        query = urlencode({"providerId": self._provider_id, "clientType": CLIENT_TYPE})
        separator = "&" if "?" in self.config.socket_url else "?"
        return f"{self.config.socket_url}{separator}{query}"

    async def _open(self):
        await self._socket.connect(
            self._connection_url(),
            transports=self.config.transports,
            socketio_path=self.config.socket_path,
            wait_timeout=self.config.connect_timeout,
        )

    def _register_handlers(self):
        sock = self._socket
        sock.on("connect", handler=self._on_connect)
        sock.on("disconnect", handler=self._on_disconnect)
        sock.on("connect_error", handler=self._on_connect_error)
        sock.on(self.config.join_confirm_event, handler=self._on_room_joined)
        self._attach_offer_listener()

    def _attach_offer_listener(self):
        if self._socket is None:
            return
        handlers = self._socket.handlers.get(NAMESPACE)
        if handlers:
            handlers.pop(self.config.offer_event, None)
        self._socket.on(self.config.offer_event, handler=self._on_offer)

    async def _on_connect(self):
        self._state = ConnectionState.CONNECTED
        self._attach_offer_listener()
        logger.info("Connected to dispatch server", provider_id=self._provider_id)
        try:
            await self._socket.emit(self.config.join_event, self._provider_id)
        except Exception as e:
            logger.error("Failed to join provider room", provider_id=self._provider_id, error=str(e))

    async def _on_disconnect(self, *args):
        if self._closing:
            return
        reason = args[0] if args else None
        logger.warning("Lost connection to dispatch server", provider_id=self._provider_id, reason=reason)
        self._schedule_reconnect()

    async def _on_connect_error(self, data=None):
        logger.warning("Dispatch server connection error", provider_id=self._provider_id, error=data)

    async def _on_room_joined(self, data=None):
        logger.info("Joined provider room", provider_id=self._provider_id, data=data)

    async def _on_offer(self, data=None):
        self.offers_received += 1
        try:
            offer = JobOffer.from_payload(data)
        except ValidationError as e:
            # still ring; only the subscribers are skipped
            logger.error("Malformed offer received", provider_id=self._provider_id, error=str(e))
            offer = None
        else:
            logger.info("New offer received", provider_id=self._provider_id, **offer.summary())

        try:
            await self.announcer.start_continuous_alert(offer)
        except Exception as e:
            logger.error("Failed to start offer alert", offer_id=offer.id if offer else None, error=str(e))

        if offer is not None:
            await self.registry.publish(offer)

    def _schedule_reconnect(self):
        if self._closing:
            return
        if self._reconnect_task is not None and not self._reconnect_task.done():
            return
        self._state = ConnectionState.RECONNECTING
        self._reconnect_task = asyncio.create_task(self._reconnect_loop())

    async def _reconnect_loop(self):
        try:
            await self._retry.execute_with_retry(self._reconnect_once, "dispatch_reconnect")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(
                "Reconnect attempts exhausted",
                provider_id=self._provider_id,
                attempts=self._retry.config.max_attempts,
                error=str(e),
            )
            self._state = ConnectionState.DISCONNECTED

    async def _reconnect_once(self):
        if self._closing or self._socket is None:
            return
        if self._state == ConnectionState.CONNECTED:
            return
        logger.info("Reconnecting to dispatch server", provider_id=self._provider_id, attempt=self._retry.last_attempts)
        await self._open()
