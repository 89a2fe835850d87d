"""Customer push notifications through the platform push server."""

import asyncio
from typing import Optional, Dict, Any

import aiohttp
import structlog

from ..exceptions import NotificationDeliveryError
from ..models.schemas import CircuitBreakerConfig
from ..stores.base import JobStore
from ..utils.circuit_breaker import CircuitBreaker

logger = structlog.get_logger(__name__)

ACCEPTED_TITLE = "Service Request Accepted"


class PushNotifier:
    """Sends push notifications to customers about their bookings."""

    def __init__(
        self,
        store: JobStore,
        push_server_url: str,
        timeout: float = 10.0,
        breaker_config: Optional[CircuitBreakerConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.store = store
        self.push_server_url = (push_server_url or "").rstrip("/")
        self.timeout = timeout
        self.session = session
        self._owns_session = session is None
        self.breaker = CircuitBreaker(breaker_config or CircuitBreakerConfig(), name="push")
        self.sent = 0

    @property
    def enabled(self) -> bool:
        return bool(self.push_server_url)

    async def initialize(self):
        """Initialize HTTP session."""
        if self.session is None and self.enabled:
            self.session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout))
            self._owns_session = True
            logger.info("Push notifier session initialized", url=self.push_server_url)

    async def close(self):
        """Close HTTP session."""
        if self.session is not None and self._owns_session and not self.session.closed:
            await self.session.close()
            logger.info("Push notifier session closed")
        if self._owns_session:
            self.session = None

    async def notify_service_accepted(
        self,
        customer_id: Optional[str],
        job_id: str,
        provider_name: str,
        service_type: Optional[str],
    ) -> bool:
        """Tell the customer their request was accepted.

        Returns False when there is nobody to notify. Raises
        NotificationDeliveryError when delivery was attempted and failed.
        """
        if not self.enabled:
            logger.debug("Push server not configured, skipping notification", job_id=job_id)
            return False
        if not customer_id:
            logger.warning("Offer has no customer id, skipping notification", job_id=job_id)
            return False

        token = await self.store.get_push_token(customer_id)
        if not token:
            logger.warning("No push token for customer", customer_id=customer_id, job_id=job_id)
            return False

        service = service_type or "home"
        payload = {
            "token": token,
            "notification": {
                "title": ACCEPTED_TITLE,
                "body": f"{provider_name} has accepted your {service} service request",
            },
            "data": {
                "type": "service",
                "consultationId": str(job_id),
                "status": "accepted",
            },
        }
        await self.send(payload, user_id=customer_id)
        logger.info("Customer notified", customer_id=customer_id, job_id=job_id)
        return True

    async def send(self, payload: Dict[str, Any], user_id: Optional[str] = None):
        """POST a notification to the push server."""
        if not self.breaker.can_execute():
            raise NotificationDeliveryError("Push notification circuit breaker is open", user_id=user_id)

        if self.session is None:
            await self.initialize()

        try:
            async with self.session.post(
                f"{self.push_server_url}/send-notification",
                json=payload,
                headers={"Content-Type": "application/json"},
            ) as response:
                if response.status != 200:
                    text = await response.text()
                    raise NotificationDeliveryError(
                        f"Push server returned {response.status}: {text[:200]}", user_id=user_id
                    )
        except NotificationDeliveryError:
            self.breaker.record_failure()
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.breaker.record_failure()
            raise NotificationDeliveryError(f"Push server unreachable: {e}", user_id=user_id) from e

        self.breaker.record_success()
        self.sent += 1
