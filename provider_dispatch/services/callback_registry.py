"""Publish/subscribe registry delivering offers to presentation layers."""

import asyncio
import inspect
import itertools
import time
from typing import Callable, Dict, Optional, Set, Tuple

import structlog

from ..models.enums import LateSubscriberPolicy
from ..models.schemas import JobOffer

logger = structlog.get_logger(__name__)

OfferCallback = Callable[[JobOffer], object]


class OfferCallbackRegistry:
    """Fan-out of inbound offers to every current subscriber.

    Subscribers are called in registration order; sync and async callables
    are both accepted. When an offer arrives with nobody listening, the
    late-subscriber policy decides whether it is dropped or held briefly
    for the first subscriber to arrive.
    """

    def __init__(self, policy: LateSubscriberPolicy = LateSubscriberPolicy.BUFFER_LATEST,
                 late_offer_ttl: float = 1.0, clock: Optional[Callable[[], float]] = None):
        self.policy = LateSubscriberPolicy(policy)
        self.late_offer_ttl = late_offer_ttl
        self._clock = clock or time.monotonic
        self._subscribers: Dict[int, OfferCallback] = {}
        self._tokens = itertools.count(1)
        self._buffered: Optional[Tuple[JobOffer, float]] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def has_subscribers(self) -> bool:
        return bool(self._subscribers)

    def subscribe(self, callback: OfferCallback) -> Callable[[], None]:
        """Register a callback. Returns a function that removes exactly this subscription."""
        if not callable(callback):
            raise TypeError("Offer callback must be callable")

        token = next(self._tokens)
        self._subscribers[token] = callback
        logger.debug("Offer subscriber added", token=token, subscribers=len(self._subscribers))

        buffered = self._take_buffered()
        if buffered is not None:
            self._deliver_late(callback, buffered)

        def unsubscribe():
            if self._subscribers.pop(token, None) is not None:
                logger.debug("Offer subscriber removed", token=token, subscribers=len(self._subscribers))

        return unsubscribe

    async def publish(self, offer: JobOffer) -> int:
        """Deliver an offer to every subscriber. Returns how many received it."""
        subscribers = list(self._subscribers.items())

        if not subscribers:
            if self.policy == LateSubscriberPolicy.BUFFER_LATEST:
                self._buffered = (offer, self._clock())
                logger.warning("No offer subscribers, holding offer", offer_id=offer.id, ttl=self.late_offer_ttl)
            else:
                logger.warning("No offer subscribers, offer dropped", offer_id=offer.id)
            return 0

        # A newer offer supersedes anything still held
        self._buffered = None

        delivered = 0
        for token, callback in subscribers:
            if await self._invoke(callback, offer, token):
                delivered += 1

        logger.info("Offer published", offer_id=offer.id, delivered=delivered, subscribers=len(subscribers))
        return delivered

    def clear(self):
        """Remove every subscriber and any held offer."""
        self._subscribers.clear()
        self._buffered = None

    async def drain(self):
        """Wait for late deliveries still running."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _take_buffered(self) -> Optional[JobOffer]:
        if self._buffered is None:
            return None
        offer, held_at = self._buffered
        self._buffered = None
        if self._clock() - held_at > self.late_offer_ttl:
            logger.info("Held offer expired", offer_id=offer.id)
            return None
        return offer

    def _deliver_late(self, callback: OfferCallback, offer: JobOffer):
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is not None:
            task = loop.create_task(self._invoke(callback, offer, None))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        elif not inspect.iscoroutinefunction(callback):
            try:
                callback(offer)
            except Exception as e:
                logger.error("Offer subscriber failed", offer_id=offer.id, error=str(e))
        else:
            logger.warning("Held offer dropped, no running event loop", offer_id=offer.id)
            return

        logger.info("Held offer delivered to late subscriber", offer_id=offer.id)

    async def _invoke(self, callback: OfferCallback, offer: JobOffer, token: Optional[int]) -> bool:
        try:
            result = callback(offer)
            if inspect.isawaitable(result):
                await result
            return True
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Offer subscriber failed", offer_id=offer.id, token=token, error=str(e), exc_info=True)
            return False
