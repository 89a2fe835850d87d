"""Offer announcer owning the single process-wide alert."""

import asyncio
from typing import Optional

import structlog

from ..models.enums import AlertState
from ..models.schemas import JobOffer
from .alert_backends import BackgroundServiceBackend, InProcessAlertBackend, AlertBackend

logger = structlog.get_logger(__name__)


class OfferAnnouncer:
    """Starts and stops the repeating alert for an open offer.

    The background service is preferred when the host has one; the
    in-process loop covers hosts without it and any failure to start it.
    """

    def __init__(self, in_process: InProcessAlertBackend,
                 background: Optional[BackgroundServiceBackend] = None):
        self.in_process = in_process
        self.background = background
        self._state = AlertState.IDLE
        self._active: Optional[AlertBackend] = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> AlertState:
        return self._state

    @property
    def is_ringing(self) -> bool:
        return self._state == AlertState.RINGING

    @property
    def active_backend(self) -> Optional[str]:
        return self._active.name if self._active else None

    async def start_continuous_alert(self, offer: Optional[JobOffer] = None) -> bool:
        """Start ringing. Returns False if an alert was already ringing."""
        async with self._lock:
            if self._state == AlertState.RINGING:
                logger.debug("Alert already ringing")
                return False

            self._state = AlertState.RINGING

            if self.background is not None and self.background.is_available():
                try:
                    await self.background.start(offer)
                    self._active = self.background
                    logger.info("Alert started", backend=self.background.name)
                    return True
                except Exception as e:
                    logger.warning("Background alert failed, using in-process alert", error=str(e))

            await self.in_process.start(offer)
            self._active = self.in_process
            logger.info("Alert started", backend=self.in_process.name)
            return True

    async def stop_continuous_alert(self):
        """Stop ringing. Safe to call at any time, including when idle."""
        async with self._lock:
            if self._active is self.background and self.background is not None:
                try:
                    await self.background.stop()
                except Exception as e:
                    logger.warning("Background alert failed to stop", error=str(e))
                    await self.in_process.stop()
            else:
                await self.in_process.stop()

            if self._state == AlertState.RINGING:
                logger.info("Alert stopped", backend=self.active_backend)
            self._active = None
            self._state = AlertState.IDLE

    async def release(self):
        """Stop the alert and free the sound."""
        await self.stop_continuous_alert()
        await self.in_process.release()
