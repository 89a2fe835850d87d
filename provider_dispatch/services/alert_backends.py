"""Alert backends that keep the offer alert ringing."""

import asyncio
from abc import ABC, abstractmethod
from typing import List, Optional

import structlog

from ..devices.audio import AudioPlayer
from ..devices.background import BackgroundAlertBridge
from ..devices.haptics import Vibrator
from ..exceptions import ResourceUnavailableError
from ..models.schemas import JobOffer

logger = structlog.get_logger(__name__)

DEFAULT_VIBRATION_PATTERN = [0, 500, 200, 500]


class AlertBackend(ABC):
    """A way of producing the repeating offer alert."""

    name = "backend"

    @abstractmethod
    def is_available(self) -> bool:
        """Whether this backend can be used on this host."""

    @abstractmethod
    async def start(self, offer: Optional[JobOffer] = None) -> None:
        """Begin ringing."""

    @abstractmethod
    async def stop(self) -> None:
        """Stop ringing. Must be idempotent."""


class BackgroundServiceBackend(AlertBackend):
    """Delegates the alert to a native background service."""

    name = "background"

    def __init__(self, bridge: BackgroundAlertBridge):
        self.bridge = bridge

    def is_available(self) -> bool:
        try:
            return bool(self.bridge.is_available())
        except Exception as e:
            logger.warning("Background alert availability check failed", error=str(e))
            return False

    async def start(self, offer: Optional[JobOffer] = None) -> None:
        await self.bridge.start_alert(offer)

    async def stop(self) -> None:
        await self.bridge.stop_alert()


class InProcessAlertBackend(AlertBackend):
    """Pulses sound and vibration from an asyncio task.

    The sound is loaded lazily on the first start. Each pulse vibrates, then
    restarts playback from the beginning when the sound is ready. A sound
    that never becomes ready does not stop the vibration.
    """

    name = "in_process"

    def __init__(
        self,
        player: AudioPlayer,
        vibrator: Vibrator,
        interval: float = 2.0,
        load_poll_interval: float = 0.2,
        load_timeout: float = 5.0,
        reload_attempts: int = 3,
        vibration_pattern: Optional[List[int]] = None,
    ):
        self.player = player
        self.vibrator = vibrator
        self.interval = interval
        self.load_poll_interval = load_poll_interval
        self.load_timeout = load_timeout
        self.reload_attempts = reload_attempts
        self.vibration_pattern = list(vibration_pattern or DEFAULT_VIBRATION_PATTERN)

        self.pulse_count = 0
        self._task: Optional[asyncio.Task] = None
        self._load_attempted = False
        self._reloads = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def is_available(self) -> bool:
        return True

    async def start(self, offer: Optional[JobOffer] = None) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        try:
            await self.player.stop()
        except Exception as e:
            logger.warning("Stopping alert sound failed", error=str(e))
        try:
            await self.vibrator.cancel()
        except Exception as e:
            logger.warning("Cancelling vibration failed", error=str(e))

    async def release(self) -> None:
        await self.stop()
        try:
            await self.player.release()
        except Exception as e:
            logger.warning("Releasing alert sound failed", error=str(e))
        self._load_attempted = False
        self._reloads = 0

    async def _run(self):
        await self._ensure_loaded()
        while True:
            await self._pulse()
            await asyncio.sleep(self.interval)

    async def _ensure_loaded(self):
        if self._load_attempted or self.player.is_ready():
            return
        self._load_attempted = True

        if not await self._load():
            return

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.load_timeout
        while not self.player.is_ready() and loop.time() < deadline:
            await asyncio.sleep(self.load_poll_interval)

        if not self.player.is_ready():
            logger.warning("Alert sound not ready, continuing without it", timeout=self.load_timeout)

    async def _load(self) -> bool:
        try:
            await self.player.load()
            return True
        except ResourceUnavailableError as e:
            logger.warning("Alert sound unavailable", error=e.message)
        except Exception as e:
            logger.warning("Alert sound failed to load", error=str(e))
        return False

    async def _pulse(self):
        self.pulse_count += 1

        try:
            await self.vibrator.vibrate(self.vibration_pattern)
        except Exception as e:
            logger.warning("Vibration failed", pulse=self.pulse_count, error=str(e))

        if not self.player.is_ready():
            error = ResourceUnavailableError("alert sound", "Alert sound not ready")
            logger.warning(error.message, pulse=self.pulse_count, code=error.code)
            if self._reloads >= self.reload_attempts:
                return
            self._reloads += 1
            await self._load()
            if not self.player.is_ready():
                return

        try:
            await self.player.stop()
            await self.player.play()
        except Exception as e:
            logger.warning("Alert sound playback failed", pulse=self.pulse_count, error=str(e))
