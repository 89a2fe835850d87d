"""Audio playback adapters for the offer alert."""

import os
import wave
from abc import ABC, abstractmethod
from typing import Optional

import structlog

from ..exceptions import ResourceUnavailableError

logger = structlog.get_logger(__name__)


class AudioPlayer(ABC):
    """Plays a single alert sound asset."""

    @abstractmethod
    async def load(self) -> None:
        """Start loading the asset. Raises ResourceUnavailableError on failure."""

    @abstractmethod
    def is_ready(self) -> bool:
        """True once the asset can be played."""

    @abstractmethod
    async def play(self) -> None:
        """Play the asset from the beginning."""

    @abstractmethod
    async def stop(self) -> None:
        """Stop playback and rewind."""

    @abstractmethod
    async def release(self) -> None:
        """Free the underlying resource."""

    @property
    def duration(self) -> Optional[float]:
        return None


class HeadlessAudioPlayer(AudioPlayer):
    """Audio player for hosts without a sound device.

    The asset is validated as a WAV file so a broken install is caught at
    load time, and every playback is logged instead of rendered.
    """

    def __init__(self, asset_path: Optional[str]):
        self.asset_path = asset_path
        self._ready = False
        self._duration: Optional[float] = None
        self.play_count = 0

    async def load(self) -> None:
        if self._ready:
            return
        if not self.asset_path or not os.path.isfile(self.asset_path):
            raise ResourceUnavailableError("alert sound", f"Alert sound not found: {self.asset_path}")
        try:
            with wave.open(self.asset_path, "rb") as asset:
                frames = asset.getnframes()
                rate = asset.getframerate()
        except (wave.Error, EOFError, OSError) as e:
            raise ResourceUnavailableError("alert sound", f"Alert sound unreadable: {e}") from e
        self._duration = frames / float(rate) if rate else 0.0
        self._ready = True
        logger.info("Alert sound loaded", path=self.asset_path, duration=round(self._duration, 2))

    def is_ready(self) -> bool:
        return self._ready

    async def play(self) -> None:
        self.play_count += 1
        logger.debug("Alert sound played", count=self.play_count)

    async def stop(self) -> None:
        pass

    async def release(self) -> None:
        self._ready = False
        self._duration = None

    @property
    def duration(self) -> Optional[float]:
        return self._duration
