"""Haptic feedback adapters."""

from abc import ABC, abstractmethod
from typing import List

import structlog

logger = structlog.get_logger(__name__)


class Vibrator(ABC):
    """Device vibration motor."""

    @abstractmethod
    async def vibrate(self, pattern: List[int]) -> None:
        """Run a wait/vibrate pattern given in milliseconds."""

    async def cancel(self) -> None:
        pass


class LoggingVibrator(Vibrator):
    """Vibrator for hosts without a motor; records each pattern."""

    def __init__(self):
        self.count = 0

    async def vibrate(self, pattern: List[int]) -> None:
        self.count += 1
        logger.debug("Vibrate", pattern=pattern, count=self.count)
