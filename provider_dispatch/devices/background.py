"""Bridge to a platform background service that can keep an alert ringing."""

from abc import ABC, abstractmethod
from typing import Optional

from ..models.schemas import JobOffer


class BackgroundAlertBridge(ABC):
    """Native service that rings independently of the event loop's lifetime.

    On mobile hosts this is the foreground service that keeps the hooter
    going while the app is backgrounded.
    """

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the native service exists on this host."""

    @abstractmethod
    async def start_alert(self, offer: Optional[JobOffer] = None) -> None:
        """Start ringing. Raises on failure."""

    @abstractmethod
    async def stop_alert(self) -> None:
        """Stop ringing. Raises on failure."""
