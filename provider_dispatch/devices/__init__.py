"""Device adapters used by the offer alert."""

from .audio import AudioPlayer, HeadlessAudioPlayer
from .haptics import Vibrator, LoggingVibrator
from .background import BackgroundAlertBridge

__all__ = [
    "AudioPlayer",
    "HeadlessAudioPlayer",
    "Vibrator",
    "LoggingVibrator",
    "BackgroundAlertBridge",
]
