"""Provider-side booking dispatch client: realtime offers, alerting and claims."""

from .services.dispatch_service import DispatchService
from .config.settings import DispatchConfig, get_config

__version__ = "1.0.0"

__all__ = ["DispatchService", "DispatchConfig", "get_config"]
