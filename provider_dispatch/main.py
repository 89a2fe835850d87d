"""Main entry point for the provider dispatch daemon."""

import asyncio
import signal
from typing import Optional

import structlog

from .config.settings import get_config
from .models.schemas import JobOffer
from .services.dispatch_service import DispatchService
from .utils.logging import setup_logging

# Global service instance for signal handling
service_instance: Optional[DispatchService] = None
shutdown_event: Optional[asyncio.Event] = None


def signal_handler(signum, frame):
    """Handle shutdown signals."""
    logger = structlog.get_logger(__name__)
    logger.info("Received signal, shutting down gracefully", signal=signum)
    if shutdown_event is not None:
        asyncio.get_running_loop().call_soon_threadsafe(shutdown_event.set)


def make_offer_logger(latitude: Optional[float], longitude: Optional[float]):
    """Presentation callback for headless hosts: report each offer in the log."""
    logger = structlog.get_logger("provider_dispatch.offers")

    def log_offer(offer: JobOffer):
        details = offer.summary()
        details["fee"] = offer.fee
        if latitude is not None and longitude is not None:
            distance = offer.distance_from(latitude, longitude)
            if distance is not None:
                details["distance"] = distance.distance_formatted
                details["eta_minutes"] = distance.eta_minutes
        logger.info("Offer awaiting decision", **details)

    return log_offer


async def main():
    """Main entry point."""
    global service_instance, shutdown_event

    config = get_config()

    # Set up logging
    logger = setup_logging(config.log_level, config.log_json)

    shutdown_event = asyncio.Event()

    # Set up signal handlers
    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    try:
        if not config.provider_id:
            logger.error("DISPATCH_PROVIDER_ID is not set")
            return

        logger.info("Starting provider dispatch", provider_id=config.provider_id, url=config.socket_url)

        service_instance = DispatchService.from_config(config)
        service_instance.on_new_offer(make_offer_logger(config.provider_latitude, config.provider_longitude))
        await service_instance.go_online(config.provider_id)

        await shutdown_event.wait()

    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
    except Exception as e:
        logger.error("Dispatch daemon failed", error=str(e))
        raise
    finally:
        if service_instance:
            await service_instance.close()


def run():
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
