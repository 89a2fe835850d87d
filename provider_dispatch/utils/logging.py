"""Logging configuration for the dispatch client."""

import logging
import sys

import structlog


def setup_logging(level: str = "INFO", json_output: bool = False) -> structlog.stdlib.BoundLogger:
    """Set up structured logging for the dispatch client."""

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout)
        ],
        force=True,
    )

    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Socket.IO and HTTP libraries are chatty at INFO
    for name in ("socketio", "engineio", "aiohttp", "asyncio"):
        logging.getLogger(name).setLevel(logging.WARNING)

    logger = structlog.get_logger("provider_dispatch")
    logger.info("Logging configured", level=level.upper(), json=json_output)
    return logger
