"""Logging configuration."""

import logging
import sys

from tradefolio.config.settings import get_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Upstream client libraries log every request at INFO.
NOISY_LOGGERS = ("httpx", "httpcore", "yfinance", "peewee", "urllib3")


def setup_logging() -> None:
    """Configure stdout logging for the resolver and its quote sources."""
    settings = get_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    logging.getLogger("tradefolio.providers").setLevel(
        getattr(logging, settings.source_log_level.upper())
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
