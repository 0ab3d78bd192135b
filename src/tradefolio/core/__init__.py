"""Core utilities and exceptions."""

from tradefolio.core.exceptions import (
    AppError,
    ValidationError,
    NotFoundError,
    QuoteUnavailableError,
    QuoteSourceError,
)
from tradefolio.core.timezone import (
    LOCAL_TZ,
    now_local,
    to_local,
    from_timestamp,
    parse_datetime_local,
    start_of_month,
)

__all__ = [
    "AppError",
    "ValidationError",
    "NotFoundError",
    "QuoteUnavailableError",
    "QuoteSourceError",
    "LOCAL_TZ",
    "now_local",
    "to_local",
    "from_timestamp",
    "parse_datetime_local",
    "start_of_month",
]
