"""Enumerations for domain models."""

from enum import Enum


class TradeDirection(str, Enum):
    """Direction of a trade."""

    BUY = "BUY"
    SELL = "SELL"


class SourceName(str, Enum):
    """Known upstream quote sources."""

    YAHOO = "yahoo"
    ING = "ing"
    FINNHUB = "finnhub"
    COINGECKO = "coingecko"
    STUB = "stub"


class DerivativeKind(str, Enum):
    """Derivative product families recognised from instrument names."""

    KNOCK_OUT = "knock-out"
    CALL = "call"
    PUT = "put"
    FACTOR = "factor"
    CERTIFICATE = "certificate"
