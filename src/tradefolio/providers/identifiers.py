"""
Identifier heuristics shared by the quote sources.

Everything here is a pure function: classify an identifier (ISIN, ticker,
crypto symbol), map it to a source-specific symbol, infer currency, pick the
best price out of a bid/ask payload, and recognise derivative products.
"""

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

from tradefolio.domain.models import DerivativeKind

CENT = Decimal("0.01")

ISIN_PATTERN = re.compile(r"^[A-Z]{2}[A-Z0-9]{9}[0-9]$")
TICKER_PATTERN = re.compile(r"^[A-Z]{1,5}(\.[A-Z])?$")
PLAIN_TICKER_PATTERN = re.compile(r"^[A-Z]{1,5}$")
SUFFIXED_SYMBOL_PATTERN = re.compile(r"^[A-Z]+\.[A-Z]{1,2}$")

# Countries Yahoo lists well (by ISIN prefix)
YAHOO_ISIN_COUNTRIES = frozenset(
    ["DE", "US", "GB", "FR", "IT", "ES", "NL", "CH", "CA", "AU", "JP"]
)
# Countries ING Wertpapiere covers (by ISIN prefix)
ING_ISIN_COUNTRIES = frozenset(["DE", "AT", "NL", "FR", "BE", "LU", "CH", "IT", "ES"])
# Exchange suffixes Finnhub's free tier does not serve
FINNHUB_UNSUPPORTED_SUFFIXES = (".IN", ".SR", ".SZ", ".SS")

KNOWN_YAHOO_SYMBOLS: dict[str, str] = {
    "DE0007164600": "SAP.DE",
    "DE0008469008": "BMW.DE",
    "DE0005140008": "DBK.DE",
    "DE000BASF111": "BAS.DE",
    "DE0005557508": "DTE.DE",
    "DE0008404005": "ALV.DE",
    "DE0005785604": "FME.DE",
    "DE0006048408": "HEI.DE",
    "US0378331005": "AAPL",
    "US5949181045": "MSFT",
    "US88160R1014": "TSLA",
}

YAHOO_COUNTRY_SUFFIXES: dict[str, str] = {
    "DE": ".DE",
    "GB": ".L",
    "FR": ".PA",
    "IT": ".MI",
    "ES": ".MC",
    "NL": ".AS",
    "CH": ".SW",
    "CA": ".TO",
    "AU": ".AX",
    "JP": ".T",
}

MARKET_SUFFIXES: dict[str, str] = {
    "XETRA": ".DE",
    "FRANKFURT": ".F",
    "LSE": ".L",
    "EURONEXT": ".PA",
    "MILAN": ".MI",
    "MADRID": ".MC",
    "AMSTERDAM": ".AS",
    "SWISS": ".SW",
    "TORONTO": ".TO",
    "ASX": ".AX",
    "TOKYO": ".T",
}

SUFFIX_CURRENCIES: dict[str, str] = {
    ".DE": "EUR",
    ".F": "EUR",
    ".PA": "EUR",
    ".MI": "EUR",
    ".MC": "EUR",
    ".AS": "EUR",
    ".L": "GBP",
    ".SW": "CHF",
    ".TO": "CAD",
    ".AX": "AUD",
    ".T": "JPY",
}

CRYPTO_SYMBOL_TO_ID: dict[str, str] = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "USDT": "tether",
    "BNB": "binancecoin",
    "XRP": "ripple",
    "ADA": "cardano",
    "SOL": "solana",
    "DOGE": "dogecoin",
    "TRX": "tron",
    "MATIC": "matic-network",
    "AVAX": "avalanche-2",
    "DOT": "polkadot",
    "LINK": "chainlink",
    "UNI": "uniswap",
    "ATOM": "cosmos",
    "LTC": "litecoin",
    "BCH": "bitcoin-cash",
    "XLM": "stellar",
    "ALGO": "algorand",
    "VET": "vechain",
    "FIL": "filecoin",
    "SAND": "the-sandbox",
    "MANA": "decentraland",
    "APT": "aptos",
    "ARB": "arbitrum",
    "OP": "optimism",
    "NEAR": "near",
    "ICP": "internet-computer",
    "HBAR": "hedera-hashgraph",
    "QNT": "quant-network",
    "GRT": "the-graph",
    "AAVE": "aave",
    "SNX": "havven",
    "MKR": "maker",
    "COMP": "compound-governance-token",
    "SUSHI": "sushi",
    "CRV": "curve-dao-token",
}

CRYPTO_NAMES = (
    "bitcoin", "ethereum", "tether", "binance", "ripple", "cardano",
    "solana", "dogecoin", "polkadot", "avalanche", "chainlink", "uniswap",
    "litecoin", "cosmos", "stellar", "algorand", "vechain", "filecoin",
    "sandbox", "decentraland", "aptos", "arbitrum", "optimism", "near",
    "hedera", "quant", "graph", "aave", "maker", "compound", "sushi", "curve",
)

_CRYPTO_BASES = "BTC|ETH|USDT|BNB|XRP|ADA|SOL|DOGE|TRX|MATIC|AVAX|DOT|LINK"
CRYPTO_PAIR_PATTERN = re.compile(rf"^({_CRYPTO_BASES})(USD|EUR|USDT|BTC|ETH)$")
CRYPTO_SEPARATED_PAIR_PATTERN = re.compile(rf"^({_CRYPTO_BASES})[-/](USD|EUR|USDT)$")
CRYPTO_KEYWORD_PATTERN = re.compile(r"\b(crypto|coin|token|defi|nft)\b")

LEVERAGE_PATTERN = re.compile(
    r"(?:hebel|leverage|faktor|factor)[\s:]*(\d+(?:[,.]\d+)?)|(\d+(?:[,.]\d+)?)\s*x",
    re.IGNORECASE,
)


# =============================================================================
# CLASSIFICATION
# =============================================================================


def normalize_identifier(identifier: str) -> str:
    """Trim and upper-case an identifier; cache keys and lookups use this form."""
    return (identifier or "").strip().upper()


def is_isin(identifier: str) -> bool:
    return bool(ISIN_PATTERN.match(normalize_identifier(identifier)))


def is_ticker(identifier: str) -> bool:
    return bool(TICKER_PATTERN.match(normalize_identifier(identifier)))


def isin_country(identifier: str) -> Optional[str]:
    identifier = normalize_identifier(identifier)
    return identifier[:2] if len(identifier) == 12 else None


def is_crypto_symbol(identifier: str) -> bool:
    """
    Return True if identifier looks like a cryptocurrency.

    Matches known symbols (BTC), pairs (BTCUSD, BTC-USD, ETH/EUR), known coin
    names anywhere in the string, and generic crypto keywords.
    """
    upper = normalize_identifier(identifier)
    lower = upper.lower()
    if not upper:
        return False
    if upper in CRYPTO_SYMBOL_TO_ID:
        return True
    if CRYPTO_PAIR_PATTERN.match(upper) or CRYPTO_SEPARATED_PAIR_PATTERN.match(upper):
        return True
    if any(name in lower for name in CRYPTO_NAMES):
        return True
    return bool(CRYPTO_KEYWORD_PATTERN.search(lower))


def extract_crypto_symbol(identifier: str) -> str:
    """BTC, BTCUSD, BTC-USD, BTC/EUR -> BTC."""
    upper = normalize_identifier(identifier)
    cleaned = re.sub(r"[-/](USD|EUR|USDT|BTC|ETH)$", "", upper)
    return re.sub(r"(USD|EUR|USDT)$", "", cleaned) or upper


_COINGECKO_IDS = frozenset(CRYPTO_SYMBOL_TO_ID.values())


def coingecko_id(identifier: str) -> Optional[str]:
    """Coingecko coin id for a symbol or pair; coin ids pass through."""
    known = CRYPTO_SYMBOL_TO_ID.get(extract_crypto_symbol(identifier))
    if known:
        return known
    lower = (identifier or "").strip().lower()
    return lower if lower in _COINGECKO_IDS else None


# =============================================================================
# SOURCE ELIGIBILITY
# =============================================================================


def yahoo_supports(identifier: str) -> bool:
    identifier = normalize_identifier(identifier)
    if is_crypto_symbol(identifier):
        return False
    if len(identifier) == 12:
        return identifier[:2] in YAHOO_ISIN_COUNTRIES
    if PLAIN_TICKER_PATTERN.match(identifier):
        return True
    return bool(SUFFIXED_SYMBOL_PATTERN.match(identifier))


def ing_supports(identifier: str) -> bool:
    identifier = normalize_identifier(identifier)
    return len(identifier) == 12 and identifier[:2] in ING_ISIN_COUNTRIES


def finnhub_supports(identifier: str) -> bool:
    identifier = normalize_identifier(identifier)
    if not identifier or is_crypto_symbol(identifier):
        return False
    return not identifier.endswith(FINNHUB_UNSUPPORTED_SUFFIXES)


# =============================================================================
# SYMBOL MAPPING
# =============================================================================


def isin_to_yahoo_symbol(isin: str) -> Optional[str]:
    """
    Map an ISIN to a Yahoo symbol.

    Known ISINs map to their listing; otherwise the country prefix picks an
    exchange suffix. US ISINs without a known mapping return None.
    """
    isin = normalize_identifier(isin)
    if len(isin) != 12:
        return None
    if isin in KNOWN_YAHOO_SYMBOLS:
        return KNOWN_YAHOO_SYMBOLS[isin]
    suffix = YAHOO_COUNTRY_SUFFIXES.get(isin[:2])
    return f"{isin}{suffix}" if suffix else None


def add_market_suffix(symbol: str, market: Optional[str] = None) -> str:
    """Append the Yahoo suffix for a market name unless the symbol has one."""
    if "." in symbol or not market:
        return symbol
    suffix = MARKET_SUFFIXES.get(market.upper())
    return f"{symbol}{suffix}" if suffix else symbol


def currency_for_symbol(symbol: str, default: str = "USD") -> str:
    """Infer listing currency from an exchange suffix."""
    symbol = normalize_identifier(symbol)
    if "." in symbol:
        suffix = symbol[symbol.rindex("."):]
        return SUFFIX_CURRENCIES.get(suffix, default)
    return default


# =============================================================================
# PRICE NORMALIZATION
# =============================================================================


def to_price(value: Any) -> Optional[Decimal]:
    """Parse an upstream number into a cent-rounded Decimal; None if unusable."""
    if value is None or isinstance(value, bool):
        return None
    try:
        price = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not price.is_finite():
        return None
    return price.quantize(CENT, rounding=ROUND_HALF_UP)


def extract_best_price(
    price: Any = None,
    bid: Any = None,
    ask: Any = None,
) -> Optional[Decimal]:
    """Pick last price, then bid/ask midpoint, then bid, then ask."""
    last = to_price(price)
    if last is not None and last > 0:
        return last

    bid_value = to_price(bid)
    ask_value = to_price(ask)
    has_bid = bid_value is not None and bid_value > 0
    has_ask = ask_value is not None and ask_value > 0
    if has_bid and has_ask:
        midpoint = (Decimal(str(bid)) + Decimal(str(ask))) / 2
        return midpoint.quantize(CENT, rounding=ROUND_HALF_UP)
    if has_bid:
        return bid_value
    if has_ask:
        return ask_value
    return None


# =============================================================================
# DERIVATIVES
# =============================================================================


@dataclass
class DerivativeInfo:
    """Derivative attributes recognised from an instrument header."""

    is_derivative: bool = False
    product_type: Optional[str] = None
    kind: Optional[DerivativeKind] = None
    option_type: Optional[str] = None
    leverage: Optional[Decimal] = None
    underlying: Optional[str] = None
    knock_out: Optional[Decimal] = None
    strike: Optional[Decimal] = None


def is_likely_derivative(isin: str) -> bool:
    # German issuers put derivatives under the DE000 prefix
    return normalize_identifier(isin).startswith("DE000")


def extract_derivative_info(data: dict) -> DerivativeInfo:
    """
    Recognise derivative products from an instrument header payload.

    The product family comes from keywords in the name; leverage from
    patterns such as "5x" or "Hebel 5". Explicit payload fields override
    what was parsed from the name, and leverage above 1 always marks a
    derivative.
    """
    info = DerivativeInfo()
    name = (data.get("name") or "").lower()

    if "turbo" in name or "knock-out" in name or "knockout" in name:
        info.is_derivative = True
        info.kind = DerivativeKind.KNOCK_OUT
        info.product_type = "Turbo" if "turbo" in name else "Knock-Out"
    elif "optionsschein" in name or "option" in name:
        info.is_derivative = True
        info.product_type = "Optionsschein"
        if "call" in name:
            info.option_type = "call"
            info.kind = DerivativeKind.CALL
        if "put" in name:
            info.option_type = "put"
            info.kind = DerivativeKind.PUT
    elif "factor" in name or "faktor" in name:
        info.is_derivative = True
        info.kind = DerivativeKind.FACTOR
        info.product_type = "Faktor-Zertifikat"
    elif "zertifikat" in name or "certificate" in name:
        info.is_derivative = True
        info.kind = DerivativeKind.CERTIFICATE
        info.product_type = "Zertifikat"

    match = LEVERAGE_PATTERN.search(name)
    if match:
        info.leverage = Decimal((match.group(1) or match.group(2)).replace(",", "."))

    if data.get("leverage"):
        info.leverage = Decimal(str(data["leverage"]))
    if data.get("productType"):
        info.product_type = data["productType"]
    if data.get("underlying"):
        info.underlying = data["underlying"]
    if data.get("knockOut"):
        info.knock_out = Decimal(str(data["knockOut"]))
    if data.get("strike"):
        info.strike = Decimal(str(data["strike"]))
    if data.get("optionType"):
        info.option_type = data["optionType"]

    if info.leverage is not None and info.leverage > 1:
        info.is_derivative = True

    return info
