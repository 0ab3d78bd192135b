"""
Unit tests for identifier heuristics.

Tests cover:
- ISIN / ticker / crypto classification
- Source eligibility
- ISIN -> Yahoo symbol mapping and currency inference
- Best-price extraction
- Derivative recognition
"""

import pytest
from decimal import Decimal

from tradefolio.domain.models import DerivativeKind
from tradefolio.providers import identifiers as ids


# =============================================================================
# CLASSIFICATION
# =============================================================================


class TestClassification:
    """Tests for identifier classification."""

    @pytest.mark.parametrize("value", ["US0378331005", "de0007164600", " DE000BASF111 "])
    def test_isin(self, value):
        assert ids.is_isin(value) is True

    @pytest.mark.parametrize("value", ["AAPL", "US037833100", "US037833100X", ""])
    def test_not_isin(self, value):
        assert ids.is_isin(value) is False

    def test_isin_country(self):
        assert ids.isin_country("de0007164600") == "DE"
        assert ids.isin_country("AAPL") is None

    @pytest.mark.parametrize(
        "value",
        ["BTC", "eth", "BTCUSD", "BTC-USD", "ETH/EUR", "Bitcoin Cash", "some defi token"],
    )
    def test_crypto(self, value):
        assert ids.is_crypto_symbol(value) is True

    @pytest.mark.parametrize("value", ["AAPL", "SAP.DE", "US0378331005", ""])
    def test_not_crypto(self, value):
        assert ids.is_crypto_symbol(value) is False

    @pytest.mark.parametrize(
        "value,expected",
        [("BTC", "BTC"), ("BTCUSD", "BTC"), ("BTC-USD", "BTC"), ("eth/eur", "ETH")],
    )
    def test_extract_crypto_symbol(self, value, expected):
        assert ids.extract_crypto_symbol(value) == expected

    def test_coingecko_id(self):
        assert ids.coingecko_id("BTC-EUR") == "bitcoin"
        assert ids.coingecko_id("matic") == "matic-network"
        assert ids.coingecko_id("ethereum") == "ethereum"
        assert ids.coingecko_id("NOTACOIN") is None


# =============================================================================
# ELIGIBILITY
# =============================================================================


class TestEligibility:
    """Tests for per-source support checks."""

    @pytest.mark.parametrize("value", ["AAPL", "SAP.DE", "US0378331005", "DE0007164600"])
    def test_yahoo_supports(self, value):
        assert ids.yahoo_supports(value) is True

    @pytest.mark.parametrize("value", ["BTC", "AT0000937503", "TOOLONGTICKER"])
    def test_yahoo_rejects(self, value):
        assert ids.yahoo_supports(value) is False

    def test_ing_supports_european_isins_only(self):
        assert ids.ing_supports("DE0007164600") is True
        assert ids.ing_supports("AT0000937503") is True
        assert ids.ing_supports("US0378331005") is False
        assert ids.ing_supports("SAP") is False

    def test_finnhub_supports(self):
        assert ids.finnhub_supports("AAPL") is True
        assert ids.finnhub_supports("US0378331005") is True
        assert ids.finnhub_supports("RELIANCE.IN") is False
        assert ids.finnhub_supports("BTC") is False
        assert ids.finnhub_supports("") is False


# =============================================================================
# MAPPING
# =============================================================================


class TestMapping:
    """Tests for symbol mapping and currency inference."""

    def test_known_isin(self):
        assert ids.isin_to_yahoo_symbol("DE0007164600") == "SAP.DE"
        assert ids.isin_to_yahoo_symbol("US0378331005") == "AAPL"

    def test_unknown_isin_uses_country_suffix(self):
        assert ids.isin_to_yahoo_symbol("FR0000121014") == "FR0000121014.PA"

    def test_unknown_us_isin_has_no_mapping(self):
        assert ids.isin_to_yahoo_symbol("US9999999999") is None
        assert ids.isin_to_yahoo_symbol("AAPL") is None

    def test_add_market_suffix(self):
        assert ids.add_market_suffix("SAP", "xetra") == "SAP.DE"
        assert ids.add_market_suffix("SAP.DE", "LSE") == "SAP.DE"
        assert ids.add_market_suffix("SAP", None) == "SAP"
        assert ids.add_market_suffix("SAP", "NOWHERE") == "SAP"

    @pytest.mark.parametrize(
        "symbol,expected",
        [
            ("SAP.DE", "EUR"),
            ("VOD.L", "GBP"),
            ("NESN.SW", "CHF"),
            ("SHOP.TO", "CAD"),
            ("7203.T", "JPY"),
            ("AAPL", "USD"),
            ("XYZ.QQ", "USD"),
        ],
    )
    def test_currency_for_symbol(self, symbol, expected):
        assert ids.currency_for_symbol(symbol) == expected


# =============================================================================
# PRICES
# =============================================================================


class TestPrices:
    """Tests for price parsing."""

    def test_to_price_rounds_to_cents(self):
        assert ids.to_price(185.505) == Decimal("185.51")
        assert ids.to_price("12") == Decimal("12.00")

    @pytest.mark.parametrize("value", [None, True, "n/a", float("nan")])
    def test_to_price_rejects(self, value):
        assert ids.to_price(value) is None

    def test_best_price_prefers_last(self):
        assert ids.extract_best_price(10.5, 10, 11) == Decimal("10.50")

    def test_best_price_midpoint(self):
        assert ids.extract_best_price(None, 10.0, 10.05) == Decimal("10.03")

    def test_best_price_single_side(self):
        assert ids.extract_best_price(0, 9.99, None) == Decimal("9.99")
        assert ids.extract_best_price(None, None, 10.01) == Decimal("10.01")

    def test_best_price_none(self):
        assert ids.extract_best_price() is None
        assert ids.extract_best_price(0, 0, 0) is None


# =============================================================================
# DERIVATIVES
# =============================================================================


class TestDerivatives:
    """Tests for derivative recognition."""

    def test_likely_derivative_prefix(self):
        assert ids.is_likely_derivative("DE000HG8ABC1") is True
        assert ids.is_likely_derivative("US0378331005") is False

    def test_turbo_with_leverage(self):
        info = ids.extract_derivative_info({"name": "Turbo Long DAX Hebel 5,5"})

        assert info.is_derivative is True
        assert info.kind == DerivativeKind.KNOCK_OUT
        assert info.product_type == "Turbo"
        assert info.leverage == Decimal("5.5")

    def test_put_warrant(self):
        info = ids.extract_derivative_info({"name": "Optionsschein Put auf SAP"})

        assert info.kind == DerivativeKind.PUT
        assert info.option_type == "put"

    def test_payload_fields_override_name(self):
        info = ids.extract_derivative_info({
            "name": "Faktor 3x Long Gold",
            "leverage": 4,
            "underlying": "Gold",
            "knockOut": "1800.5",
        })

        assert info.kind == DerivativeKind.FACTOR
        assert info.leverage == Decimal("4")
        assert info.underlying == "Gold"
        assert info.knock_out == Decimal("1800.5")

    def test_leverage_alone_marks_derivative(self):
        info = ids.extract_derivative_info({"name": "Something", "leverage": 2})

        assert info.is_derivative is True
        assert info.kind is None

    def test_plain_share(self):
        info = ids.extract_derivative_info({"name": "SAP SE"})

        assert info.is_derivative is False
        assert info.leverage is None
