"""Tests for subscription intents and form-input parsing."""

import pytest

from app.streaming.intents import (
    DEFAULT_OHLC_DEPTH,
    MalformedIntentError,
    MarketBookIntent,
    OhlcEntry,
    OhlcIntent,
    OrdersIntent,
    PricesIntent,
    normalize_symbols,
    parse_ohlc,
)
from app.streaming.models import ChannelKind


class TestSymbolIntents:
    """Prices and market-book intents."""

    def test_prices_trim_uppercase_and_drop_empties(self):
        """Test that symbols are trimmed, uppercased, and empties dropped in order."""
        intent = PricesIntent.from_text(" eurusd , , gbpusd ")
        assert intent.symbols == ("EURUSD", "GBPUSD")

    def test_duplicates_pass_through(self):
        """Test that duplicate symbols are not deduplicated."""
        intent = PricesIntent.from_text("eurusd,EURUSD")
        assert intent.symbols == ("EURUSD", "EURUSD")

    def test_empty_text_gives_empty_intent(self):
        """Test that empty input yields an empty symbol list."""
        assert PricesIntent.from_text("").symbols == ()
        assert PricesIntent.from_text(" , ,").symbols == ()

    def test_from_symbols(self):
        """Test building from an explicit list."""
        intent = MarketBookIntent.from_symbols(["usdjpy ", "", " xauusd"])
        assert intent.symbols == ("USDJPY", "XAUUSD")

    def test_market_book_from_text(self):
        """Test market-book parsing matches prices parsing."""
        assert MarketBookIntent.from_text("eurusd, usdjpy").symbols == ("EURUSD", "USDJPY")

    def test_bodies(self):
        """Test the control-plane request bodies."""
        assert PricesIntent(("EURUSD",)).to_body() == {"symbols": ["EURUSD"]}
        assert MarketBookIntent(()).to_body() == {"symbols": []}

    def test_kinds(self):
        """Test that each intent knows its channel."""
        assert PricesIntent().kind is ChannelKind.PRICES
        assert MarketBookIntent().kind is ChannelKind.MARKET_BOOK
        assert OhlcIntent().kind is ChannelKind.OHLC
        assert OrdersIntent().kind is ChannelKind.ORDERS

    def test_normalize_symbols_keeps_order(self):
        """Test that normalization preserves input order."""
        assert normalize_symbols(["b", "a", "c"]) == ("B", "A", "C")


class TestOhlcParsing:
    """Parsing of ``timeframe,symbol,depth|...`` input."""

    def test_two_entries(self):
        """Test the canonical example."""
        intent = OhlcIntent.from_text("M1,EURUSD,5|M5,GBPUSD,10")
        assert intent.to_body() == {
            "ohlc": [
                {"time_frame": "M1", "symbol": "EURUSD", "depth": 5},
                {"time_frame": "M5", "symbol": "GBPUSD", "depth": 10},
            ]
        }

    def test_missing_depth_field_is_malformed(self):
        """Test that a two-field entry rejects the submission."""
        with pytest.raises(MalformedIntentError):
            parse_ohlc("M1,EURUSD")

    def test_non_numeric_depth_defaults(self):
        """Test that a non-numeric depth becomes the default."""
        assert parse_ohlc("M1,EURUSD,abc") == (OhlcEntry("M1", "EURUSD", DEFAULT_OHLC_DEPTH),)

    def test_leading_integer_depth(self):
        """Test that a depth with trailing junk keeps its leading digits."""
        assert parse_ohlc("M1,EURUSD,10abc|M5,GBPUSD,12.7|H1,USDJPY,+8") == (
            OhlcEntry("M1", "EURUSD", 10),
            OhlcEntry("M5", "GBPUSD", 12),
            OhlcEntry("H1", "USDJPY", 8),
        )

    def test_empty_depth_defaults(self):
        """Test that an empty depth field becomes the default."""
        assert parse_ohlc("M1,EURUSD,")[0].depth == 5

    def test_non_positive_depth_defaults(self):
        """Test that zero and negative depths become the default."""
        assert parse_ohlc("M1,EURUSD,0|H1,GBPUSD,-3") == (
            OhlcEntry("M1", "EURUSD", 5),
            OhlcEntry("H1", "GBPUSD", 5),
        )

    def test_symbol_uppercased_and_fields_trimmed(self):
        """Test that fields are trimmed and the symbol uppercased."""
        assert parse_ohlc(" H1 , usdjpy , 20 ") == (OhlcEntry("H1", "USDJPY", 20),)

    def test_empty_entries_ignored(self):
        """Test that empty entries between delimiters are skipped."""
        assert len(parse_ohlc("|M1,EURUSD,5||  |M5,GBPUSD,10|")) == 2

    def test_empty_input(self):
        """Test that empty input yields no entries."""
        assert parse_ohlc("") == ()

    def test_one_bad_entry_rejects_all(self):
        """Test all-or-nothing parsing."""
        with pytest.raises(MalformedIntentError, match="#2"):
            parse_ohlc("M1,EURUSD,5|M5,GBPUSD|H1,USDJPY,3")

    def test_too_many_fields_is_malformed(self):
        """Test that a four-field entry is rejected."""
        with pytest.raises(MalformedIntentError):
            parse_ohlc("M1,EURUSD,5,extra")

    def test_blank_symbol_is_malformed(self):
        """Test that an entry without a symbol is rejected."""
        with pytest.raises(MalformedIntentError):
            parse_ohlc("M1, ,5")

    def test_malformed_error_is_value_error(self):
        """Test that callers can catch ValueError."""
        with pytest.raises(ValueError):
            OhlcIntent.from_text("M1")

    def test_from_entries_defaults_depth(self):
        """Test that tuples without a numeric depth get the default."""
        intent = OhlcIntent.from_entries([("M1", "eurusd"), ("M5", "gbpusd", None), ("H1", "usdjpy", "7")])
        assert intent.entries == (
            OhlcEntry("M1", "EURUSD", 5),
            OhlcEntry("M5", "GBPUSD", 5),
            OhlcEntry("H1", "USDJPY", 7),
        )

    def test_from_entries_rejects_bad_tuple(self):
        """Test that a one-element tuple is rejected."""
        with pytest.raises(MalformedIntentError):
            OhlcIntent.from_entries([("M1",)])


class TestOrdersIntent:
    """Order-event toggle."""

    def test_stringified_body_by_default(self):
        """Test that the bridge's stringified boolean is the default wire format."""
        assert OrdersIntent(enabled=True).to_body() == {"enabled": "true"}
        assert OrdersIntent(enabled=False).to_body() == {"enabled": "false"}

    def test_boolean_body(self):
        """Test the JSON boolean wire format."""
        assert OrdersIntent(enabled=False).to_body(stringify=False) == {"enabled": False}
