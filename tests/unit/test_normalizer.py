"""
Unit Tests for the Request Normalizer

These tests verify that:
- Order invariants are enforced per order type, naming the offending field
- Canonical values become venue spellings, including composition rules
- Decimal strings keep their precision
- exchange_specific_params are merged last
- Lookup, listing and candle parameters are validated per venue

Run with:
    pytest tests/unit/test_normalizer.py -v
"""

import pytest
from pydantic import ValidationError

from core.enums import OrderSide, OrderType, TimeInForce
from core.errors import RequestValidationError
from core.normalizer import (
    from_venue_symbol,
    normalize,
    normalize_candle_query,
    normalize_list_filter,
    normalize_order_ref,
    stop_direction,
    to_venue_symbol,
)
from core.schemas import NormalizedOrderRequest, OrderListFilter, OrderRef


def make_request(**overrides):
    fields = {
        "symbol": "BTC-USDT",
        "side": OrderSide.BUY,
        "type": OrderType.LIMIT,
        "time_in_force": TimeInForce.GTC,
        "quantity": "0.0010",
        "price": "50000.00",
    }
    fields.update(overrides)
    return NormalizedOrderRequest(**fields)


# ============================================
# Symbols
# ============================================

class TestSymbols:
    """Neutral BASE-QUOTE <-> venue spelling"""

    def test_to_binance(self):
        assert to_venue_symbol("BTC-USDT", "binance") == "BTCUSDT"

    def test_to_coinbase(self):
        assert to_venue_symbol("btc-usd", "coinbase") == "BTC-USD"

    def test_malformed_symbol(self):
        with pytest.raises(RequestValidationError) as exc_info:
            to_venue_symbol("BTCUSDT", "binance")
        assert exc_info.value.field == "symbol"

    def test_binance_split_uses_longest_quote(self):
        assert from_venue_symbol("BTCFDUSD", "binance") == "BTC-FDUSD"
        assert from_venue_symbol("ETHBTC", "binance") == "ETH-BTC"

    def test_binance_split_prefers_matching_hint(self):
        assert from_venue_symbol("1000SATSUSDT", "binance", hint="1000SATS-USDT") == "1000SATS-USDT"

    def test_binance_split_ignores_mismatched_hint(self):
        assert from_venue_symbol("ETHUSDT", "binance", hint="BTC-USDT") == "ETH-USDT"

    def test_unsplittable_binance_symbol(self):
        with pytest.raises(ValueError):
            from_venue_symbol("XYZ", "binance")

    def test_coinbase_product_passes_through(self):
        assert from_venue_symbol("ETH-USD", "coinbase") == "ETH-USD"


# ============================================
# Order Invariants
# ============================================

class TestOrderInvariants:
    """Cross-field rules, enforced before any venue mapping"""

    def test_market_needs_exactly_one_amount(self):
        request = make_request(
            type=OrderType.MARKET, time_in_force=None, price=None, quote_order_qty="100"
        )
        with pytest.raises(RequestValidationError) as exc_info:
            normalize(request, "binance")
        assert exc_info.value.field == "quantity"

    def test_market_needs_some_amount(self):
        request = make_request(type=OrderType.MARKET, time_in_force=None, price=None, quantity=None)
        with pytest.raises(RequestValidationError):
            normalize(request, "binance")

    def test_market_rejects_price(self):
        request = make_request(type=OrderType.MARKET, time_in_force=None)
        with pytest.raises(RequestValidationError) as exc_info:
            normalize(request, "binance")
        assert exc_info.value.field == "price"

    def test_market_rejects_time_in_force(self):
        request = make_request(type=OrderType.MARKET, price=None)
        with pytest.raises(RequestValidationError) as exc_info:
            normalize(request, "coinbase")
        assert exc_info.value.field == "time_in_force"

    def test_limit_requires_price(self):
        with pytest.raises(RequestValidationError) as exc_info:
            normalize(make_request(price=None), "binance")
        assert exc_info.value.field == "price"

    def test_limit_requires_time_in_force(self):
        with pytest.raises(RequestValidationError) as exc_info:
            normalize(make_request(time_in_force=None), "binance")
        assert exc_info.value.field == "time_in_force"

    def test_stop_loss_limit_requires_stop_price(self):
        with pytest.raises(RequestValidationError) as exc_info:
            normalize(make_request(type=OrderType.STOP_LOSS_LIMIT), "binance")
        assert exc_info.value.field == "stop_price"

    def test_limit_rejects_stop_price(self):
        with pytest.raises(RequestValidationError) as exc_info:
            normalize(make_request(stop_price="49000"), "binance")
        assert exc_info.value.field == "stop_price"

    def test_stop_loss_rejects_price(self):
        request = make_request(type=OrderType.STOP_LOSS, time_in_force=None, stop_price="49000")
        with pytest.raises(RequestValidationError) as exc_info:
            normalize(request, "binance")
        assert exc_info.value.field == "price"

    def test_quote_amount_only_for_market(self):
        with pytest.raises(RequestValidationError) as exc_info:
            normalize(make_request(quote_order_qty="100"), "binance")
        assert exc_info.value.field == "quote_order_qty"

    def test_limit_maker_rejects_ioc(self):
        request = make_request(type=OrderType.LIMIT_MAKER, time_in_force=TimeInForce.IOC)
        with pytest.raises(RequestValidationError) as exc_info:
            normalize(request, "coinbase")
        assert exc_info.value.field == "time_in_force"

    def test_zero_quantity_rejected(self):
        with pytest.raises(RequestValidationError) as exc_info:
            normalize(make_request(quantity="0"), "binance")
        assert exc_info.value.field == "quantity"

    def test_garbage_price_rejected(self):
        with pytest.raises(RequestValidationError) as exc_info:
            normalize(make_request(price="fifty"), "coinbase")
        assert exc_info.value.field == "price"

    def test_float_amounts_rejected_at_construction(self):
        with pytest.raises(ValidationError):
            make_request(quantity=0.001)


# ============================================
# Venue Mapping
# ============================================

class TestBinanceMapping:
    """Canonical request -> Binance parameters"""

    def test_limit_order(self):
        params = normalize(make_request(client_order_id="my-order-1"), "binance")
        assert params == {
            "symbol": "BTCUSDT",
            "side": "BUY",
            "type": "LIMIT",
            "timeInForce": "GTC",
            "quantity": "0.0010",
            "price": "50000.00",
            "clientOrderId": "my-order-1",
        }
        assert list(params) == ["symbol", "side", "type", "timeInForce", "quantity", "price", "clientOrderId"]

    def test_precision_preserved_and_exponent_expanded(self):
        params = normalize(make_request(quantity="1E-3", price="0.00001000"), "binance")
        assert params["quantity"] == "0.001"
        assert params["price"] == "0.00001000"

    def test_gtx_points_to_limit_maker(self):
        with pytest.raises(RequestValidationError) as exc_info:
            normalize(make_request(time_in_force=TimeInForce.GTX), "binance")
        assert exc_info.value.field == "time_in_force"
        assert "LIMIT_MAKER" in exc_info.value.reason

    def test_limit_maker_sends_no_time_in_force(self):
        params = normalize(make_request(type=OrderType.LIMIT_MAKER, time_in_force=None), "binance")
        assert params["type"] == "LIMIT_MAKER"
        assert "timeInForce" not in params
        assert "postOnly" not in params

    def test_stop_loss_has_no_direction(self):
        request = make_request(
            type=OrderType.STOP_LOSS, side=OrderSide.SELL, time_in_force=None, price=None, stop_price="45000"
        )
        params = normalize(request, "binance")
        assert params["stopPrice"] == "45000"
        assert "stopDirection" not in params

    def test_leverage_rejected(self):
        with pytest.raises(RequestValidationError) as exc_info:
            normalize(make_request(leverage="3"), "binance")
        assert exc_info.value.field == "leverage"

    def test_quote_sized_market_order(self):
        request = make_request(
            type=OrderType.MARKET, time_in_force=None, price=None, quantity=None, quote_order_qty="25.50"
        )
        params = normalize(request, "binance")
        assert params["quoteOrderQty"] == "25.50"
        assert "quantity" not in params


class TestCoinbaseMapping:
    """Canonical request -> Coinbase parameters, including compositions"""

    def test_limit_order(self):
        params = normalize(make_request(symbol="ETH-USD"), "coinbase")
        assert params["symbol"] == "ETH-USD"
        assert params["timeInForce"] == "GOOD_UNTIL_CANCELLED"
        assert "postOnly" not in params

    def test_limit_maker_composes_post_only(self):
        params = normalize(make_request(type=OrderType.LIMIT_MAKER, time_in_force=None), "coinbase")
        assert params["type"] == "LIMIT"
        assert params["timeInForce"] == "GOOD_UNTIL_CANCELLED"
        assert params["postOnly"] is True

    def test_gtx_composes_post_only(self):
        params = normalize(make_request(time_in_force=TimeInForce.GTX), "coinbase")
        assert params["timeInForce"] == "GOOD_UNTIL_CANCELLED"
        assert params["postOnly"] is True

    def test_stop_loss_limit_direction(self):
        request = make_request(type=OrderType.STOP_LOSS_LIMIT, side=OrderSide.SELL, stop_price="48000")
        params = normalize(request, "coinbase")
        assert params["type"] == "STOP_LIMIT"
        assert params["stopDirection"] == "DOWN"

    def test_take_profit_limit_inverts_direction(self):
        request = make_request(type=OrderType.TAKE_PROFIT_LIMIT, side=OrderSide.SELL, stop_price="52000")
        params = normalize(request, "coinbase")
        assert params["type"] == "STOP_LIMIT"
        assert params["stopDirection"] == "UP"

    def test_stop_market_unsupported(self):
        request = make_request(type=OrderType.STOP_LOSS, time_in_force=None, price=None, stop_price="48000")
        with pytest.raises(RequestValidationError) as exc_info:
            normalize(request, "coinbase")
        assert exc_info.value.field == "type"

    def test_leverage_passed_through(self):
        params = normalize(make_request(leverage="2.5"), "coinbase")
        assert params["leverage"] == "2.5"

    def test_exchange_specific_params_merged_last(self):
        request = make_request(
            exchange_specific_params={"retail_portfolio_id": "p-1", "timeInForce": "FILL_OR_KILL"}
        )
        params = normalize(request, "coinbase")
        assert params["timeInForce"] == "FILL_OR_KILL"
        assert list(params)[-1] == "retail_portfolio_id"


class TestStopDirection:
    """Trigger direction of stop orders"""

    def test_directions(self):
        assert stop_direction(OrderSide.SELL) == "DOWN"
        assert stop_direction(OrderSide.BUY) == "UP"
        assert stop_direction(OrderSide.SELL, invert=True) == "UP"
        assert stop_direction(OrderSide.BUY, invert=True) == "DOWN"


# ============================================
# Lookups, Listings, Candles
# ============================================

class TestOrderRefs:
    """Order lookup parameters"""

    def test_binance_requires_symbol(self):
        with pytest.raises(RequestValidationError) as exc_info:
            normalize_order_ref(OrderRef(venue_order_id="1"), "binance")
        assert exc_info.value.field == "symbol"

    def test_binance_by_order_id(self):
        params = normalize_order_ref(OrderRef(symbol="BTC-USDT", venue_order_id=12345), "binance")
        assert params == {"symbol": "BTCUSDT", "orderId": "12345"}

    def test_coinbase_requires_order_id(self):
        with pytest.raises(RequestValidationError) as exc_info:
            normalize_order_ref(OrderRef(client_order_id="abc"), "coinbase")
        assert exc_info.value.field == "venue_order_id"

    def test_exactly_one_id(self):
        with pytest.raises(ValidationError):
            OrderRef(symbol="BTC-USDT", venue_order_id="1", client_order_id="abc")


class TestListFilters:
    """Order listing parameters"""

    def test_default_limit(self):
        params = normalize_list_filter(OrderListFilter(symbol="BTC-USDT"), "binance", default_limit=50)
        assert params == {"openOnly": False, "symbol": "BTCUSDT", "limit": 50}

    def test_binance_history_requires_symbol(self):
        with pytest.raises(RequestValidationError) as exc_info:
            normalize_list_filter(OrderListFilter(), "binance")
        assert exc_info.value.field == "symbol"

    def test_binance_open_orders_without_symbol(self):
        params = normalize_list_filter(OrderListFilter(open_only=True), "binance")
        assert params["openOnly"] is True
        assert "symbol" not in params

    def test_binance_cursor_must_be_numeric(self):
        with pytest.raises(RequestValidationError) as exc_info:
            normalize_list_filter(OrderListFilter(symbol="BTC-USDT"), "binance", cursor="abc")
        assert exc_info.value.field == "cursor"

    def test_coinbase_cursor_is_opaque(self):
        params = normalize_list_filter(OrderListFilter(), "coinbase", cursor="opaque==")
        assert params["cursor"] == "opaque=="

    def test_time_window_order(self):
        order_filter = OrderListFilter(symbol="BTC-USDT", start_time_millis=2000, end_time_millis=1000)
        with pytest.raises(RequestValidationError) as exc_info:
            normalize_list_filter(order_filter, "coinbase")
        assert exc_info.value.field == "start_time_millis"


class TestCandleQueries:
    """Candle query parameters"""

    def test_binance_candles(self):
        params = normalize_candle_query("BTC-USDT", "1h", "binance", limit=10)
        assert params == {"symbol": "BTCUSDT", "interval": "1h", "limit": 10}

    def test_coinbase_granularity(self):
        params = normalize_candle_query("BTC-USD", "15m", "coinbase", start_time_millis=0)
        assert params["interval"] == "FIFTEEN_MINUTE"
        assert params["startTime"] == 0

    def test_unsupported_interval(self):
        with pytest.raises(RequestValidationError) as exc_info:
            normalize_candle_query("BTC-USD", "3m", "coinbase")
        assert exc_info.value.field == "interval"

    def test_non_positive_limit(self):
        with pytest.raises(RequestValidationError):
            normalize_candle_query("BTC-USDT", "1m", "binance", limit=0)
