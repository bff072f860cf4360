"""
Unit Tests for the Coinbase Advanced Trade Adapter

These tests verify that the CoinbaseAdapter:
- Encodes type / time in force / amounts into order_configuration
- Decodes order_configuration back, including post-only and take-profit
- Signs timestamp + method + path + body with the HMAC key scheme
- Handles create acknowledgments, including success=true with a failure_reason
- Prefers a non-empty nested error_response over flat error fields
- Reports batch_cancel acknowledgments as order ids to re-query

Run with:
    pytest tests/unit/test_coinbase_adapter.py -v
"""

import hashlib
import hmac
import json

import pytest

from core.enums import OrderSide, OrderStatus, OrderType, TimeInForce
from core.errors import MalformedResponseError, RequestValidationError, VenueErrorPayload
from core.normalizer import normalize
from core.response_normalizer import build_order_result
from core.schemas import NormalizedOrderRequest, VenueCredentials
from core.signer import Signer
from core.venue_adapter import SYMBOL_HINT
from exchanges.coinbase import CoinbaseAdapter


# ============================================
# Fixtures
# ============================================

@pytest.fixture
def adapter():
    return CoinbaseAdapter()


def order_params(**overrides):
    fields = {
        "symbol": "BTC-USD",
        "side": OrderSide.BUY,
        "type": OrderType.LIMIT,
        "time_in_force": TimeInForce.GTC,
        "quantity": "0.001",
        "price": "50000",
        "client_order_id": "cid-1",
    }
    fields.update(overrides)
    return normalize(NormalizedOrderRequest(**fields), "coinbase")


# ============================================
# Order Configuration
# ============================================

class TestOrderConfiguration:
    """Canonical parameters -> order_configuration"""

    def test_limit_gtc(self, adapter):
        request = adapter.build_request("submit_order", order_params())
        assert request.method == "POST"
        assert request.path == "/api/v3/brokerage/orders"
        assert request.body_params == {
            "client_order_id": "cid-1",
            "product_id": "BTC-USD",
            "side": "BUY",
            "order_configuration": {
                "limit_limit_gtc": {"base_size": "0.001", "limit_price": "50000", "post_only": False},
            },
        }

    def test_limit_maker_is_post_only(self, adapter):
        params = order_params(type=OrderType.LIMIT_MAKER, time_in_force=None)
        configuration = adapter.order_configuration(params)
        assert configuration["limit_limit_gtc"]["post_only"] is True

    def test_limit_ioc(self, adapter):
        configuration = adapter.order_configuration(order_params(time_in_force=TimeInForce.IOC))
        assert list(configuration) == ["sor_limit_ioc"]

    def test_limit_fok(self, adapter):
        configuration = adapter.order_configuration(order_params(time_in_force=TimeInForce.FOK))
        assert configuration == {"limit_limit_fok": {"base_size": "0.001", "limit_price": "50000"}}

    def test_market_quote_size(self, adapter):
        params = order_params(type=OrderType.MARKET, time_in_force=None, price=None, quantity=None, quote_order_qty="25")
        assert adapter.order_configuration(params) == {"market_market_ioc": {"quote_size": "25"}}

    def test_stop_loss_limit(self, adapter):
        params = order_params(type=OrderType.STOP_LOSS_LIMIT, side=OrderSide.SELL, stop_price="48000")
        assert adapter.order_configuration(params) == {
            "stop_limit_stop_limit_gtc": {
                "base_size": "0.001",
                "limit_price": "50000",
                "stop_price": "48000",
                "stop_direction": "STOP_DIRECTION_STOP_DOWN",
            }
        }

    def test_post_only_requires_gtc(self, adapter):
        params = {**order_params(time_in_force=TimeInForce.FOK), "postOnly": True}
        with pytest.raises(RequestValidationError):
            adapter.order_configuration(params)

    def test_stop_limit_needs_gtc(self, adapter):
        params = order_params(type=OrderType.STOP_LOSS_LIMIT, time_in_force=TimeInForce.IOC, stop_price="48000")
        with pytest.raises(RequestValidationError) as exc_info:
            adapter.order_configuration(params)
        assert exc_info.value.field == "time_in_force"

    def test_generated_client_order_id(self, adapter):
        params = {k: v for k, v in order_params().items() if k != "clientOrderId"}
        request = adapter.build_request("submit_order", params)
        assert len(request.body_params["client_order_id"]) == 36

    def test_extra_params_go_in_body(self, adapter):
        params = order_params(exchange_specific_params={"retail_portfolio_id": "p-1"})
        request = adapter.build_request("submit_order", params)
        assert request.body_params["retail_portfolio_id"] == "p-1"


class TestDecodeConfiguration:
    """order_configuration -> canonical type and time in force"""

    def test_post_only_is_limit_maker(self, adapter):
        fields = adapter.decode_configuration(
            {"limit_limit_gtc": {"base_size": "1", "limit_price": "10", "post_only": True}}, OrderSide.BUY
        )
        assert fields["type"] is OrderType.LIMIT_MAKER
        assert fields["time_in_force"] is TimeInForce.GTC

    def test_inverted_stop_is_take_profit(self, adapter):
        configuration = {"stop_limit_stop_limit_gtc": {
            "base_size": "1", "limit_price": "60000", "stop_price": "59000",
            "stop_direction": "STOP_DIRECTION_STOP_UP",
        }}
        fields = adapter.decode_configuration(configuration, OrderSide.SELL)
        assert fields["type"] is OrderType.TAKE_PROFIT_LIMIT
        assert fields["stop_price"] == "59000"

    def test_unknown_configuration(self, adapter):
        with pytest.raises(MalformedResponseError):
            adapter.decode_configuration({"twap_limit_gtd": {}}, OrderSide.BUY)


# ============================================
# Signing
# ============================================

class TestSigning:
    """HMAC key scheme headers"""

    def test_headers_and_prehash(self, adapter):
        credentials = VenueCredentials(api_key="cb-key", secret_key="cb-secret", passphrase="phrase")
        signer = Signer(clock=lambda: 1700000000123)
        request = adapter.build_request("submit_order", order_params())

        signed = adapter.sign_request(request, credentials, signer)

        body = json.dumps(request.body_params, separators=(",", ":"))
        prehash = f"1700000000POST/api/v3/brokerage/orders{body}"
        expected = hmac.new(b"cb-secret", prehash.encode(), hashlib.sha256).hexdigest()

        assert signed.headers["CB-ACCESS-KEY"] == "cb-key"
        assert signed.headers["CB-ACCESS-TIMESTAMP"] == "1700000000"
        assert signed.headers["CB-ACCESS-SIGN"] == expected
        assert signed.headers["CB-ACCESS-PASSPHRASE"] == "phrase"
        assert signed.encoded_body == body

    def test_no_passphrase_header_without_passphrase(self, adapter):
        credentials = VenueCredentials(api_key="cb-key", secret_key="cb-secret")
        request = adapter.build_request("balances", {})
        signed = adapter.sign_request(request, credentials, Signer())
        assert "CB-ACCESS-PASSPHRASE" not in signed.headers


# ============================================
# Response Parsing
# ============================================

QUERIED_ORDER = {
    "order": {
        "order_id": "0000-000000-000000",
        "product_id": "BTC-USD",
        "side": "BUY",
        "client_order_id": "cid-1",
        "status": "OPEN",
        "order_configuration": {
            "limit_limit_gtc": {"base_size": "0.002", "limit_price": "50000", "post_only": False},
        },
        "filled_size": "0.001",
        "filled_value": "50",
        "created_time": "2024-01-01T12:00:00.250Z",
        "last_fill_time": "2024-01-01T12:00:01Z",
    }
}


class TestParseOrders:
    """Get-order and create-acknowledgment shapes"""

    def test_queried_order_partially_filled(self, adapter):
        result = build_order_result(adapter.parse_order_response(QUERIED_ORDER))
        assert result.venue_order_id == "0000-000000-000000"
        assert result.status is OrderStatus.PARTIALLY_FILLED
        assert result.type is OrderType.LIMIT
        assert result.orig_quantity == "0.002"
        assert result.executed_quantity == "0.001"
        assert result.created_at_millis == 1704110400250
        assert result.updated_at_millis == 1704110401000
        assert result.fills == ()

    def test_open_without_fills_is_new(self, adapter):
        raw = {"order": {**QUERIED_ORDER["order"], "filled_size": "0"}}
        result = build_order_result(adapter.parse_order_response(raw))
        assert result.status is OrderStatus.NEW

    def test_success_wins_over_failure_reason(self, adapter):
        params = order_params()
        raw = {
            "success": True,
            "failure_reason": "UNKNOWN_FAILURE_REASON",
            "order_id": "11111-00000-000000",
            "success_response": {
                "order_id": "11111-00000-000000",
                "product_id": "BTC-USD",
                "side": "BUY",
                "client_order_id": "cid-1",
            },
        }
        parsed = adapter.parse_order_response(raw, {**params, SYMBOL_HINT: "BTC-USD"})
        result = build_order_result(parsed)
        assert result.venue_order_id == "11111-00000-000000"
        assert result.status is OrderStatus.NEW
        assert result.price == "50000"
        assert result.time_in_force is TimeInForce.GTC
        assert result.executed_quantity is None

    def test_gtx_submission_reads_back_as_limit_maker(self, adapter):
        params = order_params(time_in_force=TimeInForce.GTX)
        raw = {"success": True, "success_response": {"order_id": "22222-00000-000000"}}
        result = build_order_result(adapter.parse_order_response(raw, {**params, SYMBOL_HINT: "BTC-USD"}))
        assert result.type is OrderType.LIMIT_MAKER
        assert result.time_in_force is TimeInForce.GTC

    def test_rejected_create_is_error_payload(self, adapter):
        raw = {
            "success": False,
            "failure_reason": "UNKNOWN_FAILURE_REASON",
            "error_response": {
                "error": "INSUFFICIENT_FUND",
                "message": "Insufficient balance in source account",
                "preview_failure_reason": "PREVIEW_INSUFFICIENT_FUND",
            },
        }
        payload = adapter.parse_order_response(raw, order_params())
        assert isinstance(payload, VenueErrorPayload)
        assert payload.code == "INSUFFICIENT_FUND"
        assert payload.details == "PREVIEW_INSUFFICIENT_FUND"

    def test_unrecognized_body(self, adapter):
        with pytest.raises(MalformedResponseError):
            adapter.parse_order_response({"hello": "world"})


class TestParseErrors:
    """Flat and nested error bodies"""

    def test_nested_error_response_wins(self, adapter):
        raw = {
            "error": "unknown",
            "message": "flat message",
            "error_response": {"error": "INVALID_PRODUCT_ID", "message": "nested message"},
        }
        payload = adapter.parse_error_response(raw, 400)
        assert payload.code == "INVALID_PRODUCT_ID"
        assert payload.message == "nested message"
        assert payload.http_status == 400

    def test_empty_error_response_falls_back_to_flat(self, adapter):
        raw = {"error": "PERMISSION_DENIED", "message": "flat message", "error_response": {"error": ""}}
        payload = adapter.parse_error_response(raw, 403)
        assert payload.code == "PERMISSION_DENIED"
        assert payload.message == "flat message"

    def test_text_body(self, adapter):
        payload = adapter.parse_error_response("Unauthorized", 401)
        assert payload.code is None
        assert payload.message == "Unauthorized"


class TestParseCancel:
    """batch_cancel results"""

    def test_success_returns_order_id(self, adapter):
        raw = {"results": [{"success": True, "failure_reason": "UNKNOWN_CANCEL_FAILURE_REASON", "order_id": "abc"}]}
        assert adapter.parse_cancel_response(raw, {"orderId": "abc"}) == "abc"

    def test_failure_is_error_payload(self, adapter):
        raw = {"results": [{"success": False, "failure_reason": "UNKNOWN_CANCEL_ORDER", "order_id": "abc"}]}
        payload = adapter.parse_cancel_response(raw, {"orderId": "abc"})
        assert isinstance(payload, VenueErrorPayload)
        assert payload.code == "UNKNOWN_CANCEL_ORDER"

    def test_empty_results(self, adapter):
        with pytest.raises(MalformedResponseError):
            adapter.parse_cancel_response({"results": []}, {"orderId": "abc"})


class TestParseListsAndMarketData:
    """Listings, accounts, candles and product tickers"""

    def test_order_list_cursor(self, adapter):
        raw = {"orders": [QUERIED_ORDER["order"]], "has_next": True, "cursor": "next-page"}
        orders, cursor = adapter.parse_order_list(raw, {})
        assert len(orders) == 1
        assert cursor == "next-page"

    def test_order_list_with_good_till_date_orders(self, adapter):
        gtd_limit = {
            **QUERIED_ORDER["order"],
            "order_id": "gtd-1",
            "status": "OPEN",
            "filled_size": "0",
            "order_configuration": {"limit_limit_gtd": {
                "base_size": "0.5", "limit_price": "42000", "end_time": "2024-02-01T00:00:00Z", "post_only": False,
            }},
        }
        gtd_stop = {
            **QUERIED_ORDER["order"],
            "order_id": "gtd-2",
            "side": "SELL",
            "filled_size": "0",
            "order_configuration": {"stop_limit_stop_limit_gtd": {
                "base_size": "0.5", "limit_price": "39000", "stop_price": "39500",
                "stop_direction": "STOP_DIRECTION_STOP_DOWN", "end_time": "2024-02-01T00:00:00Z",
            }},
        }
        twap = {
            **QUERIED_ORDER["order"],
            "order_id": "twap-1",
            "filled_size": "0",
            "order_type": "LIMIT",
            "time_in_force": "GOOD_UNTIL_DATE_TIME",
            "order_configuration": {"twap_limit_gtd": {
                "quote_size": "1000", "limit_price": "41000", "end_time": "2024-02-01T00:00:00Z",
            }},
        }
        raw = {"orders": [QUERIED_ORDER["order"], gtd_limit, gtd_stop, twap], "has_next": True, "cursor": "p2"}

        orders, cursor = adapter.parse_order_list(raw, {})
        results = [build_order_result(o) for o in orders]

        assert cursor == "p2"
        assert [r.venue_order_id for r in results] == ["0000-000000-000000", "gtd-1", "gtd-2", "twap-1"]
        assert results[1].type is OrderType.LIMIT
        assert results[1].time_in_force is TimeInForce.GTC
        assert results[1].price == "42000"
        assert results[2].type is OrderType.STOP_LOSS_LIMIT
        assert results[2].stop_price == "39500"
        assert results[3].type is OrderType.LIMIT
        assert results[3].orig_quote_quantity == "1000"

    def test_last_order_page(self, adapter):
        orders, cursor = adapter.parse_order_list({"orders": [], "has_next": False, "cursor": ""}, {})
        assert orders == []
        assert cursor is None

    def test_balances(self, adapter):
        raw = {
            "accounts": [
                {"currency": "BTC", "available_balance": {"value": "1.5", "currency": "BTC"},
                 "hold": {"value": "0.25", "currency": "BTC"}},
                {"currency": "USD", "available_balance": {"value": "100", "currency": "USD"}},
            ],
            "has_next": False,
        }
        assert adapter.parse_balances(raw) == [
            {"asset": "BTC", "free": "1.5", "locked": "0.25"},
            {"asset": "USD", "free": "100", "locked": "0"},
        ]

    def test_candles_oldest_first(self, adapter):
        raw = {"candles": [
            {"start": "1704110460", "low": "1", "high": "2", "open": "1.5", "close": "1.7", "volume": "10"},
            {"start": "1704110400", "low": "1", "high": "2", "open": "1.4", "close": "1.5", "volume": "12"},
        ]}
        candles = adapter.parse_candles(raw, {"symbol": "BTC-USD", "interval": "ONE_MINUTE"})
        assert [c["open_time_millis"] for c in candles] == [1704110400000, 1704110460000]

    def test_candle_window_from_limit(self, adapter):
        params = {"symbol": "BTC-USD", "interval": "ONE_HOUR", "limit": 24, "endTime": 1704110400000}
        request = adapter.build_request("candles", params)
        assert request.path == "/api/v3/brokerage/market/products/BTC-USD/candles"
        assert request.query_params["end"] == "1704110400"
        assert request.query_params["start"] == str(1704110400 - 24 * 3600)
        assert request.signed is False

    def test_ticker(self, adapter):
        raw = {"product_id": "ETH-USD", "price": "2300.5", "price_percentage_change_24h": "1.2", "volume_24h": "900"}
        ticker = adapter.parse_ticker(raw, {"symbol": "ETH-USD"})
        assert ticker == {"symbol": "ETH-USD", "last_price": "2300.5", "price_change_percent": "1.2", "volume": "900"}

    def test_list_request_dates(self, adapter):
        params = {"openOnly": True, "symbol": "BTC-USD", "startTime": 1704110400250, "limit": 50}
        request = adapter.build_request("list_orders", params)
        assert request.query_params == {
            "product_ids": "BTC-USD",
            "order_status": "OPEN",
            "start_date": "2024-01-01T12:00:00.250000Z",
            "limit": "50",
        }
