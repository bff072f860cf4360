"""
Unit Tests for Error Classification

These tests verify that classify():
- Maps venue codes through the adapter's table first
- Falls back to the HTTP status when the code is unknown
- Maps internal failure signals onto their kinds
- Preserves the venue code for diagnostics

Run with:
    pytest tests/unit/test_errors.py -v
"""

import pytest

from core.errors import (
    ErrorKind,
    GatewayError,
    MalformedResponseError,
    RequestValidationError,
    SigningError,
    TransportError,
    VenueErrorPayload,
    classify,
)
from exchanges.binance import BINANCE_ERROR_KINDS, BinanceAdapter
from exchanges.coinbase import COINBASE_ERROR_KINDS


class TestVenuePayloads:
    """Venue error payloads"""

    @pytest.mark.parametrize("code,kind", [
        ("-2018", ErrorKind.INSUFFICIENT_FUNDS),
        ("-1121", ErrorKind.SYMBOL_NOT_FOUND),
        ("-2013", ErrorKind.ORDER_NOT_FOUND),
        ("-1003", ErrorKind.RATE_LIMIT),
        ("-2015", ErrorKind.AUTH),
        ("-1013", ErrorKind.VALIDATION),
    ])
    def test_binance_codes(self, code, kind):
        payload = VenueErrorPayload(venue="binance", code=code, message="x", http_status=400)
        error = classify(payload, "binance", BINANCE_ERROR_KINDS)
        assert error.kind is kind
        assert error.venue_code == code

    def test_coinbase_code(self):
        payload = VenueErrorPayload(venue="coinbase", code="INSUFFICIENT_FUND", message="Insufficient balance")
        assert classify(payload, "coinbase", COINBASE_ERROR_KINDS).kind is ErrorKind.INSUFFICIENT_FUNDS

    def test_coinbase_details_used_when_code_unknown(self):
        payload = VenueErrorPayload(venue="coinbase", code="UNKNOWN_FAILURE_REASON", details="PREVIEW_INVALID_PRODUCT_ID")
        assert classify(payload, "coinbase", COINBASE_ERROR_KINDS).kind is ErrorKind.SYMBOL_NOT_FOUND

    @pytest.mark.parametrize("status,kind", [
        (401, ErrorKind.AUTH),
        (403, ErrorKind.AUTH),
        (404, ErrorKind.ORDER_NOT_FOUND),
        (429, ErrorKind.RATE_LIMIT),
        (418, ErrorKind.RATE_LIMIT),
        (503, ErrorKind.TRANSPORT),
        (400, ErrorKind.VENUE_REJECTED),
    ])
    def test_status_fallback(self, status, kind):
        payload = VenueErrorPayload(venue="binance", code="-9999", http_status=status)
        assert classify(payload, "binance", BINANCE_ERROR_KINDS).kind is kind

    @pytest.mark.parametrize("msg,kind", [
        ("Account has insufficient balance for requested action.", ErrorKind.INSUFFICIENT_FUNDS),
        ("Order would immediately match and take.", ErrorKind.VENUE_REJECTED),
        ("Order would trigger immediately.", ErrorKind.VENUE_REJECTED),
    ])
    def test_binance_new_order_rejected_uses_reason(self, msg, kind):
        payload = BinanceAdapter().parse_error_response({"code": -2010, "msg": msg}, 400)
        error = classify(payload, "binance", BINANCE_ERROR_KINDS)
        assert error.kind is kind
        assert error.venue_code == "-2010"
        assert error.message == msg

    def test_unmapped_rejection_keeps_code(self):
        payload = VenueErrorPayload(venue="binance", code="-2026", message="Order was canceled or expired.")
        error = classify(payload, "binance", BINANCE_ERROR_KINDS)
        assert error.kind is ErrorKind.VENUE_REJECTED
        assert error.venue_code == "-2026"
        assert error.message == "Order was canceled or expired."


class TestInternalSignals:
    """Failure signals raised inside the package"""

    def test_validation(self):
        error = classify(RequestValidationError("price", "required for LIMIT orders"), "binance")
        assert error.kind is ErrorKind.VALIDATION
        assert "price" in error.message
        assert error.retryable is False

    def test_signing(self):
        assert classify(SigningError("secret key is empty")).kind is ErrorKind.AUTH

    def test_transport_is_retryable(self):
        error = classify(TransportError("timeout"), "coinbase")
        assert error.kind is ErrorKind.TRANSPORT
        assert error.retryable is True

    def test_malformed(self):
        error = classify(MalformedResponseError("missing required field 'orderId'", {}), "binance")
        assert error.kind is ErrorKind.UNKNOWN
        assert "orderId" in error.message

    def test_anything_else(self):
        assert classify(KeyError("boom")).kind is ErrorKind.UNKNOWN


class TestGatewayError:
    """The exception callers catch"""

    def test_carries_normalized_error(self):
        error = classify(TransportError("timeout"), "binance")
        exc = GatewayError(error)
        assert exc.kind is ErrorKind.TRANSPORT
        assert exc.error is error
        assert "TRANSPORT" in str(exc)
