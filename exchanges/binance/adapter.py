"""
Binance Spot Adapter

Translates normalized parameters into Binance Spot REST requests
(/api/v3/...) and Binance JSON back into parsed order dictionaries.

API Documentation:
    https://github.com/binance/binance-spot-api-docs

Wire format:
    - GET/DELETE parameters go in the query string, POST parameters in an
      x-www-form-urlencoded body
    - Signed requests carry recvWindow, timestamp (ms) and an HMAC-SHA256
      signature of the encoded parameters, plus the X-MBX-APIKEY header
    - Errors are {"code": -1121, "msg": "Invalid symbol."}

Response quirks handled here:
    - orderId is numeric; it is always stringified
    - Field names are camelCase on the wire; the snake_case spellings used in
      documented examples (order_id, orig_qty, ...) are accepted as well
    - "fills" is only present on FULL acknowledgments; absent means no fills
    - Zero prices ("0.00000000") mean "no price" for market orders
    - PENDING_CANCEL (read as NEW) with a non-zero executedQty is reported
      as PARTIALLY_FILLED
    - timeInForce is reported on every order; it is dropped for order types
      that don't take one (MARKET, STOP_LOSS, TAKE_PROFIT)

Usage:
    adapter = BinanceAdapter()
    request = adapter.build_request(Operation.SUBMIT_ORDER, normalize(order, "binance"))
    signed = adapter.sign_request(request, credentials, Signer())
"""

from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from core.config import Settings, settings as default_settings
from core.enums import Axis, OrderStatus, OrderType
from core.errors import ErrorKind, MalformedResponseError, VenueErrorPayload
from core.logging import get_logger
from core.schemas import VenueCredentials
from core.signer import Signer
from core.utils.decimals import is_zero
from core.venue_adapter import (
    ParsedOrder,
    VenueAdapter,
    VenueRequest,
    expect_list,
    expect_mapping,
    pick,
    wire_params,
)


# Order types that carry a time in force on Binance Spot
TIME_IN_FORCE_TYPES = frozenset({OrderType.LIMIT, OrderType.STOP_LOSS_LIMIT, OrderType.TAKE_PROFIT_LIMIT})

# Binance error code -> ErrorKind
BINANCE_ERROR_KINDS: Dict[str, ErrorKind] = {
    # Rate limiting
    "-1003": ErrorKind.RATE_LIMIT,
    "-1015": ErrorKind.RATE_LIMIT,

    # Authentication
    "-1002": ErrorKind.AUTH,
    "-1022": ErrorKind.AUTH,
    "-2014": ErrorKind.AUTH,
    "-2015": ErrorKind.AUTH,

    # Request validation
    "-1013": ErrorKind.VALIDATION,
    "-1100": ErrorKind.VALIDATION,
    "-1101": ErrorKind.VALIDATION,
    "-1102": ErrorKind.VALIDATION,
    "-1103": ErrorKind.VALIDATION,
    "-1104": ErrorKind.VALIDATION,
    "-1105": ErrorKind.VALIDATION,
    "-1106": ErrorKind.VALIDATION,
    "-1111": ErrorKind.VALIDATION,
    "-1112": ErrorKind.VALIDATION,
    "-1114": ErrorKind.VALIDATION,
    "-1115": ErrorKind.VALIDATION,
    "-1116": ErrorKind.VALIDATION,
    "-1117": ErrorKind.VALIDATION,
    "-1121": ErrorKind.SYMBOL_NOT_FOUND,

    # Insufficient funds (-2010 NEW_ORDER_REJECTED is classified by its reason)
    "INSUFFICIENT_BALANCE": ErrorKind.INSUFFICIENT_FUNDS,
    "-2018": ErrorKind.INSUFFICIENT_FUNDS,
    "-2019": ErrorKind.INSUFFICIENT_FUNDS,

    # Order not found
    "-2011": ErrorKind.ORDER_NOT_FOUND,
    "-2013": ErrorKind.ORDER_NOT_FOUND,

    # Venue internal / connectivity
    "-1000": ErrorKind.TRANSPORT,
    "-1001": ErrorKind.TRANSPORT,
    "-1006": ErrorKind.TRANSPORT,
    "-1007": ErrorKind.TRANSPORT,
}

# Codes whose msg carries the actual reason: (code, msg fragment, reason)
REJECTION_REASONS = (
    ("-2010", "insufficient balance", "INSUFFICIENT_BALANCE"),
)


def _rejection_reason(code: str, message: str) -> Optional[str]:
    lowered = message.lower()
    for reason_code, fragment, reason in REJECTION_REASONS:
        if code == reason_code and fragment in lowered:
            return reason
    return None


def _text(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def _price_or_none(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    value = str(value)
    return None if is_zero(value) else value


class BinanceAdapter(VenueAdapter):
    """
    Binance Spot request builder and response parser.

    Attributes:
        recv_window: recvWindow sent with every signed request (ms)

    Example:
        >>> adapter = BinanceAdapter()
        >>> adapter.build_request("ticker", {"symbol": "BTCUSDT"}).path
        '/api/v3/ticker/24hr'
    """

    name = "binance"

    capabilities = {
        "submit_order": True,
        "query_order": True,
        "cancel_order": True,
        "list_orders": True,
        "balances": True,
        "candles": True,
        "ticker": True,
    }

    error_kinds = BINANCE_ERROR_KINDS

    ORDER_PATH = "/api/v3/order"
    OPEN_ORDERS_PATH = "/api/v3/openOrders"
    ALL_ORDERS_PATH = "/api/v3/allOrders"
    ACCOUNT_PATH = "/api/v3/account"
    KLINES_PATH = "/api/v3/klines"
    TICKER_PATH = "/api/v3/ticker/24hr"

    def __init__(self, config: Optional[Settings] = None):
        config = config or default_settings
        self.recv_window = config.binance_recv_window
        self.logger = get_logger(__name__)

    # ============================================
    # Request Building
    # ============================================

    def build_submit_order(self, params: Mapping[str, Any]) -> VenueRequest:
        params = dict(params)
        body: Dict[str, Any] = {}

        # canonical keys -> Binance parameter names
        renames = {"clientOrderId": "newClientOrderId"}
        for key, value in params.items():
            if key in ("postOnly", "stopDirection"):
                # LIMIT_MAKER already is the post-only type on Binance
                continue
            body[renames.get(key, key)] = value

        body.setdefault("newOrderRespType", "FULL")

        return VenueRequest(
            method="POST",
            path=self.ORDER_PATH,
            body_params=wire_params(body),
            body_format="form",
            signed=True,
        )

    def _lookup_params(self, params: Mapping[str, Any]) -> Dict[str, str]:
        query: Dict[str, Any] = {"symbol": params["symbol"]}
        if params.get("orderId") is not None:
            query["orderId"] = params["orderId"]
        else:
            query["origClientOrderId"] = params["clientOrderId"]
        return wire_params(query)

    def build_query_order(self, params: Mapping[str, Any]) -> VenueRequest:
        return VenueRequest(method="GET", path=self.ORDER_PATH, query_params=self._lookup_params(params), signed=True)

    def build_cancel_order(self, params: Mapping[str, Any]) -> VenueRequest:
        return VenueRequest(method="DELETE", path=self.ORDER_PATH, query_params=self._lookup_params(params), signed=True)

    def build_list_orders(self, params: Mapping[str, Any]) -> VenueRequest:
        """
        openOnly -> GET /api/v3/openOrders (single unpaginated list)
        otherwise -> GET /api/v3/allOrders, paginated by orderId

        Without orderId or startTime Binance serves the most recent orders,
        which an ascending orderId cursor can't page past. The first page is
        therefore anchored at orderId=0 unless a startTime does the anchoring.
        """
        if params.get("openOnly"):
            query = {"symbol": params.get("symbol")}
            return VenueRequest(method="GET", path=self.OPEN_ORDERS_PATH, query_params=wire_params(query), signed=True)

        order_id = params.get("cursor")
        if order_id is None and params.get("startTime") is None:
            order_id = 0

        query = {
            "symbol": params["symbol"],
            "orderId": order_id,
            "startTime": params.get("startTime"),
            "endTime": params.get("endTime"),
            "limit": params.get("limit"),
        }
        return VenueRequest(method="GET", path=self.ALL_ORDERS_PATH, query_params=wire_params(query), signed=True)

    def build_balances(self, params: Mapping[str, Any]) -> VenueRequest:
        return VenueRequest(
            method="GET",
            path=self.ACCOUNT_PATH,
            query_params=wire_params({"omitZeroBalances": True}),
            signed=True,
        )

    def build_candles(self, params: Mapping[str, Any]) -> VenueRequest:
        query = {
            "symbol": params["symbol"],
            "interval": params["interval"],
            "startTime": params.get("startTime"),
            "endTime": params.get("endTime"),
            "limit": params.get("limit"),
        }
        return VenueRequest(method="GET", path=self.KLINES_PATH, query_params=wire_params(query))

    def build_ticker(self, params: Mapping[str, Any]) -> VenueRequest:
        return VenueRequest(method="GET", path=self.TICKER_PATH, query_params=wire_params({"symbol": params["symbol"]}))

    # ============================================
    # Signing
    # ============================================

    def sign_request(self, request: VenueRequest, credentials: VenueCredentials, signer: Signer) -> VenueRequest:
        """
        Add recvWindow, timestamp and signature to the parameters that go
        on the wire (body for POST, query string otherwise).
        """
        in_body = request.method == "POST"
        params = dict(request.body_params if in_body else request.query_params)
        params["recvWindow"] = str(self.recv_window)
        params["timestamp"] = str(signer.timestamp())
        params["signature"] = signer.sign(params, credentials.secret_key)

        headers = {**request.headers, "X-MBX-APIKEY": credentials.api_key}
        if in_body:
            return request.model_copy(update={"body_params": params, "headers": headers})
        return request.model_copy(update={"query_params": params, "headers": headers})

    # ============================================
    # Response Parsing
    # ============================================

    def _parse_fill(self, raw: Any) -> Dict[str, Any]:
        raw = expect_mapping(raw, "fill")
        return {
            "price": str(pick(raw, "price")),
            "quantity": str(pick(raw, "qty", "quantity")),
            "commission": str(pick(raw, "commission")),
            "commission_asset": pick(raw, "commissionAsset", "commission_asset"),
            "trade_id": str(pick(raw, "tradeId", "trade_id")),
        }

    def _parse_order(self, raw: Any, context: Optional[Mapping[str, Any]] = None) -> ParsedOrder:
        raw = expect_mapping(raw, "order")

        order_type = self.canonical(pick(raw, "type"), Axis.TYPE, raw)
        time_in_force = None
        raw_tif = pick(raw, "timeInForce", "time_in_force", default=None)
        if raw_tif and order_type in TIME_IN_FORCE_TYPES:
            time_in_force = self.canonical(raw_tif, Axis.TIME_IN_FORCE, raw)

        fills = [self._parse_fill(f) for f in expect_list(pick(raw, "fills", default=[]), "fills")]

        executed_quantity = _text(pick(raw, "executedQty", "executed_qty", default=None))
        status = self.canonical(pick(raw, "status"), Axis.ORDER_STATUS, raw)
        if status is OrderStatus.NEW and executed_quantity is not None and not is_zero(executed_quantity):
            # PENDING_CANCEL reads as NEW and keeps its partial fill
            status = OrderStatus.PARTIALLY_FILLED

        created = pick(raw, "time", "transactTime", "transact_time", "workingTime", "working_time", default=None)
        updated = pick(raw, "updateTime", "update_time", "transactTime", "transact_time", default=None)

        return {
            "venue": self.name,
            "venue_order_id": str(pick(raw, "orderId", "order_id")),
            "client_order_id": pick(raw, "clientOrderId", "client_order_id", "origClientOrderId", default=None) or None,
            "symbol": self.neutral_symbol(pick(raw, "symbol"), context, raw),
            "side": self.canonical(pick(raw, "side"), Axis.SIDE, raw),
            "type": order_type,
            "time_in_force": time_in_force,
            "status": status,
            "price": _price_or_none(pick(raw, "price", default=None)),
            "stop_price": _price_or_none(pick(raw, "stopPrice", "stop_price", default=None)),
            "orig_quantity": _price_or_none(pick(raw, "origQty", "orig_qty", default=None)),
            "orig_quote_quantity": _price_or_none(pick(raw, "origQuoteOrderQty", "orig_quote_order_qty", default=None)),
            "executed_quantity": executed_quantity,
            "cumulative_quote_quantity": _text(pick(
                raw, "cummulativeQuoteQty", "cummulative_quote_qty", "cumulativeQuoteQty", default=None
            )),
            "created_at_millis": int(created) if created is not None else None,
            "updated_at_millis": int(updated) if updated is not None else None,
            "fills": fills,
        }

    def parse_order_response(
        self,
        raw: Any,
        context: Optional[Mapping[str, Any]] = None,
    ) -> Union[ParsedOrder, VenueErrorPayload]:
        return self._parse_order(raw, context)

    def parse_error_response(self, raw: Any, http_status: int) -> VenueErrorPayload:
        """
        Binance errors are {"code": <int>, "msg": <str>}. Gateways and WAFs in
        front of the API can answer with something else; that body is kept
        as the message.

        -2010 (NEW_ORDER_REJECTED) covers insufficient balance as well as
        post-only and trigger rejections; the reason found in msg goes into
        details.
        """
        if isinstance(raw, Mapping) and "code" in raw:
            code = str(raw["code"])
            message = str(raw.get("msg") or "")
            return VenueErrorPayload(
                venue=self.name,
                code=code,
                message=message,
                details=_rejection_reason(code, message),
                http_status=http_status,
            )
        return VenueErrorPayload(venue=self.name, message=str(raw or "")[:500], http_status=http_status)

    def parse_order_list(
        self,
        raw: Any,
        params: Mapping[str, Any],
    ) -> Tuple[List[ParsedOrder], Optional[str]]:
        """
        allOrders is ascending by orderId; a full page means there may be
        more, and the next page starts right after the last id.
        """
        orders = [self._parse_order(item, params) for item in expect_list(raw, "orders")]

        next_cursor = None
        limit = params.get("limit")
        if not params.get("openOnly") and limit and orders and len(orders) >= int(limit):
            last_id = orders[-1]["venue_order_id"]
            if last_id.isdigit():
                next_cursor = str(int(last_id) + 1)
                self.logger.debug(f"allOrders page full ({len(orders)}), next orderId cursor {next_cursor}")
        return orders, next_cursor

    def parse_cancel_response(
        self,
        raw: Any,
        context: Mapping[str, Any],
    ) -> Union[ParsedOrder, VenueErrorPayload, str]:
        return self._parse_order(raw, context)

    def parse_balances(self, raw: Any) -> List[Dict[str, Any]]:
        raw = expect_mapping(raw, "account")
        balances = []
        for item in expect_list(pick(raw, "balances"), "balances"):
            item = expect_mapping(item, "balance")
            balances.append({
                "asset": pick(item, "asset"),
                "free": str(pick(item, "free")),
                "locked": str(pick(item, "locked")),
            })
        return balances

    def parse_candles(self, raw: Any, params: Mapping[str, Any]) -> List[Dict[str, Any]]:
        """
        Klines are positional arrays:
        [openTime, open, high, low, close, volume, closeTime, quoteVolume, trades, ...]
        """
        symbol = self.neutral_symbol(params["symbol"], params)
        interval = self.canonical(params["interval"], Axis.INTERVAL)

        candles = []
        for row in expect_list(raw, "klines"):
            row = expect_list(row, "kline")
            if len(row) < 6:
                raise MalformedResponseError(f"kline has {len(row)} fields, expected at least 6", row)
            candles.append({
                "symbol": symbol,
                "interval": interval,
                "open_time_millis": int(row[0]),
                "open": str(row[1]),
                "high": str(row[2]),
                "low": str(row[3]),
                "close": str(row[4]),
                "volume": str(row[5]),
                "close_time_millis": int(row[6]) if len(row) > 6 else None,
                "quote_volume": str(row[7]) if len(row) > 7 else None,
                "trades_count": int(row[8]) if len(row) > 8 else None,
            })
        return candles

    def parse_ticker(self, raw: Any, params: Mapping[str, Any]) -> Dict[str, Any]:
        raw = expect_mapping(raw, "ticker")
        close_time = pick(raw, "closeTime", "close_time", default=None)
        return {
            "symbol": self.neutral_symbol(pick(raw, "symbol"), params, raw),
            "last_price": str(pick(raw, "lastPrice", "last_price")),
            "price_change_percent": _text(pick(raw, "priceChangePercent", "price_change_percent", default=None)),
            "volume": _text(pick(raw, "volume", default=None)),
            "quote_volume": _text(pick(raw, "quoteVolume", "quote_volume", default=None)),
            "bid_price": _text(pick(raw, "bidPrice", "bid_price", default=None)),
            "ask_price": _text(pick(raw, "askPrice", "ask_price", default=None)),
            "high_price": _text(pick(raw, "highPrice", "high_price", default=None)),
            "low_price": _text(pick(raw, "lowPrice", "low_price", default=None)),
            "timestamp_millis": int(close_time) if close_time is not None else None,
        }
