"""
Coinbase Advanced Trade Adapter

Translates normalized parameters into Coinbase Advanced Trade REST requests
(/api/v3/brokerage/...) and Coinbase JSON back into parsed order dictionaries.

API Documentation:
    https://docs.cdp.coinbase.com/advanced-trade/

Endpoints Used:
    - POST /api/v3/brokerage/orders                          Create order
    - GET  /api/v3/brokerage/orders/historical/{order_id}    Get order
    - POST /api/v3/brokerage/orders/batch_cancel             Cancel orders
    - GET  /api/v3/brokerage/orders/historical/batch         List orders
    - GET  /api/v3/brokerage/accounts                        Balances
    - GET  /api/v3/brokerage/market/products/{id}/candles    Candles (public)
    - GET  /api/v3/brokerage/market/products/{id}            Ticker (public)

Order configuration:
    Coinbase encodes type, time in force and amounts in a single nested
    object keyed by the configuration name:

        market_market_ioc           {base_size | quote_size}
        limit_limit_gtc             {base_size, limit_price, post_only}
        limit_limit_fok             {base_size, limit_price}
        sor_limit_ioc               {base_size, limit_price}
        stop_limit_stop_limit_gtc   {base_size, limit_price, stop_price, stop_direction}
        limit_limit_gtd             as limit_limit_gtc, plus end_time (decoded only)
        stop_limit_stop_limit_gtd   as stop_limit_stop_limit_gtc, plus end_time (decoded only)

    Configurations without a canonical equivalent (brackets, TWAP, ...)
    are read from the flat order_type / time_in_force fields instead.

Response quirks handled here:
    - A create acknowledgment with success=true can still carry
      failure_reason="UNKNOWN_FAILURE_REASON"; success wins
    - The order id of an acknowledgment is either top level or inside
      success_response
    - Errors arrive flat ({error, message, error_details}) or nested under
      error_response; a non-empty error_response takes precedence
    - OPEN with a non-zero filled_size is reported as PARTIALLY_FILLED
    - batch_cancel only acknowledges; the order is re-queried afterwards
"""

import uuid
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from core.enums import Axis, KlineInterval, OrderSide, OrderStatus, OrderType, TimeInForce
from core.errors import ErrorKind, MalformedResponseError, RequestValidationError, VenueErrorPayload
from core.logging import get_logger
from core.normalizer import stop_direction
from core.schemas import VenueCredentials
from core.signer import ParamEncoding, Signer
from core.utils.decimals import is_zero
from core.utils.time import current_utc_timestamp, epoch_seconds_to_millis, millis_to_rfc3339, rfc3339_to_millis
from core.venue_adapter import (
    ParsedOrder,
    VenueAdapter,
    VenueRequest,
    expect_list,
    expect_mapping,
    pick,
)


MARKET_IOC = "market_market_ioc"
LIMIT_GTC = "limit_limit_gtc"
LIMIT_FOK = "limit_limit_fok"
LIMIT_IOC = "sor_limit_ioc"
STOP_LIMIT_GTC = "stop_limit_stop_limit_gtc"
LIMIT_GTD = "limit_limit_gtd"
STOP_LIMIT_GTD = "stop_limit_stop_limit_gtd"

# (venue type, venue time in force) -> order_configuration key
CONFIGURATION_KEYS = {
    ("MARKET", None): MARKET_IOC,
    ("LIMIT", "GOOD_UNTIL_CANCELLED"): LIMIT_GTC,
    ("LIMIT", "FILL_OR_KILL"): LIMIT_FOK,
    ("LIMIT", "IMMEDIATE_OR_CANCEL"): LIMIT_IOC,
    ("STOP_LIMIT", "GOOD_UNTIL_CANCELLED"): STOP_LIMIT_GTC,
}

# order_configuration key -> (canonical type, canonical time in force)
# There is no canonical good-till-date; GTD configurations read as GTC
CONFIGURATION_TYPES = {
    MARKET_IOC: (OrderType.MARKET, None),
    LIMIT_GTC: (OrderType.LIMIT, TimeInForce.GTC),
    LIMIT_FOK: (OrderType.LIMIT, TimeInForce.FOK),
    LIMIT_IOC: (OrderType.LIMIT, TimeInForce.IOC),
    STOP_LIMIT_GTC: (OrderType.STOP_LOSS_LIMIT, TimeInForce.GTC),
    LIMIT_GTD: (OrderType.LIMIT, TimeInForce.GTC),
    STOP_LIMIT_GTD: (OrderType.STOP_LOSS_LIMIT, TimeInForce.GTC),
}

STOP_DIRECTIONS = {"UP": "STOP_DIRECTION_STOP_UP", "DOWN": "STOP_DIRECTION_STOP_DOWN"}

GRANULARITY_SECONDS = {
    "ONE_MINUTE": 60,
    "FIVE_MINUTE": 300,
    "FIFTEEN_MINUTE": 900,
    "THIRTY_MINUTE": 1800,
    "ONE_HOUR": 3600,
    "TWO_HOUR": 7200,
    "SIX_HOUR": 21600,
    "ONE_DAY": 86400,
}

# Canonical request keys consumed by the order configuration
ORDER_KEYS = frozenset({
    "symbol", "side", "type", "timeInForce", "quantity", "quoteOrderQty",
    "price", "stopPrice", "clientOrderId", "leverage", "postOnly", "stopDirection",
})

MAX_CANDLES = 350
ACCOUNTS_PAGE_SIZE = 250

# Coinbase error / failure reason -> ErrorKind
COINBASE_ERROR_KINDS: Dict[str, ErrorKind] = {
    # Insufficient funds
    "INSUFFICIENT_FUND": ErrorKind.INSUFFICIENT_FUNDS,
    "INSUFFICIENT_FUNDS": ErrorKind.INSUFFICIENT_FUNDS,
    "PREVIEW_INSUFFICIENT_FUND": ErrorKind.INSUFFICIENT_FUNDS,

    # Unknown product
    "INVALID_PRODUCT_ID": ErrorKind.SYMBOL_NOT_FOUND,
    "UNKNOWN_PRODUCT_ID": ErrorKind.SYMBOL_NOT_FOUND,
    "PREVIEW_INVALID_PRODUCT_ID": ErrorKind.SYMBOL_NOT_FOUND,

    # Rate limiting
    "RATE_LIMIT_EXCEEDED": ErrorKind.RATE_LIMIT,
    "rate_limit_exceeded": ErrorKind.RATE_LIMIT,

    # Authentication
    "AUTHENTICATION_ERROR": ErrorKind.AUTH,
    "PERMISSION_DENIED": ErrorKind.AUTH,
    "UNAUTHENTICATED": ErrorKind.AUTH,
    "unauthorized": ErrorKind.AUTH,

    # Order not found
    "NOT_FOUND": ErrorKind.ORDER_NOT_FOUND,
    "UNKNOWN_CANCEL_ORDER": ErrorKind.ORDER_NOT_FOUND,

    # Request validation
    "INVALID_ARGUMENT": ErrorKind.VALIDATION,
    "INVALID_REQUEST": ErrorKind.VALIDATION,
    "INVALID_CANCEL_REQUEST": ErrorKind.VALIDATION,
    "UNSUPPORTED_ORDER_CONFIGURATION": ErrorKind.VALIDATION,
    "INVALID_SIZE_PRECISION": ErrorKind.VALIDATION,
    "INVALID_PRICE_PRECISION": ErrorKind.VALIDATION,
    "INVALID_LIMIT_PRICE_POST_ONLY": ErrorKind.VALIDATION,
    "INVALID_LIMIT_PRICE": ErrorKind.VALIDATION,
    "INVALID_NO_LIQUIDITY": ErrorKind.VENUE_REJECTED,
}


def _non_empty_mapping(value: Any) -> bool:
    return isinstance(value, Mapping) and any(v not in (None, "") for v in value.values())


def _amount(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


class CoinbaseAdapter(VenueAdapter):
    """
    Coinbase Advanced Trade request builder and response parser.

    Signing uses the HMAC key scheme: CB-ACCESS-SIGN is the hex HMAC-SHA256 of
    timestamp (seconds) + method + request path + body.

    Example:
        >>> adapter = CoinbaseAdapter()
        >>> adapter.build_request("query_order", {"orderId": "abc"}).path
        '/api/v3/brokerage/orders/historical/abc'
    """

    name = "coinbase"

    capabilities = {
        "submit_order": True,
        "query_order": True,
        "cancel_order": True,
        "list_orders": True,
        "balances": True,
        "candles": True,
        "ticker": True,
    }

    error_kinds = COINBASE_ERROR_KINDS

    ORDERS_PATH = "/api/v3/brokerage/orders"
    ORDER_PATH = "/api/v3/brokerage/orders/historical/{order_id}"
    CANCEL_PATH = "/api/v3/brokerage/orders/batch_cancel"
    LIST_PATH = "/api/v3/brokerage/orders/historical/batch"
    ACCOUNTS_PATH = "/api/v3/brokerage/accounts"
    CANDLES_PATH = "/api/v3/brokerage/market/products/{product_id}/candles"
    PRODUCT_PATH = "/api/v3/brokerage/market/products/{product_id}"

    def __init__(self):
        self.logger = get_logger(__name__)

    # ============================================
    # Order Configuration
    # ============================================

    def order_configuration(self, params: Mapping[str, Any]) -> Dict[str, Dict[str, Any]]:
        """
        Build the order_configuration object from normalized parameters.

        Raises:
            RequestValidationError: For combinations Coinbase has no
                                    configuration for
        """
        venue_type = params.get("type")
        tif = params.get("timeInForce") if venue_type != "MARKET" else None
        key = CONFIGURATION_KEYS.get((venue_type, tif))
        if key is None:
            raise RequestValidationError(
                "time_in_force",
                f"coinbase has no order configuration for {venue_type} with {tif or 'no time in force'}",
            )

        config: Dict[str, Any] = {}
        if params.get("quoteOrderQty") is not None:
            if key != MARKET_IOC:
                raise RequestValidationError("quote_order_qty", "coinbase only sizes MARKET orders in quote")
            config["quote_size"] = params["quoteOrderQty"]
        else:
            config["base_size"] = params["quantity"]

        if key != MARKET_IOC:
            config["limit_price"] = params["price"]

        post_only = bool(params.get("postOnly"))
        if post_only and key != LIMIT_GTC:
            raise RequestValidationError("time_in_force", "post-only orders must be good until cancelled on coinbase")
        if key == LIMIT_GTC:
            config["post_only"] = post_only

        if key == STOP_LIMIT_GTC:
            config["stop_price"] = params["stopPrice"]
            direction = params.get("stopDirection") or stop_direction(OrderSide(params["side"]))
            config["stop_direction"] = STOP_DIRECTIONS[direction]

        return {key: config}

    def decode_configuration(self, configuration: Any, side: OrderSide, raw: Any = None) -> Dict[str, Any]:
        """
        Decode an order_configuration object into canonical order fields.

        A stop-limit whose stop direction is the opposite of a stop-loss for
        the order side is a take-profit.
        """
        configuration = expect_mapping(configuration, "order_configuration")
        known = [k for k in configuration if k in CONFIGURATION_TYPES]
        if len(known) != 1:
            raise MalformedResponseError(f"unsupported order_configuration {sorted(configuration)}", raw)

        key = known[0]
        body = expect_mapping(configuration[key], key)
        order_type, time_in_force = CONFIGURATION_TYPES[key]

        if key in (LIMIT_GTC, LIMIT_GTD) and body.get("post_only") in (True, "true"):
            order_type = OrderType.LIMIT_MAKER

        if key in (STOP_LIMIT_GTC, STOP_LIMIT_GTD):
            direction = body.get("stop_direction")
            if direction == STOP_DIRECTIONS[stop_direction(side, invert=True)]:
                order_type = OrderType.TAKE_PROFIT_LIMIT

        return {
            "type": order_type,
            "time_in_force": time_in_force,
            "price": _amount(body.get("limit_price")),
            "stop_price": _amount(body.get("stop_price")),
            "orig_quantity": _amount(body.get("base_size")),
            "orig_quote_quantity": _amount(body.get("quote_size")),
        }

    # ============================================
    # Request Building
    # ============================================

    def build_submit_order(self, params: Mapping[str, Any]) -> VenueRequest:
        body: Dict[str, Any] = {
            # Coinbase requires a client order id
            "client_order_id": params.get("clientOrderId") or str(uuid.uuid4()),
            "product_id": params["symbol"],
            "side": params["side"],
            "order_configuration": self.order_configuration(params),
        }
        if params.get("leverage") is not None:
            body["leverage"] = params["leverage"]

        for key, value in params.items():
            if key not in ORDER_KEYS:
                body[key] = value

        return VenueRequest(method="POST", path=self.ORDERS_PATH, body_params=body, body_format="json", signed=True)

    def build_query_order(self, params: Mapping[str, Any]) -> VenueRequest:
        order_id = params.get("orderId")
        if not order_id:
            raise RequestValidationError("venue_order_id", "coinbase order lookups require the venue order id")
        return VenueRequest(method="GET", path=self.ORDER_PATH.format(order_id=order_id), signed=True)

    def build_cancel_order(self, params: Mapping[str, Any]) -> VenueRequest:
        order_id = params.get("orderId")
        if not order_id:
            raise RequestValidationError("venue_order_id", "coinbase cancels require the venue order id")
        return VenueRequest(
            method="POST",
            path=self.CANCEL_PATH,
            body_params={"order_ids": [order_id]},
            body_format="json",
            signed=True,
        )

    def build_list_orders(self, params: Mapping[str, Any]) -> VenueRequest:
        query: Dict[str, Any] = {}
        if params.get("symbol"):
            query["product_ids"] = params["symbol"]
        if params.get("openOnly"):
            query["order_status"] = "OPEN"
        if params.get("startTime") is not None:
            query["start_date"] = millis_to_rfc3339(params["startTime"])
        if params.get("endTime") is not None:
            query["end_date"] = millis_to_rfc3339(params["endTime"])
        if params.get("limit") is not None:
            query["limit"] = str(params["limit"])
        if params.get("cursor"):
            query["cursor"] = params["cursor"]
        return VenueRequest(method="GET", path=self.LIST_PATH, query_params=query, signed=True)

    def build_balances(self, params: Mapping[str, Any]) -> VenueRequest:
        return VenueRequest(
            method="GET",
            path=self.ACCOUNTS_PATH,
            query_params={"limit": str(ACCOUNTS_PAGE_SIZE)},
            signed=True,
        )

    def build_candles(self, params: Mapping[str, Any]) -> VenueRequest:
        """
        Coinbase wants an explicit [start, end] window in epoch seconds.
        Missing bounds are derived from the limit and the granularity.
        """
        granularity = params["interval"]
        step = GRANULARITY_SECONDS[granularity]
        limit = min(int(params.get("limit") or MAX_CANDLES), MAX_CANDLES)

        end_ms = params.get("endTime")
        start_ms = params.get("startTime")
        end = end_ms // 1000 if end_ms is not None else current_utc_timestamp()
        start = start_ms // 1000 if start_ms is not None else end - step * limit

        query = {
            "start": str(start),
            "end": str(end),
            "granularity": granularity,
            "limit": str(limit),
        }
        path = self.CANDLES_PATH.format(product_id=params["symbol"])
        return VenueRequest(method="GET", path=path, query_params=query)

    def build_ticker(self, params: Mapping[str, Any]) -> VenueRequest:
        return VenueRequest(method="GET", path=self.PRODUCT_PATH.format(product_id=params["symbol"]))

    # ============================================
    # Signing
    # ============================================

    def sign_request(self, request: VenueRequest, credentials: VenueCredentials, signer: Signer) -> VenueRequest:
        timestamp = str(signer.timestamp() // 1000)
        prehash = {
            "timestamp": timestamp,
            "method": request.method,
            "path": request.path,
            "body": request.encoded_body,
        }
        signature = signer.sign(prehash, credentials.secret_key, encoding=ParamEncoding.CONCATENATED)

        headers = {
            **request.headers,
            "CB-ACCESS-KEY": credentials.api_key,
            "CB-ACCESS-SIGN": signature,
            "CB-ACCESS-TIMESTAMP": timestamp,
        }
        if credentials.passphrase is not None:
            headers["CB-ACCESS-PASSPHRASE"] = credentials.passphrase.get_secret_value()
        return request.model_copy(update={"headers": headers})

    # ============================================
    # Response Parsing
    # ============================================

    def _error_payload(self, raw: Mapping[str, Any], http_status: Optional[int]) -> VenueErrorPayload:
        """
        Build an error payload from a flat or nested Coinbase error body.

        A non-empty error_response wins over the flat fields.
        """
        source = raw.get("error_response")
        if not _non_empty_mapping(source):
            source = raw

        code = (
            source.get("error")
            or source.get("failure_reason")
            or raw.get("failure_reason")
            or None
        )
        details = (
            source.get("error_details")
            or source.get("preview_failure_reason")
            or source.get("new_order_failure_reason")
            or None
        )
        return VenueErrorPayload(
            venue=self.name,
            code=str(code) if code is not None else None,
            message=str(source.get("message") or ""),
            details=str(details) if details else None,
            http_status=http_status,
        )

    def _parse_order(self, raw: Any, context: Optional[Mapping[str, Any]] = None) -> ParsedOrder:
        raw = expect_mapping(raw, "order")

        side = self.canonical(pick(raw, "side"), Axis.SIDE, raw)
        configuration = raw.get("order_configuration")
        if _non_empty_mapping(configuration) and any(k in CONFIGURATION_TYPES for k in configuration):
            fields = self.decode_configuration(configuration, side, raw)
        else:
            # older payloads and configurations with no canonical equivalent
            order_type = self.canonical(pick(raw, "order_type"), Axis.TYPE, raw)
            raw_tif = raw.get("time_in_force")
            fields = {
                "type": order_type,
                "time_in_force": self.canonical(raw_tif, Axis.TIME_IN_FORCE, raw) if raw_tif else None,
            }
            if _non_empty_mapping(configuration) and len(configuration) == 1:
                body = next(iter(configuration.values()))
                if isinstance(body, Mapping):
                    fields.update({
                        "price": _amount(body.get("limit_price")),
                        "stop_price": _amount(body.get("stop_price") or body.get("stop_trigger_price")),
                        "orig_quantity": _amount(body.get("base_size")),
                        "orig_quote_quantity": _amount(body.get("quote_size")),
                    })

        status = self.canonical(pick(raw, "status"), Axis.ORDER_STATUS, raw)
        filled_size = _amount(raw.get("filled_size"))
        if status is OrderStatus.NEW and filled_size is not None and not is_zero(filled_size):
            status = OrderStatus.PARTIALLY_FILLED

        created = raw.get("created_time")
        updated = raw.get("last_fill_time") or raw.get("last_update_time")

        try:
            created_ms = rfc3339_to_millis(created) if created else None
            updated_ms = rfc3339_to_millis(updated) if updated else None
        except ValueError as e:
            raise MalformedResponseError(str(e), raw)

        return {
            "venue": self.name,
            "venue_order_id": str(pick(raw, "order_id")),
            "client_order_id": raw.get("client_order_id") or None,
            "symbol": self.neutral_symbol(pick(raw, "product_id"), context, raw),
            "side": side,
            "status": status,
            "executed_quantity": filled_size,
            "cumulative_quote_quantity": _amount(raw.get("filled_value")),
            "created_at_millis": created_ms,
            "updated_at_millis": updated_ms,
            "fills": [],
            **fields,
        }

    def _parse_acknowledgment(self, raw: Mapping[str, Any], context: Optional[Mapping[str, Any]]) -> ParsedOrder:
        """
        A create acknowledgment carries the order id and, depending on the API
        version, an echo of the order configuration. Fields it doesn't echo
        are taken from the submitted parameters.
        """
        success = raw.get("success_response") if isinstance(raw.get("success_response"), Mapping) else {}
        order_id = success.get("order_id") or raw.get("order_id")
        if not order_id:
            raise MalformedResponseError("acknowledgment without order_id", raw)

        context = context or {}
        raw_side = success.get("side") or context.get("side")
        if raw_side is None:
            raise MalformedResponseError("acknowledgment without side and no request context", raw)
        side = self.canonical(raw_side, Axis.SIDE, raw)

        configuration = raw.get("order_configuration")
        if not _non_empty_mapping(configuration):
            if "type" not in context:
                raise MalformedResponseError("acknowledgment without order configuration and no request context", raw)
            configuration = self.order_configuration(context)

        product_id = success.get("product_id") or context.get("symbol")
        if not product_id:
            raise MalformedResponseError("acknowledgment without product_id and no request context", raw)

        return {
            "venue": self.name,
            "venue_order_id": str(order_id),
            "client_order_id": success.get("client_order_id") or context.get("clientOrderId") or None,
            "symbol": self.neutral_symbol(product_id, context, raw),
            "side": side,
            "status": OrderStatus.NEW,
            "executed_quantity": None,
            "cumulative_quote_quantity": None,
            "fills": [],
            **self.decode_configuration(configuration, side, raw),
        }

    def parse_order_response(
        self,
        raw: Any,
        context: Optional[Mapping[str, Any]] = None,
    ) -> Union[ParsedOrder, VenueErrorPayload]:
        """
        Handles both shapes:
            {"order": {...}}                       Get order
            {"success": bool, "order_id": ..., ...} Create order
        """
        raw = expect_mapping(raw, "order response")

        if "order" in raw:
            return self._parse_order(raw["order"], context)

        if "success" in raw:
            if raw["success"] is True:
                # failure_reason may still say UNKNOWN_FAILURE_REASON here
                return self._parse_acknowledgment(raw, context)
            return self._error_payload(raw, None)

        if "error" in raw or "error_response" in raw:
            return self._error_payload(raw, None)

        raise MalformedResponseError("neither an order nor an acknowledgment", raw)

    def parse_error_response(self, raw: Any, http_status: int) -> VenueErrorPayload:
        if isinstance(raw, Mapping):
            return self._error_payload(raw, http_status)
        return VenueErrorPayload(venue=self.name, message=str(raw or "")[:500], http_status=http_status)

    def parse_order_list(
        self,
        raw: Any,
        params: Mapping[str, Any],
    ) -> Tuple[List[ParsedOrder], Optional[str]]:
        raw = expect_mapping(raw, "order list")
        orders = [self._parse_order(item, params) for item in expect_list(pick(raw, "orders", default=[]), "orders")]

        next_cursor = None
        if raw.get("has_next") in (True, "true") and raw.get("cursor"):
            next_cursor = str(raw["cursor"])
        return orders, next_cursor

    def parse_cancel_response(
        self,
        raw: Any,
        context: Mapping[str, Any],
    ) -> Union[ParsedOrder, VenueErrorPayload, str]:
        """
        batch_cancel answers {"results": [{"success", "failure_reason", "order_id"}]}.
        Success returns the order id; the gateway re-queries the final state.
        """
        raw = expect_mapping(raw, "cancel response")
        results = expect_list(pick(raw, "results"), "results")
        if not results:
            raise MalformedResponseError("empty cancel results", raw)

        wanted = context.get("orderId")
        result = next(
            (r for r in results if isinstance(r, Mapping) and r.get("order_id") == wanted),
            results[0],
        )
        result = expect_mapping(result, "cancel result")

        if result.get("success") is True:
            return str(result.get("order_id") or wanted)

        reason = result.get("failure_reason")
        return VenueErrorPayload(
            venue=self.name,
            code=str(reason) if reason else None,
            message=f"cancel rejected: {reason or 'no reason given'}",
        )

    def parse_balances(self, raw: Any) -> List[Dict[str, Any]]:
        raw = expect_mapping(raw, "accounts")
        balances = []
        for account in expect_list(pick(raw, "accounts"), "accounts"):
            account = expect_mapping(account, "account")
            available = expect_mapping(pick(account, "available_balance"), "available_balance")
            hold = account.get("hold") if isinstance(account.get("hold"), Mapping) else {}
            balances.append({
                "asset": pick(account, "currency"),
                "free": str(pick(available, "value")),
                "locked": str(hold.get("value") or "0"),
            })

        if raw.get("has_next") in (True, "true"):
            self.logger.warning(f"More than {ACCOUNTS_PAGE_SIZE} coinbase accounts; balances truncated to the first page")
        return balances

    def parse_candles(self, raw: Any, params: Mapping[str, Any]) -> List[Dict[str, Any]]:
        """Coinbase returns newest first; candles are returned oldest first."""
        raw = expect_mapping(raw, "candles")
        symbol = self.neutral_symbol(params["symbol"], params)
        interval: KlineInterval = self.canonical(params["interval"], Axis.INTERVAL)

        candles = []
        for item in expect_list(pick(raw, "candles"), "candles"):
            item = expect_mapping(item, "candle")
            try:
                open_time = epoch_seconds_to_millis(pick(item, "start"))
            except ValueError as e:
                raise MalformedResponseError(str(e), item)
            candles.append({
                "symbol": symbol,
                "interval": interval,
                "open_time_millis": open_time,
                "open": str(pick(item, "open")),
                "high": str(pick(item, "high")),
                "low": str(pick(item, "low")),
                "close": str(pick(item, "close")),
                "volume": str(pick(item, "volume")),
            })

        candles.sort(key=lambda c: c["open_time_millis"])
        return candles

    def parse_ticker(self, raw: Any, params: Mapping[str, Any]) -> Dict[str, Any]:
        raw = expect_mapping(raw, "product")
        return {
            "symbol": self.neutral_symbol(pick(raw, "product_id"), params, raw),
            "last_price": str(pick(raw, "price")),
            "price_change_percent": _amount(raw.get("price_percentage_change_24h")),
            "volume": _amount(raw.get("volume_24h")),
        }
