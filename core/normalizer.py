"""
Request Normalizer

Turns venue-agnostic requests into the parameter mappings venue adapters
lay out on the wire.

Responsibilities:
    - Enforce the order-request invariants (required/forbidden fields per type)
    - Reject values the venue can't express, before any network call
    - Canonicalize decimal strings without changing precision
    - Convert symbols between the neutral BASE-QUOTE form and venue spellings
    - Apply the registry's composition rules (e.g. Coinbase post-only)
    - Merge exchange_specific_params last, so only explicit caller
      overrides can replace canonical fields

Output keys (order-request mapping, in this order when present):
    symbol, side, type, timeInForce, quantity, quoteOrderQty, price,
    stopPrice, clientOrderId, leverage, postOnly, stopDirection,
    followed by any exchange_specific_params.

stopDirection is "UP" or "DOWN": the price move that triggers a stop order.
It is only emitted where the venue needs it spelled out (Coinbase stop-limit).

Tick/lot-size rounding is the caller's job; amounts are never rounded here.
"""

from typing import Any, Dict, Optional, Tuple, Union

from core.enums import (
    Axis,
    KlineInterval,
    OrderSide,
    OrderType,
    TimeInForce,
    Venue,
    coerce_venue,
    composition,
    supported_values,
    translate,
)
from core.errors import RequestValidationError
from core.logging import get_logger
from core.schemas import NormalizedOrderRequest, OrderListFilter, OrderRef
from core.utils.decimals import canonical_decimal


logger = get_logger(__name__)


LIMIT_FAMILY = frozenset({OrderType.LIMIT, OrderType.LIMIT_MAKER, OrderType.STOP_LOSS_LIMIT, OrderType.TAKE_PROFIT_LIMIT})
STOP_FAMILY = frozenset({OrderType.STOP_LOSS, OrderType.STOP_LOSS_LIMIT, OrderType.TAKE_PROFIT, OrderType.TAKE_PROFIT_LIMIT})
MAKER_TIME_IN_FORCE = frozenset({TimeInForce.GTC, TimeInForce.GTX})

# Quote assets used to split concatenated Binance symbols, longest match first
BINANCE_QUOTE_ASSETS = (
    "FDUSD", "USDT", "USDC", "BUSD", "TUSD", "USDP", "DAI",
    "BTC", "ETH", "BNB", "EUR", "GBP", "TRY", "BRL", "JPY", "AUD", "USD",
)


# ============================================
# Symbols
# ============================================

def to_venue_symbol(symbol: str, venue: Union[Venue, str]) -> str:
    """
    Convert a neutral BASE-QUOTE symbol into the venue spelling.

    Example:
        >>> to_venue_symbol("BTC-USDT", "binance")
        'BTCUSDT'
        >>> to_venue_symbol("btc-usd", "coinbase")
        'BTC-USD'
    """
    venue = coerce_venue(venue)
    base, sep, quote = symbol.strip().upper().partition("-")
    if not sep or not base or not quote:
        raise RequestValidationError("symbol", f"expected BASE-QUOTE, got '{symbol}'")

    if venue is Venue.BINANCE:
        return f"{base}{quote}"
    return f"{base}-{quote}"


def from_venue_symbol(venue_symbol: str, venue: Union[Venue, str], hint: Optional[str] = None) -> str:
    """
    Convert a venue symbol back into the neutral BASE-QUOTE form.

    Binance concatenates base and quote, so the split is ambiguous in
    general. When the caller knows which neutral symbol it asked for (hint)
    and it matches, the hint wins; otherwise the longest known quote-asset
    suffix is used.

    Raises:
        ValueError: If the symbol can't be split
    """
    venue = coerce_venue(venue)
    venue_symbol = venue_symbol.strip().upper()

    if hint:
        try:
            if to_venue_symbol(hint, venue) == venue_symbol:
                return hint.strip().upper()
        except RequestValidationError:
            # malformed hint: fall back to splitting the venue symbol
            pass

    if venue is Venue.COINBASE:
        base, sep, quote = venue_symbol.partition("-")
        if sep and base and quote:
            return venue_symbol
        raise ValueError(f"unexpected coinbase product id '{venue_symbol}'")

    for quote in BINANCE_QUOTE_ASSETS:
        if venue_symbol.endswith(quote) and len(venue_symbol) > len(quote):
            return f"{venue_symbol[:-len(quote)]}-{quote}"
    raise ValueError(f"can't split binance symbol '{venue_symbol}' into base and quote")


# ============================================
# Order Requests
# ============================================

def _decimal(field: str, value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    try:
        return canonical_decimal(value)
    except ValueError as e:
        raise RequestValidationError(field, str(e))


def _require(field: str, value: Any, order_type: OrderType) -> None:
    if value is None:
        raise RequestValidationError(field, f"required for {order_type.value} orders")


def _forbid(field: str, value: Any, order_type: OrderType) -> None:
    if value is not None:
        raise RequestValidationError(field, f"not allowed for {order_type.value} orders")


def validate_order_request(request: NormalizedOrderRequest) -> None:
    """
    Check the venue-independent order invariants.

    Raises:
        RequestValidationError: Naming the first offending field
    """
    order_type = request.type

    if order_type is OrderType.MARKET:
        if (request.quantity is None) == (request.quote_order_qty is None):
            raise RequestValidationError(
                "quantity",
                "MARKET orders need exactly one of quantity or quote_order_qty",
            )
        _forbid("price", request.price, order_type)
        _forbid("stop_price", request.stop_price, order_type)
        _forbid("time_in_force", request.time_in_force, order_type)
        return

    _require("quantity", request.quantity, order_type)
    _forbid("quote_order_qty", request.quote_order_qty, order_type)

    if order_type in STOP_FAMILY:
        _require("stop_price", request.stop_price, order_type)
    else:
        _forbid("stop_price", request.stop_price, order_type)

    if order_type in LIMIT_FAMILY:
        _require("price", request.price, order_type)
    else:
        # STOP_LOSS / TAKE_PROFIT execute at market once triggered
        _forbid("price", request.price, order_type)
        _forbid("time_in_force", request.time_in_force, order_type)

    if order_type is OrderType.LIMIT_MAKER:
        # LIMIT_MAKER is itself the post-only marker
        if request.time_in_force is not None and request.time_in_force not in MAKER_TIME_IN_FORCE:
            raise RequestValidationError(
                "time_in_force",
                f"{request.time_in_force.value} conflicts with post-only LIMIT_MAKER orders",
            )
    elif order_type in LIMIT_FAMILY:
        _require("time_in_force", request.time_in_force, order_type)


def stop_direction(side: OrderSide, invert: bool = False) -> str:
    """
    Direction of the price move that triggers a stop order.

    A stop-loss sell triggers when the price falls, a stop-loss buy when it
    rises. Take-profit orders trigger on the opposite move.
    """
    falling = side is OrderSide.SELL
    if invert:
        falling = not falling
    return "DOWN" if falling else "UP"


def _translate_or_compose(value, venue: Venue, axis: Axis) -> Tuple[str, Dict[str, Any]]:
    if value in supported_values(venue, axis):
        return translate(value, venue, axis), {}

    rule = composition(value, venue, axis)
    if rule is None:
        # raises a VALIDATION error naming the unsupported value
        translate(value, venue, axis)
    return rule.value, dict(rule.params)


def normalize(request: NormalizedOrderRequest, venue: Union[Venue, str]) -> Dict[str, Any]:
    """
    Validate an order request and map it to the venue's parameter set.

    Args:
        request: Venue-agnostic order request
        venue: Target venue

    Returns:
        Dict[str, Any]: Ordered parameters (see module docstring for keys)

    Raises:
        RequestValidationError: On any invariant violation or unsupported value

    Example:
        >>> normalize(limit_request, "binance")
        {'symbol': 'BTCUSDT', 'side': 'BUY', 'type': 'LIMIT', 'timeInForce': 'GTC',
         'quantity': '0.001', 'price': '50000'}
    """
    venue = coerce_venue(venue)
    validate_order_request(request)

    params: Dict[str, Any] = {}
    implied: Dict[str, Any] = {}

    params["symbol"] = to_venue_symbol(request.symbol, venue)
    params["side"] = translate(request.side, venue, Axis.SIDE)

    type_value, type_params = _translate_or_compose(request.type, venue, Axis.TYPE)
    params["type"] = type_value
    implied.update(type_params)

    if request.type is OrderType.LIMIT_MAKER:
        if venue is Venue.COINBASE:
            params["timeInForce"] = translate(TimeInForce.GTC, venue, Axis.TIME_IN_FORCE)
    elif request.time_in_force is not None:
        if request.time_in_force is TimeInForce.GTX and venue is Venue.BINANCE:
            raise RequestValidationError(
                "time_in_force",
                "GTX is not supported by binance spot; use the LIMIT_MAKER order type",
            )
        tif_value, tif_params = _translate_or_compose(request.time_in_force, venue, Axis.TIME_IN_FORCE)
        params["timeInForce"] = tif_value
        implied.update(tif_params)

    quantity = _decimal("quantity", request.quantity)
    quote_order_qty = _decimal("quote_order_qty", request.quote_order_qty)
    price = _decimal("price", request.price)
    stop_price = _decimal("stop_price", request.stop_price)
    leverage = _decimal("leverage", request.leverage)

    if quantity is not None:
        params["quantity"] = quantity
    if quote_order_qty is not None:
        params["quoteOrderQty"] = quote_order_qty
    if price is not None:
        params["price"] = price
    if stop_price is not None:
        params["stopPrice"] = stop_price
    if request.client_order_id is not None:
        params["clientOrderId"] = request.client_order_id

    if leverage is not None:
        if venue is Venue.BINANCE:
            raise RequestValidationError("leverage", "not accepted on binance spot order requests")
        params["leverage"] = leverage

    if implied.get("postOnly"):
        params["postOnly"] = True

    if venue is Venue.COINBASE and request.type in STOP_FAMILY:
        params["stopDirection"] = stop_direction(request.side, invert=bool(implied.get("invertStop")))

    for key, value in request.exchange_specific_params.items():
        if key in params and params[key] != value:
            logger.debug(f"exchange_specific_params override '{key}' for {venue.value}")
        params[key] = value

    return params


# ============================================
# Lookups, Listings and Market Data
# ============================================

def normalize_order_ref(ref: OrderRef, venue: Union[Venue, str]) -> Dict[str, Any]:
    """
    Map an order reference to lookup parameters.

    Returns keys symbol (venue spelling, when given), orderId, clientOrderId.

    Raises:
        RequestValidationError: If the venue can't look the order up with
                                the identifiers provided
    """
    venue = coerce_venue(venue)
    params: Dict[str, Any] = {}

    if venue is Venue.BINANCE and ref.symbol is None:
        raise RequestValidationError("symbol", "binance order lookups require the symbol")
    if venue is Venue.COINBASE and ref.venue_order_id is None:
        raise RequestValidationError("venue_order_id", "coinbase order lookups require the venue order id")

    if ref.symbol is not None:
        params["symbol"] = to_venue_symbol(ref.symbol, venue)
    if ref.venue_order_id is not None:
        params["orderId"] = ref.venue_order_id
    if ref.client_order_id is not None:
        params["clientOrderId"] = ref.client_order_id
    return params


def normalize_list_filter(
    order_filter: OrderListFilter,
    venue: Union[Venue, str],
    cursor: Optional[str] = None,
    default_limit: int = 100,
) -> Dict[str, Any]:
    """
    Map an order-list filter and pagination cursor to listing parameters.

    Returns keys symbol, openOnly, startTime, endTime, limit, cursor.

    Raises:
        RequestValidationError: For filters the venue can't serve
    """
    venue = coerce_venue(venue)

    if (
        order_filter.start_time_millis is not None
        and order_filter.end_time_millis is not None
        and order_filter.start_time_millis > order_filter.end_time_millis
    ):
        raise RequestValidationError("start_time_millis", "must not be after end_time_millis")

    if venue is Venue.BINANCE:
        if order_filter.symbol is None and not order_filter.open_only:
            raise RequestValidationError("symbol", "binance order history requires the symbol")
        if cursor is not None and not cursor.isdigit():
            raise RequestValidationError("cursor", f"'{cursor}' is not a binance order-history cursor")

    params: Dict[str, Any] = {"openOnly": order_filter.open_only}
    if order_filter.symbol is not None:
        params["symbol"] = to_venue_symbol(order_filter.symbol, venue)
    if order_filter.start_time_millis is not None:
        params["startTime"] = order_filter.start_time_millis
    if order_filter.end_time_millis is not None:
        params["endTime"] = order_filter.end_time_millis
    params["limit"] = order_filter.limit or default_limit
    if cursor:
        params["cursor"] = cursor
    return params


def normalize_candle_query(
    symbol: str,
    interval: Union[KlineInterval, str],
    venue: Union[Venue, str],
    limit: Optional[int] = None,
    start_time_millis: Optional[int] = None,
    end_time_millis: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Map a candle query to parameters (symbol, interval, limit, startTime, endTime).

    Raises:
        RequestValidationError: If the interval isn't offered by the venue
    """
    venue = coerce_venue(venue)
    params: Dict[str, Any] = {
        "symbol": to_venue_symbol(symbol, venue),
        "interval": translate(interval, venue, Axis.INTERVAL),
    }
    if limit is not None:
        if limit < 1:
            raise RequestValidationError("limit", "must be positive")
        params["limit"] = limit
    if start_time_millis is not None:
        params["startTime"] = start_time_millis
    if end_time_millis is not None:
        params["endTime"] = end_time_millis
    return params
