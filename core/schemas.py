"""
Normalized Data Schemas

This module defines Pydantic models for order requests, order results and
the market/account data the gateway returns. These schemas provide a unified,
venue-agnostic data format.

Key Principle:
    Regardless of which venue the data comes from (Binance, Coinbase, ...),
    it gets normalized into these standardized schemas. Callers work with
    consistent data structures and never see venue field spellings.

Models:
    - NormalizedOrderRequest: Venue-agnostic order to submit
    - OrderRef / OrderListFilter: Lookup and listing parameters
    - Fill / NormalizedOrderResult / OrderPage: Order state as reported by a venue
    - Balance / Candle / Ticker: Account and market data
    - VenueCredentials: Caller-owned API credentials

All models are immutable (frozen). Attribute names are snake_case; the
camelCase aliases (venueOrderId, timeInForce, ...) are used when dumping with
by_alias=True and are accepted on input.
"""

from typing import Any, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator, model_validator
from pydantic.alias_generators import to_camel

from core.enums import OrderSide, OrderStatus, OrderType, TimeInForce, KlineInterval


# ============================================
# Base Model
# ============================================

class FrozenModel(BaseModel):
    """
    Base model for all schemas in this module.

    - frozen: instances are immutable value objects; re-queries produce
      new instances instead of mutating old ones
    - camelCase aliases for the wire-facing dump format
    - extra fields rejected so typos surface immediately
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )


# ============================================
# Order Request Schemas
# ============================================

class NormalizedOrderRequest(FrozenModel):
    """
    Venue-agnostic order request.

    Construction checks field shapes only. The cross-field rules (price
    required for LIMIT, stop price for stop/take-profit, exactly one of
    quantity/quote_order_qty for MARKET, ...) are enforced by
    core.normalizer.normalize(), which reports violations as VALIDATION
    errors naming the offending field.

    Attributes:
        symbol: Venue-neutral pair "BASE-QUOTE" (e.g. "BTC-USDT")
        side: BUY or SELL
        type: Order type (LIMIT, MARKET, STOP_LOSS, ...)
        time_in_force: GTC/IOC/FOK/GTX (LIMIT-family only)
        quantity: Base asset amount (decimal string)
        quote_order_qty: Quote asset amount for MARKET orders (decimal string)
        price: Limit price (decimal string)
        stop_price: Trigger price for stop/take-profit orders (decimal string)
        client_order_id: Caller-supplied idempotency token
        leverage: Leverage for margin products (decimal string)
        exchange_specific_params: Venue parameters merged after canonical fields

    Example:
        >>> request = NormalizedOrderRequest(
        ...     symbol="BTC-USDT",
        ...     side=OrderSide.BUY,
        ...     type=OrderType.LIMIT,
        ...     time_in_force=TimeInForce.GTC,
        ...     quantity="0.001",
        ...     price="50000",
        ... )
    """

    symbol: str = Field(..., min_length=3, description="Venue-neutral pair, e.g. BTC-USDT")
    side: OrderSide
    type: OrderType
    time_in_force: Optional[TimeInForce] = None
    quantity: Optional[str] = None
    quote_order_qty: Optional[str] = None
    price: Optional[str] = None
    stop_price: Optional[str] = None
    client_order_id: Optional[str] = Field(None, min_length=1, max_length=64)
    leverage: Optional[str] = None
    exchange_specific_params: Mapping[str, Any] = Field(default_factory=dict)

    @field_validator("symbol")
    @classmethod
    def validate_symbol(cls, v: str) -> str:
        """Venue-neutral symbols are upper-case BASE-QUOTE pairs"""
        v = v.strip().upper()
        base, sep, quote = v.partition("-")
        if not sep or not base or not quote or "-" in quote:
            raise ValueError(f"symbol must look like BASE-QUOTE, got '{v}'")
        return v

    @field_validator("quantity", "quote_order_qty", "price", "stop_price", "leverage", mode="before")
    @classmethod
    def reject_float_amounts(cls, v: Any) -> Any:
        """Amounts are decimal strings; floats would already have lost precision"""
        if isinstance(v, float):
            raise ValueError("amounts must be decimal strings, not floats")
        return v


class OrderRef(FrozenModel):
    """
    Reference to an existing order.

    Exactly one of venue_order_id / client_order_id must be given. Binance
    lookups also need the symbol.
    """

    symbol: Optional[str] = None
    venue_order_id: Optional[str] = None
    client_order_id: Optional[str] = None

    @field_validator("venue_order_id", mode="before")
    @classmethod
    def stringify_order_id(cls, v: Any) -> Any:
        """Venue order ids are always strings, even when the venue uses integers"""
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @model_validator(mode="after")
    def check_exactly_one_id(self) -> "OrderRef":
        if (self.venue_order_id is None) == (self.client_order_id is None):
            raise ValueError("exactly one of venue_order_id or client_order_id is required")
        return self


class OrderListFilter(FrozenModel):
    """
    Filter for order listing.

    Attributes:
        symbol: Venue-neutral pair (required by Binance)
        open_only: Only orders still working on the book
        start_time_millis / end_time_millis: Creation time window
        limit: Page size (settings.default_page_limit when None)
    """

    symbol: Optional[str] = None
    open_only: bool = False
    start_time_millis: Optional[int] = Field(None, ge=0)
    end_time_millis: Optional[int] = Field(None, ge=0)
    limit: Optional[int] = Field(None, ge=1, le=1000)


# ============================================
# Order Result Schemas
# ============================================

class Fill(FrozenModel):
    """
    A single execution against an order.

    Attributes:
        price: Execution price
        quantity: Executed base quantity
        commission: Fee charged for this fill
        commission_asset: Asset the fee was charged in
        trade_id: Venue trade id (stringified)
    """

    price: str
    quantity: str
    commission: str
    commission_asset: str
    trade_id: str

    @field_validator("trade_id", mode="before")
    @classmethod
    def stringify_trade_id(cls, v: Any) -> Any:
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v


class NormalizedOrderResult(FrozenModel):
    """
    Canonical order state produced after a successful submit/query/cancel.

    Attributes:
        venue: Venue identifier
        venue_order_id: Venue order id, always a string
        client_order_id: Caller idempotency token, if the venue reports one
        symbol: Venue-neutral pair (BASE-QUOTE)
        side / type / time_in_force: Canonical enums. Coinbase only stores a
            post_only flag, so post-only orders come back as LIMIT_MAKER with
            GTC whether they were submitted as LIMIT_MAKER or as LIMIT with
            GTX; submit and later queries report the same pair
        status: Canonical status (NEW, PARTIALLY_FILLED, FILLED, CANCELED, REJECTED, EXPIRED)
        price: Limit price, if any
        orig_quantity: Requested base quantity (None for quote-sized orders
                       when the venue doesn't report one)
        orig_quote_quantity: Requested quote amount for quote-sized orders
        executed_quantity: Filled base quantity (None when the venue only acknowledged)
        cumulative_quote_quantity: Filled quote value (None when only acknowledged)
        created_at_millis / updated_at_millis: Epoch milliseconds
        fills: Executions in venue order (empty when the venue reports none)
    """

    venue: str
    venue_order_id: str
    client_order_id: Optional[str] = None
    symbol: str
    side: OrderSide
    type: OrderType
    time_in_force: Optional[TimeInForce] = None
    status: OrderStatus
    price: Optional[str] = None
    stop_price: Optional[str] = None
    orig_quantity: Optional[str] = None
    orig_quote_quantity: Optional[str] = None
    executed_quantity: Optional[str] = None
    cumulative_quote_quantity: Optional[str] = None
    created_at_millis: Optional[int] = Field(None, ge=0)
    updated_at_millis: Optional[int] = Field(None, ge=0)
    fills: Tuple[Fill, ...] = ()

    @field_validator("venue_order_id", mode="before")
    @classmethod
    def stringify_order_id(cls, v: Any) -> Any:
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @property
    def is_open(self) -> bool:
        """True while the order can still execute."""
        return self.status in (OrderStatus.NEW, OrderStatus.PARTIALLY_FILLED)


class OrderPage(FrozenModel):
    """
    One page of listed orders.

    next_cursor is an opaque token to pass back to list_orders for the next
    page; None means there are no further pages.
    """

    orders: Tuple[NormalizedOrderResult, ...] = ()
    next_cursor: Optional[str] = None


# ============================================
# Account & Market Data Schemas
# ============================================

class Balance(FrozenModel):
    """Available and locked amount of one asset."""

    asset: str
    free: str
    locked: str


class Candle(FrozenModel):
    """
    Candlestick (kline) data point.

    Attributes:
        symbol: Venue-neutral pair
        interval: Canonical interval
        open_time_millis: Candle open time (epoch ms)
        open / high / low / close: Prices (decimal strings)
        volume: Base asset volume
        close_time_millis / quote_volume / trades_count: Reported by some venues only
    """

    symbol: str
    interval: KlineInterval
    open_time_millis: int = Field(..., ge=0)
    open: str
    high: str
    low: str
    close: str
    volume: str
    close_time_millis: Optional[int] = Field(None, ge=0)
    quote_volume: Optional[str] = None
    trades_count: Optional[int] = Field(None, ge=0)


class Ticker(FrozenModel):
    """
    24h ticker snapshot.

    Only last_price is published by every venue; the remaining statistics
    are None when a venue doesn't report them.
    """

    symbol: str
    last_price: str
    price_change_percent: Optional[str] = None
    volume: Optional[str] = None
    quote_volume: Optional[str] = None
    bid_price: Optional[str] = None
    ask_price: Optional[str] = None
    high_price: Optional[str] = None
    low_price: Optional[str] = None
    timestamp_millis: Optional[int] = Field(None, ge=0)


# ============================================
# Credentials
# ============================================

class VenueCredentials(FrozenModel):
    """
    Caller-owned API credentials.

    Secrets are SecretStr so they never appear in repr(), str() or logs.
    The signer reads the secret only for the duration of one signing call.

    Example:
        >>> creds = VenueCredentials(api_key="key", secret_key="secret")
        >>> creds
        VenueCredentials(api_key='key', secret_key=SecretStr('**********'), passphrase=None, user_id=None)
    """

    api_key: str = Field(..., min_length=1)
    secret_key: SecretStr
    passphrase: Optional[SecretStr] = None
    user_id: Optional[str] = None
