"""
Enum Registry

Canonical, venue-agnostic enumerations plus the per-venue translation tables.
This is the single place that knows how each venue spells a side, an order
type, a time-in-force, a kline interval, a position side, a margin type or an
order status.

Tables are built once at import time and exposed through read-only
MappingProxyType views, so any number of concurrent readers can share them.

Usage:
    >>> translate(OrderType.LIMIT, Venue.COINBASE, Axis.TYPE)
    'LIMIT'
    >>> reverse_translate("CANCELLED", Venue.COINBASE, Axis.ORDER_STATUS)
    <OrderStatus.CANCELED: 'CANCELED'>
    >>> OrderType.LIMIT_MAKER in unsupported_values(Venue.COINBASE, Axis.TYPE)
    True
    >>> composition(OrderType.LIMIT_MAKER, Venue.COINBASE, Axis.TYPE)
    Composition(value='LIMIT', params=mappingproxy({'postOnly': True}))

Adding a venue means writing one table per axis (like _BINANCE), registering
it in _FORWARD and, where the venue lacks a direct mapping, adding a
composition rule to _COMPOSITIONS.
"""

from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Mapping, NamedTuple, Optional, Type, Union

from core.errors import RequestValidationError


# ============================================
# Canonical Enumerations
# ============================================

class Venue(str, Enum):
    """Supported venues (lowercase identifiers)."""

    BINANCE = "binance"
    COINBASE = "coinbase"


class OrderSide(str, Enum):
    """Order direction."""

    BUY = "BUY"
    SELL = "SELL"


class OrderType(str, Enum):
    """Order execution strategy."""

    LIMIT = "LIMIT"
    MARKET = "MARKET"
    STOP_LOSS = "STOP_LOSS"
    STOP_LOSS_LIMIT = "STOP_LOSS_LIMIT"
    TAKE_PROFIT = "TAKE_PROFIT"
    TAKE_PROFIT_LIMIT = "TAKE_PROFIT_LIMIT"
    LIMIT_MAKER = "LIMIT_MAKER"


class TimeInForce(str, Enum):
    """How long an order remains active."""

    GTC = "GTC"  # Good Til Canceled
    IOC = "IOC"  # Immediate Or Cancel
    FOK = "FOK"  # Fill Or Kill
    GTX = "GTX"  # Good Til Crossing (post only)


class KlineInterval(str, Enum):
    """Candlestick intervals ('M' is month, 'm' is minute)."""

    ONE_MINUTE = "1m"
    THREE_MINUTES = "3m"
    FIVE_MINUTES = "5m"
    FIFTEEN_MINUTES = "15m"
    THIRTY_MINUTES = "30m"
    ONE_HOUR = "1h"
    TWO_HOURS = "2h"
    FOUR_HOURS = "4h"
    SIX_HOURS = "6h"
    EIGHT_HOURS = "8h"
    TWELVE_HOURS = "12h"
    ONE_DAY = "1d"
    THREE_DAYS = "3d"
    ONE_WEEK = "1w"
    ONE_MONTH = "1M"


class PositionSide(str, Enum):
    """Position side for derivatives (BOTH = one-way mode)."""

    BOTH = "BOTH"
    LONG = "LONG"
    SHORT = "SHORT"


class MarginType(str, Enum):
    """Margin mode for derivatives."""

    ISOLATED = "ISOLATED"
    CROSS = "CROSS"


class OrderStatus(str, Enum):
    """Canonical order status, regardless of venue spelling."""

    NEW = "NEW"
    PARTIALLY_FILLED = "PARTIALLY_FILLED"
    FILLED = "FILLED"
    CANCELED = "CANCELED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"


class Axis(str, Enum):
    """Translation axes of the registry."""

    SIDE = "SIDE"
    TYPE = "TYPE"
    TIME_IN_FORCE = "TIME_IN_FORCE"
    INTERVAL = "INTERVAL"
    POSITION_SIDE = "POSITION_SIDE"
    MARGIN_TYPE = "MARGIN_TYPE"
    ORDER_STATUS = "ORDER_STATUS"


AXIS_ENUMS: Mapping[Axis, Type[Enum]] = MappingProxyType({
    Axis.SIDE: OrderSide,
    Axis.TYPE: OrderType,
    Axis.TIME_IN_FORCE: TimeInForce,
    Axis.INTERVAL: KlineInterval,
    Axis.POSITION_SIDE: PositionSide,
    Axis.MARGIN_TYPE: MarginType,
    Axis.ORDER_STATUS: OrderStatus,
})


class Composition(NamedTuple):
    """
    A venue-specific rule for a canonical value without a direct mapping.

    Attributes:
        value: Venue value to send on the same axis
        params: Extra canonical parameters the rule implies (e.g. postOnly)
    """

    value: str
    params: Mapping[str, Any]


# ============================================
# Translation Tables
# ============================================

_BINANCE: Dict[Axis, Dict[Enum, str]] = {
    Axis.SIDE: {OrderSide.BUY: "BUY", OrderSide.SELL: "SELL"},
    Axis.TYPE: {t: t.value for t in OrderType},
    # Spot has no GTX; post-only is expressed with the LIMIT_MAKER type
    Axis.TIME_IN_FORCE: {
        TimeInForce.GTC: "GTC",
        TimeInForce.IOC: "IOC",
        TimeInForce.FOK: "FOK",
    },
    Axis.INTERVAL: {i: i.value for i in KlineInterval},
    Axis.POSITION_SIDE: {p: p.value for p in PositionSide},
    Axis.MARGIN_TYPE: {MarginType.ISOLATED: "ISOLATED", MarginType.CROSS: "CROSSED"},
    Axis.ORDER_STATUS: {s: s.value for s in OrderStatus},
}

_COINBASE: Dict[Axis, Dict[Enum, str]] = {
    Axis.SIDE: {OrderSide.BUY: "BUY", OrderSide.SELL: "SELL"},
    Axis.TYPE: {
        OrderType.MARKET: "MARKET",
        OrderType.LIMIT: "LIMIT",
        OrderType.STOP_LOSS_LIMIT: "STOP_LIMIT",
    },
    Axis.TIME_IN_FORCE: {
        TimeInForce.GTC: "GOOD_UNTIL_CANCELLED",
        TimeInForce.IOC: "IMMEDIATE_OR_CANCEL",
        TimeInForce.FOK: "FILL_OR_KILL",
    },
    Axis.INTERVAL: {
        KlineInterval.ONE_MINUTE: "ONE_MINUTE",
        KlineInterval.FIVE_MINUTES: "FIVE_MINUTE",
        KlineInterval.FIFTEEN_MINUTES: "FIFTEEN_MINUTE",
        KlineInterval.THIRTY_MINUTES: "THIRTY_MINUTE",
        KlineInterval.ONE_HOUR: "ONE_HOUR",
        KlineInterval.TWO_HOURS: "TWO_HOUR",
        KlineInterval.SIX_HOURS: "SIX_HOUR",
        KlineInterval.ONE_DAY: "ONE_DAY",
    },
    Axis.POSITION_SIDE: {},
    Axis.MARGIN_TYPE: {MarginType.ISOLATED: "ISOLATED", MarginType.CROSS: "CROSS"},
    # PARTIALLY_FILLED has no wire spelling; the adapter derives it from filled_size
    Axis.ORDER_STATUS: {
        OrderStatus.NEW: "OPEN",
        OrderStatus.FILLED: "FILLED",
        OrderStatus.CANCELED: "CANCELLED",
        OrderStatus.REJECTED: "FAILED",
        OrderStatus.EXPIRED: "EXPIRED",
    },
}

# Extra venue spellings accepted by reverse_translate only
_ALIASES: Dict[Venue, Dict[Axis, Dict[str, Enum]]] = {
    Venue.BINANCE: {
        Axis.ORDER_STATUS: {
            "EXPIRED_IN_MATCH": OrderStatus.EXPIRED,
            "PENDING_NEW": OrderStatus.NEW,
            "PENDING_CANCEL": OrderStatus.NEW,
        },
        Axis.MARGIN_TYPE: {"CROSS": MarginType.CROSS},
    },
    Venue.COINBASE: {
        Axis.TIME_IN_FORCE: {
            "GOOD_TIL_CANCELLED": TimeInForce.GTC,
            "GOOD_UNTIL_DATE_TIME": TimeInForce.GTC,
        },
        Axis.ORDER_STATUS: {
            "PENDING": OrderStatus.NEW,
            "QUEUED": OrderStatus.NEW,
            "CANCEL_QUEUED": OrderStatus.NEW,
            "CANCELED": OrderStatus.CANCELED,
        },
        Axis.MARGIN_TYPE: {"CROSSED": MarginType.CROSS},
    },
}

_COMPOSITIONS: Dict[Venue, Dict[Axis, Dict[Enum, Composition]]] = {
    Venue.BINANCE: {},
    Venue.COINBASE: {
        Axis.TYPE: {
            OrderType.LIMIT_MAKER: Composition("LIMIT", MappingProxyType({"postOnly": True})),
            # take-profit is a stop-limit whose trigger sits on the other side
            OrderType.TAKE_PROFIT_LIMIT: Composition("STOP_LIMIT", MappingProxyType({"invertStop": True})),
        },
        Axis.TIME_IN_FORCE: {
            TimeInForce.GTX: Composition("GOOD_UNTIL_CANCELLED", MappingProxyType({"postOnly": True})),
        },
    },
}


def _freeze(tables: Dict[Axis, Dict[Enum, str]]) -> Mapping[Axis, Mapping[Enum, str]]:
    return MappingProxyType({axis: MappingProxyType(dict(table)) for axis, table in tables.items()})


_FORWARD: Mapping[Venue, Mapping[Axis, Mapping[Enum, str]]] = MappingProxyType({
    Venue.BINANCE: _freeze(_BINANCE),
    Venue.COINBASE: _freeze(_COINBASE),
})


def _build_reverse() -> Mapping[Venue, Mapping[Axis, Mapping[str, Enum]]]:
    reverse = {}
    for venue, axes in _FORWARD.items():
        per_axis = {}
        for axis, table in axes.items():
            inverse = {wire: canonical for canonical, wire in table.items()}
            if len(inverse) != len(table):
                raise RuntimeError(f"Ambiguous {venue.value} {axis.value} table")
            inverse.update(_ALIASES.get(venue, {}).get(axis, {}))
            per_axis[axis] = MappingProxyType(inverse)
        reverse[venue] = MappingProxyType(per_axis)
    return MappingProxyType(reverse)


_REVERSE = _build_reverse()


# ============================================
# Registry API
# ============================================

def coerce_venue(venue: Union[Venue, str]) -> Venue:
    """
    Resolve a venue tag (case-insensitive) to the Venue enum.

    Raises:
        RequestValidationError: If the venue is unknown
    """
    if isinstance(venue, Venue):
        return venue
    try:
        return Venue(str(venue).strip().lower())
    except ValueError:
        available = ", ".join(v.value for v in Venue)
        raise RequestValidationError("venue", f"unknown venue '{venue}' (available: {available})")


def _coerce_canonical(value: Union[Enum, str], axis: Axis) -> Enum:
    enum_type = AXIS_ENUMS[axis]
    if isinstance(value, enum_type):
        return value
    try:
        return enum_type(value)
    except ValueError:
        raise RequestValidationError(axis.value.lower(), f"'{value}' is not a canonical {enum_type.__name__}")


def translate(value: Union[Enum, str], venue: Union[Venue, str], axis: Axis) -> str:
    """
    Translate a canonical value into the venue's spelling.

    Args:
        value: Canonical enum member (or its string value)
        venue: Target venue
        axis: Which enumeration the value belongs to

    Returns:
        str: Venue wire value

    Raises:
        RequestValidationError: If the venue has no direct mapping for the value

    Example:
        >>> translate(MarginType.CROSS, "binance", Axis.MARGIN_TYPE)
        'CROSSED'
    """
    venue = coerce_venue(venue)
    canonical = _coerce_canonical(value, axis)
    try:
        return _FORWARD[venue][axis][canonical]
    except KeyError:
        raise RequestValidationError(
            axis.value.lower(),
            f"{canonical.value} is not supported by {venue.value}",
        )


def reverse_translate(venue_value: str, venue: Union[Venue, str], axis: Axis) -> Enum:
    """
    Translate a venue spelling back into the canonical enum member.

    Raises:
        RequestValidationError: If the venue value is unknown on that axis

    Example:
        >>> reverse_translate("FILL_OR_KILL", "coinbase", Axis.TIME_IN_FORCE)
        <TimeInForce.FOK: 'FOK'>
    """
    venue = coerce_venue(venue)
    try:
        return _REVERSE[venue][axis][venue_value]
    except (KeyError, TypeError):
        raise RequestValidationError(
            axis.value.lower(),
            f"'{venue_value}' is not a known {venue.value} {axis.value.lower()} value",
        )


def supported_values(venue: Union[Venue, str], axis: Axis) -> FrozenSet[Enum]:
    """Canonical values the venue maps directly on an axis."""
    venue = coerce_venue(venue)
    return frozenset(_FORWARD[venue][axis].keys())


def unsupported_values(venue: Union[Venue, str], axis: Axis) -> FrozenSet[Enum]:
    """Canonical values with no direct mapping on the venue (compositions included)."""
    return frozenset(AXIS_ENUMS[axis]) - supported_values(venue, axis)


def composition(value: Union[Enum, str], venue: Union[Venue, str], axis: Axis) -> Optional[Composition]:
    """
    Look up the documented composition rule for an unsupported value.

    Returns:
        Composition, or None when the venue has no rule for the value
    """
    venue = coerce_venue(venue)
    canonical = _coerce_canonical(value, axis)
    return _COMPOSITIONS.get(venue, {}).get(axis, {}).get(canonical)
