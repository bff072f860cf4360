"""
Response Normalizer

Turns the dictionaries produced by venue adapters into the immutable
canonical models. Venue-blind: everything venue-specific has already been
resolved by the adapter, so this module only validates and constructs.

Validation failures (missing or ill-typed fields) become
MalformedResponseError so the gateway reports them as UNKNOWN instead of
letting pydantic errors escape.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, ValidationError

from core.errors import MalformedResponseError
from core.schemas import Balance, Candle, Fill, NormalizedOrderResult, OrderPage, Ticker


ModelT = TypeVar("ModelT", bound=BaseModel)


def _build(model: Type[ModelT], data: Mapping[str, Any]) -> ModelT:
    try:
        return model.model_validate(dict(data))
    except ValidationError as e:
        # first error is enough to locate the bad field
        first = e.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        raise MalformedResponseError(f"{model.__name__}.{location}: {first.get('msg')}", data)


def build_order_result(parsed: Mapping[str, Any]) -> NormalizedOrderResult:
    """
    Build a NormalizedOrderResult from a parsed order dict.

    Fills keep the order the venue reported them in.

    Raises:
        MalformedResponseError: If the dict doesn't describe a valid order
    """
    data: Dict[str, Any] = dict(parsed)
    data["fills"] = tuple(_build(Fill, f) for f in parsed.get("fills") or ())
    return _build(NormalizedOrderResult, data)


def build_order_page(parsed_orders: Iterable[Mapping[str, Any]], next_cursor: Optional[str] = None) -> OrderPage:
    """Build one page of results; next_cursor None means last page."""
    orders = tuple(build_order_result(p) for p in parsed_orders)
    return OrderPage(orders=orders, next_cursor=next_cursor or None)


def build_balances(parsed: Iterable[Mapping[str, Any]]) -> List[Balance]:
    return [_build(Balance, b) for b in parsed]


def build_candles(parsed: Iterable[Mapping[str, Any]]) -> List[Candle]:
    return [_build(Candle, c) for c in parsed]


def build_ticker(parsed: Mapping[str, Any]) -> Ticker:
    return _build(Ticker, parsed)


def _trade_id_key(fill: Fill) -> Tuple[int, int, str]:
    if fill.trade_id.isdigit():
        return (0, int(fill.trade_id), "")
    return (1, 0, fill.trade_id)


def fills_by_trade_id(fills: Iterable[Fill]) -> Tuple[Fill, ...]:
    """
    Fills sorted by trade id, for comparing two results of the same order.

    Numeric ids sort numerically and before non-numeric ids; the sort is
    stable, so fills sharing an id keep their reported order.

    Example:
        >>> [f.trade_id for f in fills_by_trade_id(result.fills)]
        ['9', '10', '11']
    """
    return tuple(sorted(fills, key=_trade_id_key))
