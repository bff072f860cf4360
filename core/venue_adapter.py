"""
Venue Adapter - Abstract Contract for All Venues

This module defines the abstract base class that every venue adapter must
implement. An adapter is pure translation: it lays normalized parameters out
as a venue HTTP request, signs it, and turns the venue's JSON back into plain
dictionaries the Response Normalizer can validate. Adapters never perform I/O
and never build NormalizedError; failures are reported as VenueErrorPayload
values or MalformedResponseError.

Design Philosophy:
    "Program to an interface, not an implementation"

    OrderGateway works with VenueAdapter only. Adding a venue means writing
    one subclass plus its registry tables, without touching the gateway.

Example:
    class BinanceAdapter(VenueAdapter):
        name = "binance"

        def build_submit_order(self, params):
            return VenueRequest(method="POST", path="/api/v3/order", ...)

    adapter = gateway.get_adapter("binance")
    request = adapter.build_request(Operation.SUBMIT_ORDER, params)

Capabilities System:
    Each adapter declares which operations it supports via `capabilities`.
    build_request() refuses operations the adapter doesn't support with a
    VALIDATION error, before anything is sent.

Parsed order dictionaries:
    parse_order_response / parse_order_list / parse_cancel_response return
    dictionaries keyed by NormalizedOrderResult field names (venue,
    venue_order_id, symbol, side, type, status, ..., fills). Values are
    already canonical: enum members, epoch-millisecond ints, string ids.
"""

import json
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Dict, List, Literal, Mapping, Optional, Tuple, Union
from urllib.parse import urlencode

from pydantic import BaseModel, ConfigDict, Field

from core.enums import Axis, reverse_translate
from core.errors import MalformedResponseError, RequestValidationError, VenueErrorPayload
from core.normalizer import from_venue_symbol
from core.schemas import VenueCredentials
from core.signer import Signer


class Operation(str, Enum):
    """Operations an adapter can build requests for."""

    SUBMIT_ORDER = "submit_order"
    QUERY_ORDER = "query_order"
    CANCEL_ORDER = "cancel_order"
    LIST_ORDERS = "list_orders"
    BALANCES = "balances"
    CANDLES = "candles"
    TICKER = "ticker"


class VenueRequest(BaseModel):
    """
    A fully laid-out venue HTTP request.

    Parameter mappings keep insertion order; that order is what gets signed
    and what goes on the wire.

    Attributes:
        method: HTTP method
        path: Path below the venue base URL (e.g. "/api/v3/order")
        query_params: Query string parameters
        body_params: Body parameters (POST/PUT)
        body_format: "form" (x-www-form-urlencoded) or "json"
        headers: Extra HTTP headers (auth headers are added by signing)
        signed: Whether the request needs credentials
    """

    model_config = ConfigDict(frozen=True)

    method: Literal["GET", "POST", "PUT", "DELETE"]
    path: str
    query_params: Dict[str, Any] = Field(default_factory=dict)
    body_params: Dict[str, Any] = Field(default_factory=dict)
    body_format: Literal["form", "json"] = "json"
    headers: Dict[str, str] = Field(default_factory=dict)
    signed: bool = False

    @property
    def query_string(self) -> str:
        return urlencode([(k, _wire_value(v)) for k, v in self.query_params.items()])

    @property
    def encoded_body(self) -> str:
        """
        Body exactly as sent (and as signed).

        JSON uses compact separators so the signed bytes and the sent bytes
        are identical.
        """
        if not self.body_params:
            return ""
        if self.body_format == "form":
            return urlencode([(k, _wire_value(v)) for k, v in self.body_params.items()])
        return json.dumps(self.body_params, separators=(",", ":"))

    @property
    def content_type(self) -> Optional[str]:
        if not self.body_params:
            return None
        if self.body_format == "form":
            return "application/x-www-form-urlencoded"
        return "application/json"

    def url(self, base_url: str) -> str:
        """Absolute URL including the query string."""
        url = f"{base_url.rstrip('/')}{self.path}"
        query = self.query_string
        return f"{url}?{query}" if query else url


def _wire_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def wire_params(params: Mapping[str, Any]) -> Dict[str, str]:
    """Stringify parameter values the way they are encoded on the wire."""
    return {k: _wire_value(v) for k, v in params.items() if v is not None}


# ============================================
# Parsing Helpers
# ============================================

_MISSING = object()


def pick(raw: Mapping[str, Any], *names: str, default: Any = _MISSING) -> Any:
    """
    Return the first present (non-None) field among alias spellings.

    Venues document fields in more than one spelling (orderId / order_id);
    adapters list every accepted spelling here.

    Raises:
        MalformedResponseError: If none is present and no default was given
    """
    for name in names:
        value = raw.get(name)
        if value is not None:
            return value
    if default is _MISSING:
        raise MalformedResponseError(f"missing required field '{names[0]}'", raw)
    return default


def expect_mapping(raw: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(raw, Mapping):
        raise MalformedResponseError(f"expected a JSON object for {what}, got {type(raw).__name__}", raw)
    return raw


def expect_list(raw: Any, what: str) -> List[Any]:
    if not isinstance(raw, list):
        raise MalformedResponseError(f"expected a JSON array for {what}, got {type(raw).__name__}", raw)
    return raw


# ============================================
# Adapter Contract
# ============================================

ParsedOrder = Dict[str, Any]

# Context key carrying the neutral symbol the caller asked for
SYMBOL_HINT = "neutralSymbol"


class VenueAdapter(ABC):
    """
    Abstract Base Class for Venue Adapters

    Class Attributes:
        name: Unique venue identifier (lowercase, e.g. "binance")
        capabilities: Which Operation values the adapter supports
        error_kinds: Venue error code -> ErrorKind table, consumed only by
                     the gateway's classifier

    Abstract Methods:
        - build_submit_order / build_query_order / build_cancel_order /
          build_list_orders / build_balances / build_candles / build_ticker
        - sign_request
        - parse_order_response / parse_error_response / parse_order_list /
          parse_cancel_response / parse_balances / parse_candles / parse_ticker
    """

    # ============================================
    # Class Attributes (must be set by subclasses)
    # ============================================

    name: str
    """Unique venue identifier (lowercase). Example: "binance", "coinbase" """

    capabilities: Dict[str, bool] = {op.value: False for op in Operation}
    """Dictionary indicating which operations this venue supports"""

    error_kinds: Mapping[str, Any] = {}
    """Venue error code (as str) -> ErrorKind"""

    # ============================================
    # Request Building
    # ============================================

    def build_request(self, operation: Union[Operation, str], params: Mapping[str, Any]) -> VenueRequest:
        """
        Lay normalized parameters out as a venue request.

        Args:
            operation: Which operation the parameters are for
            params: Output of the Request Normalizer for that operation

        Returns:
            VenueRequest: Unsigned request

        Raises:
            RequestValidationError: If the venue doesn't support the operation
                                    or the parameters can't be expressed
        """
        operation = Operation(operation)
        if not self.supports(operation.value):
            raise RequestValidationError("operation", f"{operation.value} is not supported by {self.name}")

        builders: Dict[Operation, Callable[[Mapping[str, Any]], VenueRequest]] = {
            Operation.SUBMIT_ORDER: self.build_submit_order,
            Operation.QUERY_ORDER: self.build_query_order,
            Operation.CANCEL_ORDER: self.build_cancel_order,
            Operation.LIST_ORDERS: self.build_list_orders,
            Operation.BALANCES: self.build_balances,
            Operation.CANDLES: self.build_candles,
            Operation.TICKER: self.build_ticker,
        }
        return builders[operation](params)

    @abstractmethod
    def build_submit_order(self, params: Mapping[str, Any]) -> VenueRequest:
        ...

    @abstractmethod
    def build_query_order(self, params: Mapping[str, Any]) -> VenueRequest:
        ...

    @abstractmethod
    def build_cancel_order(self, params: Mapping[str, Any]) -> VenueRequest:
        ...

    @abstractmethod
    def build_list_orders(self, params: Mapping[str, Any]) -> VenueRequest:
        ...

    @abstractmethod
    def build_balances(self, params: Mapping[str, Any]) -> VenueRequest:
        ...

    @abstractmethod
    def build_candles(self, params: Mapping[str, Any]) -> VenueRequest:
        ...

    @abstractmethod
    def build_ticker(self, params: Mapping[str, Any]) -> VenueRequest:
        ...

    @abstractmethod
    def sign_request(self, request: VenueRequest, credentials: VenueCredentials, signer: Signer) -> VenueRequest:
        """
        Attach timestamp, signature and auth headers.

        Returns a new VenueRequest; the input is never modified. Credentials
        are read for the duration of the call only.

        Raises:
            SigningError: If the credentials can't be used for signing
        """
        ...

    # ============================================
    # Response Parsing
    # ============================================

    @abstractmethod
    def parse_order_response(
        self,
        raw: Any,
        context: Optional[Mapping[str, Any]] = None,
    ) -> Union[ParsedOrder, VenueErrorPayload]:
        """
        Parse a single-order response (submit acknowledgment or query).

        Args:
            raw: Decoded JSON body
            context: Normalized parameters of the request, used for fields
                     an acknowledgment doesn't echo back

        Returns:
            Parsed order dict, or VenueErrorPayload when the body reports a
            rejection despite a 2xx status

        Raises:
            MalformedResponseError: If required fields are missing
        """
        ...

    @abstractmethod
    def parse_error_response(self, raw: Any, http_status: int) -> VenueErrorPayload:
        """Extract error fields from a non-2xx response body."""
        ...

    @abstractmethod
    def parse_order_list(
        self,
        raw: Any,
        params: Mapping[str, Any],
    ) -> Tuple[List[ParsedOrder], Optional[str]]:
        """
        Parse an order listing.

        Returns:
            (orders, next_cursor), next_cursor None on the last page
        """
        ...

    @abstractmethod
    def parse_cancel_response(
        self,
        raw: Any,
        context: Mapping[str, Any],
    ) -> Union[ParsedOrder, VenueErrorPayload, str]:
        """
        Parse a cancel response.

        Returns:
            Parsed order dict when the venue echoes the order, a
            VenueErrorPayload on rejection, or the acknowledged venue order id
            (str) when the final state must be fetched with a query
        """
        ...

    @abstractmethod
    def parse_balances(self, raw: Any) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def parse_candles(self, raw: Any, params: Mapping[str, Any]) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def parse_ticker(self, raw: Any, params: Mapping[str, Any]) -> Dict[str, Any]:
        ...

    # ============================================
    # Helper Methods
    # ============================================

    def canonical(self, venue_value: Any, axis: Axis, raw: Any = None):
        """
        Reverse-translate a value found in a response.

        Unknown spellings in a response are a malformed payload, not a
        caller mistake.
        """
        try:
            return reverse_translate(venue_value, self.name, axis)
        except RequestValidationError as e:
            raise MalformedResponseError(e.reason, raw)

    def neutral_symbol(self, venue_symbol: Any, context: Optional[Mapping[str, Any]] = None, raw: Any = None) -> str:
        """Venue symbol -> BASE-QUOTE, preferring the symbol the caller asked for."""
        hint = (context or {}).get(SYMBOL_HINT)
        try:
            return from_venue_symbol(str(venue_symbol), self.name, hint=hint)
        except ValueError as e:
            raise MalformedResponseError(str(e), raw)

    def supports(self, capability: str) -> bool:
        """
        Check if this venue supports an operation.

        Example:
            >>> adapter.supports("candles")
            True
        """
        return self.capabilities.get(capability, False)

    def __repr__(self) -> str:
        """String representation of the adapter."""
        return f"<{self.__class__.__name__}(name='{self.name}')>"
