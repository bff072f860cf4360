"""
Order Gateway - Central Orchestrator for Venue Calls

This module drives every call through the same pipeline:

    BUILDING -> SIGNING -> SENDING -> PARSING -> DONE
        \\_________\\__________\\_________\\____> FAILED

    BUILDING   normalize the request and lay it out with the venue adapter
    SIGNING    resolve credentials and sign (skipped for public endpoints)
    SENDING    hand the request to the HttpExecutor
    PARSING    classify the HTTP status, parse and build canonical models

Design Benefits:
    - One adapter per venue, chosen by venue tag lookup only
    - Every failure leaves as GatewayError carrying a NormalizedError; the
      translation to the error taxonomy happens in core.errors.classify()
    - No retries: NormalizedError.retryable tells the caller what is safe to
      retry
    - No per-call state on the gateway, so concurrent calls (asyncio.gather)
      never share credentials, timestamps or signatures

Example Usage:
    async with AiohttpExecutor() as executor:
        gateway = OrderGateway(executor)
        result = await gateway.submit_order("binance", request, credentials)
        page = await gateway.list_orders("coinbase", OrderListFilter(open_only=True))
"""

import asyncio
import itertools
import time
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Tuple, Union

from core.config import Settings, SettingsCredentialProvider, settings as default_settings
from core.enums import KlineInterval, Venue
from core.errors import (
    ErrorKind,
    GatewayError,
    MalformedResponseError,
    NormalizedError,
    RequestValidationError,
    SigningError,
    TransportError,
    VenueErrorPayload,
    classify,
)
from core.http import HttpExecutor, HttpResponse
from core.logging import get_logger, log_api_request, log_api_response, log_malformed_payload
from core.normalizer import (
    normalize,
    normalize_candle_query,
    normalize_list_filter,
    normalize_order_ref,
    to_venue_symbol,
)
from core.response_normalizer import (
    build_balances,
    build_candles,
    build_order_page,
    build_order_result,
    build_ticker,
)
from core.schemas import (
    Balance,
    Candle,
    NormalizedOrderRequest,
    NormalizedOrderResult,
    OrderListFilter,
    OrderPage,
    OrderRef,
    Ticker,
    VenueCredentials,
)
from core.signer import Signer
from core.venue_adapter import SYMBOL_HINT, Operation, VenueAdapter


logger = get_logger(__name__)


class CallState(str, Enum):
    """Lifecycle of a single gateway call."""

    BUILDING = "BUILDING"
    SIGNING = "SIGNING"
    SENDING = "SENDING"
    PARSING = "PARSING"
    DONE = "DONE"
    FAILED = "FAILED"


_TRANSITIONS = {
    CallState.BUILDING: {CallState.SIGNING, CallState.SENDING, CallState.FAILED},
    CallState.SIGNING: {CallState.SENDING, CallState.FAILED},
    CallState.SENDING: {CallState.PARSING, CallState.FAILED},
    CallState.PARSING: {CallState.DONE, CallState.FAILED},
    CallState.DONE: set(),
    CallState.FAILED: set(),
}

_call_ids = itertools.count(1)

# Failures worth a WARNING; caller mistakes and venue rejections log at INFO
_WARN_KINDS = frozenset({ErrorKind.TRANSPORT, ErrorKind.RATE_LIMIT, ErrorKind.AUTH, ErrorKind.UNKNOWN})


class CallTracker:
    """
    State machine of one call, logged at DEBUG.

    Example:
        [7] binance submit_order: BUILDING -> SIGNING
    """

    def __init__(self, venue: str, operation: Operation):
        self.call_id = next(_call_ids)
        self.venue = venue
        self.operation = operation
        self.state = CallState.BUILDING
        self.history: List[CallState] = [CallState.BUILDING]

    def advance(self, new_state: CallState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"illegal call transition {self.state.value} -> {new_state.value}")
        logger.debug(f"[{self.call_id}] {self.venue} {self.operation.value}: {self.state.value} -> {new_state.value}")
        self.state = new_state
        self.history.append(new_state)

    def fail(self, error: NormalizedError) -> None:
        logger.debug(f"[{self.call_id}] {self.venue} {self.operation.value}: {self.state.value} -> FAILED ({error})")
        self.state = CallState.FAILED
        self.history.append(CallState.FAILED)


class CredentialProvider(Protocol):
    """Source of credentials for callers that don't pass them explicitly."""

    def get_credentials(self, venue: str) -> Optional[VenueCredentials]:
        ...


Prepared = Tuple[Mapping[str, Any], Mapping[str, Any]]


class OrderGateway:
    """
    Venue-agnostic entry point for order and market-data calls.

    Attributes:
        executor: HttpExecutor that sends signed requests
        adapters: Venue tag -> VenueAdapter
        signer: Signer used for authenticated requests
        credential_provider: Fallback credential source
        settings: Base URLs, limits

    Example:
        >>> gateway = OrderGateway(executor)
        >>> gateway.list_venues()
        ['binance', 'coinbase']
        >>> try:
        ...     await gateway.cancel_order("binance", OrderRef(symbol="BTC-USDT", venue_order_id="1"))
        ... except GatewayError as e:
        ...     print(e.kind)
        ErrorKind.ORDER_NOT_FOUND
    """

    def __init__(
        self,
        executor: HttpExecutor,
        adapters: Optional[Mapping[str, VenueAdapter]] = None,
        signer: Optional[Signer] = None,
        credential_provider: Optional[CredentialProvider] = None,
        settings: Optional[Settings] = None,
    ):
        self.executor = executor
        self.settings = settings or default_settings

        if adapters is None:
            # Import here to avoid circular imports (exchanges import core)
            from exchanges import default_adapters
            adapters = default_adapters(self.settings)

        self.adapters: Dict[str, VenueAdapter] = {name.lower(): a for name, a in adapters.items()}
        self.signer = signer or Signer()
        self.credential_provider = credential_provider or SettingsCredentialProvider(self.settings)

        logger.info(f"OrderGateway initialized with {len(self.adapters)} venue(s): {', '.join(self.adapters)}")

    # ============================================
    # Venue Registry
    # ============================================

    def _lookup(self, venue: Union[Venue, str]) -> VenueAdapter:
        name = venue.value if isinstance(venue, Venue) else str(venue).strip().lower()
        adapter = self.adapters.get(name)
        if adapter is None:
            available = ", ".join(self.adapters)
            raise RequestValidationError("venue", f"unknown venue '{venue}' (available: {available})")
        return adapter

    def get_adapter(self, venue: Union[Venue, str]) -> VenueAdapter:
        """
        Get the adapter registered for a venue tag.

        Raises:
            GatewayError: VALIDATION if the venue is unknown
        """
        try:
            return self._lookup(venue)
        except RequestValidationError as e:
            raise GatewayError(classify(e, str(venue)))

    def list_venues(self) -> List[str]:
        """Registered venue tags."""
        return list(self.adapters.keys())

    def supports(self, venue: Union[Venue, str], capability: str) -> bool:
        """
        Check if a venue supports an operation ("submit_order", "candles", ...).

        Unknown venues support nothing.
        """
        try:
            return self._lookup(venue).supports(capability)
        except RequestValidationError:
            return False

    # ============================================
    # Call Pipeline
    # ============================================

    def _credentials_for(self, venue: str, credentials: Optional[VenueCredentials]) -> VenueCredentials:
        if credentials is not None:
            return credentials
        resolved = self.credential_provider.get_credentials(venue)
        if resolved is None:
            raise SigningError(f"no credentials supplied or configured for {venue}")
        return resolved

    @staticmethod
    def _decode(response: HttpResponse, strict: bool) -> Any:
        try:
            return response.json()
        except ValueError:
            if strict:
                raise MalformedResponseError("response body is not JSON", response.body[:500])
            return response.body

    async def _attempt(
        self,
        call: CallTracker,
        adapter: VenueAdapter,
        params: Mapping[str, Any],
        context: Mapping[str, Any],
        parse: Callable[[VenueAdapter, Any, Mapping[str, Any]], Any],
        credentials: Optional[VenueCredentials],
    ) -> Any:
        request = adapter.build_request(call.operation, params)

        if request.signed:
            call.advance(CallState.SIGNING)
            request = adapter.sign_request(request, self._credentials_for(adapter.name, credentials), self.signer)

        call.advance(CallState.SENDING)
        url = request.url(self.settings.base_url_for(adapter.name))
        headers = dict(request.headers)
        if request.content_type:
            headers["Content-Type"] = request.content_type
        body = request.encoded_body or None

        log_api_request(
            adapter.name,
            request.method,
            request.path,
            {**request.query_params, **request.body_params},
            headers,
        )
        started = time.perf_counter()
        response = await self.executor.execute(request.method, url, headers, body)
        log_api_response(adapter.name, request.path, response.status, time.perf_counter() - started, response.body)

        call.advance(CallState.PARSING)
        if response.status >= 400:
            return adapter.parse_error_response(self._decode(response, strict=False), response.status)

        return parse(adapter, self._decode(response, strict=True), context)

    async def _call(
        self,
        venue: Union[Venue, str],
        operation: Operation,
        prepare: Callable[[VenueAdapter], Prepared],
        parse: Callable[[VenueAdapter, Any, Mapping[str, Any]], Any],
        credentials: Optional[VenueCredentials] = None,
    ) -> Any:
        """
        Run one call through the state machine.

        Returns:
            Whatever parse() built (a canonical model or list of models)

        Raises:
            GatewayError: For every failure, whatever stage it happened in
        """
        venue_tag = venue.value if isinstance(venue, Venue) else str(venue).lower()
        call = CallTracker(venue_tag, operation)
        adapter: Optional[VenueAdapter] = None

        try:
            adapter = self._lookup(venue)
            params, context = prepare(adapter)
            outcome = await self._attempt(call, adapter, params, context, parse, credentials)

        except asyncio.CancelledError:
            task = asyncio.current_task()
            if task is not None and task.cancelling():
                # the caller is being cancelled, not the request
                logger.debug(f"[{call.call_id}] {venue_tag} {operation.value}: cancelled in {call.state.value}")
                raise
            failure: Union[Exception, VenueErrorPayload] = TransportError("request cancelled by executor")

        except asyncio.TimeoutError:
            failure = TransportError("request timed out")

        except MalformedResponseError as e:
            log_malformed_payload(venue_tag, operation.value, e.reason, e.raw)
            failure = e

        except (RequestValidationError, SigningError, TransportError) as e:
            failure = e

        except OSError as e:
            # executors other than AiohttpExecutor surface socket errors as is
            failure = TransportError(f"network error: {type(e).__name__}: {e}")

        except Exception as e:
            logger.error(f"[{call.call_id}] {venue_tag} {operation.value}: unexpected {type(e).__name__}: {e}", exc_info=True)
            failure = e

        else:
            if not isinstance(outcome, VenueErrorPayload):
                call.advance(CallState.DONE)
                return outcome
            failure = outcome

        error = classify(failure, venue_tag, adapter.error_kinds if adapter else None)
        call.fail(error)
        if error.kind in _WARN_KINDS:
            logger.warning(f"{operation.value} on {venue_tag} failed: {error}")
        else:
            logger.info(f"{operation.value} on {venue_tag} failed: {error}")
        raise GatewayError(error)

    # ============================================
    # Order Operations
    # ============================================

    async def submit_order(
        self,
        venue: Union[Venue, str],
        request: NormalizedOrderRequest,
        credentials: Optional[VenueCredentials] = None,
    ) -> NormalizedOrderResult:
        """
        Place an order.

        Args:
            venue: Target venue
            request: Venue-agnostic order request
            credentials: API credentials; falls back to the credential provider

        Returns:
            NormalizedOrderResult: The venue's acknowledgment, in canonical form

        Raises:
            GatewayError: VALIDATION before any network call for invalid
                          requests, otherwise whatever the venue reports
        """
        def prepare(adapter: VenueAdapter) -> Prepared:
            params = normalize(request, adapter.name)
            return params, {**params, SYMBOL_HINT: request.symbol}

        def parse(adapter: VenueAdapter, raw: Any, context: Mapping[str, Any]) -> Any:
            parsed = adapter.parse_order_response(raw, context)
            if isinstance(parsed, VenueErrorPayload):
                return parsed
            return build_order_result(parsed)

        result = await self._call(venue, Operation.SUBMIT_ORDER, prepare, parse, credentials)
        logger.info(
            f"Order {result.venue_order_id} on {result.venue}: "
            f"{result.side.value} {result.type.value} {result.symbol} -> {result.status.value}"
        )
        return result

    async def query_order(
        self,
        venue: Union[Venue, str],
        ref: OrderRef,
        credentials: Optional[VenueCredentials] = None,
    ) -> NormalizedOrderResult:
        """
        Fetch the current state of one order.

        Raises:
            GatewayError: ORDER_NOT_FOUND if the venue doesn't know the order
        """
        def prepare(adapter: VenueAdapter) -> Prepared:
            params = normalize_order_ref(ref, adapter.name)
            return params, {**params, SYMBOL_HINT: ref.symbol}

        def parse(adapter: VenueAdapter, raw: Any, context: Mapping[str, Any]) -> Any:
            parsed = adapter.parse_order_response(raw, context)
            if isinstance(parsed, VenueErrorPayload):
                return parsed
            return build_order_result(parsed)

        return await self._call(venue, Operation.QUERY_ORDER, prepare, parse, credentials)

    async def cancel_order(
        self,
        venue: Union[Venue, str],
        ref: OrderRef,
        credentials: Optional[VenueCredentials] = None,
    ) -> NormalizedOrderResult:
        """
        Cancel an order and return its resulting state.

        Venues that only acknowledge a cancel (Coinbase) are followed by a
        query_order for the same id, so callers always get the full order.

        Raises:
            GatewayError: ORDER_NOT_FOUND for unknown or already-closed orders
        """
        def prepare(adapter: VenueAdapter) -> Prepared:
            params = normalize_order_ref(ref, adapter.name)
            return params, {**params, SYMBOL_HINT: ref.symbol}

        def parse(adapter: VenueAdapter, raw: Any, context: Mapping[str, Any]) -> Any:
            parsed = adapter.parse_cancel_response(raw, context)
            if isinstance(parsed, (VenueErrorPayload, str)):
                return parsed
            return build_order_result(parsed)

        outcome = await self._call(venue, Operation.CANCEL_ORDER, prepare, parse, credentials)
        if isinstance(outcome, str):
            logger.debug(f"Cancel of {outcome} acknowledged on {venue}, fetching final state")
            return await self.query_order(
                venue,
                OrderRef(symbol=ref.symbol, venue_order_id=outcome),
                credentials,
            )
        return outcome

    async def list_orders(
        self,
        venue: Union[Venue, str],
        order_filter: OrderListFilter,
        cursor: Optional[str] = None,
        credentials: Optional[VenueCredentials] = None,
    ) -> OrderPage:
        """
        List orders, one page at a time.

        Args:
            venue: Target venue
            order_filter: Symbol, open-only flag, time range and page size
            cursor: next_cursor of the previous page (None for the first page)
            credentials: API credentials

        Returns:
            OrderPage: next_cursor is None on the last page

        Example:
            >>> page = await gateway.list_orders("binance", OrderListFilter(symbol="BTC-USDT"))
            >>> while page.next_cursor:
            ...     page = await gateway.list_orders("binance", flt, cursor=page.next_cursor)
        """
        def prepare(adapter: VenueAdapter) -> Prepared:
            params = normalize_list_filter(order_filter, adapter.name, cursor, self.settings.default_page_limit)
            return params, {**params, SYMBOL_HINT: order_filter.symbol}

        def parse(adapter: VenueAdapter, raw: Any, context: Mapping[str, Any]) -> Any:
            parsed, next_cursor = adapter.parse_order_list(raw, context)
            return build_order_page(parsed, next_cursor)

        return await self._call(venue, Operation.LIST_ORDERS, prepare, parse, credentials)

    # ============================================
    # Account & Market Data
    # ============================================

    async def get_balances(
        self,
        venue: Union[Venue, str],
        credentials: Optional[VenueCredentials] = None,
    ) -> List[Balance]:
        """Non-zero asset balances of the account."""
        def prepare(adapter: VenueAdapter) -> Prepared:
            return {}, {}

        def parse(adapter: VenueAdapter, raw: Any, context: Mapping[str, Any]) -> Any:
            return build_balances(adapter.parse_balances(raw))

        return await self._call(venue, Operation.BALANCES, prepare, parse, credentials)

    async def get_candles(
        self,
        venue: Union[Venue, str],
        symbol: str,
        interval: Union[KlineInterval, str],
        limit: Optional[int] = None,
        start_time_millis: Optional[int] = None,
        end_time_millis: Optional[int] = None,
    ) -> List[Candle]:
        """
        Fetch OHLCV candles, oldest first.

        Example:
            >>> candles = await gateway.get_candles("coinbase", "BTC-USD", "1h", limit=24)
        """
        def prepare(adapter: VenueAdapter) -> Prepared:
            params = normalize_candle_query(symbol, interval, adapter.name, limit, start_time_millis, end_time_millis)
            return params, {**params, SYMBOL_HINT: symbol}

        def parse(adapter: VenueAdapter, raw: Any, context: Mapping[str, Any]) -> Any:
            return build_candles(adapter.parse_candles(raw, context))

        return await self._call(venue, Operation.CANDLES, prepare, parse)

    async def get_ticker(self, venue: Union[Venue, str], symbol: str) -> Ticker:
        """24h ticker for one symbol."""
        def prepare(adapter: VenueAdapter) -> Prepared:
            params = {"symbol": to_venue_symbol(symbol, adapter.name)}
            return params, {**params, SYMBOL_HINT: symbol}

        def parse(adapter: VenueAdapter, raw: Any, context: Mapping[str, Any]) -> Any:
            return build_ticker(adapter.parse_ticker(raw, context))

        return await self._call(venue, Operation.TICKER, prepare, parse)
