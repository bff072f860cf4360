"""
HTTP Executor

The gateway never opens connections itself; it hands fully signed requests
to an HttpExecutor. This keeps the translation core free of I/O and lets
tests substitute a scripted executor.

Contract:
    execute(method, url, headers, body) -> HttpResponse
        - Returns any HTTP response, including 4xx/5xx (those are venue
          answers, classified by the gateway)
        - Raises TransportError for network failures and timeouts

AiohttpExecutor is the default implementation, owning one
aiohttp.ClientSession for its lifetime.

Usage:
    async with AiohttpExecutor() as executor:
        gateway = OrderGateway(executor)
        result = await gateway.get_ticker("binance", "BTC-USDT")
"""

import asyncio
import json
from typing import Any, Mapping, Optional, Protocol, runtime_checkable

import aiohttp

from core.config import Settings, settings as default_settings
from core.errors import TransportError
from core.logging import get_logger


class HttpResponse:
    """
    Raw HTTP response handed back by an executor.

    Attributes:
        status: HTTP status code
        body: Response body as text
    """

    __slots__ = ("status", "body")

    def __init__(self, status: int, body: str = ""):
        self.status = status
        self.body = body

    def json(self) -> Any:
        """
        Decode the body as JSON.

        Raises:
            ValueError: If the body isn't valid JSON
        """
        if not self.body:
            return None
        return json.loads(self.body)

    def __repr__(self) -> str:
        return f"<HttpResponse(status={self.status}, bytes={len(self.body)})>"


@runtime_checkable
class HttpExecutor(Protocol):
    """Anything that can send one HTTP request and return the response."""

    async def execute(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: Optional[str] = None,
    ) -> HttpResponse:
        ...


class AiohttpExecutor:
    """
    Default executor backed by aiohttp.

    One ClientSession is created on __aenter__ and closed on __aexit__. The
    session is safe to share between concurrent gateway calls.

    Example:
        >>> async with AiohttpExecutor() as executor:
        ...     response = await executor.execute("GET", "https://api.binance.com/api/v3/ping", {})
        ...     print(response.status)
        200
    """

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or default_settings
        self.logger = get_logger(__name__)
        self.session: Optional[aiohttp.ClientSession] = None

    # ============================================
    # Context Manager for Session Management
    # ============================================

    async def __aenter__(self):
        """
        Enter async context - creates HTTP session.

        Returns:
            Self for use in async with statement
        """
        self.session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.config.request_timeout),
        )
        self.logger.debug("AiohttpExecutor session created")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Exit async context - closes HTTP session."""
        if self.session:
            await self.session.close()
            self.session = None
            self.logger.debug("AiohttpExecutor session closed")

    # ============================================
    # Request Execution
    # ============================================

    async def execute(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: Optional[str] = None,
    ) -> HttpResponse:
        """
        Send one request. No retries: the gateway decides what is retryable.

        Args:
            method: HTTP method
            url: Absolute URL including the query string
            headers: Request headers (auth headers included)
            body: Encoded request body, sent byte-for-byte as signed

        Returns:
            HttpResponse: Status and body text, for any HTTP status

        Raises:
            TransportError: On connection errors and timeouts
        """
        if not self.session:
            raise RuntimeError("Executor session not initialized. Use 'async with' statement.")

        try:
            async with self.session.request(
                method,
                url,
                headers=dict(headers),
                data=body.encode("utf-8") if body else None,
            ) as resp:
                text = await resp.text()
                return HttpResponse(resp.status, text)

        except asyncio.TimeoutError:
            raise TransportError(f"timeout after {self.config.request_timeout}s on {method} {url.split('?')[0]}")

        except aiohttp.ClientError as e:
            raise TransportError(f"network error on {method} {url.split('?')[0]}: {e}")
