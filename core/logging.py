"""
Unified Logging Configuration

This module sets up a centralized logging system for the entire package.
All modules should import and use the logger from this module instead of
using print() statements.

Usage:
    from core.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Submitting order")

Log Levels (from most to least verbose):
    DEBUG    - Call state transitions, redacted request/response payloads
    INFO     - Gateway setup, configuration summary
    WARNING  - Venue rejections, transport failures
    ERROR    - Malformed venue responses (logged with the raw payload)

Configuration:
    Log level is controlled by the LOG_LEVEL setting in .env file.

Credential Safety:
    Request logging goes through log_api_request(), which redacts the
    signature parameter and every authentication header. API keys and
    secrets are never written to the log.
"""

import logging
import sys
from typing import Any, Mapping, Optional


# Query/body parameters and headers that must never reach the logs
REDACTED_PARAMS = frozenset({"signature"})
REDACTED_HEADERS = frozenset({
    "x-mbx-apikey",
    "cb-access-key",
    "cb-access-sign",
    "cb-access-passphrase",
    "authorization",
})
REDACTED = "***"


def setup_logging(
    log_level: str = "INFO",
    log_format: Optional[str] = None,
    include_timestamp: bool = True,
    include_module: bool = True
) -> logging.Logger:
    """
    Configure and return the package logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Custom log format string (uses default if None)
        include_timestamp: Include timestamp in log messages
        include_module: Include module name in log messages

    Returns:
        logging.Logger: Configured logger instance

    Example:
        >>> logger = setup_logging(log_level="DEBUG")
        >>> logger.info("Gateway started")
        2024-01-01 12:00:00 [INFO] ordergate: Gateway started
    """
    if log_format is None:
        format_parts = []

        if include_timestamp:
            format_parts.append("%(asctime)s")

        format_parts.append("[%(levelname)s]")

        if include_module:
            format_parts.append("%(name)s")

        format_parts.append("%(message)s")

        log_format = " ".join(format_parts)

    level = getattr(logging, log_level.upper(), logging.INFO)

    # Configure only our namespace; a library must not take over the root logger
    package_logger = logging.getLogger("ordergate")
    if not package_logger.handlers:
        handler = logging.StreamHandler(stream=sys.stdout)
        handler.setFormatter(logging.Formatter(log_format, datefmt="%Y-%m-%d %H:%M:%S"))
        package_logger.addHandler(handler)
    package_logger.setLevel(level)

    return package_logger


# ============================================
# Initialize Logger with Settings
# ============================================

try:
    from core.config import settings
    log_level = settings.log_level if hasattr(settings, 'log_level') else "INFO"
except ImportError:
    # If settings not available yet (during initial import), use INFO
    log_level = "INFO"

# Create the global logger instance
logger = setup_logging(log_level=log_level)


# ============================================
# Convenience Functions
# ============================================

def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a specific module or component.

    Args:
        name: Name for the logger (typically __name__)

    Returns:
        logging.Logger: Logger instance for the specified name

    Example:
        # In exchanges/binance/adapter.py:
        logger = get_logger(__name__)  # "ordergate.exchanges.binance.adapter"
    """
    return logging.getLogger(f"ordergate.{name}")


def set_log_level(level: str) -> None:
    """
    Change the log level at runtime.

    Args:
        level: New log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))


# ============================================
# Log Helper Functions
# ============================================

def redact_params(params: Optional[Mapping[str, Any]]) -> dict:
    """Copy of params with signature values replaced."""
    if not params:
        return {}
    return {k: (REDACTED if k.lower() in REDACTED_PARAMS else v) for k, v in params.items()}


def redact_headers(headers: Optional[Mapping[str, str]]) -> dict:
    """Copy of headers with authentication values replaced."""
    if not headers:
        return {}
    return {k: (REDACTED if k.lower() in REDACTED_HEADERS else v) for k, v in headers.items()}


def log_api_request(
    venue: str,
    method: str,
    endpoint: str,
    params: Optional[Mapping[str, Any]] = None,
    headers: Optional[Mapping[str, str]] = None,
) -> None:
    """
    Log an outgoing venue request with consistent formatting.

    Signatures and authentication headers are redacted; payloads are only
    included when LOG_PAYLOADS is enabled.

    Example:
        >>> log_api_request("binance", "POST", "/api/v3/order", {"symbol": "BTCUSDT"})
        [DEBUG] API Request: binance POST /api/v3/order | Params: {'symbol': 'BTCUSDT'}
    """
    if not logger.isEnabledFor(logging.DEBUG):
        return

    if params and _payload_logging_enabled():
        logger.debug(
            f"API Request: {venue} {method} {endpoint} | Params: {redact_params(params)} "
            f"| Headers: {redact_headers(headers)}"
        )
    else:
        logger.debug(f"API Request: {venue} {method} {endpoint}")


def log_api_response(
    venue: str,
    endpoint: str,
    status: int,
    response_time: Optional[float] = None,
    body: Optional[str] = None,
) -> None:
    """
    Log a venue response with status and timing information.

    Example:
        >>> log_api_response("binance", "/api/v3/order", 200, 0.342)
        [DEBUG] API Response: binance /api/v3/order | Status: 200 | Time: 0.342s
    """
    time_str = f" | Time: {response_time:.3f}s" if response_time else ""
    body_str = f" | Body: {body}" if body and _payload_logging_enabled() else ""
    logger.debug(f"API Response: {venue} {endpoint} | Status: {status}{time_str}{body_str}")


def log_malformed_payload(venue: str, operation: str, reason: str, raw: Any) -> None:
    """
    Log a response that could not be parsed, including the raw payload.

    Malformed responses are fatal for the call, so the raw body is always
    logged (venue responses never echo the secret key or signature).
    """
    logger.error(f"Malformed response: {venue} {operation} | {reason} | Raw: {raw!r}")


def _payload_logging_enabled() -> bool:
    try:
        from core.config import settings
        return bool(settings.log_payloads)
    except ImportError:
        return False


logger.debug("Logging system initialized")
