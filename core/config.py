"""
Configuration Management Module

This module handles loading, validating, and providing access to application configuration
from environment variables (.env file).

Uses Pydantic Settings for automatic validation and type conversion.

Key Features:
- Loads configuration from .env file
- Validates venue base URLs, pagination limits and log level
- Provides type-safe access to configuration values
- Optional per-venue credentials for callers that don't pass their own

Usage:
    from core.config import settings

    print(settings.binance_base_url)
    print(settings.binance_recv_window)
"""

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, SecretStr


class Settings(BaseSettings):
    """
    Application Settings

    Values are automatically loaded from environment variables or .env file.

    Attributes:
        binance_base_url: Base URL for the Binance Spot REST API
        binance_recv_window: Validity window (ms) sent with signed Binance requests
        coinbase_base_url: Base URL for the Coinbase Advanced Trade REST API
        request_timeout: Timeout for HTTP requests in seconds (default executor)
        default_page_limit: Page size used when a list filter doesn't set one
        environment: Current environment (development, production)
        debug: Enable debug mode with verbose logging
        log_level: Logging level
        log_payloads: Log request/response payloads at DEBUG (signatures redacted)
    """

    # ============================================
    # Binance API Configuration
    # ============================================

    binance_base_url: str = Field(
        default="https://api.binance.com",
        description="Binance Spot API base URL"
    )

    binance_recv_window: int = Field(
        default=5000,
        description="recvWindow (ms) for signed Binance requests"
    )

    binance_api_key: str = Field(
        default="",
        description="Binance API key (optional, callers may pass credentials per call)"
    )

    binance_secret_key: SecretStr = Field(
        default=SecretStr(""),
        description="Binance secret key"
    )

    # ============================================
    # Coinbase API Configuration
    # ============================================

    coinbase_base_url: str = Field(
        default="https://api.coinbase.com",
        description="Coinbase Advanced Trade API base URL"
    )

    coinbase_api_key: str = Field(
        default="",
        description="Coinbase API key (optional, callers may pass credentials per call)"
    )

    coinbase_secret_key: SecretStr = Field(
        default=SecretStr(""),
        description="Coinbase API secret"
    )

    coinbase_passphrase: SecretStr = Field(
        default=SecretStr(""),
        description="Coinbase passphrase (only for keys that require one)"
    )

    # ============================================
    # Application Configuration
    # ============================================

    environment: str = Field(
        default="development",
        description="Application environment (development, production)"
    )

    debug: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    log_payloads: bool = Field(
        default=False,
        description="Log request parameters and response bodies at DEBUG level"
    )

    # ============================================
    # Requests & Pagination
    # ============================================

    request_timeout: int = Field(
        default=10,
        description="HTTP request timeout in seconds"
    )

    default_page_limit: int = Field(
        default=100,
        description="Number of orders per page when a list filter doesn't set a limit"
    )

    # ============================================
    # Pydantic Settings Configuration
    # ============================================

    model_config = SettingsConfigDict(
        # Look for .env file in the project root
        env_file=".env",
        # Ignore extra fields in .env that aren't defined here
        extra="ignore",
        # Case-insensitive environment variable matching
        case_sensitive=False
    )

    def base_url_for(self, venue: str) -> str:
        """
        Get the REST base URL for a venue.

        Args:
            venue: Venue identifier ("binance", "coinbase")

        Raises:
            ValueError: If the venue has no configured base URL
        """
        urls = {
            "binance": self.binance_base_url,
            "coinbase": self.coinbase_base_url,
        }
        try:
            return urls[venue.lower()].rstrip("/")
        except KeyError:
            raise ValueError(f"No base URL configured for venue '{venue}'")


# ============================================
# Global Settings Instance
# ============================================

# Create a single instance of settings to be imported throughout the application
settings = Settings()


# ============================================
# Credential Provider
# ============================================

class SettingsCredentialProvider:
    """
    Credential provider backed by Settings.

    The gateway asks the provider for credentials only when a caller
    doesn't pass VenueCredentials explicitly. A fresh VenueCredentials
    object is built for every call; nothing is cached here.

    Example:
        >>> provider = SettingsCredentialProvider()
        >>> creds = provider.get_credentials("binance")
    """

    def __init__(self, source: Optional[Settings] = None):
        self._settings = source or settings

    def get_credentials(self, venue: str):
        """
        Build credentials for a venue from configuration.

        Returns:
            VenueCredentials, or None if no API key is configured for the venue
        """
        # Import here to avoid circular imports (schemas -> enums -> errors)
        from core.schemas import VenueCredentials

        venue = venue.lower()
        if venue == "binance" and self._settings.binance_api_key:
            return VenueCredentials(
                api_key=self._settings.binance_api_key,
                secret_key=self._settings.binance_secret_key,
            )
        if venue == "coinbase" and self._settings.coinbase_api_key:
            passphrase = self._settings.coinbase_passphrase.get_secret_value()
            return VenueCredentials(
                api_key=self._settings.coinbase_api_key,
                secret_key=self._settings.coinbase_secret_key,
                passphrase=passphrase or None,
            )
        return None


# ============================================
# Configuration Validation
# ============================================

def validate_configuration(config: Optional[Settings] = None) -> None:
    """
    Validate critical configuration settings on application startup.

    Raises:
        ValueError: If required configuration is missing or invalid
    """
    # Import logger here to avoid circular import
    # (logging.py imports config.py, so we can't import at module level)
    from core.logging import logger

    config = config or settings

    for name in ("binance_base_url", "coinbase_base_url"):
        url = getattr(config, name)
        if not url.startswith("https://") and not url.startswith("http://"):
            raise ValueError(f"{name.upper()} must be an http(s) URL, got '{url}'")

    if not (0 < config.binance_recv_window <= 60_000):
        raise ValueError(
            f"Invalid BINANCE_RECV_WINDOW: {config.binance_recv_window}. "
            f"Must be between 1 and 60000 milliseconds"
        )

    if config.request_timeout <= 0:
        raise ValueError(f"Invalid REQUEST_TIMEOUT: {config.request_timeout}. Must be positive")

    if not (1 <= config.default_page_limit <= 1000):
        raise ValueError(
            f"Invalid DEFAULT_PAGE_LIMIT: {config.default_page_limit}. Must be between 1 and 1000"
        )

    valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if config.log_level.upper() not in valid_log_levels:
        raise ValueError(
            f"Invalid LOG_LEVEL: '{config.log_level}'. "
            f"Must be one of: {', '.join(valid_log_levels)}"
        )

    logger.info("Configuration validated successfully")
    logger.info(f"Binance API: {config.binance_base_url} (recvWindow={config.binance_recv_window})")
    logger.info(f"Coinbase API: {config.coinbase_base_url}")
    logger.info(f"Log level: {config.log_level.upper()}")
