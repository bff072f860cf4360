"""
Venue Adapters Package

This package contains one sub-package per venue. Each venue has:
- adapter.py: VenueAdapter implementation (request layout, signing, parsing)

The modular design allows adding new venues without modifying the gateway:
write the adapter, add its registry tables in core.enums, and register it in
default_adapters().
"""

from typing import Dict, Optional

from core.config import Settings
from core.venue_adapter import VenueAdapter


def default_adapters(config: Optional[Settings] = None) -> Dict[str, VenueAdapter]:
    """
    Build the built-in adapter registry.

    Returns:
        Dict[str, VenueAdapter]: Venue tag -> adapter instance

    Example:
        >>> sorted(default_adapters())
        ['binance', 'coinbase']
    """
    # Import here to avoid circular imports
    # Each adapter module imports from core
    from exchanges.binance import BinanceAdapter
    from exchanges.coinbase import CoinbaseAdapter

    adapters = [BinanceAdapter(config), CoinbaseAdapter()]
    return {adapter.name: adapter for adapter in adapters}
