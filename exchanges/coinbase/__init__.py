"""
Coinbase Advanced Trade Venue

API Documentation:
    https://docs.cdp.coinbase.com/advanced-trade/
"""

from .adapter import CoinbaseAdapter, COINBASE_ERROR_KINDS

__all__ = ["CoinbaseAdapter", "COINBASE_ERROR_KINDS"]
