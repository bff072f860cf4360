"""
Binance Spot Venue

API Documentation:
    https://github.com/binance/binance-spot-api-docs

Endpoints Used:
    - POST   /api/v3/order        New order (newOrderRespType=FULL)
    - GET    /api/v3/order        Query order
    - DELETE /api/v3/order        Cancel order
    - GET    /api/v3/openOrders   Open orders (unpaginated)
    - GET    /api/v3/allOrders    Order history (orderId cursor)
    - GET    /api/v3/account      Balances
    - GET    /api/v3/klines       Candles
    - GET    /api/v3/ticker/24hr  24h ticker
"""

from .adapter import BinanceAdapter, BINANCE_ERROR_KINDS

__all__ = ["BinanceAdapter", "BINANCE_ERROR_KINDS"]
