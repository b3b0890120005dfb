"""
Multi-Exchange Gateway.

One API for balances, tickers and orders across Binance, Coinbase, KuCoin,
OKX, Bybit and Crypto.com.

This package provides:
- Request signing for every supported exchange
- Exchange adapters with normalized, Decimal-precise models
- A reconnecting WebSocket connection manager
- The ExchangeGateway orchestrator and its FastAPI surface
- Configuration loading and a Redis snapshot sink
"""

__version__ = "0.1.0"
