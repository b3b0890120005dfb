"""
Exchange adapters.

Each exchange lives in its own sub-package (adapter + normalizer) built on
BaseExchangeAdapter. The registry below is the only place that knows the
concrete classes; the gateway builds adapters through ``build_adapter``.

Example:
    >>> from exchange_gateway.adapters import build_adapter
    >>> adapter = build_adapter("okx", config.get_exchange("okx"), credential)
"""

from typing import Dict, Optional, Type

from exchange_gateway.adapters.base import BaseExchangeAdapter
from exchange_gateway.adapters.binance import BinanceAdapter
from exchange_gateway.adapters.bybit import BybitAdapter
from exchange_gateway.adapters.coinbase import CoinbaseAdapter
from exchange_gateway.adapters.cryptocom import CryptoComAdapter
from exchange_gateway.adapters.kucoin import KuCoinAdapter
from exchange_gateway.adapters.okx import OKXAdapter
from exchange_gateway.adapters.rest import RestClient, RestResponse
from exchange_gateway.adapters.symbols import (
    ConcatenatedSymbolMapper,
    DelimitedSymbolMapper,
    SymbolMapper,
    canonical_symbol,
    parse_symbol,
)
from exchange_gateway.config.models import ExchangeConfig
from exchange_gateway.errors import ExchangeNotFoundError
from exchange_gateway.models.credentials import Credential

ADAPTER_CLASSES: Dict[str, Type[BaseExchangeAdapter]] = {
    cls.EXCHANGE_ID: cls
    for cls in (
        BinanceAdapter,
        CoinbaseAdapter,
        KuCoinAdapter,
        OKXAdapter,
        BybitAdapter,
        CryptoComAdapter,
    )
}


def build_adapter(
    exchange_id: str,
    config: ExchangeConfig,
    credential: Optional[Credential] = None,
    **kwargs,
) -> BaseExchangeAdapter:
    """
    Instantiate the adapter registered for an exchange.

    Args:
        exchange_id: Exchange id.
        config: Exchange configuration.
        credential: Credential set, if configured.
        **kwargs: Passed to the adapter (signature_engine, rest_client, ...).

    Raises:
        ExchangeNotFoundError: If no adapter is registered for the id.
    """
    try:
        cls = ADAPTER_CLASSES[exchange_id]
    except KeyError:
        raise ExchangeNotFoundError(exchange_id) from None
    return cls(config, credential, **kwargs)


__all__ = [
    "ADAPTER_CLASSES",
    "build_adapter",
    "BaseExchangeAdapter",
    "BinanceAdapter",
    "BybitAdapter",
    "CoinbaseAdapter",
    "CryptoComAdapter",
    "KuCoinAdapter",
    "OKXAdapter",
    "RestClient",
    "RestResponse",
    "SymbolMapper",
    "DelimitedSymbolMapper",
    "ConcatenatedSymbolMapper",
    "canonical_symbol",
    "parse_symbol",
]
