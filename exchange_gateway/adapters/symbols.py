"""
Canonical <-> exchange-native symbol translation.

The canonical form is "BASE/QUOTE" in upper case. Exchanges use either a
delimiter ("BTC-USDT", "BTC_USDT") or plain concatenation ("BTCUSDT").
Every mapper satisfies native(canonical(native(s))) == native(s).
"""

from abc import ABC, abstractmethod
from typing import Iterable, Tuple

from exchange_gateway.errors import InvalidSymbolError

# Longest match wins, so "USDT" is tried before "USD".
DEFAULT_QUOTE_ASSETS = (
    "FDUSD",
    "USDT",
    "USDC",
    "BUSD",
    "TUSD",
    "USDE",
    "DAI",
    "USD",
    "EUR",
    "GBP",
    "TRY",
    "BRL",
    "JPY",
    "BTC",
    "ETH",
    "BNB",
)


def parse_symbol(symbol: str) -> Tuple[str, str]:
    """
    Split a canonical symbol into (base, quote).

    Raises:
        InvalidSymbolError: If the symbol is not BASE/QUOTE.

    Example:
        >>> parse_symbol("btc/usdt")
        ('BTC', 'USDT')
    """
    if not isinstance(symbol, str):
        raise InvalidSymbolError(f"Symbol must be a string: {symbol!r}")
    base, sep, quote = symbol.strip().upper().partition("/")
    if not sep or not base or not quote or "/" in quote:
        raise InvalidSymbolError(f"Symbol must be BASE/QUOTE: {symbol!r}")
    if not base.isalnum() or not quote.isalnum():
        raise InvalidSymbolError(f"Symbol contains invalid characters: {symbol!r}")
    return base, quote


def canonical_symbol(symbol: str) -> str:
    """Normalize a canonical symbol's case and whitespace."""
    base, quote = parse_symbol(symbol)
    return f"{base}/{quote}"


class SymbolMapper(ABC):
    """Translates between canonical and native symbols for one exchange."""

    @abstractmethod
    def to_native(self, symbol: str) -> str:
        """Canonical "BASE/QUOTE" -> native."""
        pass

    @abstractmethod
    def to_canonical(self, native: str) -> str:
        """Native -> canonical "BASE/QUOTE"."""
        pass


class DelimitedSymbolMapper(SymbolMapper):
    """
    Native symbols of the form BASE<delimiter>QUOTE.

    Example:
        >>> DelimitedSymbolMapper("_").to_native("BTC/USDT")
        'BTC_USDT'
    """

    def __init__(self, delimiter: str):
        self.delimiter = delimiter

    def to_native(self, symbol: str) -> str:
        base, quote = parse_symbol(symbol)
        return f"{base}{self.delimiter}{quote}"

    def to_canonical(self, native: str) -> str:
        base, sep, quote = str(native).upper().partition(self.delimiter)
        if not sep or not base or not quote or self.delimiter in quote:
            raise InvalidSymbolError(
                f"Native symbol {native!r} is not BASE{self.delimiter}QUOTE"
            )
        return canonical_symbol(f"{base}/{quote}")

    def __repr__(self) -> str:
        return f"DelimitedSymbolMapper(delimiter={self.delimiter!r})"


class ConcatenatedSymbolMapper(SymbolMapper):
    """
    Native symbols of the form BASEQUOTE, split on a known quote asset.

    Example:
        >>> mapper = ConcatenatedSymbolMapper()
        >>> mapper.to_canonical("ETHBTC")
        'ETH/BTC'
    """

    def __init__(self, quote_assets: Iterable[str] = DEFAULT_QUOTE_ASSETS):
        self.quote_assets = tuple(
            sorted({q.upper() for q in quote_assets}, key=len, reverse=True)
        )

    def to_native(self, symbol: str) -> str:
        base, quote = parse_symbol(symbol)
        if quote not in self.quote_assets:
            raise InvalidSymbolError(f"Unsupported quote asset {quote!r} in {symbol!r}")
        return f"{base}{quote}"

    def to_canonical(self, native: str) -> str:
        upper = str(native).upper()
        for quote in self.quote_assets:
            if upper.endswith(quote) and len(upper) > len(quote):
                return canonical_symbol(f"{upper[: -len(quote)]}/{quote}")
        raise InvalidSymbolError(f"Cannot split native symbol {native!r}")

    def __repr__(self) -> str:
        return f"ConcatenatedSymbolMapper(quotes={len(self.quote_assets)})"
