"""
Unit tests for the per-exchange normalizers.

Payloads are trimmed copies of real exchange responses.
"""

from datetime import timezone
from decimal import Decimal

import pytest

from exchange_gateway.adapters.binance import BinanceNormalizer
from exchange_gateway.adapters.bybit import BybitNormalizer
from exchange_gateway.adapters.coinbase import CoinbaseNormalizer
from exchange_gateway.adapters.cryptocom import CryptoComNormalizer
from exchange_gateway.adapters.kucoin import KuCoinNormalizer
from exchange_gateway.adapters.okx import OKXNormalizer
from exchange_gateway.errors import NormalizationError
from exchange_gateway.models.order import OrderRequest, OrderSide, OrderStatus, OrderType
from exchange_gateway.normalization import ms_to_datetime, to_decimal


@pytest.fixture
def limit_request():
    return OrderRequest(
        symbol="BTC/USDT",
        side=OrderSide.BUY,
        order_type=OrderType.LIMIT,
        quantity=Decimal("0.01"),
        price=Decimal("50000"),
        client_order_id="abc123",
    )


# ============================================
# Shared helpers
# ============================================


class TestHelpers:
    """Conversions shared by every normalizer"""

    def test_to_decimal_keeps_precision(self):
        assert to_decimal("0.00000001", "x", "test") == Decimal("0.00000001")

    @pytest.mark.parametrize("bad", ["abc", "NaN", "Infinity", True])
    def test_to_decimal_rejects_non_numeric(self, bad):
        with pytest.raises(NormalizationError):
            to_decimal(bad, "x", "test")

    def test_to_decimal_default_only_for_missing(self):
        assert to_decimal(None, "x", "test", default=Decimal("0")) == Decimal("0")
        with pytest.raises(NormalizationError):
            to_decimal("", "x", "test")

    def test_ms_timestamps_are_utc(self):
        moment = ms_to_datetime(1700000000000, "test")
        assert moment.tzinfo == timezone.utc
        assert moment.year == 2023


# ============================================
# Balances
# ============================================


class TestBalances:
    """free + locked == total, empty balances dropped"""

    def test_binance(self):
        balances = BinanceNormalizer.normalize_balances(
            {
                "balances": [
                    {"asset": "BTC", "free": "0.5", "locked": "0.1"},
                    {"asset": "ETH", "free": "0.00000000", "locked": "0.00000000"},
                ]
            }
        )

        assert len(balances) == 1
        btc = balances[0]
        assert (btc.currency, btc.free, btc.locked, btc.total) == (
            "BTC",
            Decimal("0.5"),
            Decimal("0.1"),
            Decimal("0.6"),
        )

    def test_binance_negative_amount_is_rejected(self):
        with pytest.raises(NormalizationError):
            BinanceNormalizer.normalize_balances(
                {"balances": [{"asset": "BTC", "free": "-1", "locked": "0"}]}
            )

    def test_bybit_free_is_wallet_minus_locked(self):
        balances = BybitNormalizer.normalize_balances(
            {"list": [{"coin": [{"coin": "USDT", "walletBalance": "100", "locked": "25"}]}]}
        )
        assert balances[0].free == Decimal("75")
        assert balances[0].total == Decimal("100")

    def test_okx(self):
        balances = OKXNormalizer.normalize_balances(
            {"details": [{"ccy": "USDT", "availBal": "10.5", "frozenBal": "2"}]}
        )
        assert balances[0].total == Decimal("12.5")

    def test_kucoin_sums_accounts_per_currency(self):
        balances = KuCoinNormalizer.normalize_balances(
            [
                {"currency": "BTC", "type": "main", "available": "1", "holds": "0"},
                {"currency": "BTC", "type": "trade", "available": "0.5", "holds": "0.25"},
                {"currency": "ETH", "type": "trade", "available": "0", "holds": "0"},
            ]
        )
        assert len(balances) == 1
        assert balances[0].free == Decimal("1.5")
        assert balances[0].locked == Decimal("0.25")

    def test_coinbase(self):
        balances = CoinbaseNormalizer.normalize_balances(
            [{"currency": "USD", "available": "90", "hold": "10", "balance": "100"}]
        )
        assert balances[0].total == Decimal("100")

    def test_cryptocom_quantity_is_total(self):
        balances = CryptoComNormalizer.normalize_balances(
            {
                "data": [
                    {
                        "position_balances": [
                            {"instrument_name": "CRO", "quantity": "100", "reserved_qty": "10"}
                        ]
                    }
                ]
            }
        )
        assert balances[0].free == Decimal("90")
        assert balances[0].locked == Decimal("10")

    def test_cryptocom_reserved_above_total_is_rejected(self):
        with pytest.raises(NormalizationError):
            CryptoComNormalizer.normalize_balances(
                {
                    "data": [
                        {
                            "position_balances": [
                                {"instrument_name": "CRO", "quantity": "1", "reserved_qty": "5"}
                            ]
                        }
                    ]
                }
            )

    def test_missing_list_is_normalization_error(self):
        with pytest.raises(NormalizationError) as exc_info:
            BinanceNormalizer.normalize_balances({"accountType": "SPOT"})
        assert exc_info.value.raw == {"accountType": "SPOT"}


# ============================================
# Tickers
# ============================================


class TestTickers:
    """Canonical symbol, Decimal prices, 24h change"""

    def test_binance_rest(self):
        ticker = BinanceNormalizer.normalize_ticker(
            {
                "symbol": "BTCUSDT",
                "priceChange": "-94.99",
                "priceChangePercent": "-0.95",
                "lastPrice": "9905.01",
                "highPrice": "10100.00",
                "lowPrice": "9800.00",
                "volume": "8913.30",
                "closeTime": 1700000000000,
            },
            "BTC/USDT",
        )

        assert ticker.symbol == "BTC/USDT"
        assert ticker.last_price == Decimal("9905.01")
        assert ticker.change_24h_percent == Decimal("-0.95")
        assert ticker.observed_at.tzinfo == timezone.utc

    def test_okx_change_from_open(self):
        ticker = OKXNormalizer.normalize_ticker(
            {"instId": "BTC-USDT", "last": "50000", "open24h": "40000", "ts": "1700000000000"},
            "BTC/USDT",
        )
        assert ticker.change_24h_absolute == Decimal("10000")
        assert ticker.change_24h_percent == Decimal("25")

    def test_bybit_percent_from_ratio(self):
        ticker = BybitNormalizer.normalize_ticker(
            {
                "symbol": "BTCUSDT",
                "lastPrice": "50000",
                "prevPrice24h": "40000",
                "price24hPcnt": "0.25",
                "highPrice24h": "51000",
                "lowPrice24h": "39000",
                "volume24h": "12",
            },
            "BTC/USDT",
            1700000000000,
        )
        assert ticker.change_24h_absolute == Decimal("10000")
        assert ticker.change_24h_percent == Decimal("25")

    def test_cryptocom_short_keys(self):
        ticker = CryptoComNormalizer.normalize_ticker(
            {"i": "BTC_USDT", "a": "50000", "c": "0.25", "h": "51000", "l": "39000", "v": "3", "t": 1700000000000},
            "BTC/USDT",
        )
        assert ticker.change_24h_absolute == Decimal("10000")
        assert ticker.change_24h_percent == Decimal("25")
        assert ticker.volume_24h == Decimal("3")

    def test_kucoin_stream_snapshot(self):
        ticker = KuCoinNormalizer.normalize_stream_ticker(
            {
                "type": "message",
                "topic": "/market/snapshot:BTC-USDT",
                "data": {
                    "data": {
                        "lastTradedPrice": "50000",
                        "changeRate": "0.01",
                        "changePrice": "495",
                        "high": "51000",
                        "low": "49000",
                        "vol": "100",
                        "datetime": 1700000000000,
                    }
                },
            },
            "BTC/USDT",
        )
        assert ticker.change_24h_percent == Decimal("1")
        assert ticker.change_24h_absolute == Decimal("495")

    def test_coinbase_combines_ticker_and_stats(self):
        ticker = CoinbaseNormalizer.normalize_ticker(
            {"price": "110", "volume": "5", "time": "2023-11-14T22:13:20.123456Z"},
            {"open": "100", "high": "120", "low": "90", "volume": "7"},
            "BTC/USD",
        )
        assert ticker.change_24h_absolute == Decimal("10")
        assert ticker.change_24h_percent == Decimal("10")
        assert ticker.volume_24h == Decimal("7")
        assert ticker.observed_at.tzinfo is not None

    def test_missing_defaults_to_zero_change(self):
        ticker = OKXNormalizer.normalize_ticker({"last": "1"}, "BTC/USDT")
        assert ticker.change_24h_absolute == Decimal("0")
        assert ticker.high_24h == Decimal("1")

    def test_missing_last_price_is_rejected(self):
        with pytest.raises(NormalizationError):
            BinanceNormalizer.normalize_ticker({"symbol": "BTCUSDT"}, "BTC/USDT")

    def test_high_below_low_is_rejected(self):
        with pytest.raises(NormalizationError):
            OKXNormalizer.normalize_ticker(
                {"last": "100", "high24h": "90", "low24h": "110"}, "BTC/USDT"
            )


# ============================================
# Orders
# ============================================


class TestOrders:
    """Status mapping and acknowledgement orders"""

    def test_binance_market_order_has_no_price(self):
        order = BinanceNormalizer.normalize_order(
            {
                "symbol": "BTCUSDT",
                "orderId": 28,
                "clientOrderId": "abc",
                "transactTime": 1507725176595,
                "price": "0.00000000",
                "origQty": "10.00000000",
                "status": "NEW",
                "type": "MARKET",
                "side": "SELL",
            },
            "BTC/USDT",
        )

        assert order.order_id == "28"
        assert order.status == OrderStatus.OPEN
        assert order.side == OrderSide.SELL
        assert order.price is None

    def test_binance_unknown_status_is_rejected(self):
        with pytest.raises(NormalizationError):
            BinanceNormalizer.normalize_order(
                {"orderId": 1, "status": "MYSTERY", "side": "BUY", "type": "LIMIT"},
                "BTC/USDT",
            )

    def test_coinbase_done_and_canceled_is_cancelled(self):
        order = CoinbaseNormalizer.normalize_order(
            {
                "id": "d0c5340b-6d6c-49d9-b567-48c4bfca13d2",
                "price": "0.10",
                "size": "0.01",
                "product_id": "BTC-USD",
                "side": "buy",
                "type": "limit",
                "status": "done",
                "done_reason": "canceled",
                "created_at": "2023-11-14T22:13:20.123Z",
            },
            "BTC/USD",
        )
        assert order.status == OrderStatus.CANCELLED
        assert order.price == Decimal("0.10")

    def test_acknowledgement_takes_values_from_request(self, limit_request):
        order = OKXNormalizer.normalize_order(
            {"ordId": "312269865356374016", "clOrdId": "abc123", "sCode": "0"},
            "BTC/USDT",
            limit_request,
        )

        assert order.status == OrderStatus.SUBMITTED
        assert order.quantity == Decimal("0.01")
        assert order.price == Decimal("50000")
        assert order.client_order_id == "abc123"

    @pytest.mark.parametrize(
        "normalize, ack",
        [
            (OKXNormalizer.normalize_order, {"ordId": ""}),
            (BybitNormalizer.normalize_order, {"orderLinkId": "x"}),
            (KuCoinNormalizer.normalize_order, {}),
            (CryptoComNormalizer.normalize_order, {"client_oid": "x"}),
        ],
    )
    def test_acknowledgement_without_id_is_rejected(self, normalize, ack, limit_request):
        with pytest.raises(NormalizationError):
            normalize(ack, "BTC/USDT", limit_request)
