"""
Unit tests for configuration and credential loading.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from exchange_gateway.config import (
    AppConfig,
    ConfigLoader,
    ConfigLoadError,
    ConnectionSettings,
    ExchangeConfig,
    GatewaySettings,
    LogFormat,
    LogLevel,
    credential_from_env,
    load_config,
    load_credentials,
)
from exchange_gateway.errors import ConfigurationError

EXCHANGES_YAML = """
exchanges:
  binance:
    rest_url: https://api.binance.com
    websocket_url: wss://stream.binance.com:9443/ws
    symbols: [btc/usdt, ETH/USDT]
    connection:
      max_reconnect_attempts: 5
  okx:
    rest_url: https://www.okx.com
  cryptocom:
    rest_url: https://api.crypto.com/exchange/v1
  bybit:
    enabled: false
    rest_url: https://api.bybit.com
"""

GATEWAY_YAML = """
gateway:
  fanout_timeout_seconds: 3
api:
  port: 9000
logging:
  format: text
  level: WARNING
sink:
  enabled: true
  key_prefix: gw
"""


def _write(directory: Path, exchanges: str = EXCHANGES_YAML, gateway: str = GATEWAY_YAML) -> Path:
    (directory / "exchanges.yaml").write_text(exchanges)
    (directory / "gateway.yaml").write_text(gateway)
    return directory


class TestConfigLoader:
    """YAML loading and validation"""

    def test_loads_all_sections(self, tmp_path, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        monkeypatch.setenv("REDIS_URL", "redis://cache:6379")

        config = ConfigLoader(_write(tmp_path)).load()

        binance = config.get_exchange("binance")
        assert binance.symbols == ["BTC/USDT", "ETH/USDT"]
        assert binance.connection.max_reconnect_attempts == 5
        assert config.gateway.fanout_timeout_seconds == 3
        assert config.api.port == 9000
        assert config.logging.format == LogFormat.TEXT
        assert config.logging.level == LogLevel.WARNING
        assert config.sink.enabled is True
        assert config.sink.ticker_ttl_seconds == 60
        assert config.redis.url == "redis://cache:6379"

    def test_enabled_exchanges_in_priority_order(self, tmp_path):
        config = ConfigLoader(_write(tmp_path)).load()
        assert config.get_enabled_exchanges() == ["cryptocom", "binance", "okx"]

    def test_log_level_from_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")
        config = ConfigLoader(_write(tmp_path)).load()
        assert config.logging.level == LogLevel.DEBUG

    def test_invalid_log_level_is_ignored(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "chatty")
        config = ConfigLoader(_write(tmp_path)).load()
        assert config.logging.level == LogLevel.WARNING

    def test_config_dir_from_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("GATEWAY_CONFIG_DIR", str(_write(tmp_path)))
        assert "okx" in load_config().exchanges

    def test_missing_directory(self, tmp_path):
        with pytest.raises(ConfigLoadError):
            ConfigLoader(tmp_path / "nope")

    def test_missing_gateway_file(self, tmp_path):
        (tmp_path / "exchanges.yaml").write_text(EXCHANGES_YAML)
        with pytest.raises(ConfigLoadError) as exc_info:
            ConfigLoader(tmp_path).load()
        assert exc_info.value.file_path == tmp_path / "gateway.yaml"

    def test_invalid_yaml(self, tmp_path):
        _write(tmp_path, exchanges="exchanges: [unclosed")
        with pytest.raises(ConfigLoadError, match="Invalid YAML"):
            ConfigLoader(tmp_path).load()

    def test_unsupported_exchange(self, tmp_path):
        _write(tmp_path, exchanges="exchanges:\n  kraken:\n    rest_url: https://api.kraken.com\n")
        with pytest.raises(ConfigLoadError, match="Unsupported exchange"):
            ConfigLoader(tmp_path).load()

    def test_malformed_symbol(self, tmp_path):
        _write(
            tmp_path,
            exchanges="exchanges:\n  okx:\n    rest_url: https://www.okx.com\n    symbols: [BTCUSDT]\n",
        )
        with pytest.raises(ConfigLoadError):
            ConfigLoader(tmp_path).load()

    def test_no_exchanges(self, tmp_path):
        _write(tmp_path, exchanges="exchanges: {}\n")
        with pytest.raises(ConfigLoadError, match="No exchanges"):
            ConfigLoader(tmp_path).load()

    def test_shipped_config_is_valid(self, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        config_dir = Path(__file__).resolve().parent.parent / "config"

        config = ConfigLoader(config_dir).load()

        assert config.get_enabled_exchanges()[0] == "cryptocom"
        assert set(config.exchanges) == {"binance", "coinbase", "kucoin", "okx", "bybit", "cryptocom"}

    def test_shipped_startup_timeout_covers_one_attempt(self, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        config = load_config(Path(__file__).resolve().parent.parent / "config")

        for exchange in config.exchanges.values():
            one_attempt = (
                exchange.connection.request_timeout_seconds
                + exchange.connection.connect_timeout_seconds
            )
            assert config.gateway.startup_timeout_seconds > one_attempt


class TestModels:
    """Model-level validation"""

    def test_backoff_cap_below_base_rejected(self):
        with pytest.raises(ValidationError):
            ConnectionSettings(reconnect_base_delay_seconds=10, reconnect_max_delay_seconds=5)

    def test_backoff_policy_from_settings(self):
        policy = ConnectionSettings(max_reconnect_attempts=3).backoff_policy()
        assert policy.max_attempts == 3
        assert policy.delay(10) == 30.0

    def test_default_startup_timeout_covers_one_attempt(self):
        connection = ConnectionSettings()
        settings = GatewaySettings()

        assert settings.startup_timeout_seconds > (
            connection.request_timeout_seconds + connection.connect_timeout_seconds
        )
        assert settings.startup_retry_attempts == 3

    def test_startup_retry_attempts_at_least_one(self):
        with pytest.raises(ValidationError):
            GatewaySettings(startup_retry_attempts=0)

    def test_unsupported_exchange_in_app_config(self):
        with pytest.raises(ValidationError):
            AppConfig(exchanges={"kraken": ExchangeConfig(rest_url="https://api.kraken.com")})


class TestCredentials:
    """Credential sets from the environment"""

    def test_full_set_with_passphrase(self):
        credential = credential_from_env(
            "okx",
            {"OKX_API_KEY": "k", "OKX_API_SECRET": "s", "OKX_PASSPHRASE": "p"},
        )
        assert credential.api_key == "k"
        assert credential.has_passphrase

    def test_absent_set_is_none(self):
        assert credential_from_env("binance", {}) is None

    def test_secret_is_not_in_repr(self):
        credential = credential_from_env(
            "binance", {"BINANCE_API_KEY": "k", "BINANCE_API_SECRET": "very-secret"}
        )
        assert "very-secret" not in repr(credential)

    def test_partial_set_raises(self):
        with pytest.raises(ConfigurationError) as exc_info:
            credential_from_env("bybit", {"BYBIT_API_KEY": "k"})
        assert exc_info.value.field == "api_secret"

    def test_load_skips_partial_and_missing(self):
        credentials = load_credentials(
            ["binance", "bybit", "okx"],
            {
                "BINANCE_API_KEY": "k",
                "BINANCE_API_SECRET": "s",
                "BYBIT_API_SECRET": "s",
            },
        )
        assert list(credentials) == ["binance"]
