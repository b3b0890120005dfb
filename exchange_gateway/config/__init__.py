"""
Configuration management for the exchange gateway.

Modules:
    models: Pydantic configuration models
    loader: YAML loader with environment overrides
    credentials: Credential sets from the environment

Example:
    >>> from exchange_gateway.config import load_config, load_credentials
    >>> config = load_config("config")
    >>> credentials = load_credentials(config.get_enabled_exchanges())
"""

from exchange_gateway.config.credentials import credential_from_env, load_credentials
from exchange_gateway.config.loader import ConfigLoader, ConfigLoadError, load_config
from exchange_gateway.config.models import (
    DEFAULT_PRIORITY,
    SUPPORTED_EXCHANGES,
    ApiConfig,
    AppConfig,
    ConnectionSettings,
    ExchangeConfig,
    GatewaySettings,
    LogFormat,
    LoggingConfig,
    LogLevel,
    RedisConnectionConfig,
    SinkConfig,
)

__all__ = [
    "ConfigLoader",
    "ConfigLoadError",
    "load_config",
    "load_credentials",
    "credential_from_env",
    "AppConfig",
    "ApiConfig",
    "ConnectionSettings",
    "ExchangeConfig",
    "GatewaySettings",
    "LogFormat",
    "LoggingConfig",
    "LogLevel",
    "RedisConnectionConfig",
    "SinkConfig",
    "DEFAULT_PRIORITY",
    "SUPPORTED_EXCHANGES",
]
