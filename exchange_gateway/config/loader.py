"""
YAML configuration loading for the gateway.

Two files live in the configuration directory:

    exchanges.yaml   one block per exchange under ``exchanges:`` (endpoints,
                     symbols, ``connection:`` overrides, ``enabled``)
    gateway.yaml     ``gateway:``, ``api:``, ``logging:`` and ``sink:`` sections

Every block is validated by its Pydantic model; any failure surfaces as a
single ConfigLoadError naming the offending file. Credentials never live
in these files (see exchange_gateway.config.credentials).

Environment overrides:
    GATEWAY_CONFIG_DIR  directory used by load_config() when none is given
    LOG_LEVEL           replaces logging.level (invalid values are ignored)
    REDIS_URL           Redis URL for the snapshot sink

Example:
    >>> config = load_config("config")
    >>> config.get_enabled_exchanges()
    ['cryptocom', 'binance', 'coinbase', 'kucoin', 'okx', 'bybit']
"""

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Type, TypeVar

import yaml
from pydantic import BaseModel, ValidationError

from exchange_gateway.config.models import (
    ApiConfig,
    AppConfig,
    ExchangeConfig,
    GatewaySettings,
    LoggingConfig,
    LogLevel,
    RedisConnectionConfig,
    SinkConfig,
)

EXCHANGES_FILE = "exchanges.yaml"
GATEWAY_FILE = "gateway.yaml"
DEFAULT_CONFIG_DIR = "config"
DEFAULT_REDIS_URL = "redis://localhost:6379"

# gateway.yaml section name -> model
GATEWAY_SECTIONS: Dict[str, Type[BaseModel]] = {
    "gateway": GatewaySettings,
    "api": ApiConfig,
    "logging": LoggingConfig,
    "sink": SinkConfig,
}

ModelT = TypeVar("ModelT", bound=BaseModel)


class ConfigLoadError(Exception):
    """
    Configuration could not be loaded.

    Attributes:
        message: What went wrong.
        file_path: File (or directory) at fault, when known.
        cause: Underlying YAML, OS or validation error.
    """

    def __init__(
        self,
        message: str,
        file_path: Optional[Path] = None,
        cause: Optional[Exception] = None,
    ):
        self.message = message
        self.file_path = file_path
        self.cause = cause
        super().__init__(message)


def _validate(model: Type[ModelT], data: Any, file_path: Path, where: str) -> ModelT:
    """Build one section model, wrapping validation errors with their location."""
    if data is None:
        data = {}
    if not isinstance(data, Mapping):
        raise ConfigLoadError(f"{where} must be a mapping in {file_path}", file_path=file_path)
    try:
        return model(**data)
    except ValidationError as e:
        raise ConfigLoadError(f"Invalid {where} in {file_path}: {e}", file_path=file_path, cause=e) from e


class ConfigLoader:
    """
    Reads and validates the configuration directory.

    Args:
        config_dir: Directory holding exchanges.yaml and gateway.yaml.
        environ: Environment used for overrides (default: os.environ).

    Raises:
        ConfigLoadError: If config_dir is missing or not a directory.
    """

    def __init__(
        self,
        config_dir: Path | str = DEFAULT_CONFIG_DIR,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.config_dir = Path(config_dir)
        self.environ = os.environ if environ is None else environ
        if not self.config_dir.is_dir():
            reason = "not a directory" if self.config_dir.exists() else "not found"
            raise ConfigLoadError(
                f"Configuration directory {reason}: {self.config_dir}",
                file_path=self.config_dir,
            )

    def read(self, filename: str) -> Dict[str, Any]:
        """
        Parse one YAML file into a mapping.

        Raises:
            ConfigLoadError: Missing, unreadable, empty or non-mapping file,
                or invalid YAML.
        """
        file_path = self.config_dir / filename
        if not file_path.is_file():
            raise ConfigLoadError(f"Configuration file not found: {file_path}", file_path=file_path)

        try:
            data = yaml.safe_load(file_path.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            raise ConfigLoadError(
                f"Invalid YAML syntax in {file_path}: {e}", file_path=file_path, cause=e
            ) from e
        except OSError as e:
            raise ConfigLoadError(f"Error reading {file_path}: {e}", file_path=file_path, cause=e) from e

        if data is None:
            raise ConfigLoadError(f"Configuration file is empty: {file_path}", file_path=file_path)
        if not isinstance(data, dict):
            raise ConfigLoadError(
                f"Configuration file must contain a mapping: {file_path}", file_path=file_path
            )
        return data

    def exchanges(self) -> Dict[str, ExchangeConfig]:
        """Exchange blocks from exchanges.yaml, keyed by id in file order."""
        file_path = self.config_dir / EXCHANGES_FILE
        blocks = self.read(EXCHANGES_FILE).get("exchanges") or {}
        if not isinstance(blocks, Mapping) or not blocks:
            raise ConfigLoadError(f"No exchanges configured in {EXCHANGES_FILE}", file_path=file_path)

        return {
            str(exchange_id).lower(): _validate(ExchangeConfig, block, file_path, f"exchange '{exchange_id}'")
            for exchange_id, block in blocks.items()
        }

    def gateway_sections(self) -> Dict[str, BaseModel]:
        """Validated gateway.yaml sections; absent sections take their defaults."""
        file_path = self.config_dir / GATEWAY_FILE
        data = self.read(GATEWAY_FILE)
        sections = {
            name: _validate(model, data.get(name), file_path, f"'{name}' section")
            for name, model in GATEWAY_SECTIONS.items()
        }
        sections["logging"] = self._override_log_level(sections["logging"])
        return sections

    def _override_log_level(self, logging_config: LoggingConfig) -> LoggingConfig:
        raw = self.environ.get("LOG_LEVEL")
        if not raw:
            return logging_config
        try:
            level = LogLevel(raw.strip().upper())
        except ValueError:
            return logging_config
        return logging_config.model_copy(update={"level": level})

    def redis(self) -> RedisConnectionConfig:
        """Redis connection settings from REDIS_URL."""
        return RedisConnectionConfig(url=self.environ.get("REDIS_URL", DEFAULT_REDIS_URL))

    def load(self) -> AppConfig:
        """
        Load both files and assemble the application configuration.

        Returns:
            AppConfig: Validated configuration.

        Raises:
            ConfigLoadError: If any file or section is missing or invalid,
                including cross-section checks such as unsupported exchanges.
        """
        exchanges = self.exchanges()
        sections = self.gateway_sections()
        try:
            return AppConfig(exchanges=exchanges, redis=self.redis(), **sections)
        except ValidationError as e:
            raise ConfigLoadError(f"Configuration validation failed: {e}", cause=e) from e


def load_config(config_dir: Optional[Path | str] = None) -> AppConfig:
    """
    Load configuration from config_dir, $GATEWAY_CONFIG_DIR, or ./config.

    Raises:
        ConfigLoadError: If configuration loading fails.
    """
    if config_dir is None:
        config_dir = os.environ.get("GATEWAY_CONFIG_DIR", DEFAULT_CONFIG_DIR)
    return ConfigLoader(config_dir).load()
