"""
Credential loading from the environment.

Each exchange reads <EXCHANGE>_API_KEY, <EXCHANGE>_API_SECRET and, where
the exchange needs one, <EXCHANGE>_PASSPHRASE. A missing set is not an
error: the adapter simply runs without private capabilities. A half-filled
set (key without secret or the reverse) is logged once as a configuration
error and treated as absent.

Example:
    >>> creds = load_credentials(["binance", "okx"], {"BINANCE_API_KEY": "k",
    ...                                               "BINANCE_API_SECRET": "s"})
    >>> sorted(creds)
    ['binance']
"""

import os
from typing import Dict, Iterable, Mapping, Optional

import structlog

from exchange_gateway.errors import ConfigurationError
from exchange_gateway.models.credentials import Credential

logger = structlog.get_logger(__name__)


def env_prefix(exchange_id: str) -> str:
    """Environment variable prefix for an exchange (e.g., "CRYPTOCOM")."""
    return exchange_id.upper().replace("-", "_")


def credential_from_env(
    exchange_id: str,
    environ: Optional[Mapping[str, str]] = None,
) -> Optional[Credential]:
    """
    Read one exchange's credential set.

    Args:
        exchange_id: Exchange id.
        environ: Environment mapping (default: os.environ).

    Returns:
        Optional[Credential]: Credential, or None when no variables are set.

    Raises:
        ConfigurationError: If only part of the key/secret pair is set.
    """
    env = os.environ if environ is None else environ
    prefix = env_prefix(exchange_id)
    api_key = (env.get(f"{prefix}_API_KEY") or "").strip()
    api_secret = (env.get(f"{prefix}_API_SECRET") or "").strip()
    passphrase = (env.get(f"{prefix}_PASSPHRASE") or "").strip() or None

    if not api_key and not api_secret:
        return None
    if not api_key:
        raise ConfigurationError(
            f"{prefix}_API_SECRET is set but {prefix}_API_KEY is missing",
            exchange_id=exchange_id,
            field="api_key",
        )
    if not api_secret:
        raise ConfigurationError(
            f"{prefix}_API_KEY is set but {prefix}_API_SECRET is missing",
            exchange_id=exchange_id,
            field="api_secret",
        )

    return Credential(
        exchange_id=exchange_id,
        api_key=api_key,
        api_secret=api_secret,
        passphrase=passphrase,
    )


def load_credentials(
    exchange_ids: Iterable[str],
    environ: Optional[Mapping[str, str]] = None,
) -> Dict[str, Credential]:
    """
    Load credentials for every listed exchange.

    Args:
        exchange_ids: Exchanges to look up.
        environ: Environment mapping (default: os.environ).

    Returns:
        Dict[str, Credential]: Credentials keyed by exchange id; exchanges
        without a usable set are omitted.
    """
    credentials: Dict[str, Credential] = {}
    for exchange_id in exchange_ids:
        try:
            credential = credential_from_env(exchange_id, environ)
        except ConfigurationError as e:
            logger.error(
                "credential_configuration_error",
                exchange_id=exchange_id,
                field=e.field,
                error=e.message,
            )
            continue

        if credential is None:
            logger.info("credentials_not_configured", exchange_id=exchange_id)
            continue

        credentials[exchange_id] = credential
        logger.info(
            "credentials_loaded",
            exchange_id=exchange_id,
            has_passphrase=credential.has_passphrase,
        )
    return credentials
