"""
Exchange credential model.

Credentials are loaded once at process start and never mutated; rotating a
key requires restarting the adapter that uses it.
"""

from typing import Optional

from pydantic import BaseModel, Field


class Credential(BaseModel):
    """
    API credential set for one exchange.

    Secrets are excluded from repr so they never reach log output.

    Attributes:
        exchange_id: Exchange this credential belongs to.
        api_key: Public API key.
        api_secret: Signing secret.
        passphrase: Extra passphrase (OKX, KuCoin, Coinbase).

    Example:
        >>> cred = Credential(
        ...     exchange_id="okx",
        ...     api_key="key",
        ...     api_secret="secret",
        ...     passphrase="phrase",
        ... )
        >>> cred.has_passphrase
        True
    """

    model_config = {"frozen": True, "extra": "forbid"}

    exchange_id: str = Field(
        ...,
        description="Exchange identifier",
        min_length=1,
        max_length=50,
    )
    api_key: str = Field(
        ...,
        description="Public API key",
    )
    api_secret: str = Field(
        ...,
        description="API signing secret",
        repr=False,
    )
    passphrase: Optional[str] = Field(
        default=None,
        description="API passphrase for exchanges that require one",
        repr=False,
    )

    @property
    def has_passphrase(self) -> bool:
        """Check if a non-empty passphrase was supplied."""
        return bool(self.passphrase)
