"""
Signature Engine: dispatches signing to the strategy registered per exchange.
"""

from typing import Dict, Iterable, Optional

import structlog

from exchange_gateway.errors import ConfigurationError
from exchange_gateway.models.credentials import Credential
from exchange_gateway.signing.base import NonceGenerator, SignedRequest, Signer, SigningRequest
from exchange_gateway.signing.header import BybitSigner
from exchange_gateway.signing.passphrase import CoinbaseSigner, KucoinSigner, OkxSigner
from exchange_gateway.signing.query import BinanceSigner
from exchange_gateway.signing.rpc import CryptoComSigner

logger = structlog.get_logger(__name__)


def default_signers(recv_window_ms: int = 5000) -> Dict[str, Signer]:
    """Build one signer per supported exchange."""
    signers = [
        BinanceSigner(recv_window_ms=recv_window_ms),
        CoinbaseSigner(),
        KucoinSigner(),
        OkxSigner(),
        BybitSigner(recv_window_ms=recv_window_ms),
        CryptoComSigner(),
    ]
    return {signer.exchange_id: signer for signer in signers}


class SignatureEngine:
    """
    Registry of per-exchange signing strategies.

    Example:
        >>> engine = SignatureEngine()
        >>> signed = engine.sign(
        ...     "bybit",
        ...     SigningRequest(method="GET", path="/v5/account/wallet-balance",
        ...                    params={"accountType": "UNIFIED"}),
        ...     credential,
        ... )
        >>> signed.headers["X-BAPI-SIGN"] == signed.signature
        True
    """

    def __init__(
        self,
        signers: Optional[Iterable[Signer]] = None,
        nonce_generator: Optional[NonceGenerator] = None,
    ):
        if signers is None:
            self._signers = default_signers()
        else:
            self._signers = {signer.exchange_id: signer for signer in signers}
        self._nonces = nonce_generator or NonceGenerator()

    @property
    def exchanges(self) -> list[str]:
        """Exchange ids with a registered signer."""
        return list(self._signers)

    def signer_for(self, exchange_id: str) -> Signer:
        """
        Look up the signer for an exchange.

        Raises:
            ConfigurationError: If no signer is registered.
        """
        try:
            return self._signers[exchange_id]
        except KeyError:
            raise ConfigurationError(
                "No signing strategy registered",
                exchange_id=exchange_id,
            ) from None

    def register(self, signer: Signer) -> None:
        """Register or replace a signer."""
        self._signers[signer.exchange_id] = signer

    def next_nonce(self) -> int:
        """Next monotonic millisecond nonce."""
        return self._nonces.next()

    def sign(
        self,
        exchange_id: str,
        request: SigningRequest,
        credential: Credential,
        nonce: Optional[int] = None,
    ) -> SignedRequest:
        """
        Sign a request for an exchange.

        Args:
            exchange_id: Target exchange.
            request: Method, path and params.
            credential: Credential set.
            nonce: Millisecond nonce; drawn from the generator when omitted.

        Returns:
            SignedRequest: Signature, headers and encoded params.

        Raises:
            ConfigurationError: Unknown exchange or incomplete credential.
        """
        signer = self.signer_for(exchange_id)
        if nonce is None:
            nonce = self.next_nonce()
        signed = signer.sign(request, credential, nonce)
        logger.debug(
            "request_signed",
            exchange_id=exchange_id,
            method=request.method,
            path=request.path,
            nonce=nonce,
        )
        return signed
