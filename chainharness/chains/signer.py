"""
Transaction Signing

Signing is delegated to a wallet rather than done in-process. Each session
gets its own signer instance, so different sessions can sign with different
keys.
"""

from typing import Any, Protocol

import httpx
import structlog

from ..errors import SigningError

logger = structlog.get_logger(__name__)


class TransactionSigner(Protocol):
    """Anything that can sign a serialized transaction for a chain."""

    @property
    def available_keys(self) -> list[str]:
        """Public keys this signer can sign with."""
        ...

    async def sign(
        self,
        transaction: dict[str, Any],
        chain_id: str,
        required_keys: list[str] | None = None,
    ) -> list[str]:
        """Return the signatures for transaction on chain_id."""
        ...


class KeosdSigner:
    """
    Signer backed by a keosd wallet.

    The wallet holding the private keys must already be unlocked. The
    transaction is sent to /v1/wallet/sign_transaction together with the
    public keys to sign with and the chain id, and the wallet returns the
    transaction with its signatures attached.
    """

    def __init__(
        self,
        wallet_url: str,
        public_keys: list[str],
        *,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.wallet_url = wallet_url.rstrip("/")
        self._public_keys = list(public_keys)
        self._timeout = timeout
        self._http_client = http_client

    @property
    def available_keys(self) -> list[str]:
        return list(self._public_keys)

    async def sign(
        self,
        transaction: dict[str, Any],
        chain_id: str,
        required_keys: list[str] | None = None,
    ) -> list[str]:
        keys = required_keys or self._public_keys
        payload = [transaction, keys, chain_id]
        url = f"{self.wallet_url}/v1/wallet/sign_transaction"

        try:
            if self._http_client is not None:
                response = await self._http_client.post(url, json=payload)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(url, json=payload)
        except httpx.HTTPError as e:
            raise SigningError(f"Wallet at {self.wallet_url} unreachable: {e}") from e

        if response.status_code >= 400:
            raise SigningError(
                f"Wallet refused to sign (HTTP {response.status_code}): {response.text}"
            )

        signatures: list[str] = response.json().get("signatures", [])
        if not signatures:
            raise SigningError("Wallet returned no signatures")

        logger.debug("transaction_signed", keys=len(keys), signatures=len(signatures))
        return signatures
