"""Wallet signer protocol and a keypair-backed implementation."""

from typing import Any, Protocol

from solana.rpc.models import TxOpts  # type: ignore
from solders.keypair import Keypair  # type: ignore
from solders.pubkey import Pubkey  # type: ignore
from solders.transaction import Transaction  # type: ignore


class WalletSigner(Protocol):
    """Protocol for the wallet that authorizes settlement transactions.

    Only the orchestrator requests signatures, one at a time.
    """

    @property
    def connected(self) -> bool:
        ...

    @property
    def public_key(self) -> Pubkey | None:
        ...

    async def send_transaction(
        self,
        transaction: Transaction,
        connection: Any,
        opts: TxOpts | None = None,
    ) -> str:
        """Sign and submit a transaction.

        Returns:
            The base58 transaction signature.
        """
        ...


class KeypairWallet:
    """Wallet backed by a local keypair (server-side checkouts and tests)."""

    def __init__(self, keypair: Keypair):
        self._keypair = keypair

    @property
    def connected(self) -> bool:
        return True

    @property
    def public_key(self) -> Pubkey:
        return self._keypair.pubkey()

    @property
    def address(self) -> str:
        return str(self._keypair.pubkey())

    @property
    def keypair(self) -> Keypair:
        return self._keypair

    @classmethod
    def from_base58(cls, secret: str) -> "KeypairWallet":
        return cls(Keypair.from_base58_string(secret))

    @classmethod
    def from_bytes(cls, secret: bytes) -> "KeypairWallet":
        return cls(Keypair.from_bytes(secret))

    def sign_transaction(self, transaction: Transaction) -> Transaction:
        """Sign with the blockhash already set on the message."""
        message = transaction.message
        return Transaction([self._keypair], message, message.recent_blockhash)

    async def send_transaction(
        self,
        transaction: Transaction,
        connection: Any,
        opts: TxOpts | None = None,
    ) -> str:
        signed = self.sign_transaction(transaction)
        result = await connection.send_raw_transaction(bytes(signed), opts=opts)
        return str(result.value)
