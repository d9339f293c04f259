"""Submission and confirmation polling for settlement transactions.

State machine per transaction::

    SUBMITTED -> (POLLING)* -> CONFIRMED | FAILED | TIMED_OUT

Transient read errors while polling re-enter POLLING; only the timeout
budget ends the wait for that reason. A timed-out transaction is never
resubmitted here, it may still land against its blockhash.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Any

from solana.rpc.commitment import Confirmed  # type: ignore
from solana.rpc.models import TxOpts  # type: ignore
from solders.signature import Signature  # type: ignore
from solders.transaction import Transaction  # type: ignore
from solders.transaction_status import TransactionConfirmationStatus  # type: ignore

from ..constants import (
    DEFAULT_CONFIRM_TIMEOUT_SECONDS,
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_SEND_MAX_RETRIES,
    SOLANA_DEVNET_CAIP2,
)
from ..errors import ConfirmationTimeout, TransactionFailed
from .signers import WalletSigner
from .utils import explorer_url

logger = logging.getLogger(__name__)

_TERMINAL_STATUSES = (
    TransactionConfirmationStatus.Confirmed,
    TransactionConfirmationStatus.Finalized,
)


class SettlementConfirmer:
    """Sends signed transactions and polls the ledger for a terminal status."""

    def __init__(
        self,
        network: str = SOLANA_DEVNET_CAIP2,
        timeout: float = DEFAULT_CONFIRM_TIMEOUT_SECONDS,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        max_retries: int = DEFAULT_SEND_MAX_RETRIES,
    ):
        self._network = network
        self._timeout = timeout
        self._poll_interval = poll_interval
        self._max_retries = max_retries

    @property
    def timeout(self) -> float:
        return self._timeout

    def send_options(self) -> TxOpts:
        return TxOpts(
            skip_preflight=False,
            preflight_commitment=Confirmed,
            max_retries=self._max_retries,
        )

    async def submit_and_confirm(
        self,
        connection: Any,
        signer: WalletSigner,
        transaction: Transaction,
        timeout: float | None = None,
        on_submitted: Callable[[str], None] | None = None,
    ) -> str:
        """Submit a transaction through the wallet and wait for confirmation.

        Args:
            connection: Async RPC client.
            signer: Wallet that signs and sends the transaction.
            transaction: Unsigned transaction with a fresh blockhash.
            timeout: Polling budget in seconds (defaults to the confirmer's).
            on_submitted: Called with the signature once the ledger accepted it.

        Returns:
            The confirmed signature.

        Raises:
            TransactionFailed: The ledger reported an error for the transaction.
            ConfirmationTimeout: No terminal status within the budget.
        """
        signature = await signer.send_transaction(transaction, connection, self.send_options())
        logger.info("Submitted transaction %s", signature)
        if on_submitted is not None:
            on_submitted(signature)
        return await self.wait_for_confirmation(connection, signature, timeout)

    async def wait_for_confirmation(
        self,
        connection: Any,
        signature: str,
        timeout: float | None = None,
    ) -> str:
        budget = self._timeout if timeout is None else timeout
        deadline = time.monotonic() + budget

        while True:
            status = None
            try:
                response = await connection.get_signature_statuses([Signature.from_string(signature)])
                status = response.value[0]
            except Exception as e:
                logger.warning("Status check for %s failed, retrying: %s", signature, e)

            if status is not None:
                if status.err is not None:
                    logger.error("Transaction %s failed on-chain: %s", signature, status.err)
                    raise TransactionFailed(signature, status.err)
                if status.confirmation_status in _TERMINAL_STATUSES:
                    logger.info("Transaction %s confirmed (%s)", signature, status.confirmation_status)
                    return signature

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                url = explorer_url(signature, self._network)
                logger.warning("Transaction %s not confirmed within %ss: %s", signature, budget, url)
                raise ConfirmationTimeout(signature, budget, url)
            await asyncio.sleep(min(self._poll_interval, remaining))
