"""Token account resolution and provisioning.

Associated token account (ATA) addresses are a pure function of
(owner, mint); existence needs a ledger read. Results are never cached:
another actor may create an account between two settlements.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from solana.rpc.commitment import Confirmed  # type: ignore
from solders.compute_budget import set_compute_unit_price  # type: ignore
from solders.message import Message  # type: ignore
from solders.pubkey import Pubkey  # type: ignore
from solders.transaction import Transaction  # type: ignore
from spl.token.constants import TOKEN_PROGRAM_ID  # type: ignore
from spl.token.instructions import create_associated_token_account  # type: ignore

from ..constants import DEFAULT_PROVISION_TIMEOUT_SECONDS, TOKEN_ACCOUNT_AMOUNT_OFFSET
from ..errors import AccountProvisioningFailed, ConfirmationTimeout, WalletNotConnected
from .confirm import SettlementConfirmer
from .signers import WalletSigner
from .utils import derive_ata, to_pubkey

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccountResolution:
    """Existence check result for an owner's token account."""

    exists: bool
    address: str


@dataclass(frozen=True)
class TokenBalance:
    balance: int  # minor units
    has_account: bool


async def _fetch_token_account_data(connection: Any, address: str) -> bytes | None:
    """Read a token account's raw data.

    Returns None when the account is absent or not owned by the token
    program. RPC and transport errors propagate.
    """
    response = await connection.get_account_info(Pubkey.from_string(address))
    account = response.value
    if account is None:
        return None
    if account.owner != TOKEN_PROGRAM_ID:
        logger.warning("Account %s is not owned by the token program", address)
        return None
    return bytes(account.data)


async def resolve_account(connection: Any, mint: str | Pubkey, owner: str | Pubkey) -> AccountResolution:
    """Resolve an owner's associated token account for ``mint``."""
    address = derive_ata(owner, mint)
    data = await _fetch_token_account_data(connection, address)
    return AccountResolution(exists=data is not None, address=address)


async def check_balance(connection: Any, owner: str | Pubkey, mint: str | Pubkey) -> TokenBalance:
    """Read an owner's token balance in minor units."""
    address = derive_ata(owner, mint)
    data = await _fetch_token_account_data(connection, address)
    if data is None:
        return TokenBalance(balance=0, has_account=False)
    amount = int.from_bytes(data[TOKEN_ACCOUNT_AMOUNT_OFFSET : TOKEN_ACCOUNT_AMOUNT_OFFSET + 8], "little")
    return TokenBalance(balance=amount, has_account=True)


async def ensure_accounts(
    connection: Any,
    signer: WalletSigner,
    mint: str | Pubkey,
    owners: Iterable[str | Pubkey],
    confirmer: SettlementConfirmer | None = None,
    timeout: float | None = None,
    priority_fee: int | None = None,
) -> str | None:
    """Create every missing token account in a single transaction.

    One transaction means one wallet prompt however many accounts are
    missing.

    Args:
        connection: Async RPC client.
        signer: Wallet paying for account creation.
        mint: SPL token mint.
        owners: Owner addresses that must hold a token account.
        confirmer: Confirmer used to submit the provisioning transaction.
        timeout: Confirmation budget in seconds.
        priority_fee: Compute-unit price in micro-lamports, prepended when set.

    Returns:
        The provisioning signature, or None when nothing was missing.

    Raises:
        AccountProvisioningFailed: The creation transaction was not
            confirmed in time, or an account still does not resolve after it
            confirmed. Provisioning timeouts never surface as
            ConfirmationTimeout, which is reserved for payments.
    """
    if not signer.connected or signer.public_key is None:
        raise WalletNotConnected()

    unique_owners = list(dict.fromkeys(str(owner) for owner in owners))
    missing: list[str] = []
    for owner in unique_owners:
        resolution = await resolve_account(connection, mint, owner)
        if not resolution.exists:
            missing.append(owner)

    if not missing:
        logger.debug("All %d token accounts exist, nothing to provision", len(unique_owners))
        return None

    logger.info("Creating token accounts for %s", ", ".join(missing))
    payer = signer.public_key
    instructions = []
    if priority_fee:
        instructions.append(set_compute_unit_price(priority_fee))
    instructions.extend(
        create_associated_token_account(payer=payer, owner=to_pubkey(owner), mint=to_pubkey(mint))
        for owner in missing
    )

    latest = await connection.get_latest_blockhash(Confirmed)
    message = Message.new_with_blockhash(instructions, payer, latest.value.blockhash)
    transaction = Transaction.new_unsigned(message)

    confirmer = confirmer or SettlementConfirmer(timeout=DEFAULT_PROVISION_TIMEOUT_SECONDS)
    if timeout is None:
        timeout = min(confirmer.timeout, DEFAULT_PROVISION_TIMEOUT_SECONDS)
    try:
        signature = await confirmer.submit_and_confirm(connection, signer, transaction, timeout=timeout)
    except ConfirmationTimeout as e:
        logger.error("Provisioning %s not confirmed within %ss", e.signature, e.timeout)
        raise AccountProvisioningFailed(
            ", ".join(missing), e.signature, f"not confirmed within {e.timeout:g}s"
        ) from e

    for owner in missing:
        resolution = await resolve_account(connection, mint, owner)
        if not resolution.exists:
            logger.error("Provisioning %s confirmed but account for %s is missing", signature, owner)
            raise AccountProvisioningFailed(owner, signature)

    logger.info("Provisioned %d token account(s) in %s", len(missing), signature)
    return signature
