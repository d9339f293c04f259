"""Split transfer construction and pre-flight simulation."""

import logging
from collections.abc import Mapping
from typing import Any

from solana.rpc.commitment import Confirmed  # type: ignore
from solders.compute_budget import set_compute_unit_price  # type: ignore
from solders.message import Message  # type: ignore
from solders.pubkey import Pubkey  # type: ignore
from solders.transaction import Transaction  # type: ignore
from spl.token.constants import TOKEN_PROGRAM_ID  # type: ignore
from spl.token.instructions import transfer_checked  # type: ignore
from spl.token.models import TransferCheckedParams  # type: ignore

from ...constants import DEFAULT_DECIMALS
from ...errors import SimulationFailed
from ..utils import derive_ata, to_pubkey
from .types import SplitPlan

logger = logging.getLogger(__name__)


async def build_split_transfer(
    connection: Any,
    mint: str | Pubkey,
    source_owner: str | Pubkey,
    plan: SplitPlan,
    decimals: int = DEFAULT_DECIMALS,
    accounts: Mapping[str, str] | None = None,
    priority_fee: int | None = None,
) -> Transaction:
    """Build one transaction with a TransferChecked per split leg.

    All legs debit the source owner's token account. The blockhash is
    fetched here, right before returning, and never reused across retries.

    Args:
        connection: Async RPC client.
        mint: SPL token mint.
        source_owner: Paying wallet; also the fee payer.
        plan: Split plan in minor units.
        decimals: Token decimals (6 for USDC).
        accounts: Optional precomputed owner -> token account addresses.
        priority_fee: Compute-unit price in micro-lamports. When set, a
            SetComputeUnitPrice instruction comes first.

    Returns:
        Unsigned transaction.
    """
    if not plan.legs:
        raise ValueError("Split plan has no transfers")

    accounts = accounts or {}
    owner_key = to_pubkey(source_owner)
    mint_key = to_pubkey(mint)

    def ata_for(owner: str) -> Pubkey:
        return Pubkey.from_string(accounts.get(owner) or derive_ata(owner, mint_key))

    source_ata = ata_for(str(owner_key))
    instructions = []
    if priority_fee:
        instructions.append(set_compute_unit_price(priority_fee))
    for leg in plan.legs:
        instructions.append(
            transfer_checked(
                TransferCheckedParams(
                    program_id=TOKEN_PROGRAM_ID,
                    source=source_ata,
                    mint=mint_key,
                    dest=ata_for(leg.address),
                    owner=owner_key,
                    amount=leg.amount,
                    decimals=decimals,
                )
            )
        )

    latest = await connection.get_latest_blockhash(Confirmed)
    message = Message.new_with_blockhash(instructions, owner_key, latest.value.blockhash)
    logger.debug("Built split transfer with %d leg(s), total %d", len(plan.legs), plan.total)
    return Transaction.new_unsigned(message)


async def simulate_transfer(connection: Any, transaction: Transaction) -> None:
    """Dry-run a transaction against current ledger state.

    Raises:
        SimulationFailed: The simulation reported an error or could not run.
    """
    try:
        response = await connection.simulate_transaction(transaction, sig_verify=False)
    except Exception as e:
        logger.error("Simulation request failed: %s", e)
        raise SimulationFailed(e) from e

    result = response.value
    if result.err is not None:
        logs = list(result.logs or [])
        logger.error("Transaction simulation failed: %s", result.err)
        raise SimulationFailed(result.err, logs)
    logger.debug("Transaction simulation successful")
