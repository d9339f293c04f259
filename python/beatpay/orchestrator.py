"""Settlement orchestrator for single-item and cart checkouts.

Coordinates the settlement protocol:

1. Pre-flight: wallet connected, payee address valid, balance sufficient.
   Nothing is sent when a pre-flight check fails.
2. Provision missing token accounts (one transaction, one wallet prompt).
3. Build the split transfer, simulate it, submit and confirm.
4. Record the order and purchase grants, best effort.

Payments with no known payee address are routed entirely to the platform
and recorded with a FallbackReason for manual payout.

Transactions from one signer are submitted strictly one at a time: two
in-flight transactions from the same wallet can conflict on blockhash
state. Batches are therefore processed sequentially, never concurrently.
"""

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from .config import SettlementConfig
from .errors import (
    BatchSettlementError,
    ConfirmationTimeout,
    InsufficientBalance,
    InvalidAddress,
    InvalidAmount,
    LedgerRecordingFailed,
    WalletNotConnected,
)
from .ledger import OrderLedger
from .schemas import FallbackReason, OrderRecord, OrderStatus, PurchaseGrant
from .state import CheckoutState, CheckoutStateMachine
from .svm.accounts import check_balance, ensure_accounts
from .svm.confirm import SettlementConfirmer
from .svm.signers import WalletSigner
from .svm.split.builder import build_split_transfer, simulate_transfer
from .svm.split.types import SplitPlan, SplitRatio, calculate_split_plan
from .svm.utils import minor_units_to_usd, usd_to_minor_units, validate_svm_address

logger = logging.getLogger(__name__)


@dataclass
class SettlementItem:
    """One item of a checkout.

    Attributes:
        amount: Price in USD.
        payee_address: Producer's Solana address, None when unknown.
        item_id: Catalog item id used for the purchase grant.
    """

    amount: Decimal | float | int | str
    payee_address: str | None
    item_id: str | None = None


class SettlementOrchestrator:
    """Entry point for USDC split settlement.

    Args:
        connection: Async RPC client shared for reads and writes.
        config: Settlement configuration.
        ledger: Order ledger receiving orders and purchase grants.
        confirmer: Submission/confirmation helper.
        clock: Returns the current time; used to pick the split ratio.
    """

    def __init__(
        self,
        connection: Any,
        config: SettlementConfig,
        ledger: OrderLedger,
        confirmer: SettlementConfirmer | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self._connection = connection
        self._config = config
        self._ledger = ledger
        self._confirmer = confirmer or SettlementConfirmer(
            network=config.network,
            timeout=config.confirm_timeout,
        )
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._signing_lock = asyncio.Lock()

    @property
    def config(self) -> SettlementConfig:
        return self._config

    async def settle(
        self,
        amount: Decimal | float | int | str,
        payee_address: str | None,
        signer: WalletSigner,
        connection: Any = None,
        *,
        buyer_id: str | None = None,
        item_ids: Sequence[str] | None = None,
        state: CheckoutStateMachine | None = None,
    ) -> str:
        """Settle a single payment.

        Args:
            amount: Price in USD.
            payee_address: Producer address; None routes the payment to the
                platform as a fallback settlement.
            signer: Connected buyer wallet.
            connection: Overrides the orchestrator's RPC client.
            buyer_id: Buyer identity for the order record.
            item_ids: Catalog items covered by this payment.
            state: Optional checkout state machine to drive. A machine left
                SETTLED or FAILED by a previous checkout is reset first.

        Returns:
            The confirmed transaction signature.

        Raises:
            WalletNotConnected, InvalidAddress, InvalidAmount,
            InsufficientBalance, SimulationFailed: Pre-flight failures,
                nothing was sent.
            AccountProvisioningFailed: Token account creation timed out or
                did not take. No payment was sent and nothing is recorded.
            TransactionFailed, ConfirmationTimeout: Post-submission failures,
                carrying the signature.
        """
        connection = connection or self._connection
        item_ids = list(item_ids or [])

        async with self._signing_lock:
            _require_connected(signer)
            total = usd_to_minor_units(amount, self._config.decimals)
            if total <= 0:
                raise InvalidAmount(amount)
            _begin(state)

            if payee_address is None:
                reason = FallbackReason(item_ids=item_ids, amount_minor=total)
                try:
                    signature = await self._settle_fallback(connection, signer, total, state)
                except ConfirmationTimeout as e:
                    await self._record(buyer_id, [e.signature], total, item_ids, None, reason, OrderStatus.PENDING)
                    raise
                await self._record(buyer_id, [signature], total, item_ids, None, reason)
                return signature

            ratio = self._config.split_ratio(self._clock())
            try:
                signature = await self._settle_split(connection, signer, total, payee_address, ratio, state)
            except ConfirmationTimeout as e:
                await self._record(buyer_id, [e.signature], total, item_ids, ratio, status=OrderStatus.PENDING)
                raise
            await self._record(buyer_id, [signature], total, item_ids, ratio)
            return signature

    async def settle_many(
        self,
        items: Sequence[SettlementItem],
        signer: WalletSigner,
        connection: Any = None,
        *,
        buyer_id: str | None = None,
        state: CheckoutStateMachine | None = None,
    ) -> list[str]:
        """Settle a cart.

        Items with a payee address are settled one by one in input order.
        Items without one are summed into a single fallback payment made
        last. One order references every signature.

        Returns:
            Signatures in settlement order, fallback last.

        Raises:
            WalletNotConnected, InvalidAddress, InvalidAmount,
            InsufficientBalance: Checked for the whole cart before any item
                is paid.
            BatchSettlementError: An item failed. Carries the signatures
                obtained so far; later items were not attempted.
        """
        connection = connection or self._connection
        if not items:
            return []

        async with self._signing_lock:
            _require_connected(signer)
            for item in items:
                if item.payee_address is not None and not validate_svm_address(item.payee_address):
                    raise InvalidAddress(item.payee_address, "payee")

            decimals = self._config.decimals
            totals = [usd_to_minor_units(item.amount, decimals) for item in items]
            for index, total in enumerate(totals):
                if total <= 0:
                    raise InvalidAmount(items[index].amount, index)
            await self._check_balance(connection, signer, sum(totals))

            _begin(state)
            ratio = self._config.split_ratio(self._clock())
            addressed = [i for i, item in enumerate(items) if item.payee_address is not None]
            unaddressed = [i for i, item in enumerate(items) if item.payee_address is None]
            logger.info(
                "Settling %d payment(s) and %d fallback item(s), total %d",
                len(addressed),
                len(unaddressed),
                sum(totals),
            )

            signatures: list[str] = []
            settled: list[int] = []

            for index in addressed:
                item = items[index]
                try:
                    signature = await self._settle_split(
                        connection, signer, totals[index], item.payee_address, ratio, state
                    )
                except Exception as e:
                    logger.error("Batch payment %d to %s failed: %s", index, item.payee_address, e)
                    await self._record_partial(buyer_id, items, totals, settled, signatures, ratio, index, e)
                    raise BatchSettlementError(index, signatures, e) from e
                signatures.append(signature)
                settled.append(index)

            fallback_reason = None
            if unaddressed:
                fallback_total = sum(totals[i] for i in unaddressed)
                fallback_reason = FallbackReason(
                    item_ids=[items[i].item_id for i in unaddressed if items[i].item_id],
                    amount_minor=fallback_total,
                )
                try:
                    signature = await self._settle_fallback(connection, signer, fallback_total, state)
                except Exception as e:
                    logger.error("Fallback payment for %d item(s) failed: %s", len(unaddressed), e)
                    await self._record_partial(
                        buyer_id, items, totals, settled, signatures, ratio, unaddressed[0], e, fallback_reason
                    )
                    raise BatchSettlementError(unaddressed[0], signatures, e) from e
                signatures.append(signature)
                settled.extend(unaddressed)

            await self._record(
                buyer_id,
                signatures,
                sum(totals),
                [items[i].item_id for i in settled if items[i].item_id],
                ratio,
                fallback_reason,
            )
            return signatures

    async def _settle_split(
        self,
        connection: Any,
        signer: WalletSigner,
        total: int,
        payee_address: str,
        ratio: SplitRatio,
        state: CheckoutStateMachine | None,
    ) -> str:
        if not validate_svm_address(payee_address):
            raise InvalidAddress(payee_address, "payee")

        platform = self._config.platform_wallet
        plan = calculate_split_plan(total, payee_address, platform, ratio)
        logger.info(
            "Split payment of %d to %s (%d/%d bps)",
            total,
            payee_address,
            ratio.producer_bps,
            ratio.platform_bps,
        )
        owners = [str(signer.public_key), payee_address, platform]
        return await self._execute(connection, signer, plan, owners, state)

    async def _settle_fallback(
        self,
        connection: Any,
        signer: WalletSigner,
        total: int,
        state: CheckoutStateMachine | None,
    ) -> str:
        platform = self._config.platform_wallet
        logger.warning(
            "fallback_reason=missing_payee_address: routing %d to platform %s", total, platform
        )
        plan = SplitPlan.single(platform, total)
        owners = [str(signer.public_key), platform]
        return await self._execute(connection, signer, plan, owners, state)

    async def _execute(
        self,
        connection: Any,
        signer: WalletSigner,
        plan: SplitPlan,
        owners: list[str],
        state: CheckoutStateMachine | None,
    ) -> str:
        mint = self._config.usdc_mint
        try:
            await self._check_balance(connection, signer, plan.total)
            await ensure_accounts(
                connection,
                signer,
                mint,
                owners,
                confirmer=self._confirmer,
                priority_fee=self._config.priority_fee,
            )
            transaction = await build_split_transfer(
                connection,
                mint,
                signer.public_key,
                plan,
                self._config.decimals,
                priority_fee=self._config.priority_fee,
            )
            await simulate_transfer(connection, transaction)

            _advance(state, CheckoutState.AWAITING_SIGNATURE)

            def on_submitted(signature: str) -> None:
                _advance(state, CheckoutState.SUBMITTED)
                _advance(state, CheckoutState.CONFIRMING)

            signature = await self._confirmer.submit_and_confirm(
                connection, signer, transaction, on_submitted=on_submitted
            )
        except ConfirmationTimeout:
            raise
        except Exception:
            _advance(state, CheckoutState.FAILED)
            raise

        _advance(state, CheckoutState.SETTLED)
        return signature

    async def _check_balance(self, connection: Any, signer: WalletSigner, required: int) -> None:
        balance = await check_balance(connection, signer.public_key, self._config.usdc_mint)
        if not balance.has_account or balance.balance < required:
            logger.warning("Insufficient balance: have %d, need %d", balance.balance, required)
            raise InsufficientBalance(balance.balance, required, self._config.decimals)

    async def _record(
        self,
        buyer_id: str | None,
        signatures: list[str],
        total: int,
        item_ids: list[str],
        ratio: SplitRatio | None,
        fallback_reason: FallbackReason | None = None,
        status: OrderStatus = OrderStatus.COMPLETED,
    ) -> OrderRecord | None:
        """Write the order and its grants; failures are logged, never raised."""
        order = OrderRecord(
            buyer_id=buyer_id,
            total_price=minor_units_to_usd(total, self._config.decimals),
            status=status,
            transaction_signatures=list(signatures),
            item_ids=list(item_ids),
            split_ratio=ratio.to_dict() if ratio else None,
            fallback_reason=fallback_reason,
            network=self._config.network,
        )
        try:
            stored = await self._ledger.insert_order(order)
            if status == OrderStatus.COMPLETED and item_ids:
                await self._ledger.insert_grants(
                    [PurchaseGrant(buyer_id=buyer_id, item_id=item_id, order_id=stored.id) for item_id in item_ids]
                )
        except Exception as e:
            failure = e if isinstance(e, LedgerRecordingFailed) else LedgerRecordingFailed(str(e), signatures)
            logger.error(
                "reconcile: payment settled but order recording failed "
                "(signatures=%s, fallback_reason=%s): %s",
                signatures,
                fallback_reason.kind.value if fallback_reason else None,
                failure,
            )
            return None
        logger.info("Recorded %s order %s for %d signature(s)", status.value, stored.id, len(signatures))
        return stored

    async def _record_partial(
        self,
        buyer_id: str | None,
        items: Sequence[SettlementItem],
        totals: list[int],
        settled: list[int],
        signatures: list[str],
        ratio: SplitRatio,
        failed_index: int,
        error: Exception,
        fallback_reason: FallbackReason | None = None,
    ) -> None:
        """Record what a failed batch already paid, plus a pending timed-out item."""
        if settled:
            await self._record(
                buyer_id,
                signatures,
                sum(totals[i] for i in settled),
                [items[i].item_id for i in settled if items[i].item_id],
                ratio,
            )
        if isinstance(error, ConfirmationTimeout):
            if fallback_reason is not None:
                await self._record(
                    buyer_id,
                    [error.signature],
                    fallback_reason.amount_minor,
                    fallback_reason.item_ids,
                    None,
                    fallback_reason,
                    OrderStatus.PENDING,
                )
            else:
                item = items[failed_index]
                await self._record(
                    buyer_id,
                    [error.signature],
                    totals[failed_index],
                    [item.item_id] if item.item_id else [],
                    ratio,
                    status=OrderStatus.PENDING,
                )


def _require_connected(signer: WalletSigner) -> None:
    if not signer.connected or signer.public_key is None:
        raise WalletNotConnected()


def _begin(state: CheckoutStateMachine | None) -> None:
    """Return a machine left SETTLED or FAILED by an earlier checkout to IDLE."""
    if state is not None and state.state in (CheckoutState.SETTLED, CheckoutState.FAILED):
        state.reset()


def _advance(state: CheckoutStateMachine | None, target: CheckoutState) -> None:
    if state is not None and state.can_transition(target):
        state.transition(target)
