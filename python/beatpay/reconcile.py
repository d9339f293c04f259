"""Reconciliation of orders left pending by confirmation timeouts."""

import logging
from dataclasses import dataclass
from typing import Any

from solders.signature import Signature  # type: ignore
from solders.transaction_status import TransactionConfirmationStatus  # type: ignore

from .ledger import OrderLedger
from .schemas import OrderStatus, PurchaseGrant

logger = logging.getLogger(__name__)

_CONFIRMED = (
    TransactionConfirmationStatus.Confirmed,
    TransactionConfirmationStatus.Finalized,
)


@dataclass
class SweepResult:
    order_id: str
    status: str  # fulfilled | on_chain_failure | pending | skipped | error
    error: str | None = None


class PendingOrderSweeper:
    """Finishes pending orders whose payment landed after the client gave up.

    Each sweep checks every pending order's payment signature once.
    Confirmed payments complete the order and create any missing purchase
    grants; on-chain failures mark it failed; everything else stays
    pending for the next sweep.
    """

    def __init__(self, connection: Any, ledger: OrderLedger):
        self._connection = connection
        self._ledger = ledger

    async def sweep(self, limit: int = 20) -> list[SweepResult]:
        orders = await self._ledger.list_orders(OrderStatus.PENDING, limit=limit)
        if not orders:
            logger.info("No pending orders to reconcile")
            return []

        logger.info("Reconciling %d pending order(s)", len(orders))
        results = []
        for order in orders:
            if not order.transaction_signatures:
                logger.info("Order %s has no signature, skipping", order.id)
                results.append(SweepResult(order.id, "skipped"))
                continue

            signature = order.transaction_signatures[0]
            try:
                response = await self._connection.get_signature_statuses(
                    [Signature.from_string(signature)],
                    search_transaction_history=True,
                )
                status = response.value[0]

                if status is not None and status.err is not None:
                    logger.warning("Order %s failed on-chain: %s", order.id, status.err)
                    await self._ledger.update_order(order.id, status=OrderStatus.FAILED)
                    results.append(SweepResult(order.id, "on_chain_failure", str(status.err)))
                    continue

                if status is None or status.confirmation_status not in _CONFIRMED:
                    logger.info("Order %s still pending", order.id)
                    results.append(SweepResult(order.id, "pending"))
                    continue

                await self._fulfill(order.id, order.buyer_id, order.item_ids)
                results.append(SweepResult(order.id, "fulfilled"))
            except Exception as e:
                logger.error("Error reconciling order %s: %s", order.id, e)
                results.append(SweepResult(order.id, "error", str(e)))

        return results

    async def _fulfill(self, order_id: str, buyer_id: str | None, item_ids: list[str]) -> None:
        logger.info("Order %s verified on-chain, fulfilling", order_id)
        await self._ledger.update_order(order_id, status=OrderStatus.COMPLETED)
        existing = {g.item_id for g in await self._ledger.list_grants(order_id)}
        missing = [item_id for item_id in item_ids if item_id not in existing]
        if missing:
            await self._ledger.insert_grants(
                [PurchaseGrant(buyer_id=buyer_id, item_id=item_id, order_id=order_id) for item_id in missing]
            )
