"""beatpay: USDC split-payment settlement for the beats marketplace.

Divides a buyer's USDC payment between producer and platform in one
Solana transaction, confirms it, and records the order.

Example:
    ```python
    from solana.rpc.async_api import AsyncClient
    from beatpay import InMemoryOrderLedger, SettlementConfig, SettlementOrchestrator

    config = SettlementConfig.from_env()
    async with AsyncClient(config.rpc_url) as connection:
        orchestrator = SettlementOrchestrator(connection, config, InMemoryOrderLedger())
        signature = await orchestrator.settle(
            "29.99", producer_wallet, wallet, buyer_id=user_id, item_ids=[beat_id]
        )
    ```
"""

from beatpay.config import PromotionalOverride, SettlementConfig
from beatpay.errors import (
    AccountProvisioningFailed,
    BatchSettlementError,
    ConfirmationTimeout,
    InsufficientBalance,
    InvalidAddress,
    InvalidAmount,
    InvalidStateTransition,
    LedgerRecordingFailed,
    SettlementError,
    SimulationFailed,
    TransactionFailed,
    WalletNotConnected,
)
from beatpay.ledger import InMemoryOrderLedger, OrderLedger, RestOrderLedger
from beatpay.orchestrator import SettlementItem, SettlementOrchestrator
from beatpay.reconcile import PendingOrderSweeper, SweepResult
from beatpay.schemas import FallbackKind, FallbackReason, OrderRecord, OrderStatus, PurchaseGrant
from beatpay.state import CheckoutState, CheckoutStateMachine, InMemoryStateStorage

__all__ = [
    # Config
    "PromotionalOverride",
    "SettlementConfig",
    # Orchestration
    "SettlementItem",
    "SettlementOrchestrator",
    "PendingOrderSweeper",
    "SweepResult",
    # Ledger
    "InMemoryOrderLedger",
    "OrderLedger",
    "RestOrderLedger",
    "FallbackKind",
    "FallbackReason",
    "OrderRecord",
    "OrderStatus",
    "PurchaseGrant",
    # State
    "CheckoutState",
    "CheckoutStateMachine",
    "InMemoryStateStorage",
    # Errors
    "SettlementError",
    "WalletNotConnected",
    "InvalidAddress",
    "InvalidAmount",
    "InsufficientBalance",
    "AccountProvisioningFailed",
    "SimulationFailed",
    "TransactionFailed",
    "ConfirmationTimeout",
    "LedgerRecordingFailed",
    "BatchSettlementError",
    "InvalidStateTransition",
]
