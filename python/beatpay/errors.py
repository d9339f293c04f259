"""Settlement error taxonomy.

Every error carries a stable string ``code`` so callers can map kinds to
user-facing messages. Errors raised after a transaction was submitted always
carry its signature: the payment may still land and must be reconciled by
hand rather than re-run.
"""

from __future__ import annotations

from typing import Any

from .constants import (
    ERR_BATCH_SETTLEMENT_FAILED,
    ERR_CONFIRMATION_TIMEOUT,
    ERR_INSUFFICIENT_BALANCE,
    ERR_INVALID_ADDRESS,
    ERR_INVALID_AMOUNT,
    ERR_INVALID_STATE_TRANSITION,
    ERR_LEDGER_RECORDING_FAILED,
    ERR_PROVISIONING_FAILED,
    ERR_SIMULATION_FAILED,
    ERR_TRANSACTION_FAILED,
    ERR_WALLET_NOT_CONNECTED,
)


class SettlementError(Exception):
    """Base exception for settlement failures."""

    code = "settlement_error"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class WalletNotConnected(SettlementError):
    code = ERR_WALLET_NOT_CONNECTED

    def __init__(self) -> None:
        super().__init__("Wallet not connected")


class InvalidAddress(SettlementError):
    code = ERR_INVALID_ADDRESS

    def __init__(self, address: str | None, role: str = "recipient"):
        super().__init__(f"Invalid {role} address: {address}", {"address": address, "role": role})
        self.address = address


class InvalidAmount(SettlementError):
    code = ERR_INVALID_AMOUNT

    def __init__(self, amount: Any, item_index: int | None = None):
        where = f" for item {item_index}" if item_index is not None else ""
        super().__init__(
            f"Amount must be greater than 0{where}, got {amount}",
            {"amount": str(amount), "item_index": item_index},
        )
        self.amount = amount
        self.item_index = item_index


class InsufficientBalance(SettlementError):
    code = ERR_INSUFFICIENT_BALANCE

    def __init__(self, available: int, required: int, decimals: int = 6):
        unit = 10**decimals
        super().__init__(
            f"Insufficient USDC balance: have {available / unit:.2f} USDC "
            f"but need {required / unit:.2f} USDC",
            {"available": available, "required": required},
        )
        self.available = available
        self.required = required


class AccountProvisioningFailed(SettlementError):
    code = ERR_PROVISIONING_FAILED

    def __init__(self, owner: str, signature: str | None = None, reason: str | None = None):
        if reason is None:
            message = f"Provisioning verification failed: token account for {owner} still missing"
        else:
            message = f"Provisioning of token account for {owner} failed: {reason}"
        super().__init__(message, {"owner": owner, "signature": signature, "reason": reason})
        self.owner = owner
        self.signature = signature


class SimulationFailed(SettlementError):
    code = ERR_SIMULATION_FAILED

    def __init__(self, error: Any, logs: list[str] | None = None):
        super().__init__(f"Transaction would fail: {error}", {"error": str(error), "logs": logs or []})
        self.error = error
        self.logs = logs or []


class TransactionFailed(SettlementError):
    code = ERR_TRANSACTION_FAILED

    def __init__(self, signature: str, error: Any):
        super().__init__(
            f"Transaction {signature} failed on-chain: {error}",
            {"signature": signature, "error": str(error)},
        )
        self.signature = signature
        self.error = error


class ConfirmationTimeout(SettlementError):
    """Confirmation was not observed in time. The payment may still land."""

    code = ERR_CONFIRMATION_TIMEOUT

    def __init__(self, signature: str, timeout: float, explorer_url: str):
        super().__init__(
            f"Transaction {signature} not confirmed within {timeout:g}s; "
            f"pending verification, check {explorer_url}",
            {"signature": signature, "timeout": timeout, "explorer_url": explorer_url},
        )
        self.signature = signature
        self.timeout = timeout
        self.explorer_url = explorer_url


class LedgerRecordingFailed(SettlementError):
    """Off-chain bookkeeping failed after the payment settled on-chain."""

    code = ERR_LEDGER_RECORDING_FAILED

    def __init__(self, message: str, signatures: list[str] | None = None, status_code: int | None = None):
        super().__init__(message, {"signatures": signatures or [], "status_code": status_code})
        self.signatures = signatures or []
        self.status_code = status_code


class BatchSettlementError(SettlementError):
    """An item of a batch failed; earlier signatures remain valid."""

    code = ERR_BATCH_SETTLEMENT_FAILED

    def __init__(self, failed_index: int, signatures: list[str], cause: Exception):
        super().__init__(
            f"Batch settlement stopped at item {failed_index}: {cause}",
            {"failed_index": failed_index, "signatures": list(signatures), "cause": str(cause)},
        )
        self.failed_index = failed_index
        self.signatures = list(signatures)
        self.cause = cause


class InvalidStateTransition(SettlementError):
    code = ERR_INVALID_STATE_TRANSITION

    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot move checkout from {current} to {target}", {"from": current, "to": target})
