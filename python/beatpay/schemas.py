"""Order ledger records written after settlement."""

from __future__ import annotations

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field

from .constants import CURRENCY_CODE, DEFAULT_LICENSE_TYPE, PAYMENT_METHOD


class OrderStatus(str, Enum):
    COMPLETED = "completed"
    PENDING = "pending"
    FAILED = "failed"


class FallbackKind(str, Enum):
    MISSING_PAYEE_ADDRESS = "missing_payee_address"


class FallbackReason(BaseModel):
    """Why a payment was routed entirely to the platform.

    Reconciliation tooling reads this to pay producers out manually.
    """

    kind: FallbackKind = FallbackKind.MISSING_PAYEE_ADDRESS
    item_ids: list[str] = Field(default_factory=list)
    amount_minor: int = 0


class OrderRecord(BaseModel):
    """Off-chain record of a purchase settled on-chain."""

    id: str | None = None
    buyer_id: str | None = None
    total_price: Decimal
    currency_code: str = CURRENCY_CODE
    payment_method: str = PAYMENT_METHOD
    status: OrderStatus = OrderStatus.COMPLETED
    transaction_signatures: list[str] = Field(default_factory=list)
    item_ids: list[str] = Field(default_factory=list)
    split_ratio: dict[str, int] | None = None
    fallback_reason: FallbackReason | None = None
    network: str | None = None


class PurchaseGrant(BaseModel):
    """Library access to one purchased item."""

    buyer_id: str | None = None
    item_id: str
    order_id: str
    license_type: str = DEFAULT_LICENSE_TYPE
    currency_code: str = CURRENCY_CODE
