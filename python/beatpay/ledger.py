"""Order ledger collaborators.

The order ledger is the off-chain record of purchases. Settlement writes
to it after payments confirm; a write failure there never unwinds an
on-chain payment.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from decimal import Decimal
from typing import Any, Optional, Protocol

import httpx

from .constants import PAYMENT_METHOD
from .errors import LedgerRecordingFailed
from .schemas import FallbackReason, OrderRecord, OrderStatus, PurchaseGrant

logger = logging.getLogger(__name__)


class OrderLedger(Protocol):
    """Protocol for the external order database."""

    async def insert_order(self, order: OrderRecord) -> OrderRecord:
        """Insert an order and return it with its assigned id."""
        ...

    async def insert_grants(self, grants: list[PurchaseGrant]) -> None:
        ...

    async def list_orders(self, status: OrderStatus, limit: int = 20) -> list[OrderRecord]:
        ...

    async def update_order(self, order_id: str, **fields: Any) -> None:
        ...

    async def list_grants(self, order_id: str) -> list[PurchaseGrant]:
        ...


class InMemoryOrderLedger:
    """Order ledger kept in process memory."""

    def __init__(self) -> None:
        self.orders: dict[str, OrderRecord] = {}
        self.grants: list[PurchaseGrant] = []

    async def insert_order(self, order: OrderRecord) -> OrderRecord:
        stored = order.model_copy(update={"id": order.id or str(uuid.uuid4())})
        self.orders[stored.id] = stored
        return stored

    async def insert_grants(self, grants: list[PurchaseGrant]) -> None:
        existing = {(g.buyer_id, g.item_id, g.order_id) for g in self.grants}
        for grant in grants:
            key = (grant.buyer_id, grant.item_id, grant.order_id)
            if key not in existing:
                self.grants.append(grant)
                existing.add(key)

    async def list_orders(self, status: OrderStatus, limit: int = 20) -> list[OrderRecord]:
        return [o for o in self.orders.values() if o.status == status][:limit]

    async def update_order(self, order_id: str, **fields: Any) -> None:
        if order_id not in self.orders:
            raise LedgerRecordingFailed(f"Order {order_id} not found")
        self.orders[order_id] = self.orders[order_id].model_copy(update=fields)

    async def list_grants(self, order_id: str) -> list[PurchaseGrant]:
        return [g for g in self.grants if g.order_id == order_id]


class RestOrderLedger:
    """Order ledger backed by a PostgREST (Supabase) API.

    Orders live in ``orders``; grants in ``user_purchased_beats``.

    Args:
        base_url: Project URL, e.g. ``https://xyz.supabase.co``.
        api_key: Service key sent as ``apikey`` and bearer token.
        timeout: Request timeout in seconds.
        max_retries: Attempts for transport errors.
        client: Optional preconfigured ``httpx.AsyncClient``.
    """

    ORDERS_PATH = "/rest/v1/orders"
    GRANTS_PATH = "/rest/v1/user_purchased_beats"
    DEFAULT_TIMEOUT = 30
    DEFAULT_MAX_RETRIES = 3

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: int = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not api_key:
            raise ValueError("API key is required")
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")

        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._max_retries = max_retries
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers={
                    "apikey": self._api_key,
                    "Authorization": f"Bearer {self._api_key}",
                    "Content-Type": "application/json",
                },
                timeout=self._timeout,
            )
        return self._client

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        json: Any = None,
        prefer: Optional[str] = None,
    ) -> Any:
        """Make a request, retrying transport errors with backoff."""
        client = await self._get_client()
        headers = {"Prefer": prefer} if prefer else None

        for attempt in range(self._max_retries):
            try:
                response = await client.request(method, path, params=params, json=json, headers=headers)
            except httpx.RequestError as e:
                if attempt < self._max_retries - 1:
                    logger.warning("Order ledger %s %s failed, retrying: %s", method, path, e)
                    await asyncio.sleep(2**attempt)
                    continue
                raise LedgerRecordingFailed(f"Order ledger unreachable: {e}") from e

            if response.status_code >= 400:
                raise LedgerRecordingFailed(
                    f"Order ledger {method} {path} returned {response.status_code}: {response.text}",
                    status_code=response.status_code,
                )
            if not response.content:
                return None
            return response.json()

        raise RuntimeError("Unexpected error in request retry loop")

    async def insert_order(self, order: OrderRecord) -> OrderRecord:
        rows = await self._request(
            "POST",
            self.ORDERS_PATH,
            json=_order_to_row(order),
            prefer="return=representation",
        )
        if not rows:
            raise LedgerRecordingFailed("Order insert returned no row", order.transaction_signatures)
        return _row_to_order(rows[0])

    async def insert_grants(self, grants: list[PurchaseGrant]) -> None:
        if not grants:
            return
        rows = [
            {
                "user_id": g.buyer_id,
                "beat_id": g.item_id,
                "order_id": g.order_id,
                "license_type": g.license_type,
                "currency_code": g.currency_code,
            }
            for g in grants
        ]
        await self._request("POST", self.GRANTS_PATH, json=rows, prefer="return=minimal")

    async def list_orders(self, status: OrderStatus, limit: int = 20) -> list[OrderRecord]:
        rows = await self._request(
            "GET",
            self.ORDERS_PATH,
            params={
                "select": "*",
                "status": f"eq.{status.value}",
                "payment_method": f"eq.{PAYMENT_METHOD}",
                "limit": str(limit),
            },
        )
        return [_row_to_order(row) for row in rows or []]

    async def update_order(self, order_id: str, **fields: Any) -> None:
        body = {k: (v.value if isinstance(v, OrderStatus) else v) for k, v in fields.items()}
        await self._request(
            "PATCH",
            self.ORDERS_PATH,
            params={"id": f"eq.{order_id}"},
            json=body,
            prefer="return=minimal",
        )

    async def list_grants(self, order_id: str) -> list[PurchaseGrant]:
        rows = await self._request(
            "GET",
            self.GRANTS_PATH,
            params={"select": "*", "order_id": f"eq.{order_id}"},
        )
        return [
            PurchaseGrant(
                buyer_id=row.get("user_id"),
                item_id=row["beat_id"],
                order_id=row["order_id"],
                license_type=row.get("license_type", "basic"),
                currency_code=row.get("currency_code", "USDC"),
            )
            for row in rows or []
        ]

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None


def _order_to_row(order: OrderRecord) -> dict[str, Any]:
    row: dict[str, Any] = {
        "buyer_id": order.buyer_id,
        "total_price": str(order.total_price),
        "currency_used": order.currency_code,
        "payment_method": order.payment_method,
        "status": order.status.value,
        "transaction_signatures": order.transaction_signatures,
        "metadata": {
            "item_ids": order.item_ids,
            "split_ratio": order.split_ratio,
            "network": order.network,
            "fallback_reason": (
                order.fallback_reason.model_dump(mode="json") if order.fallback_reason else None
            ),
        },
    }
    if order.id:
        row["id"] = order.id
    return row


def _row_to_order(row: dict[str, Any]) -> OrderRecord:
    metadata = row.get("metadata") or {}
    fallback = metadata.get("fallback_reason")
    return OrderRecord(
        id=str(row["id"]) if row.get("id") is not None else None,
        buyer_id=row.get("buyer_id"),
        total_price=Decimal(str(row.get("total_price", "0"))),
        currency_code=row.get("currency_used", "USDC"),
        payment_method=row.get("payment_method", PAYMENT_METHOD),
        status=OrderStatus(row.get("status", OrderStatus.PENDING.value)),
        transaction_signatures=list(row.get("transaction_signatures") or []),
        item_ids=list(metadata.get("item_ids") or []),
        split_ratio=metadata.get("split_ratio"),
        fallback_reason=FallbackReason.model_validate(fallback) if fallback else None,
        network=metadata.get("network"),
    )
