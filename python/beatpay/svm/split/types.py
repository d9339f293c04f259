"""Types for producer/platform split payments."""

from dataclasses import dataclass, field
from typing import Any

from ...constants import TOTAL_BPS


@dataclass(frozen=True)
class SplitRatio:
    """Producer share of a payment in basis points; the platform gets the rest."""

    producer_bps: int

    @property
    def platform_bps(self) -> int:
        return TOTAL_BPS - self.producer_bps

    def validate(self) -> None:
        if self.producer_bps < 0 or self.producer_bps > TOTAL_BPS:
            raise ValueError(f"producer bps must be 0-{TOTAL_BPS}, got {self.producer_bps}")

    def to_dict(self) -> dict[str, int]:
        return {"producer_bps": self.producer_bps, "platform_bps": self.platform_bps}


@dataclass(frozen=True)
class SplitLeg:
    """One transfer of a split payment."""

    address: str  # Solana owner address (base58)
    amount: int  # minor units


@dataclass
class SplitPlan:
    """Ordered transfers whose amounts sum to ``total``."""

    total: int
    legs: list[SplitLeg] = field(default_factory=list)
    ratio: SplitRatio | None = None

    @classmethod
    def single(cls, address: str, amount: int) -> "SplitPlan":
        """Route the whole amount to one address, no split."""
        if amount <= 0:
            raise ValueError("Amount must be greater than 0")
        return cls(total=amount, legs=[SplitLeg(address, amount)])

    def to_pairs(self) -> list[tuple[str, int]]:
        return [(leg.address, leg.amount) for leg in self.legs]

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": str(self.total),
            "legs": [{"address": leg.address, "amount": str(leg.amount)} for leg in self.legs],
            "ratio": self.ratio.to_dict() if self.ratio else None,
        }


def calculate_split_amounts(
    total_amount: int,
    recipients: list[tuple[str, int]],
) -> list[tuple[str, int]]:
    """Calculate per-recipient amounts from a total and basis points.

    Every recipient but the last gets its share rounded half up; the
    last recipient gets the remainder so the amounts always sum to
    ``total_amount``.

    Args:
        total_amount: Total in minor units (30 USDC = 30_000_000).
        recipients: List of (address, bps) pairs, bps summing to 10000.

    Returns:
        List of (address, amount) tuples.
    """
    splits: list[tuple[str, int]] = []
    allocated = 0

    for i, (address, bps) in enumerate(recipients):
        if i == len(recipients) - 1:
            amount = total_amount - allocated
        else:
            amount = (total_amount * bps + TOTAL_BPS // 2) // TOTAL_BPS
            allocated += amount
        splits.append((address, amount))

    return splits


def calculate_split_plan(
    total_amount: int,
    payee: str,
    platform: str,
    ratio: SplitRatio,
) -> SplitPlan:
    """Split a payment between producer and platform.

    Zero-amount legs are dropped, so a 100/0 ratio yields a single transfer.
    """
    ratio.validate()
    if total_amount <= 0:
        raise ValueError("Amount must be greater than 0")

    pairs = calculate_split_amounts(
        total_amount,
        [(payee, ratio.producer_bps), (platform, ratio.platform_bps)],
    )
    legs = [SplitLeg(address, amount) for address, amount in pairs if amount > 0]
    return SplitPlan(total=total_amount, legs=legs, ratio=ratio)
