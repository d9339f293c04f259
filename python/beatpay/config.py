"""Settlement configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime, timezone

from .constants import (
    DEFAULT_CONFIRM_TIMEOUT_SECONDS,
    DEFAULT_DECIMALS,
    DEFAULT_PLATFORM_WALLET,
    DEFAULT_PRIORITY_FEE_MICRO_LAMPORTS,
    DEFAULT_PRODUCER_BPS,
    SOLANA_DEVNET_CAIP2,
)
from .svm.split.types import SplitRatio
from .svm.utils import get_network_config, normalize_network, validate_svm_address


@dataclass(frozen=True)
class PromotionalOverride:
    """A temporary producer share, effective within [starts_at, ends_at).

    Open-ended on either side when the bound is None.
    """

    producer_bps: int
    starts_at: datetime | None = None
    ends_at: datetime | None = None

    def is_active(self, now: datetime) -> bool:
        if self.starts_at is not None and now < self.starts_at:
            return False
        if self.ends_at is not None and now >= self.ends_at:
            return False
        return True


@dataclass(frozen=True)
class SettlementConfig:
    """Configuration for USDC split settlement.

    Attributes:
        network: CAIP-2 network identifier.
        rpc_url: Ledger RPC endpoint.
        usdc_mint: USDC mint for the network.
        platform_wallet: Platform settlement address.
        producer_bps: Standing producer share in basis points.
        promotion: Optional override of the producer share.
        decimals: Token decimals.
        confirm_timeout: Confirmation polling budget in seconds.
        priority_fee: Compute-unit price (micro-lamports) added to every
            settlement transaction; 0 disables it.
    """

    network: str = SOLANA_DEVNET_CAIP2
    rpc_url: str = ""
    usdc_mint: str = ""
    platform_wallet: str = DEFAULT_PLATFORM_WALLET
    producer_bps: int = DEFAULT_PRODUCER_BPS
    promotion: PromotionalOverride | None = None
    decimals: int = DEFAULT_DECIMALS
    confirm_timeout: float = DEFAULT_CONFIRM_TIMEOUT_SECONDS
    priority_fee: int = DEFAULT_PRIORITY_FEE_MICRO_LAMPORTS

    def __post_init__(self) -> None:
        network = normalize_network(self.network)
        object.__setattr__(self, "network", network)
        network_config = get_network_config(network)
        if not self.rpc_url:
            object.__setattr__(self, "rpc_url", network_config["rpc_url"])
        if not self.usdc_mint:
            object.__setattr__(self, "usdc_mint", network_config["usdc_mint"])

    def validate(self) -> None:
        if not validate_svm_address(self.usdc_mint):
            raise ValueError(f"Invalid USDC mint address: {self.usdc_mint}")
        if not validate_svm_address(self.platform_wallet):
            raise ValueError(f"Invalid platform wallet address: {self.platform_wallet}")
        SplitRatio(self.producer_bps).validate()
        if self.promotion is not None:
            SplitRatio(self.promotion.producer_bps).validate()
        if self.confirm_timeout <= 0:
            raise ValueError("confirm_timeout must be positive")
        if self.priority_fee < 0:
            raise ValueError("priority_fee must not be negative")

    def split_ratio(self, now: datetime | None = None) -> SplitRatio:
        """Ratio in effect at ``now``; read once per settlement."""
        now = now or datetime.now(timezone.utc)
        if self.promotion is not None and self.promotion.is_active(now):
            return SplitRatio(self.promotion.producer_bps)
        return SplitRatio(self.producer_bps)

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> SettlementConfig:
        """Build configuration from ``BEATPAY_*`` environment variables."""
        env = os.environ if environ is None else environ

        promotion = None
        promo_bps = env.get("BEATPAY_PROMO_PRODUCER_BPS")
        if promo_bps:
            promotion = PromotionalOverride(
                producer_bps=int(promo_bps),
                starts_at=_parse_datetime(env.get("BEATPAY_PROMO_STARTS_AT")),
                ends_at=_parse_datetime(env.get("BEATPAY_PROMO_ENDS_AT")),
            )

        config = cls(
            network=env.get("BEATPAY_NETWORK", "devnet"),
            rpc_url=env.get("BEATPAY_RPC_URL", ""),
            usdc_mint=env.get("BEATPAY_USDC_MINT", ""),
            platform_wallet=env.get("BEATPAY_PLATFORM_WALLET", DEFAULT_PLATFORM_WALLET),
            producer_bps=int(env.get("BEATPAY_PRODUCER_BPS", DEFAULT_PRODUCER_BPS)),
            promotion=promotion,
            confirm_timeout=float(
                env.get("BEATPAY_CONFIRM_TIMEOUT_SECONDS", DEFAULT_CONFIRM_TIMEOUT_SECONDS)
            ),
            priority_fee=int(
                env.get("BEATPAY_PRIORITY_FEE_MICRO_LAMPORTS", DEFAULT_PRIORITY_FEE_MICRO_LAMPORTS)
            ),
        )
        config.validate()
        return config


def _parse_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
