"""Tests for settlement configuration."""

from datetime import datetime, timezone

import pytest

from beatpay.config import PromotionalOverride, SettlementConfig
from beatpay.constants import DEFAULT_PLATFORM_WALLET, SOLANA_DEVNET_CAIP2, SOLANA_MAINNET_CAIP2


class TestSettlementConfig:
    def test_defaults_follow_network(self):
        config = SettlementConfig(network="mainnet")

        assert config.network == SOLANA_MAINNET_CAIP2
        assert config.rpc_url == "https://api.mainnet-beta.solana.com"
        assert config.usdc_mint == "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
        assert config.split_ratio().producer_bps == 8000

    def test_explicit_values_kept(self):
        config = SettlementConfig(network="devnet", rpc_url="http://localhost:8899")

        assert config.rpc_url == "http://localhost:8899"

    def test_validate_rejects_bad_platform_wallet(self):
        with pytest.raises(ValueError, match="platform wallet"):
            SettlementConfig(platform_wallet="nope").validate()

    def test_validate_rejects_bad_ratio(self):
        with pytest.raises(ValueError):
            SettlementConfig(producer_bps=12000).validate()

    def test_from_env(self):
        config = SettlementConfig.from_env(
            {
                "BEATPAY_NETWORK": "devnet",
                "BEATPAY_PRODUCER_BPS": "7500",
                "BEATPAY_CONFIRM_TIMEOUT_SECONDS": "30",
            }
        )

        assert config.network == SOLANA_DEVNET_CAIP2
        assert config.platform_wallet == DEFAULT_PLATFORM_WALLET
        assert config.split_ratio().producer_bps == 7500
        assert config.confirm_timeout == 30.0

    def test_from_env_promotion(self):
        config = SettlementConfig.from_env(
            {
                "BEATPAY_PROMO_PRODUCER_BPS": "10000",
                "BEATPAY_PROMO_STARTS_AT": "2026-01-01T00:00:00",
                "BEATPAY_PROMO_ENDS_AT": "2026-02-01T00:00:00+00:00",
            }
        )

        inside = datetime(2026, 1, 15, tzinfo=timezone.utc)
        after = datetime(2026, 2, 1, tzinfo=timezone.utc)
        assert config.promotion.starts_at.tzinfo is not None
        assert config.split_ratio(inside).producer_bps == 10000
        assert config.split_ratio(after).producer_bps == 8000

    def test_priority_fee_default(self):
        assert SettlementConfig().priority_fee == 15000

    def test_from_env_priority_fee(self):
        config = SettlementConfig.from_env({"BEATPAY_PRIORITY_FEE_MICRO_LAMPORTS": "50000"})

        assert config.priority_fee == 50000

    def test_validate_rejects_negative_priority_fee(self):
        with pytest.raises(ValueError, match="priority_fee"):
            SettlementConfig(priority_fee=-1).validate()

    def test_from_env_rejects_unknown_network(self):
        with pytest.raises(ValueError, match="Unknown Solana network"):
            SettlementConfig.from_env({"BEATPAY_NETWORK": "ropsten"})


class TestPromotionalOverride:
    def test_open_ended(self):
        assert PromotionalOverride(10000).is_active(datetime.now(timezone.utc))

    def test_window_is_half_open(self):
        start = datetime(2026, 1, 1, tzinfo=timezone.utc)
        end = datetime(2026, 2, 1, tzinfo=timezone.utc)
        promo = PromotionalOverride(10000, start, end)

        assert promo.is_active(start)
        assert not promo.is_active(end)
