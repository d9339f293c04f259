"""Tests for Solana address and unit helpers."""

from decimal import Decimal

import pytest
from solders.keypair import Keypair

from beatpay.constants import SOLANA_DEVNET_CAIP2, SOLANA_MAINNET_CAIP2
from beatpay.svm.utils import (
    derive_ata,
    explorer_url,
    minor_units_to_usd,
    normalize_network,
    usd_to_minor_units,
    validate_svm_address,
)

USDC_DEVNET = "4zMMC9srt5Ri5X14GAgXhaHii3GnPAEERYPJgZJDncDU"


class TestValidateSvmAddress:
    def test_accepts_generated_pubkey(self):
        assert validate_svm_address(str(Keypair().pubkey())) is True

    def test_accepts_known_mint(self):
        assert validate_svm_address(USDC_DEVNET) is True

    @pytest.mark.parametrize(
        "candidate",
        [
            "",
            None,
            "not-an-address",
            "0OIl0OIl0OIl",  # characters outside base58
            "4zMMC9srt5Ri5X14GAgXhaHii3GnPAEERYPJgZJDnc",  # too short
            "4zMMC9srt5Ri5X14GAgXhaHii3GnPAEERYPJgZJDncDU4zMMC9",  # too long
        ],
    )
    def test_rejects_malformed_without_raising(self, candidate):
        assert validate_svm_address(candidate) is False


class TestDeriveAta:
    def test_is_deterministic(self):
        owner = str(Keypair().pubkey())
        assert derive_ata(owner, USDC_DEVNET) == derive_ata(owner, USDC_DEVNET)

    def test_differs_per_owner(self):
        a = str(Keypair().pubkey())
        b = str(Keypair().pubkey())
        assert derive_ata(a, USDC_DEVNET) != derive_ata(b, USDC_DEVNET)

    def test_returns_valid_address(self):
        ata = derive_ata(str(Keypair().pubkey()), USDC_DEVNET)
        assert validate_svm_address(ata)


class TestUnitConversion:
    def test_whole_dollars(self):
        assert usd_to_minor_units(100) == 100_000_000

    def test_cents(self):
        assert usd_to_minor_units(33.33) == 33_330_000

    def test_rounds_not_truncates(self):
        # 0.1 + 0.2 is 0.30000000000000004 as a float
        assert usd_to_minor_units(0.1 + 0.2) == 300_000
        assert usd_to_minor_units("0.0000005") == 1
        assert usd_to_minor_units("0.0000004") == 0

    def test_decimal_input(self):
        assert usd_to_minor_units(Decimal("29.99")) == 29_990_000

    def test_back_to_usd(self):
        assert minor_units_to_usd(33_330_000) == Decimal("33.33")


class TestNetworks:
    def test_aliases(self):
        assert normalize_network("devnet") == SOLANA_DEVNET_CAIP2
        assert normalize_network("mainnet-beta") == SOLANA_MAINNET_CAIP2

    def test_caip2_passthrough(self):
        assert normalize_network(SOLANA_DEVNET_CAIP2) == SOLANA_DEVNET_CAIP2

    def test_unknown_network(self):
        with pytest.raises(ValueError, match="Unknown Solana network"):
            normalize_network("eip155:1")

    def test_explorer_url_devnet(self):
        assert explorer_url("abc", "devnet") == "https://explorer.solana.com/tx/abc?cluster=devnet"

    def test_explorer_url_mainnet(self):
        assert explorer_url("abc", "mainnet") == "https://explorer.solana.com/tx/abc"
