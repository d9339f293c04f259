"""Solana (SVM) settlement primitives."""

from beatpay.svm.accounts import (
    AccountResolution,
    TokenBalance,
    check_balance,
    ensure_accounts,
    resolve_account,
)
from beatpay.svm.confirm import SettlementConfirmer
from beatpay.svm.signers import KeypairWallet, WalletSigner
from beatpay.svm.utils import (
    derive_ata,
    explorer_url,
    normalize_network,
    usd_to_minor_units,
    validate_svm_address,
)

__all__ = [
    "AccountResolution",
    "TokenBalance",
    "check_balance",
    "ensure_accounts",
    "resolve_account",
    "SettlementConfirmer",
    "KeypairWallet",
    "WalletSigner",
    "derive_ata",
    "explorer_url",
    "normalize_network",
    "usd_to_minor_units",
    "validate_svm_address",
]
