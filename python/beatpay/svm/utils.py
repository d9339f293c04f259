"""Utility functions for Solana settlement."""

from decimal import ROUND_HALF_UP, Decimal

from solders.pubkey import Pubkey  # type: ignore
from spl.token.constants import TOKEN_PROGRAM_ID  # type: ignore
from spl.token.instructions import get_associated_token_address  # type: ignore

from ..constants import (
    DEFAULT_DECIMALS,
    EXPLORER_TX_URL,
    NETWORK_ALIASES,
    NETWORK_CONFIGS,
    SOLANA_MAINNET_CAIP2,
)


def validate_svm_address(address: str | None) -> bool:
    """Check that a string parses as a Solana public key.

    Returns False on empty input, bad base58 or a wrong key length.
    """
    if not address or not isinstance(address, str):
        return False
    try:
        Pubkey.from_string(address)
    except Exception:
        return False
    return True


def to_pubkey(address: str | Pubkey) -> Pubkey:
    if isinstance(address, Pubkey):
        return address
    return Pubkey.from_string(address)


def derive_ata(owner: str | Pubkey, mint: str | Pubkey, token_program: str | Pubkey | None = None) -> str:
    """Derive the associated token account address for (owner, mint).

    Pure function: the account does not need to exist.
    """
    program_id = to_pubkey(token_program) if token_program else TOKEN_PROGRAM_ID
    ata = get_associated_token_address(to_pubkey(owner), to_pubkey(mint), program_id)
    return str(ata)


def normalize_network(network: str) -> str:
    """Normalize a cluster name or CAIP-2 id to CAIP-2."""
    if network in NETWORK_CONFIGS:
        return network
    caip2 = NETWORK_ALIASES.get(network)
    if caip2 is None:
        raise ValueError(f"Unknown Solana network: {network}")
    return caip2


def get_network_config(network: str) -> dict[str, str]:
    return NETWORK_CONFIGS[normalize_network(network)]


def usd_to_minor_units(amount: Decimal | float | int | str, decimals: int = DEFAULT_DECIMALS) -> int:
    """Convert a decimal currency amount to integer token units.

    Rounds half up; the conversion happens once, before any instruction
    is built.
    """
    value = Decimal(str(amount)) * (Decimal(10) ** decimals)
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def minor_units_to_usd(amount: int, decimals: int = DEFAULT_DECIMALS) -> Decimal:
    return Decimal(amount) / (Decimal(10) ** decimals)


def explorer_url(signature: str, network: str) -> str:
    url = EXPLORER_TX_URL.format(signature=signature)
    caip2 = normalize_network(network)
    if caip2 != SOLANA_MAINNET_CAIP2:
        url += f"?cluster={NETWORK_CONFIGS[caip2]['cluster']}"
    return url
