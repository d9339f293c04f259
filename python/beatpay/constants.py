"""Constants for USDC settlement on Solana."""

# CAIP-2 network identifiers
SOLANA_MAINNET_CAIP2 = "solana:5eykt4UsFv8P8NJdTREpY1vzqKqZKvdp"
SOLANA_DEVNET_CAIP2 = "solana:EtWTRABZaYq6iMfeYKouRu166VU2xqa1"
SOLANA_TESTNET_CAIP2 = "solana:4uhcVJyU9pJkvQyS88uRDiswHXSCkY3z"

# Cluster names accepted as aliases
NETWORK_ALIASES = {
    "mainnet": SOLANA_MAINNET_CAIP2,
    "mainnet-beta": SOLANA_MAINNET_CAIP2,
    "devnet": SOLANA_DEVNET_CAIP2,
    "testnet": SOLANA_TESTNET_CAIP2,
}

NETWORK_CONFIGS = {
    SOLANA_MAINNET_CAIP2: {
        "cluster": "mainnet-beta",
        "rpc_url": "https://api.mainnet-beta.solana.com",
        "usdc_mint": "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v",
    },
    SOLANA_DEVNET_CAIP2: {
        "cluster": "devnet",
        "rpc_url": "https://api.devnet.solana.com",
        "usdc_mint": "4zMMC9srt5Ri5X14GAgXhaHii3GnPAEERYPJgZJDncDU",
    },
    SOLANA_TESTNET_CAIP2: {
        "cluster": "testnet",
        "rpc_url": "https://api.testnet.solana.com",
        "usdc_mint": "4zMMC9srt5Ri5X14GAgXhaHii3GnPAEERYPJgZJDncDU",
    },
}

EXPLORER_TX_URL = "https://explorer.solana.com/tx/{signature}"

# USDC has 6 decimals
DEFAULT_DECIMALS = 6

# Split ratio (basis points, 10000 = 100%)
TOTAL_BPS = 10000
DEFAULT_PRODUCER_BPS = 8000

# Platform settlement wallet used when none is configured
DEFAULT_PLATFORM_WALLET = "HN7cABqLq46Es1jh92dQQisAq662SmxELLLsHHe4YWrH"

# Confirmation polling (seconds)
DEFAULT_CONFIRM_TIMEOUT_SECONDS = 90
DEFAULT_PROVISION_TIMEOUT_SECONDS = 60
DEFAULT_POLL_INTERVAL_SECONDS = 3
DEFAULT_SEND_MAX_RETRIES = 5

# Compute-unit price prepended to settlement transactions (micro-lamports)
DEFAULT_PRIORITY_FEE_MICRO_LAMPORTS = 15000

# SPL token account layout: mint (32) | owner (32) | amount (u64 LE)
TOKEN_ACCOUNT_AMOUNT_OFFSET = 64

# Order ledger tags
CURRENCY_CODE = "USDC"
PAYMENT_METHOD = "solana_usdc"
DEFAULT_LICENSE_TYPE = "basic"

# Error codes
ERR_WALLET_NOT_CONNECTED = "wallet_not_connected"
ERR_INVALID_ADDRESS = "invalid_address"
ERR_INVALID_AMOUNT = "invalid_amount"
ERR_INSUFFICIENT_BALANCE = "insufficient_balance"
ERR_PROVISIONING_FAILED = "account_provisioning_failed"
ERR_SIMULATION_FAILED = "simulation_failed"
ERR_TRANSACTION_FAILED = "transaction_failed"
ERR_CONFIRMATION_TIMEOUT = "confirmation_timeout"
ERR_LEDGER_RECORDING_FAILED = "ledger_recording_failed"
ERR_BATCH_SETTLEMENT_FAILED = "batch_settlement_failed"
ERR_INVALID_STATE_TRANSITION = "invalid_state_transition"
