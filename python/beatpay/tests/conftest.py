"""Shared fixtures: an in-memory ledger connection and wallet doubles."""

from types import SimpleNamespace

import pytest
from solders.hash import Hash
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction_status import TransactionConfirmationStatus
from spl.token.constants import ASSOCIATED_TOKEN_PROGRAM_ID, TOKEN_PROGRAM_ID

from beatpay.config import SettlementConfig
from beatpay.ledger import InMemoryOrderLedger
from beatpay.svm.confirm import SettlementConfirmer
from beatpay.svm.utils import derive_ata

USDC_DEVNET = "4zMMC9srt5Ri5X14GAgXhaHii3GnPAEERYPJgZJDncDU"


def token_account_data(mint: str, owner: str, amount: int) -> bytes:
    """SPL token account bytes: mint | owner | amount (u64 LE) | rest."""
    data = bytes(Pubkey.from_string(mint)) + bytes(Pubkey.from_string(owner))
    data += amount.to_bytes(8, "little")
    return data + bytes(165 - len(data))


class FakeConnection:
    """Async RPC double holding token accounts and signature statuses.

    status_mode controls polling: "confirmed", "none" (never lands),
    "error" (fails on-chain) or "flaky" (first status read raises).
    """

    def __init__(self, status_mode: str = "confirmed", provision_creates: bool = True):
        self.accounts: dict[str, bytes] = {}
        self.foreign_accounts: set[str] = set()
        self.status_mode = status_mode
        self.provision_creates = provision_creates
        self.simulation_error = None
        self.submitted: list = []
        self.status_calls = 0
        self.account_reads = 0
        self.blockhash_calls = 0
        self.read_error: Exception | None = None

    def fund(self, owner: str, mint: str, amount: int) -> str:
        ata = derive_ata(owner, mint)
        self.accounts[ata] = token_account_data(mint, owner, amount)
        return ata

    async def get_account_info(self, pubkey):
        self.account_reads += 1
        if self.read_error is not None:
            raise self.read_error
        address = str(pubkey)
        if address in self.foreign_accounts:
            return SimpleNamespace(value=SimpleNamespace(owner=Pubkey.default(), data=bytes(165)))
        data = self.accounts.get(address)
        if data is None:
            return SimpleNamespace(value=None)
        return SimpleNamespace(value=SimpleNamespace(owner=TOKEN_PROGRAM_ID, data=data))

    async def get_latest_blockhash(self, commitment=None):
        self.blockhash_calls += 1
        return SimpleNamespace(value=SimpleNamespace(blockhash=Hash.new_unique(), last_valid_block_height=1000))

    async def simulate_transaction(self, transaction, sig_verify=False, commitment=None):
        return SimpleNamespace(
            value=SimpleNamespace(err=self.simulation_error, logs=["Program log: simulated"])
        )

    def submit(self, transaction, signature: str | None = None) -> str:
        """Record a transaction as submitted and apply account creations."""
        signature = signature or str(Signature.new_unique())
        self.submitted.append((signature, transaction))
        if self.provision_creates:
            message = transaction.message
            keys = message.account_keys
            for ix in message.instructions:
                if keys[ix.program_id_index] == ASSOCIATED_TOKEN_PROGRAM_ID:
                    ata = keys[ix.accounts[1]]
                    owner = keys[ix.accounts[2]]
                    mint = keys[ix.accounts[3]]
                    self.accounts[str(ata)] = token_account_data(str(mint), str(owner), 0)
        return signature

    async def send_raw_transaction(self, raw: bytes, opts=None):
        signature = str(Signature.new_unique())
        self.submitted.append((signature, raw))
        return SimpleNamespace(value=Signature.from_string(signature))

    async def get_signature_statuses(self, signatures, search_transaction_history=False):
        self.status_calls += 1
        if self.status_mode == "flaky" and self.status_calls == 1:
            raise ConnectionError("node unavailable")
        if self.status_mode == "none":
            return SimpleNamespace(value=[None for _ in signatures])
        if self.status_mode == "error":
            status = SimpleNamespace(
                err="InstructionError(1, Custom(1))",
                confirmation_status=TransactionConfirmationStatus.Processed,
            )
            return SimpleNamespace(value=[status for _ in signatures])
        status = SimpleNamespace(err=None, confirmation_status=TransactionConfirmationStatus.Confirmed)
        return SimpleNamespace(value=[status for _ in signatures])

    @property
    def write_count(self) -> int:
        return len(self.submitted)


class FakeWallet:
    """Wallet double: records every transaction it is asked to send."""

    def __init__(self, keypair: Keypair | None = None, connected: bool = True):
        self.keypair = keypair or Keypair()
        self._connected = connected
        self.sent: list = []
        self.fail_on_call: int | None = None
        self.fixed_signature: str | None = None

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def public_key(self):
        return self.keypair.pubkey() if self._connected else None

    @property
    def address(self) -> str:
        return str(self.keypair.pubkey())

    async def send_transaction(self, transaction, connection, opts=None) -> str:
        self.sent.append(transaction)
        if self.fail_on_call is not None and len(self.sent) == self.fail_on_call:
            raise RuntimeError("User rejected the request")
        return connection.submit(transaction, self.fixed_signature)


@pytest.fixture
def connection():
    return FakeConnection()


@pytest.fixture
def wallet():
    return FakeWallet()


@pytest.fixture
def platform_address():
    return str(Keypair().pubkey())


@pytest.fixture
def config(platform_address):
    return SettlementConfig(network="devnet", platform_wallet=platform_address, confirm_timeout=0.05)


@pytest.fixture
def confirmer():
    return SettlementConfirmer(network="devnet", timeout=0.05, poll_interval=0.01)


@pytest.fixture
def ledger():
    return InMemoryOrderLedger()
