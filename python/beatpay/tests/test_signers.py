"""Tests for wallet signer implementations."""

import pytest
from conftest import FakeConnection
from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import Message
from solders.signature import Signature
from solders.transaction import Transaction

from beatpay.svm.signers import KeypairWallet


class TestKeypairWallet:
    """Test KeypairWallet."""

    def test_should_create_wallet_from_keypair(self):
        """Should create wallet from keypair."""
        keypair = Keypair()
        wallet = KeypairWallet(keypair)

        assert wallet.connected is True
        assert len(wallet.address) >= 32  # Base58 address

    def test_public_key_should_match_keypair(self):
        keypair = Keypair()
        wallet = KeypairWallet(keypair)

        assert wallet.public_key == keypair.pubkey()
        assert wallet.address == str(keypair.pubkey())

    def test_keypair_should_return_underlying_keypair(self):
        """keypair property should return the underlying keypair."""
        keypair = Keypair()
        wallet = KeypairWallet(keypair)

        assert wallet.keypair is keypair

    def test_from_base58_should_create_wallet_from_base58_key(self):
        """from_base58 should create wallet from base58 encoded key."""
        keypair = Keypair()

        wallet = KeypairWallet.from_base58(str(keypair))

        assert wallet.address == str(keypair.pubkey())

    def test_from_bytes_should_create_wallet_from_bytes(self):
        """from_bytes should create wallet from key bytes."""
        keypair = Keypair()

        wallet = KeypairWallet.from_bytes(bytes(keypair))

        assert wallet.address == str(keypair.pubkey())

    def test_sign_transaction_keeps_blockhash(self):
        keypair = Keypair()
        blockhash = Hash.new_unique()
        unsigned = Transaction.new_unsigned(Message.new_with_blockhash([], keypair.pubkey(), blockhash))

        signed = KeypairWallet(keypair).sign_transaction(unsigned)

        assert signed.message.recent_blockhash == blockhash
        assert signed.signatures[0] != Signature.default()
        signed.verify()

    @pytest.mark.asyncio
    async def test_send_transaction_submits_signed_bytes(self):
        keypair = Keypair()
        connection = FakeConnection()
        unsigned = Transaction.new_unsigned(
            Message.new_with_blockhash([], keypair.pubkey(), Hash.new_unique())
        )

        signature = await KeypairWallet(keypair).send_transaction(unsigned, connection)

        submitted_signature, raw = connection.submitted[0]
        assert signature == submitted_signature
        assert Transaction.from_bytes(raw).signatures[0] != Signature.default()
