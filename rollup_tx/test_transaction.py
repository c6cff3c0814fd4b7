"""
Tests for the signed envelope: read-through projections, the correctness
gate, validated views and the wire/storage representations.
"""
import json
import pytest
import msgpack
from rollup_tx.config import Config, ValidationConfig
from rollup_tx.crypto import (
    generate_key_pair,
    generate_eth_key_pair,
    serialize_eth_public_key,
    eth_public_key_to_address,
)
from rollup_tx.params import CLOSE_CHUNKS
from rollup_tx.primitives import TokenLike, TxFeeTypes
from rollup_tx.signature import TxSignature, TxEthSignature, EthSignData
from rollup_tx.transaction import (
    SignedTransaction,
    ValidatedTransaction,
    ValidationError,
    get_fee_info,
    tx_hash,
)
from rollup_tx.variants import Transfer, Withdraw, Close, ChangePubKey


@pytest.fixture
def owner():
    """An account owner holding both a native key and an Ethereum key."""
    signing_key, _ = generate_key_pair()
    eth_private_key, eth_public_key = generate_eth_key_pair()
    return {
        'signing_key': signing_key,
        'eth_private_key': eth_private_key,
        'address': eth_public_key_to_address(serialize_eth_public_key(eth_public_key)),
    }


@pytest.fixture
def recipient():
    _, eth_public_key = generate_eth_key_pair()
    return eth_public_key_to_address(serialize_eth_public_key(eth_public_key))


def native_signed(tx, signing_key):
    tx.signature = TxSignature.sign(signing_key, tx.get_bytes())
    return tx


def eth_sign_data(private_key, message):
    return EthSignData(TxEthSignature.sign(private_key, message), message)


@pytest.fixture
def transfer(owner, recipient):
    return native_signed(
        Transfer(owner['address'], recipient, token=5, amount=1000, fee=10, nonce=3),
        owner['signing_key'],
    )


@pytest.fixture
def every_kind(owner, recipient):
    new_pk_hash = b'\x33' * 20
    message = ChangePubKey.get_eth_signed_message(new_pk_hash, 6)
    return [
        native_signed(Transfer(owner['address'], recipient, 5, 1000, 10, 3), owner['signing_key']),
        native_signed(Withdraw(owner['address'], recipient, 2, 10 ** 20, 7, 4, fast=True),
                      owner['signing_key']),
        native_signed(Close(owner['address'], 5), owner['signing_key']),
        ChangePubKey(owner['address'], new_pk_hash, 6,
                     eth_signature=TxEthSignature.sign(owner['eth_private_key'], message)),
    ]


class TestEnvelope:

    def test_from_tx_has_no_eth_sign_data(self, transfer):
        signed = SignedTransaction.from_tx(transfer)
        assert signed.eth_sign_data is None
        assert signed.tx == transfer
        assert signed.tx is not transfer

    def test_rejects_non_variant(self):
        with pytest.raises(TypeError):
            SignedTransaction({"type": "Transfer"})

    def test_tx_is_read_only(self, transfer):
        signed = SignedTransaction.from_tx(transfer)
        with pytest.raises(AttributeError):
            signed.tx = transfer

    def test_wrapped_tx_is_detached(self, transfer):
        signed = SignedTransaction.from_tx(transfer)
        original_hash = signed.hash()

        exposed = signed.tx
        assert exposed.check_correctness()
        assert exposed.verified_signer is not None
        assert signed.verified_signer is None

        transfer.amount = 2000
        exposed.fee = 20
        assert signed.hash() == original_hash
        assert signed.get_fee_info().fee == 10

    def test_envelope_is_keyed_by_hash_only(self, transfer):
        signed = SignedTransaction.from_tx(transfer)
        with pytest.raises(TypeError):
            hash(signed)
        with pytest.raises(TypeError):
            hash(transfer)
        assert {signed.hash(): signed}[transfer.hash()] is signed

    def test_projections_read_through(self, every_kind):
        for tx in every_kind:
            signed = SignedTransaction.from_tx(tx)
            assert signed.hash() == tx.hash()
            assert signed.account() == tx.account()
            assert signed.nonce == tx.nonce
            assert signed.get_bytes() == tx.get_bytes()
            assert signed.min_chunks() == tx.min_chunks()
            assert signed.is_withdraw() == tx.is_withdraw()
            assert signed.is_close() == tx.is_close()
            assert signed.get_fee_info() == tx.get_fee_info()
            assert signed.tx_type == tx.TX_TYPE


class TestCorrectnessGate:

    def test_every_kind_passes(self, every_kind):
        for tx in every_kind:
            assert SignedTransaction.from_tx(tx).check_correctness()

    def test_matching_eth_sign_data_passes(self, owner, transfer):
        signed = SignedTransaction(transfer, eth_sign_data(owner['eth_private_key'], "Transfer 1000"))
        assert signed.check_correctness()

    def test_foreign_eth_sign_data_is_rejected(self, transfer):
        stranger, _ = generate_eth_key_pair()
        signed = SignedTransaction(transfer, eth_sign_data(stranger, "Transfer 1000"))
        assert not signed.check_correctness()
        assert signed.verified_signer is None

    def test_missing_required_eth_sign_data_clears_signer(self, transfer):
        config = Config(validation=ValidationConfig(require_eth_sign_data=True))
        signed = SignedTransaction.from_tx(transfer)
        assert signed.check_correctness()
        assert signed.verified_signer is not None

        assert not signed.check_correctness(config)
        assert signed.verified_signer is None

    def test_non_string_message_is_rejected_without_raising(self, owner, transfer):
        sign_data = eth_sign_data(owner['eth_private_key'], "Transfer 1000")
        sign_data.message = 123
        assert not SignedTransaction(transfer, sign_data).check_correctness()

    def test_eth_sign_data_for_other_message_is_rejected(self, owner, transfer):
        sign_data = eth_sign_data(owner['eth_private_key'], "Transfer 1000")
        sign_data.message = "Transfer 9000"
        assert not SignedTransaction(transfer, sign_data).check_correctness()

    def test_required_eth_sign_data(self, owner, transfer):
        config = Config(validation=ValidationConfig(require_eth_sign_data=True))
        assert not SignedTransaction.from_tx(transfer).check_correctness(config)

        signed = SignedTransaction(transfer, eth_sign_data(owner['eth_private_key'], "Transfer"))
        assert signed.check_correctness(config)

    def test_required_eth_sign_data_skips_feeless_kinds(self, owner):
        close = native_signed(Close(owner['address'], 5), owner['signing_key'])
        config = Config(validation=ValidationConfig(require_eth_sign_data=True))
        assert SignedTransaction.from_tx(close).check_correctness(config)

    def test_config_token_limit(self, transfer):
        config = Config(validation=ValidationConfig(max_token_id=4))
        assert not SignedTransaction.from_tx(transfer).check_correctness(config)


class TestValidate:

    def test_validate_returns_frozen_view(self, transfer):
        signed = SignedTransaction.from_tx(transfer)
        validated = signed.validate()
        assert isinstance(validated, ValidatedTransaction)
        assert validated.hash() == signed.hash()
        assert validated.verified_signer == signed.verified_signer
        assert validated.verified_signer is not None
        with pytest.raises(AttributeError):
            validated.nonce = 99

    def test_validated_view_ignores_later_mutation(self, transfer):
        signed = SignedTransaction.from_tx(transfer)
        validated = signed.validate()
        original_hash = validated.hash()
        transfer.amount = 2000
        assert validated.hash() == original_hash
        assert validated.get_fee_info().fee == 10
        assert signed.hash() == original_hash

    def test_validate_raises_with_reason(self, owner, recipient):
        unsigned = Transfer(owner['address'], recipient, 5, 1000, 10, 3)
        with pytest.raises(ValidationError, match="missing signature"):
            SignedTransaction.from_tx(unsigned).validate()


class TestHashAndFees:

    def test_hash_is_deterministic(self, every_kind):
        for tx in every_kind:
            signed = SignedTransaction.from_tx(tx)
            assert signed.check_correctness()
            first = tx_hash(signed)
            assert first == tx_hash(signed) == tx_hash(tx)
            assert len(first.hex()) == 64
            assert str(first) == '0x' + first.hex()

    def test_hash_is_usable_as_key(self, every_kind):
        hashes = {tx_hash(tx) for tx in every_kind}
        assert len(hashes) == len(every_kind)

    def test_fee_classification(self, every_kind, recipient):
        transfer, withdraw, close, change_pubkey = every_kind
        assert get_fee_info(transfer) == (TxFeeTypes.TRANSFER, TokenLike.id(5), recipient, 10)
        assert get_fee_info(withdraw) == (TxFeeTypes.FAST_WITHDRAW, TokenLike.id(2), recipient, 7)
        assert get_fee_info(close) is None
        assert get_fee_info(change_pubkey) is None

    def test_close_scenario(self, owner):
        close = SignedTransaction.from_tx(native_signed(Close(owner['address'], 5),
                                                        owner['signing_key']))
        assert close.check_correctness()
        assert get_fee_info(close) is None
        assert close.min_chunks() == CLOSE_CHUNKS
        assert close.is_close() and not close.is_withdraw()


class TestWireFormat:

    def test_dict_round_trip_every_kind(self, owner, every_kind):
        for tx in every_kind:
            signed = SignedTransaction(tx, eth_sign_data(owner['eth_private_key'], "authorize"))
            decoded = SignedTransaction.from_dict(json.loads(json.dumps(signed.to_dict())))
            assert decoded == signed
            assert decoded.tx_type == signed.tx_type
            assert decoded.hash() == signed.hash()
            assert decoded.check_correctness()

    def test_msgpack_round_trip(self, transfer):
        signed = SignedTransaction.from_tx(transfer)
        decoded = SignedTransaction.from_msgpack(signed.to_msgpack())
        assert decoded == signed
        assert decoded.eth_sign_data is None

    def test_envelope_layout(self, transfer):
        data = SignedTransaction.from_tx(transfer).to_dict()
        assert set(data) == {"tx", "ethSignData"}
        assert data["tx"]["type"] == "Transfer"
        assert data["ethSignData"] is None

    def test_non_string_signed_message_is_rejected(self, owner, transfer):
        signed = SignedTransaction(transfer, eth_sign_data(owner['eth_private_key'], "Transfer"))
        data = signed.to_dict()
        data["ethSignData"]["message"] = 123
        with pytest.raises(ValueError):
            SignedTransaction.from_dict(data)

    def test_malformed_envelope_is_rejected(self, transfer):
        with pytest.raises(ValueError):
            SignedTransaction.from_dict({"ethSignData": None})
        with pytest.raises(ValueError):
            SignedTransaction.from_msgpack(msgpack.packb([1, 2, 3]))

        data = SignedTransaction.from_tx(transfer).to_dict()
        data["ethSignData"] = {"message": "no signature"}
        with pytest.raises(ValueError):
            SignedTransaction.from_dict(data)
