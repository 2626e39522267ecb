"""
Test suite for the wire codecs.

Tests address checks, the XDR codec used on the wire and the canonical
CBOR codec used offline.
"""

import cbor2
import pytest
import stellar_sdk
from stellar_sdk import StrKey
from stellar_sdk import xdr as stellar_xdr

from soroban_client.codec import AccountEntry, Durability, TransactionResult
from soroban_client.codec.interface import Codec
from soroban_client.core.address import is_account_id, is_contract_id
from soroban_client.core.operation import Operation, OperationType
from soroban_client.core.transaction import Footprint, TransactionState
from soroban_client.errors import DecodeError, EncodeError, ValidationError
from soroban_client.tx.builder import TransactionBuilder

from tests.conftest import CONTRACT_ID, make_data_key, make_keypair, make_operation, make_storage_key

ZERO_ACCOUNT = "GAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAWHF"


# ============================================================================
# Addresses
# ============================================================================

class TestAddresses:
    """Tests for account and contract id checks."""

    def test_known_address(self):
        """Test the well-known all-zero account id."""
        assert is_account_id(ZERO_ACCOUNT) is True
        assert is_contract_id(ZERO_ACCOUNT) is False

    def test_keypair_address(self):
        """Test that a keypair's address is a valid account id."""
        keypair = make_keypair(5)

        assert is_account_id(keypair.address) is True
        assert StrKey.decode_ed25519_public_key(keypair.address) == keypair.public_key

    def test_contract_id(self):
        """Test that C... ids are contracts, not accounts."""
        assert is_contract_id(CONTRACT_ID) is True
        assert is_account_id(CONTRACT_ID) is False

    def test_secret_is_not_an_address(self):
        """Test that a secret seed is not accepted as an account id."""
        assert is_account_id(make_keypair(1).secret) is False

    @pytest.mark.parametrize(
        "value",
        ["", "G", ZERO_ACCOUNT + "A", ZERO_ACCOUNT[:-1] + "A", ZERO_ACCOUNT.lower(), None, 42],
    )
    def test_malformed(self, value):
        """Test malformed StrKey strings."""
        assert is_account_id(value) is False
        assert is_contract_id(value) is False


# ============================================================================
# Operations
# ============================================================================

class TestOperation:
    """Tests for the operation model."""

    def test_type_from_string(self):
        """Test that a known type name is accepted as a string."""
        op = Operation("payment", b"")

        assert op.type is OperationType.PAYMENT

    def test_unknown_type(self):
        """Test that an unknown type is a validation error."""
        with pytest.raises(ValidationError, match="bogus"):
            Operation("bogus", b"")

    def test_body_must_be_bytes(self):
        """Test that a non-bytes body is refused."""
        with pytest.raises(TypeError):
            Operation(OperationType.PAYMENT, "body")

    def test_soroban_types(self):
        """Test which operation types need a footprint."""
        assert OperationType.INVOKE_HOST_FUNCTION.is_soroban
        assert OperationType.RESTORE_FOOTPRINT.is_soroban
        assert not OperationType.PAYMENT.is_soroban


# ============================================================================
# XDR codec
# ============================================================================

class TestXdrCodec:
    """Tests for the XDR codec."""

    def test_envelope_is_v1(self, codec, signed_tx):
        """Test that envelopes use the v1 transaction envelope arm."""
        assert codec.encode_transaction(signed_tx)[:4] == b"\x00\x00\x00\x02"

    def test_envelope_readable_by_stellar_sdk(self, signed_tx, network):
        """Test that stellar_sdk parses the envelope and agrees on the hash."""
        envelope = stellar_sdk.TransactionEnvelope.from_xdr(
            signed_tx.to_envelope_base64(), network.passphrase
        )

        assert envelope.hash() == signed_tx.hash()
        assert envelope.transaction.sequence == signed_tx.sequence
        assert envelope.transaction.fee == signed_tx.fee
        assert envelope.transaction.source.account_id == signed_tx.source
        assert len(envelope.signatures) == 1

    def test_signature_verifies_with_stellar_sdk(self, signed_tx, keypair):
        """Test that the signature is valid for the ledger's hash."""
        signature = signed_tx.signatures[0]

        stellar_sdk.Keypair.from_public_key(keypair.address).verify(
            signed_tx.hash(), signature.signature
        )
        assert signature.hint == keypair.public_key[-4:]

    def test_envelope_round_trip(self, codec, signed_tx, network):
        """Test that re-encoding a decoded envelope yields identical bytes."""
        data = codec.encode_transaction(signed_tx)
        decoded = codec.decode_transaction(data, network.passphrase)

        assert decoded.state == TransactionState.SIGNED
        assert decoded.footprint == signed_tx.footprint
        assert codec.encode_transaction(decoded) == data

    def test_unsigned_envelope_state(self, codec, built_tx, network):
        """Test that an unsigned envelope without footprint decodes as built."""
        decoded = codec.decode_transaction(codec.encode_transaction(built_tx), network.passphrase)

        assert decoded.state == TransactionState.BUILT
        assert decoded.footprint is None
        assert decoded.operations == built_tx.operations

    def test_classic_transaction_has_no_soroban_data(self, codec, account, network, keypair):
        """Test that an empty footprint encodes as the v0 extension."""
        with TransactionBuilder(account, network) as builder:
            tx = builder.add_operation(make_operation(0)).add_footprint(Footprint.empty()).build()
        tx.sign(keypair)

        body = stellar_xdr.Transaction.from_xdr_bytes(codec.encode_transaction_body(tx))
        decoded = codec.decode_transaction(codec.encode_transaction(tx), network.passphrase)

        assert body.ext.v == 0
        assert decoded.footprint == Footprint.empty()
        assert decoded.hash() == tx.hash()

    def test_body_excludes_signatures(self, codec, signed_tx, cosigner):
        """Test that signatures are not part of the signed body."""
        body = codec.encode_transaction_body(signed_tx)
        signed_tx.sign(cosigner)

        assert codec.encode_transaction_body(signed_tx) == body

    def test_wrap_operation(self, codec, keypair):
        """Test wrapping a stellar_sdk operation."""
        op = codec.wrap_operation(stellar_sdk.BumpSequence(bump_to=42, source=keypair.address))

        assert op.type is OperationType.BUMP_SEQUENCE
        assert op.source == keypair.address
        assert codec.decode_operation(codec.encode_operation(op)) == op

    def test_operation_type_mismatch(self, codec):
        """Test that a body of another operation type is refused."""
        op = Operation(OperationType.PAYMENT, make_operation(3).body)

        with pytest.raises(EncodeError, match="BUMP_SEQUENCE"):
            codec.encode_operation(op)

    def test_operation_body_not_xdr(self, codec):
        """Test that an opaque non-XDR body cannot be encoded."""
        with pytest.raises(EncodeError):
            codec.encode_operation(Operation(OperationType.PAYMENT, b"\xff"))

    def test_footprint_round_trip(self, codec, sample_footprint):
        """Test encoding and decoding a footprint."""
        data = codec.encode_footprint(sample_footprint)

        assert codec.decode_footprint(data) == sample_footprint
        assert codec.encode_footprint(codec.decode_footprint(data)) == data

    def test_footprint_with_invalid_key(self, codec):
        """Test that a footprint key must be a ledger key."""
        with pytest.raises(EncodeError):
            codec.encode_footprint(Footprint(read_only=(b"not-a-key",)))

    def test_contract_data_key(self, codec):
        """Test the ledger key of a contract storage entry."""
        data = codec.encode_contract_data_key(
            CONTRACT_ID, make_storage_key("counter"), Durability.TEMPORARY
        )
        key = stellar_xdr.LedgerKey.from_xdr_bytes(data)

        assert key.type == stellar_xdr.LedgerEntryType.CONTRACT_DATA
        assert key.contract_data.durability == stellar_xdr.ContractDataDurability.TEMPORARY
        assert key.contract_data.key.to_xdr_bytes() == make_storage_key("counter")
        assert data != make_data_key("counter", Durability.PERSISTENT)

    def test_contract_data_key_invalid_contract(self, codec, keypair):
        """Test that an account id is not a contract id."""
        with pytest.raises(EncodeError):
            codec.encode_contract_data_key(keypair.address, make_storage_key("x"), Durability.PERSISTENT)

    def test_account_entry(self, codec, keypair):
        """Test decoding an account ledger entry."""
        data = codec.encode_account_entry(AccountEntry(keypair.address, 2 ** 40))

        assert codec.decode_account_entry(data) == AccountEntry(keypair.address, 2 ** 40)

    def test_account_key(self, codec, keypair):
        """Test the ledger key of an account."""
        key = stellar_xdr.LedgerKey.from_xdr_bytes(codec.encode_account_key(keypair.address))

        assert key.type == stellar_xdr.LedgerEntryType.ACCOUNT
        assert key.account.account_id.account_id.ed25519.uint256 == keypair.public_key

    @pytest.mark.parametrize("code", ["txSUCCESS", "txFAILED", "txBAD_SEQ", "txINSUFFICIENT_FEE"])
    def test_transaction_result(self, codec, code):
        """Test decoding transaction results."""
        data = codec.encode_transaction_result(TransactionResult(fee_charged=100, code=code))
        result = codec.decode_transaction_result(data)

        assert result.fee_charged == 100
        assert result.code == code
        assert result.is_success is (code == "txSUCCESS")

    def test_decode_garbage(self, codec, network):
        """Test that non-XDR bytes are a decode error."""
        with pytest.raises(DecodeError):
            codec.decode_transaction(b"\xff\xff\xff", network.passphrase)

    def test_decode_garbage_footprint(self, codec):
        with pytest.raises(DecodeError):
            codec.decode_footprint(b"\x00\x01")


# ============================================================================
# CBOR codec
# ============================================================================

class TestCborCodec:
    """Tests for the canonical CBOR codec."""

    def test_operation_round_trip(self, cbor_codec, keypair):
        """Test encoding and decoding an operation with a source."""
        op = Operation(OperationType.PAYMENT, b"\x00\x01\x02", source=keypair.address)

        assert cbor_codec.decode_operation(cbor_codec.encode_operation(op)) == op

    def test_footprint_round_trip(self, cbor_codec, sample_footprint):
        """Test encoding and decoding a footprint."""
        data = cbor_codec.encode_footprint(sample_footprint)

        assert cbor_codec.decode_footprint(data) == sample_footprint
        assert cbor_codec.encode_footprint(cbor_codec.decode_footprint(data)) == data

    def test_envelope_bytes_stable(self, cbor_codec, signed_tx, network):
        """Test that re-encoding a decoded envelope yields identical bytes."""
        data = cbor_codec.encode_transaction(signed_tx)
        decoded = cbor_codec.decode_transaction(data, network.passphrase)

        assert cbor_codec.encode_transaction(decoded) == data

    def test_encoding_is_canonical(self, cbor_codec):
        """Test that equal footprints always encode identically."""
        a = Footprint(read_only=(b"k1",), resource_fee=10)
        b = Footprint(read_only=[bytearray(b"k1")], resource_fee=10)

        assert cbor_codec.encode_footprint(a) == cbor_codec.encode_footprint(b)

    def test_decode_garbage(self, cbor_codec, network):
        """Test that non-CBOR bytes are a decode error."""
        with pytest.raises(DecodeError):
            cbor_codec.decode_transaction(b"\xff\xff\xff", network.passphrase)

    def test_decode_wrong_shape(self, cbor_codec, network):
        """Test that valid CBOR of the wrong shape is a decode error."""
        with pytest.raises(DecodeError):
            cbor_codec.decode_transaction(cbor2.dumps([2, [], []]), network.passphrase)

    def test_decode_wrong_envelope_type(self, cbor_codec, signed_tx, network):
        """Test that an unknown envelope type is refused."""
        _, body, signatures = cbor2.loads(cbor_codec.encode_transaction(signed_tx))

        with pytest.raises(DecodeError, match="envelope type"):
            cbor_codec.decode_transaction(cbor2.dumps([5, body, signatures]), network.passphrase)

    def test_decode_unknown_operation_type(self, cbor_codec):
        """Test that an unknown operation type is refused."""
        with pytest.raises(DecodeError):
            cbor_codec.decode_operation(cbor2.dumps(["teleport", None, b""]))

    def test_account_entry(self, cbor_codec, keypair):
        """Test decoding an account ledger entry."""
        data = cbor_codec.encode_account_entry(AccountEntry(keypair.address, 2 ** 40))

        assert cbor_codec.decode_account_entry(data) == AccountEntry(keypair.address, 2 ** 40)

    def test_non_account_entry(self, cbor_codec):
        """Test that other ledger entries decode to None."""
        assert cbor_codec.decode_account_entry(cbor2.dumps(["contract_data", "x", 1])) is None

    def test_contract_data_key_depends_on_durability(self, cbor_codec):
        """Test that temporary and persistent keys differ."""
        temporary = cbor_codec.encode_contract_data_key(CONTRACT_ID, b"k", Durability.TEMPORARY)
        persistent = cbor_codec.encode_contract_data_key(CONTRACT_ID, b"k", Durability.PERSISTENT)

        assert temporary != persistent

    def test_transaction_result(self, cbor_codec):
        """Test decoding a transaction result."""
        data = cbor_codec.encode_transaction_result(TransactionResult(fee_charged=100, code="txBAD_SEQ"))
        result = cbor_codec.decode_transaction_result(data)

        assert result.fee_charged == 100
        assert result.code == "txBAD_SEQ"
        assert result.is_success is False


class TestBase64Framing:
    """Tests for the base64 helpers used by the RPC."""

    def test_round_trip(self):
        """Test encoding and decoding base64."""
        assert Codec.from_base64(Codec.to_base64(b"\x00\xff")) == b"\x00\xff"

    @pytest.mark.parametrize("value", ["***", "abc", 42])
    def test_invalid(self, value):
        """Test that invalid base64 is a decode error."""
        with pytest.raises(DecodeError):
            Codec.from_base64(value)
