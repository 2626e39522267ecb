"""
XDR codec.

Encodes transactions, footprints and ledger keys in the ledger's own XDR
through stellar_sdk's generated types, so envelopes are byte-compatible
with Soroban RPC servers:

    envelope    = TransactionEnvelope(ENVELOPE_TYPE_TX, TransactionV1Envelope)
    body        = Transaction (the part covered by the signature payload)
    operation   = Operation, with Operation.body holding OperationBody XDR
    footprint   = SorobanTransactionData
    account key = LedgerKey(ACCOUNT)
    data key    = LedgerKey(CONTRACT_DATA)
    account     = LedgerEntryData(ACCOUNT), as returned by getLedgerEntries
    result      = TransactionResult
"""

from typing import Any, List, Optional, Type, TypeVar

import stellar_sdk
from stellar_sdk import StrKey
from stellar_sdk import xdr as stellar_xdr

from soroban_client.codec.interface import AccountEntry, Codec, Durability, TransactionResult
from soroban_client.core.address import is_account_id, is_contract_id
from soroban_client.core.operation import Operation, OperationType
from soroban_client.core.transaction import (
    DecoratedSignature,
    Footprint,
    TimeBounds,
    Transaction,
    TransactionState,
)
from soroban_client.errors import CodecError, DecodeError, EncodeError

T = TypeVar("T")

# Result codes whose XDR arm carries operation results
_RESULT_CODES_WITH_RESULTS = ("txSUCCESS", "txFAILED")
_RESULT_CODES_WITH_INNER_PAIR = ("txFEE_BUMP_INNER_SUCCESS", "txFEE_BUMP_INNER_FAILED")

_DURABILITY = {
    Durability.TEMPORARY: stellar_xdr.ContractDataDurability.TEMPORARY,
    Durability.PERSISTENT: stellar_xdr.ContractDataDurability.PERSISTENT,
}


def _from_xdr(
    xdr_type: Type[T],
    data: bytes,
    what: str,
    error: Type[CodecError] = DecodeError,
) -> T:
    if not isinstance(data, (bytes, bytearray)):
        raise error(f"Expected bytes for {what}, got {type(data).__name__}")
    try:
        return xdr_type.from_xdr_bytes(bytes(data))
    except Exception as e:
        raise error(f"Invalid {what} XDR: {e}") from e


def _to_xdr(value: Any, what: str) -> bytes:
    try:
        return value.to_xdr_bytes()
    except Exception as e:
        raise EncodeError(f"Cannot encode {what} as XDR: {e}") from e


class XdrCodec(Codec):
    """Codec backed by stellar_sdk's XDR types."""

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def _raw_public_key(self, address: str) -> bytes:
        if not is_account_id(address):
            raise EncodeError(f"Invalid account id: {address!r}")
        return StrKey.decode_ed25519_public_key(address)

    def _muxed_account(self, address: str) -> stellar_xdr.MuxedAccount:
        return stellar_xdr.MuxedAccount(
            type=stellar_xdr.CryptoKeyType.KEY_TYPE_ED25519,
            ed25519=stellar_xdr.Uint256(self._raw_public_key(address)),
        )

    def _account_id(self, address: str) -> stellar_xdr.AccountID:
        return stellar_xdr.AccountID(
            stellar_xdr.PublicKey(
                type=stellar_xdr.PublicKeyType.PUBLIC_KEY_TYPE_ED25519,
                ed25519=stellar_xdr.Uint256(self._raw_public_key(address)),
            )
        )

    def _address_from_muxed(self, muxed: stellar_xdr.MuxedAccount) -> str:
        if muxed.type != stellar_xdr.CryptoKeyType.KEY_TYPE_ED25519:
            raise DecodeError("Muxed (M...) accounts are not supported")
        return StrKey.encode_ed25519_public_key(muxed.ed25519.uint256)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def _operation_to_xdr(self, op: Operation) -> stellar_xdr.Operation:
        body = _from_xdr(stellar_xdr.OperationBody, op.body, "operation body", EncodeError)
        if body.type.name.lower() != op.type.value:
            raise EncodeError(
                f"Operation body is {body.type.name}, but the operation says {op.type.value}"
            )
        return stellar_xdr.Operation(
            source_account=None if op.source is None else self._muxed_account(op.source),
            body=body,
        )

    def _operation_from_xdr(self, op: stellar_xdr.Operation) -> Operation:
        try:
            op_type = OperationType(op.body.type.name.lower())
        except ValueError as e:
            raise DecodeError(f"Unsupported operation type: {op.body.type.name}") from e

        source = None
        if op.source_account is not None:
            source = self._address_from_muxed(op.source_account)

        return Operation(type=op_type, body=_to_xdr(op.body, "operation body"), source=source)

    def wrap_operation(self, sdk_operation: "stellar_sdk.Operation") -> Operation:
        """
        Turn a stellar_sdk operation (Payment, InvokeHostFunction, ...) into
        an Operation.

        Example:
            op = codec.wrap_operation(stellar_sdk.BumpSequence(bump_to=0))
        """
        return self._operation_from_xdr(sdk_operation.to_xdr_object())

    # ------------------------------------------------------------------
    # Footprints
    # ------------------------------------------------------------------

    def _footprint_to_xdr(self, footprint: Footprint) -> stellar_xdr.SorobanTransactionData:
        return stellar_xdr.SorobanTransactionData(
            ext=stellar_xdr.ExtensionPoint(0),
            resources=stellar_xdr.SorobanResources(
                footprint=stellar_xdr.LedgerFootprint(
                    read_only=[
                        _from_xdr(stellar_xdr.LedgerKey, key, "ledger key", EncodeError)
                        for key in footprint.read_only
                    ],
                    read_write=[
                        _from_xdr(stellar_xdr.LedgerKey, key, "ledger key", EncodeError)
                        for key in footprint.read_write
                    ],
                ),
                instructions=stellar_xdr.Uint32(footprint.instructions),
                read_bytes=stellar_xdr.Uint32(footprint.read_bytes),
                write_bytes=stellar_xdr.Uint32(footprint.write_bytes),
            ),
            resource_fee=stellar_xdr.Int64(footprint.resource_fee),
        )

    def _footprint_from_xdr(self, data: stellar_xdr.SorobanTransactionData) -> Footprint:
        resources = data.resources
        try:
            return Footprint(
                read_only=tuple(
                    _to_xdr(key, "ledger key") for key in resources.footprint.read_only
                ),
                read_write=tuple(
                    _to_xdr(key, "ledger key") for key in resources.footprint.read_write
                ),
                instructions=resources.instructions.uint32,
                read_bytes=resources.read_bytes.uint32,
                write_bytes=resources.write_bytes.uint32,
                resource_fee=data.resource_fee.int64,
            )
        except ValueError as e:
            raise DecodeError(f"Invalid footprint: {e}") from e

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def _transaction_to_xdr(self, tx: Transaction) -> stellar_xdr.Transaction:
        if tx.footprint is None or tx.footprint.is_empty:
            ext = stellar_xdr.TransactionExt(v=0)
        else:
            ext = stellar_xdr.TransactionExt(v=1, soroban_data=self._footprint_to_xdr(tx.footprint))

        return stellar_xdr.Transaction(
            source_account=self._muxed_account(tx.source),
            fee=stellar_xdr.Uint32(tx.fee),
            seq_num=stellar_xdr.SequenceNumber(stellar_xdr.Int64(tx.sequence)),
            cond=stellar_xdr.Preconditions(
                type=stellar_xdr.PreconditionType.PRECOND_TIME,
                time_bounds=stellar_xdr.TimeBounds(
                    min_time=stellar_xdr.TimePoint(stellar_xdr.Uint64(tx.time_bounds.min_time)),
                    max_time=stellar_xdr.TimePoint(stellar_xdr.Uint64(tx.time_bounds.max_time)),
                ),
            ),
            memo=stellar_xdr.Memo(type=stellar_xdr.MemoType.MEMO_NONE),
            operations=[self._operation_to_xdr(op) for op in tx.operations],
            ext=ext,
        )

    def _time_bounds_from_xdr(self, cond: stellar_xdr.Preconditions) -> TimeBounds:
        if cond.type == stellar_xdr.PreconditionType.PRECOND_NONE:
            return TimeBounds(0, 0)
        if cond.type == stellar_xdr.PreconditionType.PRECOND_TIME:
            return TimeBounds(
                cond.time_bounds.min_time.time_point.uint64,
                cond.time_bounds.max_time.time_point.uint64,
            )
        raise DecodeError("Only time-bound preconditions are supported")

    def encode_transaction(self, tx: Transaction) -> bytes:
        envelope = stellar_xdr.TransactionEnvelope(
            type=stellar_xdr.EnvelopeType.ENVELOPE_TYPE_TX,
            v1=stellar_xdr.TransactionV1Envelope(
                tx=self._transaction_to_xdr(tx),
                signatures=[
                    stellar_xdr.DecoratedSignature(
                        hint=stellar_xdr.SignatureHint(sig.hint),
                        signature=stellar_xdr.Signature(sig.signature),
                    )
                    for sig in tx.signatures
                ],
            ),
        )
        return _to_xdr(envelope, "transaction envelope")

    def encode_transaction_body(self, tx: Transaction) -> bytes:
        return _to_xdr(self._transaction_to_xdr(tx), "transaction")

    def decode_transaction(self, data: bytes, network_passphrase: str) -> Transaction:
        envelope = _from_xdr(stellar_xdr.TransactionEnvelope, data, "transaction envelope")
        if envelope.type != stellar_xdr.EnvelopeType.ENVELOPE_TYPE_TX:
            raise DecodeError(f"Unsupported envelope type: {envelope.type.name}")

        body = envelope.v1.tx
        if body.memo.type != stellar_xdr.MemoType.MEMO_NONE:
            raise DecodeError("Transactions with a memo are not supported")

        signatures = [
            DecoratedSignature(
                hint=sig.hint.signature_hint,
                signature=sig.signature.signature,
            )
            for sig in envelope.v1.signatures
        ]

        if body.ext.v == 1:
            footprint: Optional[Footprint] = self._footprint_from_xdr(body.ext.soroban_data)
        elif signatures:
            # A signed classic transaction was signed with an empty footprint
            footprint = Footprint.empty()
        else:
            footprint = None

        if signatures:
            state = TransactionState.SIGNED
        elif footprint is not None:
            state = TransactionState.PREPARED
        else:
            state = TransactionState.BUILT

        return Transaction(
            source=self._address_from_muxed(body.source_account),
            sequence=body.seq_num.sequence_number.int64,
            operations=tuple(self._operation_from_xdr(op) for op in body.operations),
            fee=body.fee.uint32,
            time_bounds=self._time_bounds_from_xdr(body.cond),
            network_passphrase=network_passphrase,
            footprint=footprint,
            signatures=signatures,
            state=state,
            codec=self,
        )

    def encode_operation(self, op: Operation) -> bytes:
        return _to_xdr(self._operation_to_xdr(op), "operation")

    def decode_operation(self, data: bytes) -> Operation:
        return self._operation_from_xdr(_from_xdr(stellar_xdr.Operation, data, "operation"))

    def encode_footprint(self, footprint: Footprint) -> bytes:
        return _to_xdr(self._footprint_to_xdr(footprint), "transaction data")

    def decode_footprint(self, data: bytes) -> Footprint:
        return self._footprint_from_xdr(
            _from_xdr(stellar_xdr.SorobanTransactionData, data, "transaction data")
        )

    # ------------------------------------------------------------------
    # Ledger entries
    # ------------------------------------------------------------------

    def encode_account_key(self, account_id: str) -> bytes:
        key = stellar_xdr.LedgerKey(
            type=stellar_xdr.LedgerEntryType.ACCOUNT,
            account=stellar_xdr.LedgerKeyAccount(account_id=self._account_id(account_id)),
        )
        return _to_xdr(key, "account ledger key")

    def encode_contract_data_key(self, contract_id: str, key: bytes, durability: Durability) -> bytes:
        if not is_contract_id(contract_id):
            raise EncodeError(f"Invalid contract id: {contract_id!r}")

        ledger_key = stellar_xdr.LedgerKey(
            type=stellar_xdr.LedgerEntryType.CONTRACT_DATA,
            contract_data=stellar_xdr.LedgerKeyContractData(
                contract=stellar_sdk.Address(contract_id).to_xdr_sc_address(),
                key=_from_xdr(stellar_xdr.SCVal, key, "contract data key", EncodeError),
                durability=_DURABILITY[Durability(durability)],
            ),
        )
        return _to_xdr(ledger_key, "contract data ledger key")

    def decode_account_entry(self, data: bytes) -> Optional[AccountEntry]:
        entry = _from_xdr(stellar_xdr.LedgerEntryData, data, "ledger entry")
        if entry.type != stellar_xdr.LedgerEntryType.ACCOUNT:
            return None

        return AccountEntry(
            account_id=StrKey.encode_ed25519_public_key(
                entry.account.account_id.account_id.ed25519.uint256
            ),
            sequence=entry.account.seq_num.sequence_number.int64,
        )

    def encode_account_entry(self, entry: AccountEntry) -> bytes:
        """Encode an account entry (used by local tooling and tests)."""
        data = stellar_xdr.LedgerEntryData(
            type=stellar_xdr.LedgerEntryType.ACCOUNT,
            account=stellar_xdr.AccountEntry(
                account_id=self._account_id(entry.account_id),
                balance=stellar_xdr.Int64(0),
                seq_num=stellar_xdr.SequenceNumber(stellar_xdr.Int64(entry.sequence)),
                num_sub_entries=stellar_xdr.Uint32(0),
                inflation_dest=None,
                flags=stellar_xdr.Uint32(0),
                home_domain=stellar_xdr.String32(b""),
                thresholds=stellar_xdr.Thresholds(b"\x01\x00\x00\x00"),
                signers=[],
                ext=stellar_xdr.AccountEntryExt(v=0),
            ),
        )
        return _to_xdr(data, "account entry")

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def decode_transaction_result(self, data: bytes) -> TransactionResult:
        result = _from_xdr(stellar_xdr.TransactionResult, data, "transaction result")
        return TransactionResult(
            fee_charged=result.fee_charged.int64,
            code=result.result.code.name,
        )

    def encode_transaction_result(self, result: TransactionResult) -> bytes:
        """Encode a result without operation results (used by tests)."""
        if result.code in _RESULT_CODES_WITH_INNER_PAIR:
            raise EncodeError(f"Cannot encode fee-bump result {result.code}")
        try:
            code = stellar_xdr.TransactionResultCode[result.code]
        except KeyError as e:
            raise EncodeError(f"Unknown result code: {result.code}") from e

        results: Optional[List[stellar_xdr.OperationResult]] = None
        if result.code in _RESULT_CODES_WITH_RESULTS:
            results = []

        return _to_xdr(
            stellar_xdr.TransactionResult(
                fee_charged=stellar_xdr.Int64(result.fee_charged),
                result=stellar_xdr.TransactionResultResult(code=code, results=results),
                ext=stellar_xdr.TransactionResultExt(v=0),
            ),
            "transaction result",
        )
