"""
Canonical CBOR codec.

A self-contained encoding for local tooling and tests; Soroban RPC servers
only understand XdrCodec. Encodes transactions, operations and footprints
as canonical CBOR arrays, so identical values always produce identical
bytes:

    operation   = [type, source | null, body]
    footprint   = [read_only, read_write, instructions, read_bytes, write_bytes, resource_fee]
    body        = [source, fee, sequence, [min_time, max_time], [operation...], footprint | null]
    envelope    = [ENVELOPE_TYPE_TX, body, [[hint, signature]...]]
    account key = ["account", account_id]
    data key    = ["contract_data", contract_id, key, durability]
    account     = ["account", account_id, sequence]
    result      = [fee_charged, code]
"""

from typing import Any, List, Optional

import cbor2

from soroban_client.codec.interface import AccountEntry, Codec, Durability, TransactionResult
from soroban_client.core.operation import Operation, OperationType
from soroban_client.core.transaction import (
    ENVELOPE_TYPE_TX,
    DecoratedSignature,
    Footprint,
    TimeBounds,
    Transaction,
    TransactionState,
)
from soroban_client.errors import DecodeError, EncodeError, SorobanClientError

ACCOUNT_ENTRY_TAG = "account"
CONTRACT_DATA_TAG = "contract_data"


def _expect_array(value: Any, length: int, what: str) -> List[Any]:
    if not isinstance(value, list) or len(value) != length:
        raise DecodeError(f"Malformed {what}: expected array of {length}")
    return value


def _expect_int(value: Any, what: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise DecodeError(f"Malformed {what}: expected integer")
    return value


def _expect_bytes(value: Any, what: str) -> bytes:
    if not isinstance(value, bytes):
        raise DecodeError(f"Malformed {what}: expected bytes")
    return value


def _expect_str(value: Any, what: str) -> str:
    if not isinstance(value, str):
        raise DecodeError(f"Malformed {what}: expected text")
    return value


class CborCodec(Codec):
    """Codec backed by cbor2 in canonical mode."""

    def _dumps(self, value: Any) -> bytes:
        try:
            return cbor2.dumps(value, canonical=True)
        except (cbor2.CBOREncodeError, TypeError, ValueError) as e:
            raise EncodeError(f"CBOR encoding failed: {e}") from e

    def _loads(self, data: bytes) -> Any:
        if not isinstance(data, (bytes, bytearray)):
            raise DecodeError(f"Expected bytes, got {type(data).__name__}")
        try:
            return cbor2.loads(bytes(data))
        except (cbor2.CBORDecodeError, TypeError, ValueError) as e:
            raise DecodeError(f"CBOR decoding failed: {e}") from e

    # ------------------------------------------------------------------
    # Primitive shapes
    # ------------------------------------------------------------------

    def _operation_to_primitive(self, op: Operation) -> list:
        return [op.type.value, op.source, op.body]

    def _operation_from_primitive(self, value: Any) -> Operation:
        op_type, source, body = _expect_array(value, 3, "operation")
        try:
            return Operation(
                type=OperationType(_expect_str(op_type, "operation type")),
                body=_expect_bytes(body, "operation body"),
                source=None if source is None else _expect_str(source, "operation source"),
            )
        except ValueError as e:
            raise DecodeError(f"Unknown operation type: {op_type!r}") from e
        except SorobanClientError as e:
            if isinstance(e, DecodeError):
                raise
            raise DecodeError(f"Invalid operation: {e}") from e

    def _footprint_to_primitive(self, footprint: Footprint) -> list:
        return [
            list(footprint.read_only),
            list(footprint.read_write),
            footprint.instructions,
            footprint.read_bytes,
            footprint.write_bytes,
            footprint.resource_fee,
        ]

    def _footprint_from_primitive(self, value: Any) -> Footprint:
        read_only, read_write, instructions, read_bytes, write_bytes, resource_fee = (
            _expect_array(value, 6, "footprint")
        )
        if not isinstance(read_only, list) or not isinstance(read_write, list):
            raise DecodeError("Malformed footprint: key sets must be arrays")
        try:
            return Footprint(
                read_only=tuple(_expect_bytes(k, "ledger key") for k in read_only),
                read_write=tuple(_expect_bytes(k, "ledger key") for k in read_write),
                instructions=_expect_int(instructions, "instructions"),
                read_bytes=_expect_int(read_bytes, "read bytes"),
                write_bytes=_expect_int(write_bytes, "write bytes"),
                resource_fee=_expect_int(resource_fee, "resource fee"),
            )
        except ValueError as e:
            raise DecodeError(f"Invalid footprint: {e}") from e

    def _body_to_primitive(self, tx: Transaction) -> list:
        return [
            tx.source,
            tx.fee,
            tx.sequence,
            [tx.time_bounds.min_time, tx.time_bounds.max_time],
            [self._operation_to_primitive(op) for op in tx.operations],
            None if tx.footprint is None else self._footprint_to_primitive(tx.footprint),
        ]

    # ------------------------------------------------------------------
    # Codec interface
    # ------------------------------------------------------------------

    def encode_transaction(self, tx: Transaction) -> bytes:
        return self._dumps([
            ENVELOPE_TYPE_TX,
            self._body_to_primitive(tx),
            [[sig.hint, sig.signature] for sig in tx.signatures],
        ])

    def encode_transaction_body(self, tx: Transaction) -> bytes:
        return self._dumps(self._body_to_primitive(tx))

    def decode_transaction(self, data: bytes, network_passphrase: str) -> Transaction:
        envelope_type, body, signatures = _expect_array(self._loads(data), 3, "envelope")
        if envelope_type != ENVELOPE_TYPE_TX:
            raise DecodeError(f"Unsupported envelope type: {envelope_type!r}")

        source, fee, sequence, bounds, operations, footprint = _expect_array(
            body, 6, "transaction body"
        )
        min_time, max_time = _expect_array(bounds, 2, "time bounds")
        if not isinstance(operations, list) or not isinstance(signatures, list):
            raise DecodeError("Malformed envelope: operations and signatures must be arrays")

        decoded_signatures = []
        for item in signatures:
            hint, signature = _expect_array(item, 2, "signature")
            decoded_signatures.append(DecoratedSignature(
                hint=_expect_bytes(hint, "signature hint"),
                signature=_expect_bytes(signature, "signature"),
            ))

        decoded_footprint = None if footprint is None else self._footprint_from_primitive(footprint)

        if decoded_signatures:
            state = TransactionState.SIGNED
        elif decoded_footprint is not None:
            state = TransactionState.PREPARED
        else:
            state = TransactionState.BUILT

        return Transaction(
            source=_expect_str(source, "transaction source"),
            sequence=_expect_int(sequence, "sequence"),
            operations=tuple(self._operation_from_primitive(op) for op in operations),
            fee=_expect_int(fee, "fee"),
            time_bounds=TimeBounds(
                _expect_int(min_time, "min time"),
                _expect_int(max_time, "max time"),
            ),
            network_passphrase=network_passphrase,
            footprint=decoded_footprint,
            signatures=decoded_signatures,
            state=state,
            codec=self,
        )

    def encode_operation(self, op: Operation) -> bytes:
        return self._dumps(self._operation_to_primitive(op))

    def decode_operation(self, data: bytes) -> Operation:
        return self._operation_from_primitive(self._loads(data))

    def encode_footprint(self, footprint: Footprint) -> bytes:
        return self._dumps(self._footprint_to_primitive(footprint))

    def decode_footprint(self, data: bytes) -> Footprint:
        return self._footprint_from_primitive(self._loads(data))

    def encode_account_key(self, account_id: str) -> bytes:
        return self._dumps([ACCOUNT_ENTRY_TAG, account_id])

    def encode_contract_data_key(self, contract_id: str, key: bytes, durability: Durability) -> bytes:
        return self._dumps([CONTRACT_DATA_TAG, contract_id, bytes(key), Durability(durability).value])

    def decode_account_entry(self, data: bytes) -> Optional[AccountEntry]:
        value = self._loads(data)
        if not isinstance(value, list) or not value or value[0] != ACCOUNT_ENTRY_TAG:
            return None

        _, account_id, sequence = _expect_array(value, 3, "account entry")
        return AccountEntry(
            account_id=_expect_str(account_id, "account id"),
            sequence=_expect_int(sequence, "sequence"),
        )

    def encode_account_entry(self, entry: AccountEntry) -> bytes:
        """Encode an account entry (used by local tooling and tests)."""
        return self._dumps([ACCOUNT_ENTRY_TAG, entry.account_id, entry.sequence])

    def decode_transaction_result(self, data: bytes) -> TransactionResult:
        fee_charged, code = _expect_array(self._loads(data), 2, "transaction result")
        return TransactionResult(
            fee_charged=_expect_int(fee_charged, "fee charged"),
            code=_expect_str(code, "result code"),
        )

    def encode_transaction_result(self, result: TransactionResult) -> bytes:
        """Encode a transaction result (used by local tooling and tests)."""
        return self._dumps([result.fee_charged, result.code])
