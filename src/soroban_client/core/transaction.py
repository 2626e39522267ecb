"""
Transaction model.

A transaction is created unsigned by TransactionBuilder.build(), gets its
footprint and final fee from prepare_transaction(), collects signatures via
sign(), and is frozen once send_transaction() has been attempted.
"""

import base64
import binascii
import hashlib
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, List, Optional, Tuple, Union

import structlog

from soroban_client.core.network import Network
from soroban_client.core.operation import Operation
from soroban_client.errors import (
    DecodeError,
    MissingFootprintError,
    SigningError,
    TransactionFrozenError,
)

if TYPE_CHECKING:
    from soroban_client.codec.interface import Codec
    from soroban_client.tx.signer import Signer

logger = structlog.get_logger(__name__)

# Envelope type tag mixed into the signature payload
ENVELOPE_TYPE_TX = 2


class TransactionState(str, Enum):
    """Lifecycle of a transaction on the client side."""
    BUILT = "built"               # Built, no footprint yet
    PREPARED = "prepared"         # Footprint and fee finalized
    SIGNED = "signed"             # At least one signature attached
    SUBMITTED = "submitted"       # Submission attempted; immutable from here


@dataclass(frozen=True)
class TimeBounds:
    """Validity window in unix seconds. A max_time of 0 means unbounded."""
    min_time: int = 0
    max_time: int = 0

    @property
    def is_unbounded(self) -> bool:
        return self.max_time == 0


@dataclass(frozen=True)
class Footprint:
    """
    Soroban resource footprint and fee annotation.

    Ledger keys are kept in their encoded form; only the codec knows how
    to read them.
    """

    read_only: Tuple[bytes, ...] = ()
    read_write: Tuple[bytes, ...] = ()
    instructions: int = 0
    read_bytes: int = 0
    write_bytes: int = 0
    resource_fee: int = 0

    def __post_init__(self):
        object.__setattr__(self, "read_only", tuple(bytes(k) for k in self.read_only))
        object.__setattr__(self, "read_write", tuple(bytes(k) for k in self.read_write))
        if self.resource_fee < 0:
            raise ValueError("Footprint resource fee cannot be negative")

    @classmethod
    def empty(cls) -> "Footprint":
        """A footprint for transactions that touch no contract state."""
        return cls()

    @property
    def is_empty(self) -> bool:
        return self == Footprint()


@dataclass(frozen=True)
class DecoratedSignature:
    """A signature plus the last four bytes of the signer's public key."""
    hint: bytes
    signature: bytes


def _default_codec() -> "Codec":
    from soroban_client.codec.xdr import XdrCodec
    return XdrCodec()


@dataclass
class Transaction:
    """
    An assembled, hashable, signable transaction.

    Attributes:
        source: Source account id
        sequence: Sequence number this transaction consumes
        operations: Operations in ledger execution order
        fee: Total fee in stroops
        time_bounds: Validity window
        network_passphrase: Passphrase salting the transaction hash
        footprint: Resource footprint, required before signing
        signatures: Signatures attached so far
        state: Client-side lifecycle state
        codec: Wire codec used for hashing and envelopes
    """

    source: str
    sequence: int
    operations: Tuple[Operation, ...]
    fee: int
    time_bounds: TimeBounds
    network_passphrase: str
    footprint: Optional[Footprint] = None
    signatures: List[DecoratedSignature] = field(default_factory=list)
    state: TransactionState = TransactionState.BUILT
    codec: "Codec" = field(default=None, repr=False, compare=False)

    def __post_init__(self):
        """Normalize after initialization."""
        self.operations = tuple(self.operations)
        if isinstance(self.state, str):
            self.state = TransactionState(self.state)
        if self.codec is None:
            self.codec = _default_codec()

    # ------------------------------------------------------------------
    # Hashing
    # ------------------------------------------------------------------

    @property
    def network_id(self) -> bytes:
        return Network(self.network_passphrase).network_id

    def signature_base(self) -> bytes:
        """The exact bytes whose SHA-256 every signer signs."""
        return (
            self.network_id
            + ENVELOPE_TYPE_TX.to_bytes(4, "big")
            + self.codec.encode_transaction_body(self)
        )

    def hash(self) -> bytes:
        """Canonical, network-salted transaction hash."""
        return hashlib.sha256(self.signature_base()).digest()

    def hash_hex(self) -> str:
        return self.hash().hex()

    # ------------------------------------------------------------------
    # Signing
    # ------------------------------------------------------------------

    def sign(self, *signers: "Signer") -> "Transaction":
        """
        Append one signature per signer.

        Either every signer succeeds or no signature is added.

        Can be called repeatedly for multi-signature transactions. Does not
        touch the source account.

        Raises:
            MissingFootprintError: If the footprint is not finalized yet
            TransactionFrozenError: If submission was already attempted
            SigningError: If a signer fails
        """
        self._ensure_mutable()
        if self.footprint is None:
            raise MissingFootprintError(
                "Transaction must be prepared (or given a footprint) before signing"
            )

        tx_hash = self.hash()
        new_signatures = []
        for signer in signers:
            try:
                signature = signer.sign(tx_hash)
                hint = bytes(signer.public_key)[-4:]
            except SigningError:
                raise
            except Exception as e:
                raise SigningError(f"Signer failed: {e}") from e

            new_signatures.append(DecoratedSignature(hint=hint, signature=bytes(signature)))

        self.signatures.extend(new_signatures)
        if self.signatures:
            self.state = TransactionState.SIGNED

        logger.debug(
            "transaction_signed",
            tx_hash=tx_hash.hex()[:16] + "...",
            signatures=len(self.signatures),
        )
        return self

    def add_signature(self, signature: DecoratedSignature) -> "Transaction":
        """Attach a signature produced elsewhere (e.g. by a co-signer)."""
        self._ensure_mutable()
        if self.footprint is None:
            raise MissingFootprintError(
                "Transaction must be prepared (or given a footprint) before signing"
            )
        self.signatures.append(signature)
        self.state = TransactionState.SIGNED
        return self

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def with_footprint(self, footprint: Footprint, fee: int) -> "Transaction":
        """
        Return a prepared copy carrying ``footprint`` and ``fee``.

        Signatures are dropped because the hash changes.
        """
        self._ensure_mutable()
        return replace(
            self,
            footprint=footprint,
            fee=fee,
            signatures=[],
            state=TransactionState.PREPARED,
        )

    def mark_submitted(self) -> None:
        """Freeze the transaction once submission has been attempted."""
        self.state = TransactionState.SUBMITTED

    def _ensure_mutable(self) -> None:
        if self.state == TransactionState.SUBMITTED:
            raise TransactionFrozenError(
                "Transaction submission was attempted; rebuild instead of mutating"
            )

    @property
    def is_signed(self) -> bool:
        return len(self.signatures) > 0

    @property
    def is_prepared(self) -> bool:
        return self.footprint is not None

    @property
    def is_submitted(self) -> bool:
        return self.state == TransactionState.SUBMITTED

    @property
    def operation_count(self) -> int:
        return len(self.operations)

    # ------------------------------------------------------------------
    # Wire form
    # ------------------------------------------------------------------

    def to_envelope(self) -> bytes:
        """Encode the signed envelope."""
        return self.codec.encode_transaction(self)

    def to_envelope_base64(self) -> str:
        return base64.b64encode(self.to_envelope()).decode("ascii")

    @classmethod
    def from_envelope(
        cls,
        data: Union[bytes, str],
        network_passphrase: str,
        codec: Optional["Codec"] = None,
    ) -> "Transaction":
        """
        Decode an envelope produced by ``to_envelope``.

        Args:
            data: Raw envelope bytes or their base64 text
            network_passphrase: Passphrase the envelope was built for
            codec: Codec to decode with (defaults to XDR)
        """
        codec = codec or _default_codec()
        if isinstance(data, str):
            try:
                data = base64.b64decode(data, validate=True)
            except (binascii.Error, ValueError) as e:
                raise DecodeError(f"Envelope is not valid base64: {e}") from e
        return codec.decode_transaction(data, network_passphrase)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "hash": self.hash_hex(),
            "source": self.source,
            "sequence": str(self.sequence),
            "fee": self.fee,
            "time_bounds": {
                "min_time": self.time_bounds.min_time,
                "max_time": self.time_bounds.max_time,
            },
            "operations": [op.to_dict() for op in self.operations],
            "footprint": None if self.footprint is None else {
                "read_only": [k.hex() for k in self.footprint.read_only],
                "read_write": [k.hex() for k in self.footprint.read_write],
                "resource_fee": self.footprint.resource_fee,
            },
            "signatures": len(self.signatures),
            "state": self.state.value,
        }

    def __repr__(self) -> str:
        return (
            f"Transaction(source={self.source[:8]}..., sequence={self.sequence}, "
            f"ops={self.operation_count}, fee={self.fee}, state={self.state.value})"
        )
