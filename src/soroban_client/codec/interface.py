"""
Abstract interface for the ledger wire codec.

Defines the encode/decode contract the client calls into. Implementations
are pure functions of their input and report failures as EncodeError or
DecodeError; the client propagates those without interpreting them.
"""

import base64
import binascii
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional

from soroban_client.errors import DecodeError

if TYPE_CHECKING:
    from soroban_client.core.operation import Operation
    from soroban_client.core.transaction import Footprint, Transaction


class Durability(str, Enum):
    """Storage durability of a contract data entry."""
    TEMPORARY = "temporary"
    PERSISTENT = "persistent"


@dataclass
class AccountEntry:
    """Account ledger entry as far as this client cares."""
    account_id: str
    sequence: int


@dataclass
class TransactionResult:
    """Decoded transaction result."""
    fee_charged: int
    code: str                       # e.g. "txSUCCESS", "txBAD_SEQ"

    @property
    def is_success(self) -> bool:
        return self.code == "txSUCCESS"


class Codec(ABC):
    """
    Abstract wire codec.

    The default implementation is XdrCodec, which speaks the ledger's own
    XDR encoding. CborCodec is a self-contained alternative for tooling
    that never talks to a real server.
    """

    @abstractmethod
    def encode_transaction(self, tx: "Transaction") -> bytes:
        """
        Encode the full envelope (body plus signatures).

        Raises:
            EncodeError: If the transaction cannot be encoded
        """
        pass

    @abstractmethod
    def encode_transaction_body(self, tx: "Transaction") -> bytes:
        """Encode only the signed part of the transaction."""
        pass

    @abstractmethod
    def decode_transaction(self, data: bytes, network_passphrase: str) -> "Transaction":
        """
        Decode an envelope.

        Raises:
            DecodeError: If the bytes are not a valid envelope
        """
        pass

    @abstractmethod
    def encode_operation(self, op: "Operation") -> bytes:
        pass

    @abstractmethod
    def decode_operation(self, data: bytes) -> "Operation":
        pass

    @abstractmethod
    def encode_footprint(self, footprint: "Footprint") -> bytes:
        pass

    @abstractmethod
    def decode_footprint(self, data: bytes) -> "Footprint":
        """Decode the transaction data returned by simulation."""
        pass

    @abstractmethod
    def encode_account_key(self, account_id: str) -> bytes:
        """Encode the ledger key of an account entry."""
        pass

    @abstractmethod
    def encode_contract_data_key(
        self,
        contract_id: str,
        key: bytes,
        durability: Durability,
    ) -> bytes:
        """
        Encode the ledger key of a contract data entry.

        Args:
            contract_id: ``C...`` contract address
            key: Encoded storage key (an ``SCVal`` for XdrCodec)
            durability: Temporary or persistent storage
        """
        pass

    @abstractmethod
    def decode_account_entry(self, data: bytes) -> Optional[AccountEntry]:
        """
        Decode a ledger entry.

        Returns:
            The account entry, or None if the entry is not an account
        """
        pass

    @abstractmethod
    def decode_transaction_result(self, data: bytes) -> TransactionResult:
        pass

    # ------------------------------------------------------------------
    # base64 framing used by the JSON-RPC protocol
    # ------------------------------------------------------------------

    @staticmethod
    def to_base64(data: bytes) -> str:
        return base64.b64encode(data).decode("ascii")

    @staticmethod
    def from_base64(text: str) -> bytes:
        """
        Decode base64 text from a server response.

        Raises:
            DecodeError: If the text is not valid base64
        """
        if not isinstance(text, str):
            raise DecodeError(f"Expected base64 text, got {type(text).__name__}")
        try:
            return base64.b64decode(text, validate=True)
        except (binascii.Error, ValueError) as e:
            raise DecodeError(f"Invalid base64: {e}") from e
