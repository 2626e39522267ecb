"""
Error taxonomy for the Soroban client.

Validation errors are local and never worth retrying. Transport errors are
safe to retry because nothing changed on either side. Everything else
carries whatever diagnostic the server gave us.
"""

from enum import Enum
from typing import Any, List, Optional


class SorobanClientError(Exception):
    """Base class for every error raised by this package."""
    pass


# ============================================================================
# Local validation
# ============================================================================

class ValidationError(SorobanClientError):
    """Raised for malformed input detected before any network call."""
    pass


class InvalidAddressError(ValidationError):
    """Raised when an account id is not a well-formed StrKey."""

    def __init__(self, address: str):
        super().__init__(f"Invalid account address: {address!r}")
        self.address = address


class InvalidSequenceError(ValidationError):
    """Raised when a sequence number is malformed or would overflow."""
    pass


class EmptyTransactionError(ValidationError):
    """Raised when building a transaction without operations."""
    pass


class TooManyOperationsError(ValidationError):
    """Raised when a transaction would exceed the per-transaction limit."""

    def __init__(self, limit: int):
        super().__init__(f"Transaction cannot hold more than {limit} operations")
        self.limit = limit


class InvalidTimeboundsError(ValidationError):
    """Raised for negative, inverted or conflicting time bounds."""
    pass


class InvalidFeeError(ValidationError):
    """Raised when a fee is not a positive 32-bit amount."""
    pass


class AccountInUseError(ValidationError):
    """Raised when a second builder tries to check out a held account."""

    def __init__(self, account_id: str):
        super().__init__(
            f"Account {account_id} is held by another TransactionBuilder; "
            "serialize access before building"
        )
        self.account_id = account_id


class NotSignedError(ValidationError):
    """Raised when submitting a transaction that carries no signature."""
    pass


class MissingFootprintError(ValidationError):
    """Raised when a transaction has no finalized footprint."""
    pass


class TransactionFrozenError(ValidationError):
    """Raised when mutating a transaction whose submission was attempted."""
    pass


class InvalidRpcUrlReason(str, Enum):
    """Why an RPC URL was refused."""
    NOT_HTTP_SCHEME = "The RPC url scheme should be http or https"
    UNSECURE_HTTP_NOT_ALLOWED = "Http scheme requires the option allow_http=True"
    INVALID_URI = "Invalid url"


class InvalidRpcUrlError(ValidationError):
    """Raised when the RPC endpoint URL is rejected."""

    def __init__(self, reason: InvalidRpcUrlReason, url: str = ""):
        super().__init__(f"{reason.value}: {url!r}")
        self.reason = reason
        self.url = url


class BuilderConsumedError(SorobanClientError, RuntimeError):
    """Raised when a TransactionBuilder is used after build()."""
    pass


# ============================================================================
# Codec and signing
# ============================================================================

class CodecError(SorobanClientError):
    """Base class for wire encoding failures."""
    pass


class EncodeError(CodecError):
    """Raised when a value cannot be encoded."""
    pass


class DecodeError(CodecError):
    """Raised when bytes cannot be decoded."""
    pass


class SigningError(SorobanClientError):
    """Raised when the signer capability fails."""
    pass


# ============================================================================
# Network and server
# ============================================================================

class TransportError(SorobanClientError):
    """Raised on connectivity failures, timeouts or bad HTTP status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class SubmissionAmbiguousError(TransportError):
    """
    Raised when sendTransaction may or may not have reached the server.

    The transaction can still land. Poll get_transaction_status with
    ``tx_hash`` before deciding to rebuild with a new sequence number.
    """

    def __init__(self, message: str, tx_hash: str):
        super().__init__(message)
        self.tx_hash = tx_hash


class RpcError(SorobanClientError):
    """Raised for JSON-RPC error objects and malformed responses."""

    def __init__(self, message: str, code: Optional[int] = None, data: Any = None):
        super().__init__(f"RPC error {code}: {message}" if code is not None else message)
        self.code = code
        self.rpc_message = message
        self.data = data


class AccountNotFoundError(SorobanClientError):
    """Raised when an address has no ledger entry."""

    def __init__(self, address: str):
        super().__init__(f"Account not found: {address}")
        self.address = address


class ContractDataNotFoundError(SorobanClientError):
    """Raised when a contract has no data entry under the requested key."""

    def __init__(self, contract_id: str, key: bytes, durability: str):
        super().__init__(
            f"Contract data not found. Contract: {contract_id}, "
            f"Key: {key.hex()}, Durability: {durability}"
        )
        self.contract_id = contract_id
        self.key = key
        self.durability = durability


class NoFriendbotError(SorobanClientError):
    """Raised when the target network has no friendbot."""
    pass


class SimulationError(SorobanClientError):
    """Raised when simulation reports that the transaction would fail."""

    def __init__(self, message: str, events: Optional[List[str]] = None):
        super().__init__(f"Simulation failed: {message}")
        self.error = message
        self.events = events or []


class RestorationRequiredError(SorobanClientError):
    """Raised when archived ledger entries must be restored first."""

    def __init__(self, min_resource_fee: int, transaction_data: Any):
        super().__init__(
            "Archived ledger entries must be restored before this transaction can run"
        )
        self.min_resource_fee = min_resource_fee
        self.transaction_data = transaction_data


class WaitTransactionTimeoutError(SorobanClientError):
    """Raised when polling gives up before the transaction is terminal."""

    def __init__(self, max_wait: float, elapsed: float, last_response: Any = None):
        super().__init__(
            f"Timeout of {max_wait}s reached after {elapsed:.1f}s "
            "while waiting for a transaction to complete"
        )
        self.max_wait = max_wait
        self.elapsed = elapsed
        self.last_response = last_response
