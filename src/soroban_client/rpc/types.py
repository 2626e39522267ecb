"""
Typed responses of the Soroban RPC protocol.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from soroban_client.codec.interface import TransactionResult
from soroban_client.core.transaction import Footprint
from soroban_client.errors import SimulationError

# Result code the ledger returns when the sequence number is not the next one
BAD_SEQUENCE_CODE = "txBAD_SEQ"


class SendTransactionStatus(str, Enum):
    """Immediate outcome of sendTransaction."""
    PENDING = "PENDING"                   # Accepted, not yet in a ledger
    DUPLICATE = "DUPLICATE"               # Already known to the server
    TRY_AGAIN_LATER = "TRY_AGAIN_LATER"   # Server is congested; not accepted
    ERROR = "ERROR"                       # Rejected; see error_result


class TransactionStatus(str, Enum):
    """Status reported by getTransaction."""
    SUCCESS = "SUCCESS"
    NOT_FOUND = "NOT_FOUND"               # Still pending, or never seen
    FAILED = "FAILED"


@dataclass
class GetHealthResponse:
    status: str
    latest_ledger: Optional[int] = None
    oldest_ledger: Optional[int] = None
    ledger_retention_window: Optional[int] = None

    @property
    def is_healthy(self) -> bool:
        return self.status == "healthy"


@dataclass
class GetNetworkResponse:
    passphrase: str
    protocol_version: Optional[int] = None
    friendbot_url: Optional[str] = None


@dataclass
class GetLatestLedgerResponse:
    id: str
    sequence: int
    protocol_version: Optional[int] = None


@dataclass
class LedgerEntryResult:
    key: str
    xdr: str
    last_modified_ledger_seq: Optional[int] = None
    live_until_ledger_seq: Optional[int] = None


@dataclass
class GetLedgerEntriesResponse:
    entries: List[LedgerEntryResult]
    latest_ledger: int


@dataclass
class SimulateHostFunctionResult:
    """Return value and authorization entries of a simulated host function."""
    auth: List[str] = field(default_factory=list)
    return_value_xdr: Optional[str] = None


@dataclass
class SimulationCost:
    cpu_insns: int
    mem_bytes: int


@dataclass
class RestorePreamble:
    """Data needed to restore archived entries before the real transaction."""
    min_resource_fee: int
    transaction_data: Footprint


@dataclass
class SimulateTransactionResponse:
    """
    Result of simulateTransaction.

    Exactly one of three shapes: an error (``error`` set), a restore
    requirement (``restore_preamble`` set), or a success carrying the
    footprint and minimum resource fee.
    """

    latest_ledger: int
    footprint: Optional[Footprint] = None
    min_resource_fee: int = 0
    results: List[SimulateHostFunctionResult] = field(default_factory=list)
    events: List[str] = field(default_factory=list)
    cost: Optional[SimulationCost] = None
    restore_preamble: Optional[RestorePreamble] = None
    error: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @property
    def requires_restore(self) -> bool:
        return self.error is None and self.restore_preamble is not None

    @property
    def is_success(self) -> bool:
        return self.error is None and self.restore_preamble is None

    @property
    def result(self) -> Optional[SimulateHostFunctionResult]:
        """The host function result, if the transaction invokes one."""
        return self.results[0] if self.results else None

    def raise_for_error(self) -> None:
        """Raise SimulationError if the simulation reported a failure."""
        if self.error is not None:
            raise SimulationError(self.error, self.events)


@dataclass
class SendTransactionResponse:
    """
    Result of sendTransaction.

    Acceptance is not inclusion: poll get_transaction_status with ``hash``.
    """

    status: SendTransactionStatus
    hash: str
    latest_ledger: int
    latest_ledger_close_time: int
    error_result_xdr: Optional[str] = None
    error_result: Optional[TransactionResult] = None
    diagnostic_events: List[str] = field(default_factory=list)

    @property
    def is_accepted(self) -> bool:
        return self.status in (SendTransactionStatus.PENDING, SendTransactionStatus.DUPLICATE)

    @property
    def is_bad_sequence(self) -> bool:
        """
        Whether the ledger rejected the sequence number.

        Subsequent transactions from the account will stall until the
        account is re-fetched and the gap resolved.
        """
        return self.error_result is not None and self.error_result.code == BAD_SEQUENCE_CODE


@dataclass
class GetTransactionResponse:
    """Result of getTransaction."""

    status: TransactionStatus
    latest_ledger: int
    latest_ledger_close_time: int
    oldest_ledger: int
    oldest_ledger_close_time: int
    ledger: Optional[int] = None
    created_at: Optional[int] = None
    application_order: Optional[int] = None
    fee_bump: Optional[bool] = None
    envelope_xdr: Optional[str] = None
    result_xdr: Optional[str] = None
    result_meta_xdr: Optional[str] = None
    return_value_xdr: Optional[str] = None
    result: Optional[TransactionResult] = None

    @property
    def is_terminal(self) -> bool:
        return self.status != TransactionStatus.NOT_FOUND

    @property
    def is_success(self) -> bool:
        return self.status == TransactionStatus.SUCCESS

    @property
    def failure_reason(self) -> Optional[str]:
        """Result code of a failed transaction, if the server sent one."""
        if self.status != TransactionStatus.FAILED:
            return None
        return self.result.code if self.result else None
