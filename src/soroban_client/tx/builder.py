"""
Transaction Builder - assembles operations into a transaction.

A builder checks out one Account for its whole lifetime and turns into
exactly one Transaction. build() is the only place a sequence number is
consumed.
"""

import time
import weakref
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Iterable, List, Optional, Tuple, Union

import structlog

from soroban_client.codec.interface import Codec
from soroban_client.core.account import MAX_SEQUENCE, Account
from soroban_client.core.network import Network
from soroban_client.core.operation import Operation
from soroban_client.core.transaction import (
    Footprint,
    TimeBounds,
    Transaction,
    TransactionState,
)
from soroban_client.errors import (
    BuilderConsumedError,
    EmptyTransactionError,
    InvalidFeeError,
    InvalidSequenceError,
    InvalidTimeboundsError,
    TooManyOperationsError,
)

if TYPE_CHECKING:
    from soroban_client.config import ClientConfig

logger = structlog.get_logger(__name__)

# Network policy constants
BASE_FEE = 100                 # stroops per operation
MAX_OPERATIONS = 100           # operations per transaction
MAX_FEE = 2 ** 32 - 1          # fees are unsigned 32-bit on the ledger
TIMEOUT_INFINITE = 0
DEFAULT_TIMEOUT = 300          # seconds


@dataclass
class BuilderOptions:
    """Defaults applied to every transaction a builder produces."""
    base_fee: int = BASE_FEE
    timeout: int = DEFAULT_TIMEOUT
    max_operations: int = MAX_OPERATIONS
    codec: Optional[Codec] = None

    @classmethod
    def from_config(cls, config: "ClientConfig") -> "BuilderOptions":
        """Build options from the client configuration."""
        return cls(
            base_fee=config.base_fee,
            timeout=config.transaction_timeout_seconds,
            max_operations=config.max_operations,
        )


def _validate_fee(amount: int) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidFeeError(f"Fee must be an integer, got {amount!r}")
    if amount <= 0 or amount > MAX_FEE:
        raise InvalidFeeError(f"Fee must be between 1 and {MAX_FEE}, got {amount}")
    return amount


def _to_unix(value: Union[int, datetime]) -> int:
    if isinstance(value, datetime):
        return int(value.timestamp())
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidTimeboundsError(f"Time bound must be an int or datetime, got {value!r}")
    return value


class TransactionBuilder:
    """
    Builds one transaction from one account.

    The builder holds the account exclusively from construction until
    build() or release(), or until the builder is garbage collected.
    Constructing a second builder for a held account raises
    AccountInUseError; callers sharing an account across tasks must
    serialize access (see SharedAccount).

    Example:
        with TransactionBuilder(account, Networks.TESTNET) as builder:
            tx = builder.fee(1000).add_operation(op).set_timeout(30).build()
    """

    def __init__(
        self,
        account: Account,
        network: Union[Network, str],
        options: Optional[BuilderOptions] = None,
    ):
        """
        Initialize the transaction builder.

        Args:
            account: Source account, checked out for the builder's lifetime
            network: Target network or its passphrase
            options: Fee, timeout and limit defaults

        Raises:
            AccountInUseError: If another builder holds the account
        """
        self.options = options or BuilderOptions()
        self.network = network if isinstance(network, Network) else Network(network)

        self._base_fee = _validate_fee(self.options.base_fee)
        self._total_fee: Optional[int] = None
        self._operations: List[Operation] = []
        self._time_bounds: Optional[TimeBounds] = None
        self._timeout_set = False
        self._footprint: Optional[Footprint] = None
        self._built = False
        self._released = False

        self._account = account
        # The account holds only the token, so an abandoned builder can be collected
        self._checkout_token = object()
        account._checkout(self._checkout_token)
        self._finalizer = weakref.finalize(self, account._release, self._checkout_token)

    # ------------------------------------------------------------------
    # Lifetime
    # ------------------------------------------------------------------

    def __enter__(self) -> "TransactionBuilder":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def release(self) -> None:
        """Give the account back. The builder cannot be used afterwards."""
        self._released = True
        self._finalizer()

    def _ensure_open(self) -> None:
        if self._built:
            raise BuilderConsumedError("TransactionBuilder already built a transaction")
        if self._released:
            raise BuilderConsumedError("TransactionBuilder was released")

    @property
    def account(self) -> Account:
        return self._account

    @property
    def operations(self) -> Tuple[Operation, ...]:
        return tuple(self._operations)

    @property
    def is_built(self) -> bool:
        return self._built

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def add_operation(self, op: Operation) -> "TransactionBuilder":
        """
        Append an operation.

        Raises:
            TooManyOperationsError: If the per-transaction limit is reached
        """
        self._ensure_open()
        if not isinstance(op, Operation):
            raise TypeError(f"Expected Operation, got {type(op).__name__}")

        if len(self._operations) >= self.options.max_operations:
            raise TooManyOperationsError(self.options.max_operations)

        self._operations.append(op)
        return self

    def add_operations(self, ops: Iterable[Operation]) -> "TransactionBuilder":
        """Append several operations; nothing is added if any would fail."""
        self._ensure_open()
        ops = list(ops)
        for op in ops:
            if not isinstance(op, Operation):
                raise TypeError(f"Expected Operation, got {type(op).__name__}")

        if len(self._operations) + len(ops) > self.options.max_operations:
            raise TooManyOperationsError(self.options.max_operations)

        self._operations.extend(ops)
        return self

    def fee(self, amount: int) -> "TransactionBuilder":
        """Set the base fee per operation, in stroops."""
        self._ensure_open()
        self._base_fee = _validate_fee(amount)
        return self

    def set_total_fee(self, amount: int) -> "TransactionBuilder":
        """Set the total fee, overriding base fee times operation count."""
        self._ensure_open()
        self._total_fee = _validate_fee(amount)
        return self

    def set_timeout(self, seconds: int) -> "TransactionBuilder":
        """
        Make the transaction valid for ``seconds`` from now (0 = forever).

        Raises:
            InvalidTimeboundsError: If negative or explicit bounds were set
        """
        self._ensure_open()
        if isinstance(seconds, bool) or not isinstance(seconds, int) or seconds < 0:
            raise InvalidTimeboundsError(f"Timeout must be a non-negative integer, got {seconds!r}")

        if self._time_bounds is not None and not self._timeout_set:
            raise InvalidTimeboundsError(
                "Time bounds were already set explicitly; set_timeout would overwrite them"
            )

        max_time = TIMEOUT_INFINITE if seconds == TIMEOUT_INFINITE else int(time.time()) + seconds
        self._time_bounds = TimeBounds(0, max_time)
        self._timeout_set = True
        return self

    def set_timebounds(
        self,
        min_time: Union[int, datetime],
        max_time: Union[int, datetime],
    ) -> "TransactionBuilder":
        """
        Set absolute validity bounds in unix seconds (max 0 = unbounded).

        Raises:
            InvalidTimeboundsError: If negative, inverted, or set_timeout was used
        """
        self._ensure_open()
        if self._timeout_set:
            raise InvalidTimeboundsError("set_timebounds cannot be combined with set_timeout")

        min_time = _to_unix(min_time)
        max_time = _to_unix(max_time)

        if min_time < 0 or max_time < 0:
            raise InvalidTimeboundsError("Time bounds cannot be negative")
        if max_time != 0 and min_time > max_time:
            raise InvalidTimeboundsError(
                f"min_time ({min_time}) cannot be greater than max_time ({max_time})"
            )

        self._time_bounds = TimeBounds(min_time, max_time)
        return self

    def add_footprint(self, footprint: Footprint) -> "TransactionBuilder":
        """Supply a precomputed footprint so the transaction skips simulation."""
        self._ensure_open()
        if not isinstance(footprint, Footprint):
            raise TypeError(f"Expected Footprint, got {type(footprint).__name__}")
        self._footprint = footprint
        return self

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    def _compute_fee(self) -> int:
        if self._total_fee is not None:
            fee = self._total_fee
        else:
            fee = self._base_fee * len(self._operations)

        if self._footprint is not None:
            fee += self._footprint.resource_fee

        if fee > MAX_FEE:
            raise InvalidFeeError(f"Total fee {fee} exceeds {MAX_FEE}")
        return fee

    def _resolve_time_bounds(self) -> TimeBounds:
        if self._time_bounds is not None:
            return self._time_bounds

        timeout = self.options.timeout
        if timeout == TIMEOUT_INFINITE:
            return TimeBounds(0, 0)
        return TimeBounds(0, int(time.time()) + timeout)

    def _assemble(self, sequence: int) -> Transaction:
        if not self._operations:
            raise EmptyTransactionError("Transaction must contain at least one operation")

        if sequence > MAX_SEQUENCE:
            raise InvalidSequenceError("Sequence number would overflow 64 bits")

        return Transaction(
            source=self._account.account_id,
            sequence=sequence,
            operations=tuple(self._operations),
            fee=self._compute_fee(),
            time_bounds=self._resolve_time_bounds(),
            network_passphrase=self.network.passphrase,
            footprint=self._footprint,
            state=(
                TransactionState.PREPARED if self._footprint is not None
                else TransactionState.BUILT
            ),
            codec=self.options.codec,
        )

    def build(self) -> Transaction:
        """
        Finalize the transaction and consume one sequence number.

        The account's sequence is advanced only when every check passed;
        a failed build leaves it untouched and the builder usable.

        Returns:
            Unsigned transaction carrying ``account.sequence() + 1``

        Raises:
            EmptyTransactionError: If no operation was added
            BuilderConsumedError: If the builder was already built or released
        """
        self._ensure_open()

        tx = self._assemble(self._account.sequence() + 1)
        self._account._increment_sequence()

        self._built = True
        self.release()

        logger.debug(
            "transaction_built",
            source=tx.source[:8] + "...",
            sequence=tx.sequence,
            operations=tx.operation_count,
            fee=tx.fee,
        )
        return tx

    def build_for_simulation(self) -> Transaction:
        """
        Build the same transaction without consuming the sequence number.

        The builder stays open, so the caller can simulate first and
        build() afterwards.
        """
        self._ensure_open()
        return self._assemble(self._account.sequence() + 1)
