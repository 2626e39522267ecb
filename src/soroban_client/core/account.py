"""
Account model.

An account pairs an immutable id with the sequence counter the ledger uses
to order its transactions. Only TransactionBuilder advances the counter,
and only one builder may hold an account at a time.
"""

import asyncio
import threading
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Union

from soroban_client.core.address import is_account_id
from soroban_client.errors import (
    AccountInUseError,
    InvalidAddressError,
    InvalidSequenceError,
)

MIN_SEQUENCE = -(2 ** 63)
MAX_SEQUENCE = 2 ** 63 - 1


def _parse_sequence(sequence: Union[int, str]) -> int:
    if isinstance(sequence, bool):
        raise InvalidSequenceError(f"Invalid sequence number: {sequence!r}")

    if isinstance(sequence, str):
        try:
            sequence = int(sequence.strip(), 10)
        except ValueError as e:
            raise InvalidSequenceError(f"Invalid sequence number: {sequence!r}") from e

    if not isinstance(sequence, int):
        raise InvalidSequenceError(f"Invalid sequence number: {sequence!r}")

    if not MIN_SEQUENCE <= sequence <= MAX_SEQUENCE:
        raise InvalidSequenceError(f"Sequence number out of 64-bit range: {sequence}")

    return sequence


class Account:
    """
    A ledger account as seen by this client.

    The server is the source of truth: after a rejected or lost transaction
    leaves a gap, re-fetch the account with ``ServerClient.get_account``
    instead of adjusting the local counter.
    """

    def __init__(self, account_id: str, sequence: Union[int, str]):
        """
        Initialize the account.

        Args:
            account_id: ``G...`` StrKey of the account
            sequence: Current ledger sequence, as an int or decimal string

        Raises:
            InvalidAddressError: If the id is not a valid account StrKey
            InvalidSequenceError: If the sequence is malformed
        """
        if not is_account_id(account_id):
            raise InvalidAddressError(account_id)

        self._account_id = account_id
        self._sequence = _parse_sequence(sequence)

        # Held by at most one TransactionBuilder
        self._checkout_lock = threading.Lock()
        self._holder: Optional[object] = None

    @property
    def account_id(self) -> str:
        return self._account_id

    def sequence(self) -> int:
        """Current sequence number. Never mutates."""
        return self._sequence

    @property
    def sequence_number(self) -> str:
        """Current sequence as the decimal string used on the wire."""
        return str(self._sequence)

    @property
    def is_checked_out(self) -> bool:
        """Whether a builder currently holds this account."""
        return self._holder is not None

    def _increment_sequence(self) -> int:
        """
        Advance the sequence by one and return the new value.

        Called exclusively by TransactionBuilder.build().
        """
        if self._sequence >= MAX_SEQUENCE:
            raise InvalidSequenceError("Sequence number would overflow 64 bits")
        self._sequence += 1
        return self._sequence

    def _checkout(self, holder: object) -> None:
        if not self._checkout_lock.acquire(blocking=False):
            raise AccountInUseError(self._account_id)
        self._holder = holder

    def _release(self, holder: object) -> None:
        if self._holder is holder:
            self._holder = None
            self._checkout_lock.release()

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "account_id": self._account_id,
            "sequence": self.sequence_number,
        }

    def __repr__(self) -> str:
        return f"Account(id={self._account_id[:8]}..., sequence={self._sequence})"


class SharedAccount:
    """
    Caller-owned guard for building from one account across tasks.

    Example:
        shared = SharedAccount(await server.get_account(address))

        async with shared.lease() as account:
            tx = TransactionBuilder(account, Networks.TESTNET).add_operation(op).build()
    """

    def __init__(self, account: Account):
        self._account = account
        self._lock = asyncio.Lock()
        self._lease_owner: Optional["asyncio.Task"] = None

    @property
    def account_id(self) -> str:
        return self._account.account_id

    @property
    def locked(self) -> bool:
        return self._lock.locked()

    def _held_by_current_task(self) -> bool:
        return self._lease_owner is not None and self._lease_owner is asyncio.current_task()

    @asynccontextmanager
    async def lease(self) -> AsyncIterator[Account]:
        """
        Hold the account exclusively for the duration of the block.

        Raises:
            AccountInUseError: If the current task already holds the lease
        """
        if self._held_by_current_task():
            raise AccountInUseError(self._account.account_id)

        async with self._lock:
            self._lease_owner = asyncio.current_task()
            try:
                yield self._account
            finally:
                self._lease_owner = None

    async def replace(self, account: Account) -> Account:
        """
        Swap in a freshly fetched snapshot of the same account.

        Use after a sequence gap, once the server state is known. Inside a
        lease the swap happens immediately and later leases see the new
        snapshot; the Account yielded by the current lease is not updated,
        so keep building from the returned one.

        Returns:
            The account now guarded
        """
        if account.account_id != self._account.account_id:
            raise InvalidAddressError(account.account_id)

        if self._held_by_current_task():
            self._account = account
            return account

        async with self._lock:
            self._account = account
        return account
