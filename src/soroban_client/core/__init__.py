"""
Core ledger models.

Accounts with their sequence counters, opaque operations, networks, and
the transaction model that the builder produces.
"""

from soroban_client.core.account import Account, SharedAccount
from soroban_client.core.network import Network, Networks
from soroban_client.core.operation import Operation, OperationType
from soroban_client.core.transaction import (
    DecoratedSignature,
    Footprint,
    TimeBounds,
    Transaction,
    TransactionState,
)

__all__ = [
    "Account",
    "SharedAccount",
    "Network",
    "Networks",
    "Operation",
    "OperationType",
    "DecoratedSignature",
    "Footprint",
    "TimeBounds",
    "Transaction",
    "TransactionState",
]
