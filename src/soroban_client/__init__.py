"""
Soroban Client

An async Python client for Stellar Soroban RPC. Builds transactions from
accounts with exactly-once sequence consumption, signs them, and speaks the
simulate/send/status protocol.
"""

__version__ = "0.1.0"

from soroban_client.codec import Durability, XdrCodec
from soroban_client.core.account import Account, SharedAccount
from soroban_client.core.network import Network, Networks
from soroban_client.core.operation import Operation, OperationType
from soroban_client.core.transaction import Footprint, TimeBounds, Transaction, TransactionState
from soroban_client.tx.builder import BuilderOptions, TransactionBuilder
from soroban_client.tx.signer import Keypair, Signer
from soroban_client.rpc.server import ServerClient, ServerOptions
from soroban_client.rpc.polling import wait_transaction

__all__ = [
    "Durability",
    "XdrCodec",
    "Account",
    "SharedAccount",
    "Network",
    "Networks",
    "Operation",
    "OperationType",
    "Footprint",
    "TimeBounds",
    "Transaction",
    "TransactionState",
    "BuilderOptions",
    "TransactionBuilder",
    "Keypair",
    "Signer",
    "ServerClient",
    "ServerOptions",
    "wait_transaction",
]
