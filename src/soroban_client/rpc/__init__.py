"""
RPC module.

Async client for the Soroban RPC protocol and its response types.
"""

from soroban_client.rpc.polling import wait_transaction
from soroban_client.rpc.server import ServerClient, ServerOptions, validate_rpc_url
from soroban_client.rpc.types import (
    GetHealthResponse,
    GetLatestLedgerResponse,
    GetLedgerEntriesResponse,
    GetNetworkResponse,
    GetTransactionResponse,
    LedgerEntryResult,
    RestorePreamble,
    SendTransactionResponse,
    SendTransactionStatus,
    SimulateHostFunctionResult,
    SimulateTransactionResponse,
    SimulationCost,
    TransactionStatus,
)

__all__ = [
    "ServerClient",
    "ServerOptions",
    "validate_rpc_url",
    "wait_transaction",
    "GetHealthResponse",
    "GetLatestLedgerResponse",
    "GetLedgerEntriesResponse",
    "GetNetworkResponse",
    "GetTransactionResponse",
    "LedgerEntryResult",
    "RestorePreamble",
    "SendTransactionResponse",
    "SendTransactionStatus",
    "SimulateHostFunctionResult",
    "SimulateTransactionResponse",
    "SimulationCost",
    "TransactionStatus",
]
