"""
Transaction module.

Handles transaction construction and signing.
"""

from soroban_client.tx.builder import BASE_FEE, MAX_OPERATIONS, BuilderOptions, TransactionBuilder
from soroban_client.tx.signer import Keypair, Signer

__all__ = [
    "BASE_FEE",
    "MAX_OPERATIONS",
    "BuilderOptions",
    "TransactionBuilder",
    "Keypair",
    "Signer",
]
