"""
Wire codec layer.

The abstract Codec contract, the XDR implementation used by default, and a
canonical CBOR alternative for offline tooling.
"""

from soroban_client.codec.interface import AccountEntry, Codec, Durability, TransactionResult
from soroban_client.codec.xdr import XdrCodec
from soroban_client.codec.cbor import CborCodec

__all__ = [
    "AccountEntry",
    "Codec",
    "Durability",
    "TransactionResult",
    "XdrCodec",
    "CborCodec",
]
