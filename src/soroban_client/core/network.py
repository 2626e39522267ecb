"""
Network passphrases.

The passphrase salts every transaction hash, so a transaction signed for
one network can never be replayed on another.
"""

import hashlib
from dataclasses import dataclass


@dataclass(frozen=True)
class Network:
    """A ledger network identified by its passphrase."""
    passphrase: str

    def __post_init__(self):
        if not self.passphrase:
            raise ValueError("Network passphrase cannot be empty")

    @property
    def network_id(self) -> bytes:
        """SHA-256 of the passphrase."""
        return hashlib.sha256(self.passphrase.encode("utf-8")).digest()

    def __str__(self) -> str:
        return self.passphrase


class Networks:
    """Well-known Stellar networks."""
    PUBLIC = Network("Public Global Stellar Network ; September 2015")
    TESTNET = Network("Test SDF Network ; September 2015")
    FUTURENET = Network("Test SDF Future Network ; October 2022")
    STANDALONE = Network("Standalone Network ; February 2017")
