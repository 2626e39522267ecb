"""
Transaction signers.

A signer is any capability that can sign a 32-byte transaction hash and
report its public key. Keypair is the Ed25519 implementation, backed by
stellar_sdk's keypair.
"""

from abc import ABC, abstractmethod
from pathlib import Path

import stellar_sdk
import structlog
from stellar_sdk.exceptions import BadSignatureError

from soroban_client.errors import DecodeError, InvalidAddressError, SigningError

logger = structlog.get_logger(__name__)


class Signer(ABC):
    """Abstract signing capability."""

    @property
    @abstractmethod
    def public_key(self) -> bytes:
        """Raw 32-byte public key."""
        pass

    @abstractmethod
    def sign(self, data: bytes) -> bytes:
        """
        Sign ``data``.

        Raises:
            SigningError: If the signer cannot produce a signature
        """
        pass


class Keypair(Signer):
    """
    Ed25519 keypair.

    A keypair built from a public key alone can verify but not sign.

    Security note: In production, consider using a HSM or
    secure key management service behind the Signer interface.
    """

    def __init__(self, keypair: stellar_sdk.Keypair):
        self._keypair = keypair

    @classmethod
    def random(cls) -> "Keypair":
        """Generate a new random keypair. The key is not persisted."""
        keypair = cls(stellar_sdk.Keypair.random())
        logger.debug("keypair_generated", address=keypair.address[:8] + "...")
        return keypair

    @classmethod
    def from_raw_seed(cls, seed: bytes) -> "Keypair":
        """Create a keypair from a 32-byte Ed25519 seed."""
        if len(seed) != 32:
            raise ValueError(f"Ed25519 seed must be 32 bytes, got {len(seed)}")
        return cls(stellar_sdk.Keypair.from_raw_ed25519_seed(bytes(seed)))

    @classmethod
    def from_secret(cls, secret: str) -> "Keypair":
        """
        Create a keypair from an ``S...`` secret seed.

        Raises:
            DecodeError: If the secret is not a valid seed StrKey
        """
        if not isinstance(secret, str):
            raise DecodeError(f"Secret seed must be a string, got {type(secret).__name__}")
        try:
            return cls(stellar_sdk.Keypair.from_secret(secret))
        except ValueError as e:
            raise DecodeError("Invalid secret seed") from e

    @classmethod
    def from_public_key(cls, address: str) -> "Keypair":
        """
        Create a verify-only keypair from a ``G...`` address.

        Raises:
            InvalidAddressError: If the address is not valid
        """
        if not isinstance(address, str):
            raise InvalidAddressError(address)
        try:
            return cls(stellar_sdk.Keypair.from_public_key(address))
        except ValueError as e:
            raise InvalidAddressError(address) from e

    @classmethod
    def from_file(cls, key_path: str) -> "Keypair":
        """
        Load a secret seed from a file.

        Args:
            key_path: Path to a file containing an ``S...`` secret
        """
        path = Path(key_path)
        if not path.exists():
            raise FileNotFoundError(f"Secret key file not found: {key_path}")

        keypair = cls.from_secret(path.read_text(encoding="utf-8").strip())
        logger.info("signing_key_loaded", path=key_path, address=keypair.address[:8] + "...")
        return keypair

    @property
    def public_key(self) -> bytes:
        return self._keypair.raw_public_key()

    @property
    def address(self) -> str:
        """``G...`` account id of this keypair."""
        return self._keypair.public_key

    @property
    def secret(self) -> str:
        """``S...`` secret seed of this keypair."""
        if not self.can_sign:
            raise SigningError("Keypair has no secret key")
        return self._keypair.secret

    @property
    def can_sign(self) -> bool:
        return self._keypair.can_sign()

    def sign(self, data: bytes) -> bytes:
        if not self.can_sign:
            raise SigningError("Keypair has no secret key; cannot sign")
        return self._keypair.sign(data)

    def verify(self, data: bytes, signature: bytes) -> bool:
        """Check an Ed25519 signature over ``data``."""
        try:
            self._keypair.verify(data, signature)
        except (BadSignatureError, ValueError):
            return False
        return True

    def __repr__(self) -> str:
        return f"Keypair(address={self.address[:8]}..., can_sign={self.can_sign})"
