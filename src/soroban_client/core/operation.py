"""
Operation model.

An operation is an opaque, pre-encoded action payload. This package never
interprets the body; it only orders operations and carries their bytes.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from soroban_client.core.address import is_account_id
from soroban_client.errors import InvalidAddressError, ValidationError


class OperationType(str, Enum):
    """Operation type discriminant, named after the ledger's operation types."""
    CREATE_ACCOUNT = "create_account"
    PAYMENT = "payment"
    PATH_PAYMENT_STRICT_RECEIVE = "path_payment_strict_receive"
    MANAGE_SELL_OFFER = "manage_sell_offer"
    CREATE_PASSIVE_SELL_OFFER = "create_passive_sell_offer"
    SET_OPTIONS = "set_options"
    CHANGE_TRUST = "change_trust"
    ALLOW_TRUST = "allow_trust"
    ACCOUNT_MERGE = "account_merge"
    INFLATION = "inflation"
    MANAGE_DATA = "manage_data"
    BUMP_SEQUENCE = "bump_sequence"
    MANAGE_BUY_OFFER = "manage_buy_offer"
    PATH_PAYMENT_STRICT_SEND = "path_payment_strict_send"
    CREATE_CLAIMABLE_BALANCE = "create_claimable_balance"
    CLAIM_CLAIMABLE_BALANCE = "claim_claimable_balance"
    BEGIN_SPONSORING_FUTURE_RESERVES = "begin_sponsoring_future_reserves"
    END_SPONSORING_FUTURE_RESERVES = "end_sponsoring_future_reserves"
    REVOKE_SPONSORSHIP = "revoke_sponsorship"
    CLAWBACK = "clawback"
    CLAWBACK_CLAIMABLE_BALANCE = "clawback_claimable_balance"
    SET_TRUST_LINE_FLAGS = "set_trust_line_flags"
    LIQUIDITY_POOL_DEPOSIT = "liquidity_pool_deposit"
    LIQUIDITY_POOL_WITHDRAW = "liquidity_pool_withdraw"
    INVOKE_HOST_FUNCTION = "invoke_host_function"
    EXTEND_FOOTPRINT_TTL = "extend_footprint_ttl"
    RESTORE_FOOTPRINT = "restore_footprint"

    @property
    def is_soroban(self) -> bool:
        """Whether this operation needs a Soroban footprint to execute."""
        return self in (
            OperationType.INVOKE_HOST_FUNCTION,
            OperationType.EXTEND_FOOTPRINT_TTL,
            OperationType.RESTORE_FOOTPRINT,
        )


@dataclass(frozen=True)
class Operation:
    """
    A single ledger operation.

    Attributes:
        type: Operation type discriminant
        body: Encoded operation body, produced by the caller's codec
            (for XdrCodec, the XDR of the ``OperationBody`` union)
        source: Optional per-operation source account (defaults to the
            transaction source on the ledger)
    """

    type: OperationType
    body: bytes
    source: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.type, OperationType):
            try:
                object.__setattr__(self, "type", OperationType(self.type))
            except ValueError as e:
                raise ValidationError(f"Unknown operation type: {self.type!r}") from e

        if not isinstance(self.body, (bytes, bytearray)):
            raise TypeError("Operation body must be bytes")
        object.__setattr__(self, "body", bytes(self.body))

        if self.source is not None and not is_account_id(self.source):
            raise InvalidAddressError(self.source)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "type": self.type.value,
            "body": self.body.hex(),
            "source": self.source,
        }
