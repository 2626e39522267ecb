"""
Address checks for account ids (``G...``) and contract ids (``C...``).

StrKey handling itself is stellar_sdk's; these helpers only make it safe to
call on arbitrary caller input.
"""

from typing import Any

from stellar_sdk import StrKey


def is_account_id(value: Any) -> bool:
    """Check whether ``value`` is a valid ``G...`` account id."""
    if not isinstance(value, str):
        return False
    try:
        StrKey.decode_ed25519_public_key(value)
    except ValueError:
        return False
    return True


def is_contract_id(value: Any) -> bool:
    """Check whether ``value`` is a valid ``C...`` contract id."""
    if not isinstance(value, str):
        return False
    try:
        StrKey.decode_contract(value)
    except ValueError:
        return False
    return True
