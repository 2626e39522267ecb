"""
Caller-side polling for transaction outcomes.

ServerClient never waits on its own; this helper is the opt-in loop.
"""

import asyncio
from typing import Optional

import structlog

from soroban_client.errors import WaitTransactionTimeoutError
from soroban_client.rpc.server import ServerClient
from soroban_client.rpc.types import GetTransactionResponse

logger = structlog.get_logger(__name__)

DEFAULT_MAX_WAIT = 30.0
INITIAL_DELAY = 1.0
MAX_DELAY = 60.0


async def wait_transaction(
    server: ServerClient,
    tx_hash: str,
    max_wait: float = DEFAULT_MAX_WAIT,
    initial_delay: float = INITIAL_DELAY,
    max_delay: float = MAX_DELAY,
) -> GetTransactionResponse:
    """
    Poll get_transaction_status until the transaction is SUCCESS or FAILED.

    The delay between polls doubles from ``initial_delay`` up to
    ``max_delay``. Transport errors are not retried.

    Args:
        server: Client to poll with
        tx_hash: Hex hash returned by send_transaction
        max_wait: Seconds to keep polling before giving up

    Returns:
        The terminal response

    Raises:
        WaitTransactionTimeoutError: If still NOT_FOUND after ``max_wait``
    """
    loop = asyncio.get_running_loop()
    started = loop.time()
    delay = initial_delay
    attempts = 0
    last: Optional[GetTransactionResponse] = None

    while True:
        attempts += 1
        last = await server.get_transaction_status(tx_hash)
        if last.is_terminal:
            logger.info(
                "transaction_completed",
                tx_hash=tx_hash[:16] + "...",
                status=last.status.value,
                attempts=attempts,
            )
            return last

        elapsed = loop.time() - started
        if elapsed >= max_wait:
            logger.warning("transaction_wait_timeout", tx_hash=tx_hash[:16] + "...", elapsed=elapsed)
            raise WaitTransactionTimeoutError(max_wait, elapsed, last)

        await asyncio.sleep(min(delay, max_wait - elapsed))
        delay = min(delay * 2, max_delay)
