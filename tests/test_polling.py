"""
Test suite for transaction polling.

Tests the backoff schedule, terminal detection and the timeout.
"""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from soroban_client.errors import TransportError, WaitTransactionTimeoutError
from soroban_client.rpc.polling import wait_transaction
from soroban_client.rpc.types import GetTransactionResponse, TransactionStatus

TX_HASH = "ef" * 32


def make_status(status: TransactionStatus) -> GetTransactionResponse:
    return GetTransactionResponse(
        status=status,
        latest_ledger=1000,
        latest_ledger_close_time=1700000000,
        oldest_ledger=1,
        oldest_ledger_close_time=1690000000,
    )


class TestWaitTransaction:
    """Tests for wait_transaction."""

    @pytest.mark.asyncio
    async def test_returns_terminal_status(self, server, signed_tx):
        """Test that an included transaction returns on the first poll."""
        sent = await server.send_transaction(signed_tx)

        response = await wait_transaction(server, sent.hash)

        assert response.status == TransactionStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_backoff_doubles(self, server):
        """Test that the delay doubles between polls."""
        server.get_transaction_status = AsyncMock(side_effect=[
            make_status(TransactionStatus.NOT_FOUND),
            make_status(TransactionStatus.NOT_FOUND),
            make_status(TransactionStatus.NOT_FOUND),
            make_status(TransactionStatus.FAILED),
        ])

        with patch("soroban_client.rpc.polling.asyncio.sleep", new=AsyncMock()) as sleep:
            response = await wait_transaction(server, TX_HASH, max_wait=600)

        assert response.status == TransactionStatus.FAILED
        assert [call.args[0] for call in sleep.await_args_list] == [1.0, 2.0, 4.0]
        assert server.get_transaction_status.await_count == 4

    @pytest.mark.asyncio
    async def test_backoff_capped(self, server):
        """Test that the delay never exceeds max_delay."""
        server.get_transaction_status = AsyncMock(side_effect=[
            make_status(TransactionStatus.NOT_FOUND),
            make_status(TransactionStatus.NOT_FOUND),
            make_status(TransactionStatus.NOT_FOUND),
            make_status(TransactionStatus.NOT_FOUND),
            make_status(TransactionStatus.SUCCESS),
        ])

        with patch("soroban_client.rpc.polling.asyncio.sleep", new=AsyncMock()) as sleep:
            await wait_transaction(server, TX_HASH, max_wait=600, max_delay=3.0)

        assert [call.args[0] for call in sleep.await_args_list] == [1.0, 2.0, 3.0, 3.0]

    @pytest.mark.asyncio
    async def test_timeout(self, server):
        """Test that polling gives up after max_wait."""
        with pytest.raises(WaitTransactionTimeoutError) as exc_info:
            await wait_transaction(server, TX_HASH, max_wait=0)

        assert exc_info.value.max_wait == 0
        assert exc_info.value.last_response.status == TransactionStatus.NOT_FOUND

    @pytest.mark.asyncio
    async def test_short_wait(self, server, mock_rpc):
        """Test a real sleep shorter than the first delay."""
        with pytest.raises(WaitTransactionTimeoutError):
            await wait_transaction(server, TX_HASH, max_wait=0.05)

        assert mock_rpc.methods.count("getTransaction") >= 2

    @pytest.mark.asyncio
    async def test_transport_error_propagates(self, server, mock_rpc):
        """Test that transport failures are not retried."""
        mock_rpc.raise_error = httpx.ConnectError

        with pytest.raises(TransportError):
            await wait_transaction(server, TX_HASH)

        assert len(mock_rpc.requests) == 1
