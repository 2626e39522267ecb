"""
Soroban RPC client.

Speaks JSON-RPC 2.0 over HTTP POST to a Soroban RPC endpoint: account
lookup, simulation and preparation, submission, and status lookup.
"""

import itertools
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Optional

import httpx
import structlog

from soroban_client import __version__
from soroban_client.codec.interface import Codec, Durability
from soroban_client.codec.xdr import XdrCodec
from soroban_client.core.account import Account
from soroban_client.core.address import is_account_id, is_contract_id
from soroban_client.core.transaction import Transaction
from soroban_client.errors import (
    AccountNotFoundError,
    ContractDataNotFoundError,
    InvalidAddressError,
    InvalidFeeError,
    InvalidRpcUrlError,
    InvalidRpcUrlReason,
    MissingFootprintError,
    NoFriendbotError,
    NotSignedError,
    RestorationRequiredError,
    RpcError,
    SimulationError,
    SubmissionAmbiguousError,
    TransactionFrozenError,
    TransportError,
)
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
from soroban_client.tx.builder import MAX_FEE

if TYPE_CHECKING:
    from soroban_client.config import ClientConfig

logger = structlog.get_logger(__name__)

CLIENT_NAME = "py-soroban-client"

# Failures that happen before any byte of the request reaches the server
_NOT_SENT_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout, httpx.PoolTimeout)


@dataclass
class ServerOptions:
    """Transport options for ServerClient."""
    allow_http: bool = False
    timeout: float = 30.0
    headers: Optional[Dict[str, str]] = None
    friendbot_url: Optional[str] = None


def validate_rpc_url(url: str, allow_http: bool = False) -> str:
    """
    Check that ``url`` is an http(s) endpoint this client may talk to.

    Raises:
        InvalidRpcUrlError: With the reason the URL was refused
    """
    if not isinstance(url, str) or not url.strip():
        raise InvalidRpcUrlError(InvalidRpcUrlReason.INVALID_URI, str(url))

    try:
        parsed = httpx.URL(url.strip())
    except (httpx.InvalidURL, TypeError, ValueError) as e:
        raise InvalidRpcUrlError(InvalidRpcUrlReason.INVALID_URI, url) from e

    if parsed.scheme not in ("http", "https"):
        raise InvalidRpcUrlError(InvalidRpcUrlReason.NOT_HTTP_SCHEME, url)
    if parsed.scheme == "http" and not allow_http:
        raise InvalidRpcUrlError(InvalidRpcUrlReason.UNSECURE_HTTP_NOT_ALLOWED, url)
    if not parsed.host:
        raise InvalidRpcUrlError(InvalidRpcUrlReason.INVALID_URI, url)

    return url.strip()


def _to_int(value: Any) -> Optional[int]:
    # The RPC encodes 64-bit values as decimal strings
    if value is None:
        return None
    return int(value)


class ServerClient:
    """
    Async client for a Soroban RPC server.

    The client never retries and never polls on its own. Transport
    failures surface as TransportError; a submission whose outcome is
    unknown surfaces as SubmissionAmbiguousError.

    Example:
        async with ServerClient("https://soroban-testnet.stellar.org") as server:
            account = await server.get_account(address)
    """

    def __init__(
        self,
        rpc_url: str,
        options: Optional[ServerOptions] = None,
        codec: Optional[Codec] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the server client.

        Args:
            rpc_url: Soroban RPC endpoint
            options: Transport options
            codec: Wire codec (defaults to XDR)
            http_client: Pre-built httpx client; the caller keeps ownership

        Raises:
            InvalidRpcUrlError: If the URL is refused
        """
        self.options = options or ServerOptions()
        self.rpc_url = validate_rpc_url(rpc_url, self.options.allow_http)
        self.codec = codec or XdrCodec()
        self._client: Optional[httpx.AsyncClient] = http_client
        self._owns_client = http_client is None
        self._request_ids = itertools.count(1)

    @classmethod
    def from_config(
        cls,
        config: "ClientConfig",
        codec: Optional[Codec] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> "ServerClient":
        """Create a client for the endpoint described by ``config``."""
        options = ServerOptions(
            allow_http=config.resolved_allow_http,
            timeout=config.request_timeout_seconds,
            headers=dict(config.headers),
            friendbot_url=config.resolved_friendbot_url,
        )
        return cls(config.resolved_rpc_url, options, codec=codec, http_client=http_client)

    @property
    def headers(self) -> dict:
        """Get the headers sent with every request."""
        headers = {
            "X-Client-Name": CLIENT_NAME,
            "X-Client-Version": __version__,
            "Content-Type": "application/json",
        }
        if self.options.headers:
            headers.update(self.options.headers)
        return headers

    async def connect(self) -> None:
        """Create the HTTP client."""
        if self._client is not None:
            return

        self._client = httpx.AsyncClient(
            headers=self.headers,
            timeout=self.options.timeout,
        )
        self._owns_client = True
        logger.info("rpc_connected", rpc_url=self.rpc_url)

    async def disconnect(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
            logger.info("rpc_disconnected", rpc_url=self.rpc_url)

    async def __aenter__(self) -> "ServerClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()

    async def _request(self, method: str, params: Optional[dict] = None) -> Any:
        """
        Make a JSON-RPC call and return its ``result`` member.

        Raises:
            TransportError: On connection failure, timeout or non-200 status
            RpcError: On a JSON-RPC error object or a malformed response
        """
        if not self._client:
            await self.connect()

        payload: Dict[str, Any] = {
            "jsonrpc": "2.0",
            "id": next(self._request_ids),
            "method": method,
        }
        if params is not None:
            payload["params"] = params

        try:
            response = await self._client.post(self.rpc_url, json=payload, headers=self.headers)
        except httpx.RequestError as e:
            logger.error("rpc_request_error", method=method, error=str(e))
            raise TransportError(f"RPC request {method} failed: {e}") from e

        if response.status_code != 200:
            logger.error(
                "rpc_request_failed",
                method=method,
                status=response.status_code,
                error=response.text[:200],
            )
            raise TransportError(
                f"RPC request {method} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise RpcError(f"Malformed JSON in {method} response") from e

        if not isinstance(data, dict):
            raise RpcError(f"Unexpected {method} response: {data!r}")

        error = data.get("error")
        if error is not None:
            if isinstance(error, dict):
                code = error.get("code")
                message = error.get("message", "unknown error")
                details = error.get("data")
            else:
                code, message, details = None, str(error), None
            logger.warning("rpc_error", method=method, code=code, message=message)
            raise RpcError(message, code=code, data=details)

        if "result" not in data:
            raise RpcError(f"{method} response has neither result nor error")

        return data["result"]

    # ------------------------------------------------------------------
    # Network info
    # ------------------------------------------------------------------

    async def get_health(self) -> GetHealthResponse:
        """Get the server's health status."""
        data = await self._request("getHealth")
        try:
            return GetHealthResponse(
                status=data["status"],
                latest_ledger=_to_int(data.get("latestLedger")),
                oldest_ledger=_to_int(data.get("oldestLedger")),
                ledger_retention_window=_to_int(data.get("ledgerRetentionWindow")),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise RpcError(f"Malformed getHealth response: {e}") from e

    async def get_network(self) -> GetNetworkResponse:
        """Get the passphrase, protocol version and friendbot of the network."""
        data = await self._request("getNetwork")
        try:
            return GetNetworkResponse(
                passphrase=data["passphrase"],
                protocol_version=_to_int(data.get("protocolVersion")),
                friendbot_url=data.get("friendbotUrl"),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise RpcError(f"Malformed getNetwork response: {e}") from e

    async def get_latest_ledger(self) -> GetLatestLedgerResponse:
        """Get the most recent ledger known to the server."""
        data = await self._request("getLatestLedger")
        try:
            return GetLatestLedgerResponse(
                id=data["id"],
                sequence=int(data["sequence"]),
                protocol_version=_to_int(data.get("protocolVersion")),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise RpcError(f"Malformed getLatestLedger response: {e}") from e

    # ------------------------------------------------------------------
    # Ledger state
    # ------------------------------------------------------------------

    async def get_ledger_entries(self, keys: List[bytes]) -> GetLedgerEntriesResponse:
        """
        Read ledger entries by their encoded keys.

        Args:
            keys: Codec-encoded ledger keys
        """
        if not keys:
            raise ValueError("At least one ledger key is required")

        data = await self._request(
            "getLedgerEntries",
            {"keys": [self.codec.to_base64(key) for key in keys]},
        )
        try:
            entries = [
                LedgerEntryResult(
                    key=item["key"],
                    xdr=item["xdr"],
                    last_modified_ledger_seq=_to_int(item.get("lastModifiedLedgerSeq")),
                    live_until_ledger_seq=_to_int(item.get("liveUntilLedgerSeq")),
                )
                for item in data.get("entries") or []
            ]
            return GetLedgerEntriesResponse(
                entries=entries,
                latest_ledger=int(data["latestLedger"]),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise RpcError(f"Malformed getLedgerEntries response: {e}") from e

    async def get_account(self, address: str) -> Account:
        """
        Fetch an account and its current sequence number.

        Raises:
            InvalidAddressError: If the address is malformed
            AccountNotFoundError: If the ledger has no such account
            DecodeError: If the entry cannot be decoded
        """
        if not is_account_id(address):
            raise InvalidAddressError(address)

        response = await self.get_ledger_entries([self.codec.encode_account_key(address)])
        if not response.entries:
            logger.info("account_not_found", address=address[:8] + "...")
            raise AccountNotFoundError(address)

        entry = self.codec.decode_account_entry(
            self.codec.from_base64(response.entries[0].xdr)
        )
        if entry is None:
            raise RpcError(f"Ledger entry for {address} is not an account entry")

        account = Account(address, entry.sequence)
        logger.debug("account_fetched", address=address[:8] + "...", sequence=entry.sequence)
        return account

    async def get_contract_data(
        self,
        contract_id: str,
        key: bytes,
        durability: Durability = Durability.PERSISTENT,
    ) -> LedgerEntryResult:
        """
        Read one contract storage entry.

        Args:
            contract_id: ``C...`` contract address
            key: Encoded storage key (an ``SCVal`` for the XDR codec)
            durability: Temporary or persistent storage

        Returns:
            The raw ledger entry; decode ``xdr`` with the codec of your choice

        Raises:
            InvalidAddressError: If the contract id is malformed
            ContractDataNotFoundError: If no entry exists under the key
        """
        if not is_contract_id(contract_id):
            raise InvalidAddressError(contract_id)
        durability = Durability(durability)

        ledger_key = self.codec.encode_contract_data_key(contract_id, key, durability)
        response = await self.get_ledger_entries([ledger_key])
        if not response.entries:
            logger.info(
                "contract_data_not_found",
                contract_id=contract_id[:8] + "...",
                durability=durability.value,
            )
            raise ContractDataNotFoundError(contract_id, key, durability.value)

        return response.entries[0]

    # ------------------------------------------------------------------
    # Simulation
    # ------------------------------------------------------------------

    async def simulate_transaction(
        self,
        tx: Transaction,
        instruction_leeway: Optional[int] = None,
    ) -> SimulateTransactionResponse:
        """
        Dry-run a transaction.

        A failing simulation is reported in the response, not raised; call
        ``raise_for_error()`` to convert it.

        Args:
            tx: Transaction to simulate; its signatures are ignored
            instruction_leeway: Extra CPU instructions to budget for
        """
        params: Dict[str, Any] = {"transaction": tx.to_envelope_base64()}
        if instruction_leeway is not None:
            params["resourceConfig"] = {"instructionLeeway": instruction_leeway}

        data = await self._request("simulateTransaction", params)
        response = self._parse_simulation(data)

        logger.debug(
            "transaction_simulated",
            tx_hash=tx.hash_hex()[:16] + "...",
            error=response.error,
            min_resource_fee=response.min_resource_fee,
            restore=response.restore_preamble is not None,
        )
        return response

    def _parse_simulation(self, data: dict) -> SimulateTransactionResponse:
        try:
            latest_ledger = int(data["latestLedger"])
            events = list(data.get("events") or [])

            if data.get("error"):
                return SimulateTransactionResponse(
                    latest_ledger=latest_ledger,
                    events=events,
                    error=str(data["error"]),
                )

            results = [
                SimulateHostFunctionResult(
                    auth=list(item.get("auth") or []),
                    return_value_xdr=item.get("xdr"),
                )
                for item in data.get("results") or []
            ]

            cost = None
            if data.get("cost"):
                cost = SimulationCost(
                    cpu_insns=int(data["cost"]["cpuInsns"]),
                    mem_bytes=int(data["cost"]["memBytes"]),
                )

            restore_preamble = None
            if data.get("restorePreamble"):
                preamble = data["restorePreamble"]
                restore_preamble = RestorePreamble(
                    min_resource_fee=int(preamble["minResourceFee"]),
                    transaction_data=self.codec.decode_footprint(
                        self.codec.from_base64(preamble["transactionData"])
                    ),
                )

            footprint = None
            if data.get("transactionData"):
                footprint = self.codec.decode_footprint(
                    self.codec.from_base64(data["transactionData"])
                )

            return SimulateTransactionResponse(
                latest_ledger=latest_ledger,
                footprint=footprint,
                min_resource_fee=int(data.get("minResourceFee") or 0),
                results=results,
                events=events,
                cost=cost,
                restore_preamble=restore_preamble,
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise RpcError(f"Malformed simulateTransaction response: {e}") from e

    async def prepare_transaction(self, tx: Transaction) -> Transaction:
        """
        Simulate and return a copy with footprint and final fee.

        The returned transaction is PREPARED and unsigned. Its fee is the
        caller's fee plus the minimum resource fee the simulation reported.

        Raises:
            SimulationError: If the simulation failed
            RestorationRequiredError: If archived entries must be restored first
            TransactionFrozenError: If the transaction was already submitted
            InvalidFeeError: If the resource fee pushes the total past the fee limit
        """
        if tx.is_submitted:
            raise TransactionFrozenError("Cannot prepare a submitted transaction")

        simulation = await self.simulate_transaction(tx)

        if simulation.error is not None:
            logger.warning(
                "simulation_failed",
                tx_hash=tx.hash_hex()[:16] + "...",
                error=simulation.error,
            )
            raise SimulationError(simulation.error, simulation.events)

        if simulation.restore_preamble is not None:
            logger.warning(
                "restoration_required",
                tx_hash=tx.hash_hex()[:16] + "...",
                min_resource_fee=simulation.restore_preamble.min_resource_fee,
            )
            raise RestorationRequiredError(
                simulation.restore_preamble.min_resource_fee,
                simulation.restore_preamble.transaction_data,
            )

        if simulation.footprint is None:
            raise RpcError("simulateTransaction response has no transactionData")

        # A re-prepared transaction already carries an old resource fee
        classic_fee = tx.fee - (tx.footprint.resource_fee if tx.footprint else 0)
        fee = classic_fee + simulation.min_resource_fee
        if fee > MAX_FEE:
            raise InvalidFeeError(
                f"Prepared fee {fee} exceeds {MAX_FEE} "
                f"(min resource fee {simulation.min_resource_fee})"
            )

        prepared = tx.with_footprint(simulation.footprint, fee)

        logger.info(
            "transaction_prepared",
            tx_hash=prepared.hash_hex()[:16] + "...",
            fee=prepared.fee,
            min_resource_fee=simulation.min_resource_fee,
        )
        return prepared

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def send_transaction(self, tx: Transaction) -> SendTransactionResponse:
        """
        Submit a signed transaction.

        The transaction is frozen as soon as submission is attempted,
        whatever the outcome. Acceptance is not inclusion: poll
        get_transaction_status with the returned hash.

        Raises:
            NotSignedError: If the transaction carries no signature
            MissingFootprintError: If the transaction was never prepared
            TransportError: If the request never reached the server
            SubmissionAmbiguousError: If the outcome of the request is unknown
        """
        if not tx.is_signed:
            raise NotSignedError("Transaction must be signed before submission")
        if not tx.is_prepared:
            raise MissingFootprintError("Transaction must be prepared before submission")

        tx_hash = tx.hash_hex()
        envelope = tx.to_envelope_base64()
        tx.mark_submitted()

        try:
            data = await self._request("sendTransaction", {"transaction": envelope})
        except TransportError as e:
            sent = not isinstance(e.__cause__, _NOT_SENT_ERRORS)
            if e.status_code is not None and e.status_code < 500:
                sent = False
            if not sent:
                raise
            logger.warning("submission_ambiguous", tx_hash=tx_hash, error=str(e))
            raise SubmissionAmbiguousError(
                f"Outcome of transaction {tx_hash} is unknown: {e}",
                tx_hash=tx_hash,
            ) from e

        response = self._parse_send(data, tx_hash)

        if response.is_bad_sequence:
            logger.warning(
                "transaction_bad_sequence",
                tx_hash=tx_hash,
                source=tx.source[:8] + "...",
                sequence=tx.sequence,
            )

        logger.info("tx_submitted", tx_hash=response.hash, status=response.status.value)
        return response

    def _parse_send(self, data: dict, tx_hash: str) -> SendTransactionResponse:
        try:
            error_result_xdr = data.get("errorResultXdr")
            error_result = None
            if error_result_xdr:
                error_result = self.codec.decode_transaction_result(
                    self.codec.from_base64(error_result_xdr)
                )

            return SendTransactionResponse(
                status=SendTransactionStatus(data["status"]),
                hash=data.get("hash") or tx_hash,
                latest_ledger=int(data["latestLedger"]),
                latest_ledger_close_time=int(data["latestLedgerCloseTime"]),
                error_result_xdr=error_result_xdr,
                error_result=error_result,
                diagnostic_events=list(data.get("diagnosticEventsXdr") or []),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise RpcError(f"Malformed sendTransaction response: {e}") from e

    async def get_transaction_status(self, tx_hash: str) -> GetTransactionResponse:
        """
        Look up a transaction by hash.

        NOT_FOUND means the server has not seen it yet, or it fell out of
        the retention window. The client does not poll.
        """
        data = await self._request("getTransaction", {"hash": tx_hash})
        try:
            status = TransactionStatus(data["status"])

            result = None
            if data.get("resultXdr"):
                result = self.codec.decode_transaction_result(
                    self.codec.from_base64(data["resultXdr"])
                )

            response = GetTransactionResponse(
                status=status,
                latest_ledger=int(data["latestLedger"]),
                latest_ledger_close_time=int(data["latestLedgerCloseTime"]),
                oldest_ledger=int(data["oldestLedger"]),
                oldest_ledger_close_time=int(data["oldestLedgerCloseTime"]),
                ledger=_to_int(data.get("ledger")),
                created_at=_to_int(data.get("createdAt")),
                application_order=_to_int(data.get("applicationOrder")),
                fee_bump=data.get("feeBump"),
                envelope_xdr=data.get("envelopeXdr"),
                result_xdr=data.get("resultXdr"),
                result_meta_xdr=data.get("resultMetaXdr"),
                return_value_xdr=data.get("returnValue"),
                result=result,
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise RpcError(f"Malformed getTransaction response: {e}") from e

        logger.debug("transaction_status", tx_hash=tx_hash[:16] + "...", status=status.value)
        return response

    # ------------------------------------------------------------------
    # Test networks
    # ------------------------------------------------------------------

    async def request_airdrop(
        self,
        address: str,
        friendbot_url: Optional[str] = None,
    ) -> Account:
        """
        Fund a test account through the network's friendbot.

        An account that already exists is not an error; it is returned
        as fetched.

        Raises:
            NoFriendbotError: If neither the caller nor the network names a friendbot
        """
        if not is_account_id(address):
            raise InvalidAddressError(address)

        friendbot_url = friendbot_url or self.options.friendbot_url
        if not friendbot_url:
            network = await self.get_network()
            friendbot_url = network.friendbot_url
        if not friendbot_url:
            raise NoFriendbotError("The network has no friendbot; fund the account another way")

        if not self._client:
            await self.connect()

        try:
            response = await self._client.get(friendbot_url, params={"addr": address})
        except httpx.RequestError as e:
            logger.error("friendbot_request_error", error=str(e))
            raise TransportError(f"Friendbot request failed: {e}") from e

        if response.status_code == 400 and "already" in response.text.lower():
            logger.info("account_already_funded", address=address[:8] + "...")
        elif response.status_code != 200:
            logger.error(
                "friendbot_request_failed",
                status=response.status_code,
                error=response.text[:200],
            )
            raise TransportError(
                f"Friendbot returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        else:
            logger.info("account_funded", address=address[:8] + "...")

        return await self.get_account(address)
