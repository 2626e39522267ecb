"""
Pytest configuration and shared fixtures for the test suite.
"""

import json
from typing import Dict, List, Optional

import httpx
import pytest
import stellar_sdk
from stellar_sdk import StrKey, scval

from soroban_client.codec import AccountEntry, CborCodec, Durability, TransactionResult, XdrCodec
from soroban_client.config import ClientConfig, NetworkType
from soroban_client.core.account import Account
from soroban_client.core.network import Network, Networks
from soroban_client.core.operation import Operation
from soroban_client.core.transaction import Footprint, Transaction
from soroban_client.rpc.server import ServerClient
from soroban_client.tx.builder import TransactionBuilder
from soroban_client.tx.signer import Keypair

RPC_URL = "https://rpc.test/soroban"
FRIENDBOT_URL = "https://friendbot.test/"
LEDGER_CLOSE_TIME = "1700000000"
CONTRACT_ID = StrKey.encode_contract(b"\x05" * 32)

XDR_CODEC = XdrCodec()


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def test_config() -> ClientConfig:
    """Create a test configuration."""
    return ClientConfig(
        network=NetworkType.TESTNET,
        rpc_url=RPC_URL,
        friendbot_url=FRIENDBOT_URL,
        base_fee=100,
        transaction_timeout_seconds=300,
        log_level="DEBUG",
    )


@pytest.fixture
def network() -> Network:
    return Networks.TESTNET


@pytest.fixture
def codec() -> XdrCodec:
    return XDR_CODEC


@pytest.fixture
def cbor_codec() -> CborCodec:
    return CborCodec()


# ============================================================================
# Test Data Generators
# ============================================================================

def make_operation(index: int = 0) -> Operation:
    """Generate a deterministic operation with a valid XDR body."""
    return XDR_CODEC.wrap_operation(stellar_sdk.BumpSequence(bump_to=index))


def make_storage_key(name: str) -> bytes:
    """Generate a contract storage key (an SCVal symbol)."""
    return scval.to_symbol(name).to_xdr_bytes()


def make_data_key(name: str, durability: Durability = Durability.PERSISTENT) -> bytes:
    """Generate the ledger key of a contract data entry."""
    return XDR_CODEC.encode_contract_data_key(CONTRACT_ID, make_storage_key(name), durability)


def make_keypair(index: int = 0) -> Keypair:
    """Generate a deterministic keypair."""
    return Keypair.from_raw_seed(bytes([index]) * 32)


@pytest.fixture
def keypair() -> Keypair:
    """The source account's keypair."""
    return make_keypair(7)


@pytest.fixture
def cosigner() -> Keypair:
    return make_keypair(8)


@pytest.fixture
def account(keypair) -> Account:
    """A source account at sequence 100."""
    return Account(keypair.address, 100)


@pytest.fixture
def sample_footprint() -> Footprint:
    return Footprint(
        read_only=(make_data_key("admin"),),
        read_write=(make_data_key("balance_alice"), make_data_key("balance_bob")),
        instructions=1_500_000,
        read_bytes=2048,
        write_bytes=512,
        resource_fee=5000,
    )


@pytest.fixture
def built_tx(account, network) -> Transaction:
    """An unprepared transaction with two operations."""
    with TransactionBuilder(account, network) as builder:
        return builder.add_operations([make_operation(0), make_operation(1)]).build()


@pytest.fixture
def signed_tx(account, network, keypair, sample_footprint) -> Transaction:
    """A prepared and signed transaction."""
    with TransactionBuilder(account, network) as builder:
        tx = builder.add_operation(make_operation(0)).add_footprint(sample_footprint).build()
    return tx.sign(keypair)


# ============================================================================
# Mock RPC Server
# ============================================================================

class MockRpcServer:
    """
    In-memory Soroban RPC server behind httpx.MockTransport.

    Accounts, simulation results and submission outcomes are plain
    attributes tests can set before making calls.
    """

    def __init__(self, codec: XdrCodec, network: Network = Networks.TESTNET):
        self.codec = codec
        self.network = network
        self.latest_ledger = 1000
        self.accounts: Dict[str, int] = {}
        # base64 ledger key -> base64 entry XDR
        self.contract_data: Dict[str, str] = {}
        self.transactions: Dict[str, dict] = {}
        self.submitted: List[Transaction] = []
        self.requests: List[dict] = []
        self.friendbot_requests: List[str] = []

        # Simulation outcome
        self.footprint = Footprint(
            read_only=(make_data_key("admin"),),
            read_write=(make_data_key("counter"),),
            instructions=900_000,
            read_bytes=1024,
            write_bytes=256,
            resource_fee=3000,
        )
        self.min_resource_fee = 3000
        self.simulation: Optional[dict] = None

        # Submission outcome
        self.send_status = "PENDING"
        self.send_error_code: Optional[str] = None

        # Failure injection
        self.rpc_errors: Dict[str, dict] = {}
        self.raise_error: Optional[type] = None
        self.http_status = 200
        self.friendbot_url: Optional[str] = FRIENDBOT_URL

    @property
    def methods(self) -> List[str]:
        return [r["method"] for r in self.requests]

    def add_account(self, address: str, sequence: int) -> None:
        self.accounts[address] = sequence

    def add_contract_data(self, ledger_key: bytes, entry_xdr: str) -> None:
        self.contract_data[self._b64(ledger_key)] = entry_xdr

    def _b64(self, data: bytes) -> str:
        return self.codec.to_base64(data)

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return self._friendbot(request)

        body = json.loads(request.content)
        self.requests.append(body)

        if self.raise_error is not None:
            raise self.raise_error("injected failure", request=request)
        if self.http_status != 200:
            return httpx.Response(self.http_status, text="upstream unavailable")

        method = body["method"]
        if method in self.rpc_errors:
            return httpx.Response(
                200,
                json={"jsonrpc": "2.0", "id": body["id"], "error": self.rpc_errors[method]},
            )

        result = getattr(self, f"_{method}")(body.get("params") or {})
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})

    def _getHealth(self, params: dict) -> dict:
        return {
            "status": "healthy",
            "latestLedger": self.latest_ledger,
            "oldestLedger": 1,
            "ledgerRetentionWindow": 17280,
        }

    def _getNetwork(self, params: dict) -> dict:
        result = {"passphrase": self.network.passphrase, "protocolVersion": 21}
        if self.friendbot_url:
            result["friendbotUrl"] = self.friendbot_url
        return result

    def _getLatestLedger(self, params: dict) -> dict:
        return {"id": "ab" * 32, "protocolVersion": 21, "sequence": self.latest_ledger}

    def _getLedgerEntries(self, params: dict) -> dict:
        entries = []
        for address, sequence in self.accounts.items():
            key = self._b64(self.codec.encode_account_key(address))
            if key in params["keys"]:
                entries.append({
                    "key": key,
                    "xdr": self._b64(self.codec.encode_account_entry(AccountEntry(address, sequence))),
                    "lastModifiedLedgerSeq": self.latest_ledger - 1,
                })
        for key, entry_xdr in self.contract_data.items():
            if key in params["keys"]:
                entries.append({
                    "key": key,
                    "xdr": entry_xdr,
                    "lastModifiedLedgerSeq": self.latest_ledger - 2,
                    "liveUntilLedgerSeq": self.latest_ledger + 500,
                })
        return {"entries": entries or None, "latestLedger": self.latest_ledger}

    def _simulateTransaction(self, params: dict) -> dict:
        if self.simulation is not None:
            return self.simulation
        return {
            "latestLedger": self.latest_ledger,
            "minResourceFee": str(self.min_resource_fee),
            "transactionData": self._b64(self.codec.encode_footprint(self.footprint)),
            "results": [{"auth": ["YXV0aA=="], "xdr": "AAAAAQ=="}],
            "events": [],
            "cost": {"cpuInsns": "900000", "memBytes": "4096"},
        }

    def _sendTransaction(self, params: dict) -> dict:
        tx = Transaction.from_envelope(params["transaction"], self.network.passphrase, self.codec)
        self.submitted.append(tx)
        tx_hash = tx.hash_hex()

        result = {
            "status": self.send_status,
            "hash": tx_hash,
            "latestLedger": self.latest_ledger,
            "latestLedgerCloseTime": LEDGER_CLOSE_TIME,
        }
        if self.send_error_code:
            result["errorResultXdr"] = self._b64(self.codec.encode_transaction_result(
                TransactionResult(fee_charged=100, code=self.send_error_code)
            ))
        elif self.send_status == "PENDING":
            self.accounts[tx.source] = tx.sequence
            self.transactions[tx_hash] = {
                "status": "SUCCESS",
                "ledger": self.latest_ledger + 1,
                "createdAt": LEDGER_CLOSE_TIME,
                "applicationOrder": 1,
                "feeBump": False,
                "envelopeXdr": params["transaction"],
                "resultXdr": self._b64(self.codec.encode_transaction_result(
                    TransactionResult(fee_charged=tx.fee, code="txSUCCESS")
                )),
            }
        return result

    def _getTransaction(self, params: dict) -> dict:
        result = {
            "latestLedger": self.latest_ledger,
            "latestLedgerCloseTime": LEDGER_CLOSE_TIME,
            "oldestLedger": 1,
            "oldestLedgerCloseTime": "1690000000",
        }
        record = self.transactions.get(params["hash"])
        if record is None:
            result["status"] = "NOT_FOUND"
        else:
            result.update(record)
        return result

    def _friendbot(self, request: httpx.Request) -> httpx.Response:
        address = request.url.params["addr"]
        self.friendbot_requests.append(address)
        if address in self.accounts:
            return httpx.Response(400, json={"detail": "createAccountAlreadyExist"})
        self.accounts[address] = self.latest_ledger << 32
        return httpx.Response(200, json={"successful": True})


@pytest.fixture
def mock_rpc(codec, network) -> MockRpcServer:
    """Create a mock RPC server."""
    return MockRpcServer(codec, network)


@pytest.fixture
def server(mock_rpc, codec) -> ServerClient:
    """Create a ServerClient wired to the mock RPC server."""
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(mock_rpc.handler))
    return ServerClient(RPC_URL, codec=codec, http_client=http_client)
