"""
Configuration management for the Soroban client.

Supports configuration via environment variables and .env files. The
library itself never reads this implicitly; pass it to
``ServerClient.from_config`` or let the CLI load it.
"""

from enum import Enum
from typing import Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from soroban_client.core.network import Network, Networks


class NetworkType(str, Enum):
    """Stellar network types."""
    MAINNET = "mainnet"
    TESTNET = "testnet"
    FUTURENET = "futurenet"
    STANDALONE = "standalone"


_NETWORKS = {
    NetworkType.MAINNET: Networks.PUBLIC,
    NetworkType.TESTNET: Networks.TESTNET,
    NetworkType.FUTURENET: Networks.FUTURENET,
    NetworkType.STANDALONE: Networks.STANDALONE,
}

_RPC_URLS = {
    NetworkType.TESTNET: "https://soroban-testnet.stellar.org",
    NetworkType.FUTURENET: "https://rpc-futurenet.stellar.org",
    NetworkType.STANDALONE: "http://localhost:8000/soroban/rpc",
}

_FRIENDBOT_URLS = {
    NetworkType.TESTNET: "https://friendbot.stellar.org",
    NetworkType.FUTURENET: "https://friendbot-futurenet.stellar.org",
    NetworkType.STANDALONE: "http://localhost:8000/friendbot",
}


class ClientConfig(BaseSettings):
    """
    Configuration settings for the Soroban client.

    All settings can be configured via environment variables with the SOROBAN_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="SOROBAN_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Network settings
    network: NetworkType = Field(
        default=NetworkType.TESTNET,
        description="Stellar network to connect to"
    )
    network_passphrase_override: Optional[str] = Field(
        default=None,
        description="Custom network passphrase (overrides the network default)"
    )

    # RPC settings
    rpc_url: Optional[str] = Field(
        default=None,
        description="Soroban RPC endpoint URL (defaults per network)"
    )
    allow_http: Optional[bool] = Field(
        default=None,
        description="Allow plain http RPC endpoints (defaults to true only for standalone)"
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="HTTP request timeout"
    )
    headers: Dict[str, str] = Field(
        default_factory=dict,
        description="Extra HTTP headers sent with every RPC request"
    )
    friendbot_url: Optional[str] = Field(
        default=None,
        description="Friendbot URL for funding test accounts"
    )

    # Transaction defaults
    base_fee: int = Field(
        default=100,
        ge=1,
        description="Base fee per operation in stroops"
    )
    transaction_timeout_seconds: int = Field(
        default=300,
        ge=0,
        description="Default transaction validity window (0 = unbounded)"
    )
    max_operations: int = Field(
        default=100,
        ge=1,
        le=100,
        description="Maximum operations per transaction"
    )

    # Logging settings
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format"
    )

    @property
    def network_passphrase(self) -> str:
        """Get the passphrase of the configured network."""
        if self.network_passphrase_override:
            return self.network_passphrase_override
        return _NETWORKS[self.network].passphrase

    @property
    def stellar_network(self) -> Network:
        """Get the configured network as a Network value."""
        return Network(self.network_passphrase)

    @property
    def resolved_rpc_url(self) -> str:
        """Get the RPC URL, falling back to the network default."""
        if self.rpc_url:
            return self.rpc_url

        if self.network not in _RPC_URLS:
            raise ValueError(f"No default RPC url for {self.network.value}; set SOROBAN_RPC_URL")
        return _RPC_URLS[self.network]

    @property
    def resolved_allow_http(self) -> bool:
        """Whether plain http is allowed; a local standalone network serves http."""
        if self.allow_http is not None:
            return self.allow_http
        return self.network == NetworkType.STANDALONE

    @property
    def resolved_friendbot_url(self) -> Optional[str]:
        """Get the friendbot URL, if the network has one."""
        return self.friendbot_url or _FRIENDBOT_URLS.get(self.network)


# Global config instance
_config: Optional[ClientConfig] = None


def get_config() -> ClientConfig:
    """Get or create the global configuration instance."""
    global _config
    if _config is None:
        _config = ClientConfig()
    return _config


def set_config(config: ClientConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
