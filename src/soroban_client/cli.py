"""
Command-line interface for the Soroban client.

Provides diagnostic commands against a Soroban RPC server.
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Optional

import structlog

from soroban_client import __version__
from soroban_client.config import ClientConfig, NetworkType, set_config
from soroban_client.errors import SorobanClientError
from soroban_client.rpc.server import ServerClient


def setup_logging(level: str = "INFO", json_format: bool = False) -> None:
    """Configure structured logging."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if json_format
            else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper()),
        stream=sys.stderr,
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="soroban-client",
        description="Diagnostic client for Stellar Soroban RPC",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--network",
        choices=[n.value for n in NetworkType],
        default=None,
        help="Stellar network (default: SOROBAN_NETWORK or testnet)",
    )
    parser.add_argument(
        "--rpc-url",
        help="Soroban RPC endpoint (default: the network's public endpoint)",
    )
    parser.add_argument(
        "--allow-http",
        action="store_true",
        help="Allow a plain http RPC endpoint",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: SOROBAN_LOG_LEVEL or INFO)",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Output logs in JSON format",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    subparsers.add_parser("health", help="Show server health")
    subparsers.add_parser("network", help="Show network passphrase and friendbot")

    account_parser = subparsers.add_parser("account", help="Show an account's sequence number")
    account_parser.add_argument("address", help="Account id (G...)")

    status_parser = subparsers.add_parser("status", help="Show a transaction's status")
    status_parser.add_argument("hash", help="Transaction hash (hex)")

    fund_parser = subparsers.add_parser("fund", help="Fund a test account via friendbot")
    fund_parser.add_argument("address", help="Account id (G...)")
    fund_parser.add_argument(
        "--friendbot-url",
        help="Friendbot URL (default: the network's friendbot)",
    )

    return parser


def build_config(args: argparse.Namespace) -> ClientConfig:
    """Overlay command-line flags on the environment configuration."""
    overrides = {}
    if args.network:
        overrides["network"] = NetworkType(args.network)
    if args.rpc_url:
        overrides["rpc_url"] = args.rpc_url
    if args.allow_http:
        overrides["allow_http"] = True
    if args.log_level:
        overrides["log_level"] = args.log_level
    if args.log_json:
        overrides["log_json"] = True
    return ClientConfig(**overrides)


def _print(data: dict) -> None:
    print(json.dumps(data, indent=2, default=str))


async def run_command(args: argparse.Namespace, config: ClientConfig) -> None:
    """Run one subcommand against the configured server."""
    async with ServerClient.from_config(config) as server:
        if args.command == "health":
            health = await server.get_health()
            _print({
                "status": health.status,
                "latest_ledger": health.latest_ledger,
                "oldest_ledger": health.oldest_ledger,
            })

        elif args.command == "network":
            network = await server.get_network()
            _print({
                "passphrase": network.passphrase,
                "protocol_version": network.protocol_version,
                "friendbot_url": network.friendbot_url,
            })

        elif args.command == "account":
            account = await server.get_account(args.address)
            _print(account.to_dict())

        elif args.command == "status":
            status = await server.get_transaction_status(args.hash)
            _print({
                "hash": args.hash,
                "status": status.status.value,
                "ledger": status.ledger,
                "latest_ledger": status.latest_ledger,
                "result": status.result.code if status.result else None,
            })

        elif args.command == "fund":
            account = await server.request_airdrop(args.address, args.friendbot_url)
            _print(account.to_dict())


def main(argv: Optional[list] = None) -> None:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    config = build_config(args)
    set_config(config)
    setup_logging(config.log_level, config.log_json)

    try:
        asyncio.run(run_command(args, config))
    except (SorobanClientError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
