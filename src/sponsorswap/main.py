"""Command line entry point.

Usage:
    sponsorswap quote USDC ETH 10
    sponsorswap swap USDC ETH 10 [--recipient 0x...] [--private-key 0x...]
    sponsorswap config
"""

import argparse
import asyncio
import json
import logging
import sys
from decimal import Decimal, InvalidOperation
from typing import Optional

from sponsorswap.chain.client import Web3ChainClient
from sponsorswap.config import RoutingConfig, Settings, get_settings
from sponsorswap.errors import SwapError
from sponsorswap.signing.base import SigningError, TransactionSigner
from sponsorswap.signing.local import create_signer
from sponsorswap.swap.supervisor import ExecutionSupervisor

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    log_level = logging.DEBUG if settings.debug else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sponsorswap", description="Sponsored AMM swaps")
    subparsers = parser.add_subparsers(dest="command", required=True)

    quote = subparsers.add_parser("quote", help="Rank routes without executing")
    quote.add_argument("source", help="Asset to sell (symbol or address)")
    quote.add_argument("destination", help="Asset to buy (symbol or address)")
    quote.add_argument("amount", help="Human-readable amount of the source asset")

    swap = subparsers.add_parser("swap", help="Execute a sponsored swap")
    swap.add_argument("source", help="Asset to sell (symbol or address)")
    swap.add_argument("destination", help="Asset to buy (symbol or address)")
    swap.add_argument("amount", help="Human-readable amount of the source asset")
    swap.add_argument("--recipient", help="Receiver of the output (defaults to the signer)")
    swap.add_argument("--private-key", help="Overrides PRIVATE_KEY / WALLET_SEED_PHRASE")

    subparsers.add_parser("config", help="Show effective settings (secrets redacted)")
    return parser


def parse_amount(value: str) -> Decimal:
    try:
        amount = Decimal(value)
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {value}")
    if amount <= 0:
        raise ValueError("Amount must be positive")
    return amount


async def run_quote(supervisor: ExecutionSupervisor, args: argparse.Namespace) -> dict:
    config = supervisor.config
    source = config.asset(args.source)
    destination = config.asset(args.destination)
    amount_in = source.to_units(parse_amount(args.amount))

    routes = await supervisor.quote_only(source, destination, amount_in)
    comparison = supervisor.selector.comparison(routes)
    return {
        "source": source.symbol,
        "destination": destination.symbol,
        "amount_in": str(amount_in),
        "routes": [
            {
                "rank": line.rank,
                "path": line.path,
                "kind": line.kind,
                "amount_out": str(line.amount_out),
                "amount_out_human": str(destination.from_units(line.amount_out)),
                "percent_of_best": str(line.percent_of_best),
            }
            for line in comparison
        ],
    }


async def run_swap(supervisor: ExecutionSupervisor, args: argparse.Namespace) -> dict:
    config = supervisor.config
    source = config.asset(args.source)
    destination = config.asset(args.destination)
    amount_in = source.to_units(parse_amount(args.amount))

    outcome = await supervisor.execute(source, destination, amount_in, recipient=args.recipient)
    return outcome.to_dict()


def build_supervisor(settings: Settings, signer: Optional[TransactionSigner] = None) -> ExecutionSupervisor:
    config = RoutingConfig.from_settings(settings)
    client = Web3ChainClient(settings.rpc_url)
    return ExecutionSupervisor(config, client, signer)


async def run(args: argparse.Namespace, settings: Settings) -> int:
    if args.command == "config":
        print(json.dumps(settings.get_safe_dict(), indent=2))
        return 0

    signer = None
    if args.command == "swap":
        signer = create_signer(settings, args.private_key)
        logger.info(f"Signer: {signer.address}")

    supervisor = build_supervisor(settings, signer)

    try:
        if args.command == "quote":
            result = await run_quote(supervisor, args)
        else:
            result = await run_swap(supervisor, args)
    except SwapError as e:
        print(json.dumps({"success": False, "error": e.to_report().to_dict()}, indent=2))
        return 1

    print(json.dumps(result, indent=2))
    return 0 if result.get("success", True) else 1


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(settings)

    logger.info(f"Network: {settings.network_name} ({settings.rpc_url})")
    try:
        return asyncio.run(run(args, settings))
    except (KeyError, ValueError, SigningError) as e:
        logger.error(str(e))
        return 2


if __name__ == "__main__":
    sys.exit(main())
