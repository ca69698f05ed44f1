#!/usr/bin/env python3
"""Cross-Chain Oracle Monitor.

Polls oracle price feeds for a source chain on a fixed interval, fans the
readings out to subscribers and keeps a bounded activity journal, mirrored
to the console.

Run with ``python -m oracle_monitor.main`` or the ``oracle-monitor`` script.
"""

import argparse
import asyncio
import logging
import os
import sys

from .src.ConnectionRegistry import RPC_ENDPOINTS
from .src.OracleConfig import OracleConfig
from .src.OracleMonitor import OracleMonitor
from .src.PollingScheduler import PollingScheduler
from .src.PriceReading import ProviderKind

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def parse_endpoints(endpoint_str: str | None) -> dict[str, str]:
    """Parse comma-separated RPC endpoint string into a dictionary.

    Format: chain1=url1,chain2=url2
    Example: ethereum=https://eth.example,polygon=https://polygon.example

    :param endpoint_str: Comma-separated endpoint string.
    :returns: Dict mapping lowercase chain names to RPC URLs.
    """
    if not endpoint_str:
        return {}

    endpoints = {}
    for item in endpoint_str.split(","):
        item = item.strip()
        if "=" in item:
            chain, url = item.split("=", 1)
            if chain.strip() and url.strip():
                endpoints[chain.strip().lower()] = url.strip()
    return endpoints


def parse_env_endpoints() -> dict[str, str]:
    """Parse RPC endpoints from individual environment variables.

    Looks for: RPC_URL_ETHEREUM, RPC_URL_POLYGON, etc.

    :returns: Dict mapping chain names to RPC URLs.
    """
    prefix = "RPC_URL_"
    return {
        key[len(prefix):].lower(): value
        for key, value in os.environ.items()
        if key.startswith(prefix) and len(key) > len(prefix) and value
    }


def main() -> None:
    """Main entry point for the Oracle Monitor CLI."""
    providers = [k.value for k in ProviderKind]

    parser = argparse.ArgumentParser(
        description="Cross-Chain Oracle Monitor: live oracle feeds with an activity journal",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Available providers:
  {', '.join(providers)} (aliases: Chainlink, Band Protocol, Tellor)

Known chains:
  {', '.join(RPC_ENDPOINTS)}

Examples:
  # Ethereum price feeds read on-chain
  python -m oracle_monitor.main --source-chain ethereum --provider OnChainAggregator

  # REST aggregator every 5 seconds with a custom RPC
  python -m oracle_monitor.main --provider RestAggregator --interval 5 \\
      --rpc-endpoints ethereum=https://my-node.example

Environment variables (CLI args take precedence):
  SOURCE_CHAIN, TARGET_CHAIN, PROVIDER, DATA_KIND, PAIRS, POLL_INTERVAL,
  JOURNAL_CAPACITY, RPC_ENDPOINTS, RPC_URL_ETHEREUM, RPC_URL_POLYGON, etc.
""",
    )

    parser.add_argument(
        "--source-chain",
        dest="source_chain",
        type=str,
        help="Chain whose feeds are polled (default: ethereum)",
        default=os.environ.get("SOURCE_CHAIN") or "ethereum",
    )

    parser.add_argument(
        "--target-chain",
        dest="target_chain",
        type=str,
        help="Counterparty chain (default: polygon)",
        default=os.environ.get("TARGET_CHAIN") or "polygon",
    )

    parser.add_argument(
        "--provider",
        type=str,
        help=f"Price provider. Available: {', '.join(providers)}",
        default=os.environ.get("PROVIDER") or ProviderKind.ON_CHAIN_AGGREGATOR.value,
    )

    parser.add_argument(
        "--data-kind",
        dest="data_kind",
        type=str,
        help="What is being monitored (default: Price Feed)",
        default=os.environ.get("DATA_KIND") or "Price Feed",
    )

    parser.add_argument(
        "--pairs",
        type=str,
        help="Comma-separated trading pairs (default: BTC/USD,ETH/USD)",
        default=os.environ.get("PAIRS") or ",".join(PollingScheduler.DEFAULT_PAIRS),
    )

    parser.add_argument(
        "--interval",
        type=float,
        help="Seconds between polls of each feed (minimum: 0.5, default: 3)",
        default=float(os.environ.get("POLL_INTERVAL") or PollingScheduler.DEFAULT_INTERVAL),
    )

    parser.add_argument(
        "--journal-capacity",
        dest="journal_capacity",
        type=int,
        help="Maximum activity journal entries kept (default: 100)",
        default=int(os.environ.get("JOURNAL_CAPACITY") or "100"),
    )

    parser.add_argument(
        "--rpc-endpoints",
        dest="rpc_endpoints",
        type=str,
        help="Comma-separated RPC overrides (e.g., ethereum=https://...,bsc=https://...)",
        default=os.environ.get("RPC_ENDPOINTS"),
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    # Validate arguments
    if args.interval < 0.5:
        parser.error("--interval must be at least 0.5 seconds")

    if args.journal_capacity < 1:
        parser.error("--journal-capacity must be at least 1")

    try:
        provider = ProviderKind.parse(args.provider)
    except ValueError as e:
        parser.error(str(e))

    pairs = [p.strip() for p in args.pairs.split(",") if p.strip()]
    if not pairs:
        parser.error("At least one trading pair must be specified")

    # Endpoints: defaults, then environment, then CLI
    endpoints = dict(RPC_ENDPOINTS)
    endpoints.update(parse_env_endpoints())
    endpoints.update(parse_endpoints(args.rpc_endpoints))

    source_chain = args.source_chain.lower()
    if source_chain not in endpoints:
        parser.error(
            f"No RPC endpoint for chain '{args.source_chain}'. "
            f"Known: {', '.join(endpoints)}"
        )

    config = OracleConfig(
        source_chain=source_chain,
        target_chain=args.target_chain.lower(),
        provider_kind=provider,
        data_kind=args.data_kind,
    )

    # Log configuration
    logger.info("=" * 60)
    logger.info("Cross-Chain Oracle Monitor")
    logger.info("=" * 60)
    logger.info(f"Source Chain:      {config.source_chain} ({endpoints[source_chain]})")
    logger.info(f"Target Chain:      {config.target_chain}")
    logger.info(f"Provider:          {provider.value}")
    logger.info(f"Data Kind:         {config.data_kind}")
    logger.info(f"Trading Pairs:     {', '.join(pairs)}")
    logger.info(f"Poll Interval:     {args.interval}s")
    logger.info(f"Journal Capacity:  {args.journal_capacity}")
    logger.info("=" * 60)

    try:
        monitor = OracleMonitor(
            endpoints=endpoints,
            pairs=pairs,
            interval=args.interval,
            journal_capacity=args.journal_capacity,
        )
        asyncio.run(monitor.run(config))
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
