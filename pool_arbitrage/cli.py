#!/usr/bin/env python3
"""
Command line interface for the scanner and the asset validator.

Usage:
    pool-arbitrage scan --config configs/engine.example.yaml --once
    pool-arbitrage validate 8453 0x4200000000000000000000000000000000000006
    pool-arbitrage audit --trace-id 8453:0x42... --limit 20
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from typing import List, Optional

from dotenv import load_dotenv

from pool_arbitrage import logging_config
from pool_arbitrage.config_loader import load_engine_config
from pool_arbitrage.config_schema import EngineConfig
from pool_arbitrage.exceptions import PoolArbitrageError
from pool_arbitrage.metrics import ArbitrageMetrics
from pool_arbitrage.utils import get_logger

logger = get_logger(__name__)

ENV_LOG_LEVEL = "ARB_LOG_LEVEL"


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="pool-arbitrage",
        description="Cross-DEX arbitrage scanner and asset validator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # One scan over the configured pools
  pool-arbitrage scan --config configs/engine.example.yaml --once

  # Discover and validate a token
  pool-arbitrage validate 8453 0x4200000000000000000000000000000000000006

  # Last 20 audit events for a token
  pool-arbitrage audit --trace-id 8453:0x4200000000000000000000000000000000000006 --limit 20
        """,
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to engine YAML (default: $ARB_CONFIG)",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get(ENV_LOG_LEVEL, "INFO"),
        help="Logging level (default: $ARB_LOG_LEVEL or INFO)",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    scan = sub.add_parser("scan", help="Run the opportunity scanner")
    scan.add_argument("--once", action="store_true", help="Single scan and exit")
    scan.add_argument("--interval", type=float, default=None, help="Seconds between ticks")
    scan.add_argument("--max-ticks", type=int, default=None, help="Stop after N ticks")

    validate = sub.add_parser("validate", help="Discover and validate one token")
    validate.add_argument("chain_id", type=int)
    validate.add_argument("address")
    validate.add_argument("--user", default=None, help="Operator recorded in the audit log")
    validate.add_argument(
        "--add", action="store_true", help="Add to trading if the token is approved"
    )

    audit = sub.add_parser("audit", help="Show audit events")
    audit.add_argument("--trace-id", default=None)
    audit.add_argument("--limit", type=int, default=None)

    return parser.parse_args(argv)


async def _run_scanner(config: EngineConfig, args: argparse.Namespace) -> int:
    from dex.scanner import OpportunityScanner
    from pool_arbitrage.providers import ConfiguredPoolSource, DexScreenerClient

    metrics = ArbitrageMetrics()
    client = DexScreenerClient.from_settings(config.providers, metrics=metrics)
    scanner = OpportunityScanner(config, ConfiguredPoolSource(client), metrics=metrics)

    if config.metrics.enabled:
        await metrics.start_server(port=config.metrics.port, host=config.metrics.host)
    try:
        if args.once:
            results = await scanner.tick_async() or []
            print(json.dumps([r.to_dict() for r in results], indent=2))
        else:
            await scanner.run(interval_sec=args.interval, max_ticks=args.max_ticks)
    finally:
        if config.metrics.enabled:
            await metrics.stop_server()
    return 0


def cmd_scan(config: EngineConfig, args: argparse.Namespace) -> int:
    if not config.active_chains():
        logger.error("No enabled chains in config, nothing to scan")
        return 1
    try:
        return asyncio.run(_run_scanner(config, args))
    except KeyboardInterrupt:
        logger.info("Stopped by user")
        return 0


def cmd_validate(config: EngineConfig, args: argparse.Namespace) -> int:
    from pool_arbitrage.validation import AssetValidator

    validator = AssetValidator.from_config(config)
    asset = validator.discover(args.chain_id, args.address, user=args.user)
    if asset is None:
        print(json.dumps({"status": "rejected", "reason": "NO_SECURITY_DATA"}))
        return 2

    outcome = validator.validate(asset, user=args.user)
    print(json.dumps(outcome.to_dict(), indent=2))

    if outcome.approved and args.add:
        validator.add_to_trading(outcome.asset, outcome.asset.pairs, user=args.user)
    return 0 if outcome.approved else 2


def cmd_audit(config: EngineConfig, args: argparse.Namespace) -> int:
    from pool_arbitrage.audit import AuditLog

    audit = AuditLog.to_file(config.audit.path, default_limit=config.audit.default_query_limit)
    for event in audit.query(args.trace_id, args.limit):
        print(json.dumps(event.to_dict()))
    return 0


COMMANDS = {"scan": cmd_scan, "validate": cmd_validate, "audit": cmd_audit}


def main(argv: Optional[List[str]] = None) -> int:
    """
    Entry point.

    Returns:
        0 on success, 1 on configuration or runtime error, 2 when a token
        was not approved
    """
    load_dotenv()
    args = parse_args(argv)
    level = getattr(logging, str(args.log_level).upper(), logging.INFO)
    if level == logging.DEBUG:
        logging_config.setup_debug()
    else:
        logging_config.setup(level)

    try:
        config = load_engine_config(args.config)
    except PoolArbitrageError as e:
        print(f"Config error: {e}", file=sys.stderr)
        return 1

    try:
        return COMMANDS[args.command](config, args)
    except PoolArbitrageError as e:
        logger.error(f"{args.command} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
