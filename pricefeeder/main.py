#!/usr/bin/env python3
"""Price Feeder.

Polls multiple market data providers, rejects deviating quotes and keeps a
canonical price per subscribed asset, reporting it periodically in the log.

Configure with CLI arguments or environment variables (CLI takes precedence).
"""

import argparse
import asyncio
import logging
import os
import signal
import sys
from decimal import Decimal, InvalidOperation

from .src.PriceOracle import PriceOracle
from .src.errors import OracleError, PriceNotFoundError
from .src.providers import get_available_providers

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def parse_list(value: str | None, upper: bool = False) -> list[str]:
    """Split a comma-separated option into stripped, non-empty items.

    :param value: Comma-separated string.
    :param upper: Uppercase items (symbols) instead of lowercasing (names).
    :returns: List of items.
    """
    if not value:
        return []
    items = [item.strip() for item in value.split(",") if item.strip()]
    return [item.upper() if upper else item.lower() for item in items]


def parse_api_keys(api_key_str: str | None) -> dict[str, str]:
    """Parse comma-separated API key string into a dictionary.

    Format: provider1=key1,provider2=key2
    Example: binance=abc123

    :param api_key_str: Comma-separated API key string.
    :returns: Dict mapping provider names to API keys.
    """
    if not api_key_str:
        return {}

    api_keys = {}
    for item in api_key_str.split(","):
        item = item.strip()
        if "=" in item:
            provider, key = item.split("=", 1)
            api_keys[provider.strip().lower()] = key.strip()
    return api_keys


def parse_env_api_keys() -> dict[str, str]:
    """Parse API keys from individual environment variables.

    Looks for: API_KEY_BINANCE, API_KEY_KRAKEN, etc.

    :returns: Dict mapping provider names to API keys.
    """
    api_keys = {}
    prefixes = ["API_KEY_", "APIKEY_"]

    for key, value in os.environ.items():
        for prefix in prefixes:
            if key.startswith(prefix) and value:
                provider = key[len(prefix):].lower()
                api_keys[provider] = value
                break

    return api_keys


def build_parser(available_providers: list[str]) -> argparse.ArgumentParser:
    """Build the CLI argument parser with environment variable defaults.

    :param available_providers: Registered provider names for help text.
    :returns: Configured ArgumentParser.
    """
    parser = argparse.ArgumentParser(
        description="Price Feeder: canonical prices from multiple market data providers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Available providers:
  {', '.join(available_providers)}

Examples:
  # Track ATOM and ETH on all providers
  python -m pricefeeder.main --symbols atom,eth --providers binance,kraken,coinbase

  # Tighter outlier rejection and a faster tick
  python -m pricefeeder.main --symbols btc --deviation-threshold 1.5 --tick-period 500

Environment variables (CLI args take precedence):
  PROVIDERS, SYMBOLS, QUOTES, TICK_PERIOD_MS, AVAILABLE_PAIRS_REFRESH,
  DEVIATION_THRESHOLD, FETCH_TIMEOUT, REPORT_PERIOD, API_KEYS,
  API_KEY_BINANCE, etc.
""",
    )

    parser.add_argument(
        "--providers",
        type=str,
        help=f"Comma-separated providers. Available: {', '.join(available_providers)}",
        default=os.environ.get("PROVIDERS") or "binance,kraken,coinbase",
    )

    parser.add_argument(
        "--symbols",
        type=str,
        help="Comma-separated base symbols to subscribe (e.g., atom,eth,btc)",
        default=os.environ.get("SYMBOLS") or "BTC,ETH,ATOM",
    )

    parser.add_argument(
        "--quotes",
        type=str,
        help="Comma-separated stablecoin quotes base symbols are paired with (default: USD,USDT,UST)",
        default=os.environ.get("QUOTES") or "USD,USDT,UST",
    )

    parser.add_argument(
        "--tick-period",
        dest="tick_period",
        type=int,
        help="Milliseconds between oracle ticks (minimum: 100, default: 1000)",
        default=int(os.environ.get("TICK_PERIOD_MS") or "1000"),
    )

    parser.add_argument(
        "--refresh-period",
        dest="refresh_period",
        type=int,
        help="Seconds between available pairs refreshes (default: 86400)",
        default=int(os.environ.get("AVAILABLE_PAIRS_REFRESH") or "86400"),
    )

    parser.add_argument(
        "--deviation-threshold",
        dest="deviation_threshold",
        type=str,
        help="Standard deviations from the mean before a provider is rejected (default: 2.0)",
        default=os.environ.get("DEVIATION_THRESHOLD") or "2.0",
    )

    parser.add_argument(
        "--fetch-timeout",
        dest="fetch_timeout",
        type=float,
        help="Timeout for individual provider requests in seconds (default: 10.0)",
        default=float(os.environ.get("FETCH_TIMEOUT") or "10.0"),
    )

    parser.add_argument(
        "--report-period",
        dest="report_period",
        type=float,
        help="Seconds between price reports in the log (default: 30)",
        default=float(os.environ.get("REPORT_PERIOD") or "30"),
    )

    parser.add_argument(
        "--api-keys",
        dest="api_keys",
        type=str,
        help="Comma-separated API keys (e.g., binance=abc)",
        default=os.environ.get("API_KEYS"),
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse and validate CLI arguments.

    Validation failures exit through ``parser.error``. On success the
    namespace carries parsed lists (providers, symbols, quotes), the
    threshold as Decimal and the merged API keys.

    :param argv: Arguments (default: sys.argv[1:]).
    :returns: Validated namespace.
    """
    available_providers = get_available_providers()
    parser = build_parser(available_providers)
    args = parser.parse_args(argv)

    if args.tick_period < 100:
        parser.error("--tick-period must be at least 100 milliseconds")

    if args.refresh_period < 1:
        parser.error("--refresh-period must be at least 1 second")

    if args.report_period <= 0:
        parser.error("--report-period must be positive")

    try:
        args.deviation_threshold = Decimal(args.deviation_threshold)
    except InvalidOperation:
        parser.error(f"Invalid --deviation-threshold: {args.deviation_threshold}")
    if args.deviation_threshold <= 0:
        parser.error("--deviation-threshold must be positive")

    args.providers = parse_list(args.providers)
    args.symbols = parse_list(args.symbols, upper=True)
    args.quotes = parse_list(args.quotes, upper=True)

    if not args.providers:
        parser.error("At least one provider must be specified")

    if not args.quotes:
        parser.error("At least one quote symbol must be specified")

    invalid_providers = [p for p in args.providers if p not in available_providers]
    if invalid_providers:
        parser.error(
            f"Unknown providers: {invalid_providers}. "
            f"Available: {', '.join(available_providers)}"
        )

    # Parse API keys (CLI + environment)
    api_keys = parse_env_api_keys()
    api_keys.update(parse_api_keys(args.api_keys))
    args.api_keys = api_keys

    return args


async def report_prices(oracle: PriceOracle, period: float) -> None:
    """Log the canonical price of every subscribed symbol periodically.

    :param oracle: Running oracle.
    :param period: Seconds between reports.
    """
    while True:
        await asyncio.sleep(period)
        for base in sorted(oracle.subscribed_symbols):
            try:
                logger.info(f"{base}: {oracle.get_price(base)}")
            except PriceNotFoundError as e:
                logger.warning(str(e))
        failing = [
            name for name, status in oracle.provider_status().items()
            if status.consecutive_failures > 0
        ]
        if failing:
            logger.warning(f"Failing providers: {', '.join(failing)}")


async def run_oracle(oracle: PriceOracle, symbols: list[str], report_period: float) -> None:
    """Start the oracle, subscribe symbols and run until SIGINT/SIGTERM.

    :param oracle: Oracle to run.
    :param symbols: Base symbols to subscribe.
    :param report_period: Seconds between price reports.
    """
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, oracle.scheduler.request_stop)
        except NotImplementedError:
            # Windows event loops have no signal handler support
            pass

    await oracle.start()
    reporter = asyncio.create_task(report_prices(oracle, report_period))
    try:
        try:
            await oracle.subscribe_symbols(*symbols)
        except OracleError as e:
            logger.error(f"Subscribing {symbols} failed: {e}")
        await oracle.run()
    finally:
        reporter.cancel()
        await asyncio.gather(reporter, return_exceptions=True)


def main() -> None:
    """Main entry point for the Price Feeder CLI."""
    args = parse_args()

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    # Log configuration
    logger.info("=" * 60)
    logger.info("Price Feeder - Multi-Provider Aggregation")
    logger.info("=" * 60)
    logger.info(f"Providers:           {', '.join(args.providers)}")
    logger.info(f"Symbols:             {', '.join(args.symbols) or 'none'}")
    logger.info(f"Quotes:              {', '.join(args.quotes)}")
    logger.info(f"Tick Period:         {args.tick_period}ms")
    logger.info(f"Pairs Refresh:       {args.refresh_period}s")
    logger.info(f"Deviation Threshold: {args.deviation_threshold}σ")
    logger.info(f"Fetch Timeout:       {args.fetch_timeout}s")
    if args.api_keys:
        logger.info(f"API Keys:            {', '.join(args.api_keys.keys())}")
    logger.info("=" * 60)

    try:
        oracle = PriceOracle.from_provider_names(
            args.providers,
            api_keys=args.api_keys,
            fetch_timeout=args.fetch_timeout,
            tick_period=args.tick_period / 1000,
            refresh_period=args.refresh_period,
            deviation_threshold=args.deviation_threshold,
            quotes=args.quotes,
        )
        asyncio.run(run_oracle(oracle, args.symbols, args.report_period))
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
