"""
Flash-loan arbitrage scanner CLI.

Usage:
    flash-arb --config configs/flash_arb.example.yaml --once
    flash-arb --config configs/flash_arb.yaml --metrics-port 8000
"""

import argparse
import asyncio
import signal
import sys
from typing import List, Optional

from .config import load_config
from .exceptions import ConfigurationError
from .metrics import ArbitrageMetrics
from .runner import ArbitrageRunner
from .settlement import DryRunSettlement
from .utils import format_amount, get_logger, set_log_level

logger = get_logger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Cross-DEX flash-loan arbitrage scanner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Single paper scan against static snapshots
  flash-arb --config configs/flash_arb.example.yaml --once

  # Continuous scan with Prometheus metrics on :8000
  flash-arb --config configs/flash_arb.yaml --metrics-port 8000
        """,
    )

    parser.add_argument(
        "--config",
        default="configs/flash_arb.example.yaml",
        help="Path to config YAML file (default: configs/flash_arb.example.yaml)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single cycle and exit (overrides config setting)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Never submit settlements (overrides config setting)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--metrics-port",
        type=int,
        default=None,
        help="Serve Prometheus metrics on this port",
    )

    return parser.parse_args(argv)


def _print_outcomes(outcomes) -> None:
    if not outcomes:
        print("No opportunities this cycle")
        return
    for outcome in outcomes:
        opp = outcome.assessment.opportunity
        estimate = outcome.assessment.estimate
        line = f"{opp.describe()} | {estimate.format_log()}"
        if outcome.settlement is not None:
            status = "settled" if outcome.settlement.success else "settlement failed"
            line += f" | {status}"
            if outcome.settlement.realized_profit is not None:
                line += f" ({format_amount(outcome.settlement.realized_profit)})"
        elif outcome.skipped_reason:
            line += f" | skipped: {outcome.skipped_reason}"
        print(line)


async def _run(runner: ArbitrageRunner, once: bool, metrics_port: Optional[int]) -> None:
    metrics = runner.metrics
    if metrics is not None and metrics_port is not None:
        await metrics.start_server(port=metrics_port)

    try:
        if once:
            _print_outcomes(await runner.run_cycle())
            return

        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, stop_event.set)
            except NotImplementedError:
                # Windows event loops have no signal handlers
                pass
        await runner.run_forever(stop_event)
    finally:
        if metrics is not None and metrics_port is not None:
            await metrics.stop_server()


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    args = parse_args(argv)
    set_log_level(args.log_level)

    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        print(f"Config error: {e}", file=sys.stderr)
        return 1

    if args.once:
        config.runner.once = True
    if args.dry_run:
        config.runner.dry_run = True

    if not config.runner.dry_run:
        print(
            "Config error: live settlement needs a SettlementService wired in code; "
            "the CLI only runs dry",
            file=sys.stderr,
        )
        return 1

    metrics = ArbitrageMetrics() if args.metrics_port is not None else None
    try:
        runner = ArbitrageRunner.from_config(
            config, settlement=DryRunSettlement(), metrics=metrics
        )
    except ConfigurationError as e:
        print(f"Initialization failed: {e}", file=sys.stderr)
        return 1

    try:
        asyncio.run(_run(runner, config.runner.once, args.metrics_port))
    except KeyboardInterrupt:
        print("\nStopped by user")
    return 0


if __name__ == "__main__":
    sys.exit(main())
