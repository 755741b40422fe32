#!/usr/bin/env python3
"""
Replay a price CSV through a strategy, print the portfolio summary and
optionally store the result in Redis.

**Usage**:
    python actions/run_backtest.py data/BTCUSDT_1h_202306010000_202306100000.csv \
        --pair BTC/USDT --strategy step-alternating \
        --amount-per-order 10 --initial-base 100000 --initial-quote 100

    python actions/run_backtest.py prices.csv --pair BTC/USDT --strategy fixed-grid \
        --param take_profit_pct=0.02 --store

**What this script does**:
  1. Configure logging from the environment (.env).
  2. Read and validate the price CSV.
  3. Build the strategy from its registry key and --param overrides.
  4. Replay every bar and build the portfolio result.
  5. Print the summary; with --store, persist it and print id/version.

**Example output**:
    Loading prices from prices.csv...
    ✓ Loaded 217 bars (2023-06-01 00:00:00+00:00 -> 2023-06-10 00:00:00+00:00)
    Running 'Step Alternating' on BTC/USDT...
    ✓ 217 orders (12 filled, 3 canceled, 202 open)
    ...
"""

import argparse
import sys
from pathlib import Path

# Add project root to Python path so we can import bar_replay modules
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from bar_replay.analytics.portfolio import PortfolioResult, build_portfolio_result
from bar_replay.backtesting.engine import BacktestParams, run_backtest
from bar_replay.config.settings import get_settings
from bar_replay.data.io import read_price_csv
from bar_replay.data.schemas import PriceFeedError
from bar_replay.execution.orders import OrderState
from bar_replay.storage.result_store import ResultStore, StorageError
from bar_replay.strategies.registry import available_strategies, build_strategy
from bar_replay.utils.logging import configure_logging


def parse_param(text: str) -> tuple[str, object]:
    """
    Parse a KEY=VALUE strategy override. Values become int, then float, else str.

    Raises:
        argparse.ArgumentTypeError: If there is no '='.
    """
    if "=" not in text:
        raise argparse.ArgumentTypeError(f"Expected KEY=VALUE, got: {text}")
    key, raw = text.split("=", 1)
    for cast in (int, float):
        try:
            return key.strip(), cast(raw)
        except ValueError:
            continue
    return key.strip(), raw


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Replay a price CSV through a strategy",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"Strategies: {', '.join(available_strategies())}",
    )
    parser.add_argument("csv_path", help="Price CSV (timestamp,open,high,low,close)")
    parser.add_argument("--pair", required=True, help="Trading pair, e.g. BTC/USDT")
    parser.add_argument(
        "--strategy",
        default="step-alternating",
        choices=available_strategies(),
        help="Strategy registry key (default: step-alternating)",
    )
    parser.add_argument(
        "--param",
        action="append",
        type=parse_param,
        default=[],
        metavar="KEY=VALUE",
        help="Strategy constructor override (repeatable)",
    )
    parser.add_argument("--amount-per-order", type=float, default=10.0,
                        help="Quote value per order (default: 10)")
    parser.add_argument("--initial-base", type=float, default=100000.0,
                        help="Starting base balance (default: 100000)")
    parser.add_argument("--initial-quote", type=float, default=100.0,
                        help="Starting quote balance (default: 100)")
    parser.add_argument("--store", action="store_true",
                        help="Persist the result to the Redis result store")
    parser.add_argument("--json", action="store_true",
                        help="Print the full result JSON instead of the summary")
    return parser.parse_args(argv)


def print_summary(result: PortfolioResult) -> None:
    states = {state: 0 for state in OrderState}
    for order in result.orders:
        states[order.state] += 1

    print(f"✓ {len(result.orders)} orders "
          f"({states[OrderState.FILLED]} filled, {states[OrderState.CANCELED]} canceled, "
          f"{states[OrderState.OPEN]} open)")
    print()
    print(f"  Pair:              {result.pair}")
    print(f"  Strategy:          {result.strategy}")
    print(f"  Period:            {result.start} -> {result.end}")
    print(f"  {result.base_coin:<5} initial/final:  {result.initial_base_amount:.8f} / {result.current_base_amount:.8f}")
    print(f"  {result.quote_coin:<5} initial/final:  {result.initial_quote_amount:.4f} / {result.current_quote_amount:.4f}")
    print(f"  Initial value:     {result.initial_value:.4f} {result.quote_coin}")
    print(f"  Current value:     {result.current_value:.4f} {result.quote_coin}")
    print(f"  Profit:            {result.profit:.4f} {result.quote_coin}")
    margin = f"{result.profit_margin:.4f}%" if result.profit_margin is not None else "n/a"
    cagr = f"{result.cagr:.4f}%" if result.cagr is not None else "n/a"
    print(f"  Profit margin:     {margin}")
    print(f"  CAGR:              {cagr}")
    for warning in result.metric_warnings:
        print(f"  ⚠ {warning}")


def main(argv=None) -> int:
    args = parse_args(argv)
    settings = get_settings()
    configure_logging(settings.logging)

    print(f"Loading prices from {args.csv_path}...")
    try:
        series = read_price_csv(args.csv_path)
    except (FileNotFoundError, PriceFeedError) as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1
    print(f"✓ Loaded {len(series)} bars ({series.start} -> {series.end})")

    try:
        params = BacktestParams(
            pair=args.pair,
            amount_per_order=args.amount_per_order,
            initial_base_amount=args.initial_base,
            initial_quote_amount=args.initial_quote,
        )
        strategy = build_strategy(args.strategy, **dict(args.param))
    except (KeyError, TypeError, ValueError) as e:
        print(f"✗ Invalid configuration: {e}", file=sys.stderr)
        return 2

    print(f"Running '{strategy.name()}' on {params.pair}...")
    replay = run_backtest(series, strategy, params)
    result = build_portfolio_result(replay)

    if args.json:
        print(result.to_json())
    else:
        print_summary(result)

    if args.store:
        try:
            ref = ResultStore.from_settings(settings.redis).store(result)
        except StorageError as e:
            print(f"✗ {e}", file=sys.stderr)
            return 3
        print(f"✓ Stored as {ref.result_id} (version {ref.version})")

    return 0


if __name__ == "__main__":
    sys.exit(main())
