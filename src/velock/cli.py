"""Command line entry point: run a ledger simulation and export the results."""

import argparse
import logging
import sys

from pydantic import ValidationError

from .config.loader import load_config
from .config.schema import Config
from .reporting.export import export_csv, export_events_csv, export_json
from .simulation.runner import SimulationRunner


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="velock-ledger",
        description="Simulate lock-weight accounting and fee streaming over a random user population."
    )
    parser.add_argument("--config", help="YAML config (defaults to the packaged defaults.yaml)")
    parser.add_argument("--seed", type=int, help="Override simulation.random_seed")
    parser.add_argument("--epochs", type=int, help="Override simulation.horizon_epochs")
    parser.add_argument("--csv", help="Write per-epoch metrics to this CSV file")
    parser.add_argument("--events-csv", help="Write the event log to this CSV file")
    parser.add_argument("--json", help="Write the full result to this JSON file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    config = load_config(args.config)
    if args.epochs is not None:
        data = config.to_dict()
        data['simulation']['horizon_epochs'] = args.epochs
        try:
            config = Config.from_dict(data)
        except ValidationError as exc:
            parser.error(f"--epochs {args.epochs}: {exc.errors()[0]['msg']}")

    result = SimulationRunner(config).run(random_seed=args.seed)

    if args.csv:
        export_csv(result, args.csv)
    if args.events_csv:
        export_events_csv(result, args.events_csv)
    if args.json:
        export_json(result, args.json, include_events=True)

    unit = 10 ** config.simulation.token_decimals
    final = result.final_metrics
    print(f"config {config.compute_hash()}  epochs {final['epochs']}  events {final['events_count']}")
    print(f"locked principal   {final['final_locked_principal'] / unit:,.2f}")
    print(f"total weight       {final['final_total_weight'] / unit:,.2f}")
    for token in config.simulation.fee_tokens:
        symbol = token.symbol
        print(
            f"{symbol:<8} deposited {final[f'fees_deposited_{symbol}'] / unit:,.2f}  "
            f"claimed {final[f'fees_claimed_{symbol}'] / unit:,.2f}  "
            f"stranded {final[f'fees_stranded_{symbol}'] / unit:,.2f}"
        )
    if result.conservation_errors:
        for error in result.conservation_errors:
            print(f"INVARIANT: {error}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
