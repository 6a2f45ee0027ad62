"""
BazaarFlow AI - Command-Line Runner
====================================

Runs one scheduled cycle per business from files and writes the ranked
action items as JSON.

Usage:
    bazaarflow --transactions sales.csv --catalog catalog.parquet \
        --business biz-001 --top-n 20 --output actions.json
"""

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

import pandas as pd

from .config import Config
from .exceptions import BazaarFlowError
from .pipeline import BusinessIntelligenceEngine, CycleReason
from .services.seasonal_adjuster import SeasonalCalendar
from .services.regional_adjuster import RegionalRegistry
from .utils.logger import get_logger, configure_logging

logger = get_logger(__name__)


def read_table(path: str) -> pd.DataFrame:
    """Read a CSV, Parquet or JSON records file into a DataFrame."""
    suffix = Path(path).suffix.lower()
    if suffix in ('.parquet', '.pq'):
        return pd.read_parquet(path)
    if suffix == '.json':
        return pd.read_json(path, orient='records')
    return pd.read_csv(path)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='bazaarflow',
        description='Run a BazaarFlow AI refresh cycle and export ranked action items',
    )
    parser.add_argument('--transactions', required=True, help='Transactions file (CSV/Parquet/JSON)')
    parser.add_argument('--catalog', required=True, help='Product catalog file (CSV/Parquet/JSON)')
    parser.add_argument('--events', help='Extra calendar event records (CSV/JSON)')
    parser.add_argument('--regional', help='Regional factor records (CSV/JSON)')
    parser.add_argument('--business', help='Business id (default: every business in the transactions)')
    parser.add_argument('--top-n', type=int, help='Number of action items per business')
    parser.add_argument('--cycle-ts', help='Logical cycle timestamp (default: now)')
    parser.add_argument('--output', help='Output JSON path (default: stdout)')
    parser.add_argument('--log-level', default=None, help='DEBUG, INFO, WARNING or ERROR')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    config = Config.from_env()
    if args.log_level:
        config.logging.level = args.log_level.upper()
    if args.top_n:
        config.composer.top_n = args.top_n
    config.cycle.auto_refresh = False
    config.validate()
    configure_logging(config.logging.level, config.logging.log_file)

    try:
        calendar = SeasonalCalendar.with_defaults(config)
        if args.events:
            calendar.load_records(read_table(args.events))

        regional = RegionalRegistry()
        if args.regional:
            regional.load_records(read_table(args.regional).to_dict(orient='records'))

        engine = BusinessIntelligenceEngine(config, calendar, regional)

        transactions = read_table(args.transactions)
        catalog = read_table(args.catalog)
        engine.ingest_transactions(transactions)

        businesses = [args.business] if args.business else sorted(
            transactions['business_id'].unique().tolist(), key=str
        )

        output = []
        for business_id in businesses:
            business_catalog = catalog
            if 'business_id' in catalog.columns:
                business_catalog = catalog[catalog['business_id'] == business_id]
            engine.load_catalog(business_id, business_catalog.drop(columns=['business_id'], errors='ignore'))
            result = engine.run_cycle(business_id, CycleReason.SCHEDULED, cycle_ts=args.cycle_ts)
            output.append(result.to_dict())
    except BazaarFlowError as e:
        logger.error(f"{type(e).__name__}: {e.message}")
        return 1

    payload = json.dumps(output, indent=2, default=str)
    if args.output:
        Path(args.output).write_text(payload, encoding='utf-8')
        logger.info(f"Wrote {sum(len(r['actions']) for r in output)} action items to {args.output}")
    else:
        sys.stdout.write(payload + "\n")
    return 0


if __name__ == '__main__':
    sys.exit(main())
