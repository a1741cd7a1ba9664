from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from .config import ConfigError, load_config
from .logging_utils import LogPaths, configure_logging
from .pipeline import default_providers, run_batch, write_unknown_issuer_alerts
from .providers import EcbFxProvider
from .universe import bonds_from_frame

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sovereign-bond-ranker",
        description="Rank sovereign bonds per investor profile after FX and credit adjustment.",
    )
    parser.add_argument("--bonds", required=True, help="CSV of bond records")
    parser.add_argument("--out-dir", default="out", help="Directory for ranked CSVs")
    parser.add_argument("--config", default=None, help="YAML config overriding the built-in tables")
    parser.add_argument("--spread-snapshot", default=None, help="CSV (country,spread_bps) used to fill spread gaps")
    parser.add_argument("--fx-rates", default=None, help="CSV (currency,rate) of EUR reference rates")
    parser.add_argument("--offline", action="store_true", help="Skip live spread and FX sources")
    parser.add_argument("--as-of", default=None, help="Valuation date (YYYY-MM-DD), default today")
    parser.add_argument("--workers", type=int, default=None, help="Thread pool size for scoring")
    parser.add_argument("--alerts", default="docs/alerts.txt", help="Unknown issuer alert file")
    parser.add_argument("--log-level", default="INFO")
    parser.add_argument("--log-file", default=None)
    return parser


def _read_fx_csv(path: Path) -> Dict[str, float]:
    df = pd.read_csv(path)
    rates = {str(c).upper(): float(r) for c, r in zip(df["currency"], df["rate"])}
    rates.setdefault("EUR", 1.0)
    return rates


def _load_fx(args: argparse.Namespace, timeout: float) -> Optional[Dict[str, float]]:
    if args.fx_rates:
        return _read_fx_csv(Path(args.fx_rates))
    if args.offline:
        return None
    try:
        return EcbFxProvider(timeout=timeout).fetch_rates()
    except Exception as exc:
        logger.warning("FX source failed, FX projection skipped: %s", exc)
        return None


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(LogPaths(args.log_level.upper(), Path(args.log_file) if args.log_file else None))

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        logger.error("Invalid config: %s", exc)
        return 2

    bonds = bonds_from_frame(pd.read_csv(args.bonds, parse_dates=["maturity"]))
    fx_rates = _load_fx(args, config.provider_timeout)
    providers = default_providers(
        config,
        offline=args.offline,
        snapshot=Path(args.spread_snapshot) if args.spread_snapshot else None,
    )

    result = run_batch(
        bonds,
        config,
        providers=providers,
        fx_rates=fx_rates,
        as_of=pd.Timestamp(args.as_of) if args.as_of else None,
        max_workers=args.workers,
    )

    out_dir = Path(args.out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    for ccy, ranked in result.rankings.items():
        path = out_dir / f"ranking_{ccy.lower()}.csv"
        ranked.to_csv(path, index=False)
        logger.info("Wrote %s (%d bonds)", path, len(ranked))

    write_unknown_issuer_alerts(Path(args.alerts), result.unknown_issuers)
    return 0


if __name__ == "__main__":
    sys.exit(main())
