from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from .bonds import Bond, project_final_capital
from .config import ScoringConfig, config_hash
from .engine import ScoringEngine, build_engine
from .logging_utils import set_run_context
from .providers import (
    CsvSpreadProvider,
    SpreadOggiSpreadProvider,
    SpreadProvider,
    TradingEconomicsSpreadProvider,
)
from .universe import filter_universe
from .utils import as_of_date

logger = logging.getLogger(__name__)


def default_providers(
    config: ScoringConfig,
    offline: bool = False,
    snapshot: Optional[Path] = None,
) -> List[SpreadProvider]:
    """Primary live source, secondary live source, then the local snapshot; later ones only fill gaps."""
    providers: List[SpreadProvider] = []
    if not offline:
        providers.append(SpreadOggiSpreadProvider(timeout=config.provider_timeout))
        providers.append(TradingEconomicsSpreadProvider(timeout=config.provider_timeout))
    if snapshot is not None:
        providers.append(CsvSpreadProvider(snapshot))
    return providers


def add_fx_projection(
    ranked: pd.DataFrame,
    bonds: Sequence[Bond],
    report_ccy: str,
    fx_rates: Mapping[str, float],
    engine: ScoringEngine,
) -> pd.DataFrame:
    by_isin = {b.isin: b for b in bonds}
    finals, says = [], []
    for isin, years in zip(ranked["isin"], ranked["years"]):
        final, say = project_final_capital(by_isin[isin], report_ccy, fx_rates, engine.config.fx_model, float(years))
        finals.append(final)
        says.append(say)
    out = ranked.copy()
    out["final_capital"] = np.round(finals, 2)
    out["simple_annual_yield"] = np.round(says, 3)
    return out


@dataclass(frozen=True)
class BatchResult:
    rankings: Dict[str, pd.DataFrame]
    unknown_issuers: List[str]
    lambda_base: Dict[str, float]


def run_batch(
    bonds: Iterable[Optional[Bond]],
    config: ScoringConfig,
    providers: Sequence = (),
    fx_rates: Optional[Mapping[str, float]] = None,
    as_of: Optional[pd.Timestamp] = None,
    report_currencies: Optional[Sequence[str]] = None,
    max_workers: Optional[int] = None,
) -> BatchResult:
    """
    One scoring pass: spreads resolved once, universe scored per report
    currency. Rankings are keyed by report currency.
    """
    as_of = as_of_date(as_of)
    digest = config_hash(config)
    set_run_context(digest)
    logger.info("Config %s", digest[:12])

    universe = filter_universe(bonds, as_of, config.min_years)
    logger.info("Loaded %d bonds", len(universe))

    engine = build_engine(config, providers)
    logger.info("Spreads loaded: %d countries", len(engine.spreads.spreads))

    out: Dict[str, pd.DataFrame] = {}
    lambdas: Dict[str, float] = {}
    for ccy in report_currencies or config.report_currencies:
        lambdas[ccy.upper()] = engine.lambda_base(universe, ccy)
        ranked = engine.score_universe(universe, ccy, as_of, max_workers=max_workers)
        if fx_rates and not ranked.empty:
            ranked = add_fx_projection(ranked, universe, ccy, fx_rates, engine)
        out[ccy.upper()] = ranked

    unknown = engine.spreads.trust.unknown
    if len(unknown):
        logger.warning("%d unknown issuers found", len(unknown))
    return BatchResult(rankings=out, unknown_issuers=unknown.sorted(), lambda_base=lambdas)


def write_unknown_issuer_alerts(path: Path, issuers: Iterable[str], now: Optional[datetime] = None) -> bool:
    """Write the alert file when there are unknown issuers, remove a stale one otherwise."""
    path = Path(path)
    names = sorted(set(issuers))

    if not names:
        if path.exists():
            path.unlink()
            logger.info("Removed stale alert file %s", path)
        return False

    now = now or datetime.now()
    lines = ["--- UNKNOWN ISSUERS REPORT ---", f"Generated on: {now.isoformat(timespec='seconds')}", ""]
    lines.extend(names)

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    logger.warning("%d unknown issuers found. Check %s", len(names), path)
    return True
