from __future__ import annotations

import dataclasses
import pandas as pd
from typing import Dict, Sequence, Tuple

from .bonds import Bond
from .engine import ScoringEngine

SPREAD_SHOCKS_BP = {"SPR_+25bp": 25.0, "SPR_+100bp": 100.0}
FX_VOL_SHOCKS = {"FXVOL_x1.5": 1.5, "FXVOL_x2": 2.0}


def _scores(engine: ScoringEngine, bonds: Sequence[Bond], report_ccy: str, as_of: pd.Timestamp) -> pd.DataFrame:
    profiles = [p.name for p in engine.config.profiles]
    ranked = engine.score_universe(bonds, report_ccy, as_of)
    return ranked[["isin"] + profiles]


def _run_shocks(
    engine: ScoringEngine,
    bonds: Sequence[Bond],
    report_ccy: str,
    as_of: pd.Timestamp,
    shocked_engines: Dict[str, ScoringEngine],
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    rank_col = engine.config.ranking_profile
    base = _scores(engine, bonds, report_ccy, as_of)[["isin", rank_col]].rename(columns={rank_col: "base"})

    per_bond = base.copy()
    for name, shocked in shocked_engines.items():
        s = _scores(shocked, bonds, report_ccy, as_of)[["isin", rank_col]].rename(columns={rank_col: name})
        per_bond = per_bond.merge(s, on="isin", how="left")
        per_bond[name + "_chg"] = per_bond[name] - per_bond["base"]

    chg_cols = [c for c in per_bond.columns if c.endswith("_chg")]
    summary = pd.DataFrame({"scenario": chg_cols, "mean_score_change": [per_bond[c].mean() for c in chg_cols]})
    return per_bond, summary


def run_spread_scenarios(
    engine: ScoringEngine,
    bonds: Sequence[Bond],
    report_ccy: str,
    as_of: pd.Timestamp,
    shocks_bp: Dict[str, float] = SPREAD_SHOCKS_BP,
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Parallel widening of every sovereign spread; ranking-profile score change per bond."""
    shocked = {
        name: dataclasses.replace(engine, spread_shift_bp=engine.spread_shift_bp + bump)
        for name, bump in shocks_bp.items()
    }
    return _run_shocks(engine, bonds, report_ccy, as_of, shocked)


def run_fx_vol_scenarios(
    engine: ScoringEngine,
    bonds: Sequence[Bond],
    report_ccy: str,
    as_of: pd.Timestamp,
    scales: Dict[str, float] = FX_VOL_SHOCKS,
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Pair sigmas scaled up; only foreign-currency bonds can move."""
    shocked = {
        name: dataclasses.replace(engine, sigma_scale=engine.sigma_scale * k)
        for name, k in scales.items()
    }
    return _run_shocks(engine, bonds, report_ccy, as_of, shocked)


def run_combined_scenarios(
    engine: ScoringEngine,
    bonds: Sequence[Bond],
    report_ccy: str,
    as_of: pd.Timestamp,
    spread_shocks_bp: Sequence[float] = (0, 25, 100),
    sigma_scales: Sequence[float] = (1.0, 1.5, 2.0),
) -> pd.DataFrame:
    profiles = [p.name for p in engine.config.profiles]

    rows = []
    for s_bp in spread_shocks_bp:
        for k in sigma_scales:
            shocked = dataclasses.replace(engine, spread_shift_bp=engine.spread_shift_bp + s_bp, sigma_scale=engine.sigma_scale * k)
            scores = _scores(shocked, bonds, report_ccy, as_of)
            row = {"spread_shock_bp": s_bp, "sigma_scale": k}
            for p in profiles:
                row[f"mean_{p}"] = float(scores[p].mean())
            rows.append(row)

    out = pd.DataFrame(rows)
    return out.sort_values(["spread_shock_bp", "sigma_scale"]).reset_index(drop=True)
