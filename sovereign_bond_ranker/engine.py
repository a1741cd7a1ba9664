from __future__ import annotations

import logging
import math
import numpy as np
import pandas as pd
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from .bonds import Bond, capital_weight, years_to_maturity
from .calibration import calibrate_lambda_base
from .config import InvestorProfile, ScoringConfig
from .fx import FxRiskModel
from .normalization import WinsorScaler
from .spreads import SovereignSpreadResolver
from .utils import as_of_date

logger = logging.getLogger(__name__)


def fx_capital_penalty(
    bond_ccy: str,
    report_ccy: str,
    years: float,
    capital_weight: float,
    capital_sensitivity: float,
    lam: float,
    correlation: float,
    fx_model: FxRiskModel,
    sigma_scale: float = 1.0,
) -> float:
    """
    penalty = lam * (1 - exp(-sigma*sqrt(years)*risk_sensitivity)) * correlation
    with risk_sensitivity = 1 + capital_weight*capital_sensitivity.
    Zero for bonds already denominated in the report currency.
    """
    if bond_ccy.upper() == report_ccy.upper():
        return 0.0

    sigma = fx_model.pair_sigma(bond_ccy, report_ccy) * sigma_scale
    risk_sensitivity = 1.0 + capital_weight * capital_sensitivity
    exposure = sigma * math.sqrt(max(0.0, years)) * risk_sensitivity
    return lam * (1.0 - math.exp(-exposure)) * correlation


@dataclass(frozen=True)
class MarketContext:
    """Per-run, per-report-currency state shared by every bond."""
    report_ccy: str
    secondary: bool
    current_scaler: WinsorScaler
    total_scaler: WinsorScaler
    lambda_base: float
    as_of: pd.Timestamp


@dataclass(frozen=True)
class ScoringEngine:
    config: ScoringConfig
    spreads: SovereignSpreadResolver
    spread_shift_bp: float = 0.0
    sigma_scale: float = 1.0

    # ---- market-wide calibration ----

    def uses_secondary(self, report_ccy: str) -> bool:
        return report_ccy.upper() == self.config.secondary_currency

    def market_samples(self, bonds: Sequence[Bond], report_ccy: str) -> Tuple[np.ndarray, np.ndarray]:
        secondary = self.uses_secondary(report_ccy)
        pairs = [b.yields_for(secondary) for b in bonds]
        cur = np.array([p[0] for p in pairs], dtype=float)
        tot = np.array([p[1] for p in pairs], dtype=float)
        return cur, tot

    def lambda_base(self, bonds: Sequence[Bond], report_ccy: str) -> float:
        cur, tot = self.market_samples(bonds, report_ccy)
        lower, upper = self.config.normalization
        return calibrate_lambda_base(cur, tot, lower=lower, upper=upper, **self.config.calibration)

    def market_context(
        self,
        bonds: Sequence[Bond],
        report_ccy: str,
        as_of: Optional[pd.Timestamp] = None,
    ) -> MarketContext:
        report_ccy = report_ccy.upper()
        cur, tot = self.market_samples(bonds, report_ccy)
        lower, upper = self.config.normalization
        ctx = MarketContext(
            report_ccy=report_ccy,
            secondary=self.uses_secondary(report_ccy),
            current_scaler=WinsorScaler.fit(cur, lower, upper),
            total_scaler=WinsorScaler.fit(tot, lower, upper),
            lambda_base=calibrate_lambda_base(cur, tot, lower=lower, upper=upper, **self.config.calibration),
            as_of=as_of_date(as_of),
        )
        logger.info("%s lambdaBase: %.4f", report_ccy, ctx.lambda_base, extra={"report_ccy": report_ccy})
        return ctx

    # ---- per bond ----

    def spread_for(self, bond: Bond) -> float:
        return max(0.0, self.spreads.spread_for_issuer(bond.issuer) + self.spread_shift_bp)

    def profile_score(
        self,
        profile: InvestorProfile,
        norm_c: float,
        norm_t: float,
        cap_weight: float,
        quality: float,
        bond_ccy: str,
        report_ccy: str,
        years: float,
        lambda_base: float,
    ) -> float:
        credit = self.config.credit_model
        base = profile.alpha * norm_c + (1.0 - profile.alpha) * norm_t
        penalty = fx_capital_penalty(
            bond_ccy,
            report_ccy,
            years,
            cap_weight,
            profile.capital_sensitivity,
            lambda_base * profile.lambda_factor,
            credit.fx_correlation(quality),
            self.config.fx_model,
            self.sigma_scale,
        )
        adjusted = credit.adjusted_quality(quality, profile.risk_aversion)
        return max(0.0, (base - penalty) * adjusted)

    def score_bond(self, bond: Bond, ctx: MarketContext) -> Dict[str, float]:
        """Profile name -> score for one bond. Profiles never see each other's results."""
        current, total = bond.yields_for(ctx.secondary)
        norm_c = ctx.current_scaler.transform(current)
        norm_t = ctx.total_scaler.transform(total)
        cap_weight = capital_weight(current, total)
        years = years_to_maturity(bond, ctx.as_of)
        quality = self.config.credit_model.quality(self.spread_for(bond))

        return {
            p.name: self.profile_score(
                p, norm_c, norm_t, cap_weight, quality, bond.currency, ctx.report_ccy, years, ctx.lambda_base
            )
            for p in self.config.profiles
        }

    def _row(self, bond: Bond, ctx: MarketContext) -> Dict[str, object]:
        spread = self.spread_for(bond)
        row: Dict[str, object] = {
            "isin": bond.isin,
            "issuer": bond.issuer,
            "currency": bond.currency,
            "maturity": pd.Timestamp(bond.maturity),
            "years": years_to_maturity(bond, ctx.as_of),
            "spread_bps": spread,
            "credit_quality": self.config.credit_model.quality(spread),
            "rating": self.config.rating_book.rating_for_issuer(bond.issuer),
        }
        row.update(self.score_bond(bond, ctx))
        return row

    # ---- universe ----

    def score_universe(
        self,
        bonds: Sequence[Bond],
        report_ccy: str,
        as_of: Optional[pd.Timestamp] = None,
        max_workers: Optional[int] = None,
    ) -> pd.DataFrame:
        """
        Score every bond against the universe's own yield distribution and
        return one row per bond, ranked descending on the ranking profile.
        """
        bonds = list(bonds)
        ctx = self.market_context(bonds, report_ccy, as_of)

        if max_workers and max_workers > 1 and len(bonds) > 1:
            with ThreadPoolExecutor(max_workers=max_workers) as pool:
                rows: List[Dict[str, object]] = list(pool.map(lambda b: self._row(b, ctx), bonds))
        else:
            rows = [self._row(b, ctx) for b in bonds]

        columns = ["isin", "issuer", "currency", "maturity", "years", "spread_bps", "credit_quality", "rating"]
        columns += [p.name for p in self.config.profiles]
        out = pd.DataFrame(rows, columns=columns)
        if out.empty:
            return out

        rank_col = self.config.ranking_profile
        return out.sort_values([rank_col, "isin"], ascending=[False, True], kind="mergesort").reset_index(drop=True)


def build_engine(
    config: ScoringConfig,
    providers: Sequence = (),
) -> ScoringEngine:
    """Trust rules + merged spread book, built once and shared read-only for the run."""
    trust = config.trust_resolver()
    spreads = SovereignSpreadResolver.from_providers(
        providers,
        trust,
        synthetic=config.synthetic_spreads,
        default_spread_bps=config.default_spread_bps,
    )
    return ScoringEngine(config=config, spreads=spreads)
