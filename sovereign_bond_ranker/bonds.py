from __future__ import annotations

import logging
import math
import pandas as pd
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

from .fx import FxPhase, FxRiskModel, MissingFxRateError
from .utils import as_of_date, whole_years, yearfrac

logger = logging.getLogger(__name__)

INIT_INVESTMENT = 1000.0


@dataclass(frozen=True)
class Bond:
    isin: str
    issuer: str
    currency: str
    price: float
    coupon_pct: float
    maturity: pd.Timestamp
    current_yield_pct: float
    total_yield_to_maturity: float
    current_yield_pct_secondary: float = float("nan")
    total_yield_to_maturity_secondary: float = float("nan")

    def yields_for(self, secondary: bool = False) -> Tuple[float, float]:
        """
        (current yield, total yield to maturity) in the primary or secondary
        reporting currency. Falls back to the primary pair when the secondary
        one was not supplied.
        """
        missing = math.isnan(self.current_yield_pct_secondary) or math.isnan(self.total_yield_to_maturity_secondary)
        if secondary and not missing:
            return self.current_yield_pct_secondary, self.total_yield_to_maturity_secondary
        return self.current_yield_pct, self.total_yield_to_maturity


def years_to_maturity(bond: Bond, as_of: Optional[pd.Timestamp] = None) -> float:
    as_of = as_of_date(as_of)
    maturity = pd.Timestamp(bond.maturity)
    if maturity <= as_of:
        return 0.0
    return yearfrac(as_of, maturity)


def capital_weight(current_yield: float, total_yield: float) -> float:
    """Share of the total yield coming from pull-to-par rather than coupons."""
    if not total_yield > 0:
        return 0.0
    return max(0.0, total_yield - current_yield) / total_yield


def _total_yield_pct(coupon_pct: float, price: float, years: float) -> float:
    # running yield plus pull-to-par spread over the remaining whole years
    current = coupon_pct * 100.0 / price
    gain = (100.0 - price) / price * 100.0 / years
    return current + gain


def build_bond(
    isin: str,
    issuer: str,
    currency: str,
    price: float,
    price_report: float,
    price_secondary: float,
    coupon_pct: float,
    maturity: pd.Timestamp,
    as_of: Optional[pd.Timestamp] = None,
    min_years: float = 1.0,
) -> Optional[Bond]:
    """
    Bond record as handed over by the calculator. `price_report` and
    `price_secondary` are the bond price expressed in the two reporting
    currencies. Returns None for bonds at or below `min_years`.
    """
    as_of = as_of_date(as_of)
    maturity = pd.Timestamp(maturity)

    years = whole_years(as_of, maturity)
    if years <= min_years:
        return None
    if price_report <= 0 or price_secondary <= 0 or coupon_pct <= 0:
        return None

    return Bond(
        isin=isin,
        issuer=issuer,
        currency=currency.upper(),
        price=price,
        coupon_pct=coupon_pct,
        maturity=maturity,
        current_yield_pct=round(coupon_pct * 100.0 / price_report, 2),
        total_yield_to_maturity=round(_total_yield_pct(coupon_pct, price_report, years), 2),
        current_yield_pct_secondary=round(coupon_pct * 100.0 / price_secondary, 2),
        total_yield_to_maturity_secondary=round(_total_yield_pct(coupon_pct, price_secondary, years), 2),
    )


def project_final_capital(
    bond: Bond,
    report_ccy: str,
    fx_rates: Mapping[str, float],
    fx_model: FxRiskModel,
    years: float,
) -> Tuple[float, float]:
    """
    Final capital of INIT_INVESTMENT held to maturity under the degraded FX scenario,
    and the simple annual yield in percent.

    - purchase at the BUY spot
    - coupons converted at the COUPON multiplier (haircut at T/2)
    - redemption at 100 converted at the MATURITY multiplier (haircut at T)

    Returns (nan, nan) when a reference rate is missing.
    """
    if years <= 0 or bond.price <= 0:
        return float("nan"), float("nan")

    try:
        fx = fx_model.phase_multipliers(bond.currency, report_ccy, years, fx_rates)
    except MissingFxRateError as exc:
        logger.warning(
            "%s: no FX projection for %s->%s (%s)", bond.isin, bond.currency, report_ccy, exc,
            extra={"report_ccy": report_ccy},
        )
        return float("nan"), float("nan")

    n_bonds = INIT_INVESTMENT / (fx[FxPhase.BUY] * bond.price)
    coupons = n_bonds * bond.coupon_pct * math.floor(years) * fx[FxPhase.COUPON]
    redemption = 100.0 * n_bonds * fx[FxPhase.MATURITY]

    final_capital = coupons + redemption
    simple_annual_yield = (final_capital - INIT_INVESTMENT) / (10.0 * years)
    return final_capital, simple_annual_yield
