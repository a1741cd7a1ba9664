from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, Mapping, Tuple

Z_95_ONE_SIDED = 1.645


class FxPhase(str, Enum):
    BUY = "BUY"            # spot only
    COUPON = "COUPON"      # haircut at T/2
    MATURITY = "MATURITY"  # haircut at T


class MissingFxRateError(KeyError):
    pass


@dataclass(frozen=True)
class CurrencyRiskProfile:
    annual_vol: float
    kappa: float          # mean reversion speed
    hard_cap: float
    group: str = "UNKNOWN"

    def effective_horizon(self, years: float) -> float:
        """
        Ornstein-Uhlenbeck effective variance horizon:
          T_eff(T) = (1 - exp(-2*kappa*T)) / (2*kappa)
        Saturates at 1/(2*kappa); tends to T as kappa -> 0.
        """
        t = max(0.0, float(years))
        if self.kappa <= 1e-12:
            return t
        return (1.0 - math.exp(-2.0 * self.kappa * t)) / (2.0 * self.kappa)

    def haircut(self, years: float, z: float = Z_95_ONE_SIDED) -> float:
        h = self.annual_vol * math.sqrt(self.effective_horizon(years)) * z
        return min(h, self.hard_cap)


def pair_key(a: str, b: str) -> Tuple[str, str]:
    """Order-independent key for a currency pair."""
    a, b = a.upper(), b.upper()
    return (a, b) if a <= b else (b, a)


def parse_pair(text: str) -> Tuple[str, str]:
    cleaned = "".join(ch for ch in str(text).upper() if ch.isalpha())
    if len(cleaned) != 6:
        raise ValueError(f"Not a currency pair: {text!r}")
    return pair_key(cleaned[:3], cleaned[3:])


def cross_rate(a: str, b: str, ecb_rates: Mapping[str, float]) -> float:
    """
    Cross rate through the reference currency:
      rate(A, B) = ecb(ref->A) / ecb(ref->B)
    i.e. units of A per one unit of B.
    """
    a, b = a.upper(), b.upper()
    try:
        ra = float(ecb_rates[a])
        rb = float(ecb_rates[b])
    except KeyError as exc:
        raise MissingFxRateError(f"No reference rate for {exc.args[0]}") from exc
    if rb <= 0 or ra <= 0:
        raise MissingFxRateError(f"Non-positive reference rate for {a}/{b}")
    return ra / rb


@dataclass(frozen=True)
class FxRiskModel:
    currencies: Mapping[str, CurrencyRiskProfile] = field(default_factory=dict)
    default_profile: CurrencyRiskProfile = CurrencyRiskProfile(0.15, 0.10, 0.50, "UNKNOWN")
    pair_sigmas: Mapping[Tuple[str, str], float] = field(default_factory=dict)
    default_pair_sigma: float = 0.12
    z_score: float = Z_95_ONE_SIDED

    def __post_init__(self):
        object.__setattr__(self, "currencies", MappingProxyType({k.upper(): v for k, v in self.currencies.items()}))
        object.__setattr__(self, "pair_sigmas", MappingProxyType(dict(self.pair_sigmas)))

    def profile(self, ccy: str) -> CurrencyRiskProfile:
        return self.currencies.get(str(ccy).upper(), self.default_profile)

    def pair_sigma(self, a: str, b: str) -> float:
        return float(self.pair_sigmas.get(pair_key(a, b), self.default_pair_sigma))

    def haircut(self, ccy: str, years: float) -> float:
        return self.profile(ccy).haircut(years, self.z_score)

    def horizon(self, phase: FxPhase, years: float) -> float:
        if phase == FxPhase.COUPON:
            return years / 2.0
        if phase == FxPhase.MATURITY:
            return years
        return 0.0

    def fx_multiplier(
        self,
        bond_ccy: str,
        report_ccy: str,
        phase: FxPhase,
        years: float,
        ecb_rates: Mapping[str, float],
    ) -> float:
        """
        Value of one bond-currency unit in the report currency for a phase.
        BUY is the spot cross rate; COUPON and MATURITY apply the haircut
        of the bond currency at T/2 and T.
        """
        if bond_ccy.upper() == report_ccy.upper():
            return 1.0

        spot = cross_rate(report_ccy, bond_ccy, ecb_rates)
        phase = FxPhase(phase)
        if phase == FxPhase.BUY:
            return spot
        return spot * (1.0 - self.haircut(bond_ccy, self.horizon(phase, years)))

    def phase_multipliers(
        self, bond_ccy: str, report_ccy: str, years: float, ecb_rates: Mapping[str, float]
    ) -> Dict[FxPhase, float]:
        return {p: self.fx_multiplier(bond_ccy, report_ccy, p, years, ecb_rates) for p in FxPhase}
