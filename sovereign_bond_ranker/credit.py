from __future__ import annotations

import math
from dataclasses import dataclass

from scipy.special import expit

from .utils import clamp


@dataclass(frozen=True)
class CreditModel:
    """
    Sovereign credit quality from spread (bps vs the AAA reference issuer).

    quality(s)      = clamp(scale * exp(-s/decay_bps), floor, ceiling)
    trust(q)        = 1 / (1 + exp(-steepness*(q - midpoint)))
    correlation(q)  = 1 + max(0, (1-q)*correlation_slope)
    """
    scale: float = 0.95
    decay_bps: float = 600.0
    floor: float = 0.10
    ceiling: float = 0.95
    steepness: float = 10.0
    midpoint: float = 0.55
    correlation_slope: float = 0.8

    def quality(self, spread_bps: float) -> float:
        return clamp(self.scale * math.exp(-float(spread_bps) / self.decay_bps), self.floor, self.ceiling)

    def logistic_trust(self, quality: float) -> float:
        return float(expit(self.steepness * (quality - self.midpoint)))

    def fx_correlation(self, quality: float) -> float:
        # wrong-way risk: weak sovereigns and weak currencies move together
        return 1.0 + max(0.0, (1.0 - quality) * self.correlation_slope)

    def adjusted_quality(self, quality: float, risk_aversion: float) -> float:
        return self.logistic_trust(quality) ** risk_aversion


_DEFAULT = CreditModel()


def credit_quality(spread_bps: float) -> float:
    return _DEFAULT.quality(spread_bps)


def logistic_trust(quality: float) -> float:
    return _DEFAULT.logistic_trust(quality)


def fx_credit_correlation(quality: float) -> float:
    return _DEFAULT.fx_correlation(quality)
