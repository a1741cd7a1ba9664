from __future__ import annotations

import numpy as np
from dataclasses import dataclass
from typing import Iterable, Tuple

LOWER_PCT = 0.05
UPPER_PCT = 0.95


def _finite(sample: Iterable[float]) -> np.ndarray:
    values = np.asarray(list(sample), dtype=float)
    return values[np.isfinite(values)]


def percentile_linear(sample: Iterable[float], p: float) -> float:
    """
    Percentile with linear interpolation between order statistics:
    index = p*(n-1), interpolated between floor/ceil.
    """
    values = _finite(sample)
    if values.size == 0:
        return 0.0
    return float(np.percentile(values, 100.0 * p, method="linear"))


def winsor_bounds(sample: Iterable[float], lower: float = LOWER_PCT, upper: float = UPPER_PCT) -> Tuple[float, float]:
    values = _finite(sample)
    if values.size == 0:
        return 0.0, 0.0
    lo, hi = np.percentile(values, [100.0 * lower, 100.0 * upper], method="linear")
    return float(lo), float(hi)


def _scale(value: float, lo: float, hi: float) -> float:
    # Degenerate distribution: every bond looks the same, treat as maximal.
    if hi == lo:
        return 1.0
    return float(np.clip((value - lo) / (hi - lo), 0.0, 1.0))


def norm_winsorized(value: float, sample: Iterable[float]) -> float:
    """
    Scale `value` into [0,1] against the 5th..95th percentile band of `sample`.
    Outliers are clamped, not dropped.
    """
    lo, hi = winsor_bounds(sample)
    return _scale(value, lo, hi)


@dataclass(frozen=True)
class WinsorScaler:
    """Percentile bounds fitted once per universe, applied per bond."""
    lo: float
    hi: float

    @classmethod
    def fit(cls, sample: Iterable[float], lower: float = LOWER_PCT, upper: float = UPPER_PCT) -> "WinsorScaler":
        lo, hi = winsor_bounds(sample, lower, upper)
        return cls(lo, hi)

    def transform(self, value: float) -> float:
        return _scale(value, self.lo, self.hi)
