from __future__ import annotations

import math
import numpy as np
from typing import Sequence

from .normalization import LOWER_PCT, UPPER_PCT, WinsorScaler


def balanced_base_scores(
    current_yields: Sequence[float],
    total_yields: Sequence[float],
    coupon_weight: float = 0.55,
    lower: float = LOWER_PCT,
    upper: float = UPPER_PCT,
) -> np.ndarray:
    """
    Base score of every bond under the balanced weighting:
      coupon_weight*normC + (1-coupon_weight)*normT
    with both legs normalized against the universe itself, using the same
    percentile band as per-bond scoring.
    """
    cur = np.asarray(current_yields, dtype=float)
    tot = np.asarray(total_yields, dtype=float)
    if cur.shape != tot.shape:
        raise ValueError("current and total yield samples must have the same length")
    if cur.size == 0:
        return np.empty(0, dtype=float)

    c_scaler = WinsorScaler.fit(cur, lower, upper)
    t_scaler = WinsorScaler.fit(tot, lower, upper)

    norm_c = np.array([c_scaler.transform(v) for v in cur], dtype=float)
    norm_t = np.array([t_scaler.transform(v) for v in tot], dtype=float)
    return coupon_weight * norm_c + (1.0 - coupon_weight) * norm_t


def lambda_base_from_scores(
    scores: Sequence[float],
    percentile: float = 0.60,
    empty_default: float = 0.5,
) -> float:
    """Nearest-rank percentile: sorted[floor(p*(n-1))]. Non-finite scores are ignored."""
    values = np.asarray(scores, dtype=float)
    ordered = np.sort(values[np.isfinite(values)])
    if ordered.size == 0:
        return empty_default
    idx = int(math.floor(percentile * (ordered.size - 1)))
    return float(ordered[idx])


def calibrate_lambda_base(
    current_yields: Sequence[float],
    total_yields: Sequence[float],
    coupon_weight: float = 0.55,
    percentile: float = 0.60,
    empty_default: float = 0.5,
    lower: float = LOWER_PCT,
    upper: float = UPPER_PCT,
) -> float:
    scores = balanced_base_scores(current_yields, total_yields, coupon_weight, lower, upper)
    return lambda_base_from_scores(scores, percentile, empty_default)
