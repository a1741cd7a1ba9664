from __future__ import annotations

import math

import pandas as pd

DAYS_PER_YEAR = 365.25


def yearfrac(start: pd.Timestamp, end: pd.Timestamp) -> float:
    """Calendar years between two dates, ACT/365.25."""
    start = pd.Timestamp(start)
    end = pd.Timestamp(end)
    if end < start:
        raise ValueError(f"end < start: {start=} {end=}")
    return (end - start).days / DAYS_PER_YEAR


def whole_years(start: pd.Timestamp, end: pd.Timestamp) -> int:
    """Completed years to maturity, as the bond calculator counts them."""
    if pd.Timestamp(end) <= pd.Timestamp(start):
        return 0
    return int(math.floor(yearfrac(start, end)))


def clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def as_of_date(as_of: pd.Timestamp | None = None) -> pd.Timestamp:
    if as_of is None:
        return pd.Timestamp.today().normalize()
    return pd.Timestamp(as_of).normalize()
