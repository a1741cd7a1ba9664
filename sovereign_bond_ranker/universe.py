from __future__ import annotations

import numpy as np
import pandas as pd
from typing import Iterable, List, Optional

from .bonds import Bond, build_bond, years_to_maturity

BOND_COLUMNS = [
    "isin",
    "issuer",
    "currency",
    "price",
    "coupon_pct",
    "maturity",
    "current_yield_pct",
    "total_yield_to_maturity",
    "current_yield_pct_secondary",
    "total_yield_to_maturity_secondary",
]


def _finite_yields(bond: Bond) -> bool:
    # the secondary pair is optional: both NaN means "not supplied"
    primary = (bond.current_yield_pct, bond.total_yield_to_maturity)
    secondary = (bond.current_yield_pct_secondary, bond.total_yield_to_maturity_secondary)
    if not np.isfinite(primary).all():
        return False
    if np.isnan(secondary).all():
        return True
    return bool(np.isfinite(secondary).all())


def qc_flags_for_bond(bond: Optional[Bond], as_of: pd.Timestamp, min_years: float = 1.0) -> List[str]:
    if bond is None:
        return ["MISSING"]

    flags: List[str] = []
    years = years_to_maturity(bond, as_of)

    if years <= 0:
        flags.append("MATURED")
    elif years <= min_years:
        flags.append("SHORT_DATED")

    if not bond.coupon_pct or bond.coupon_pct <= 0:
        flags.append("ZERO_COUPON")

    if not np.isfinite(bond.price) or bond.price <= 0:
        flags.append("BAD_PRICE")

    if not _finite_yields(bond):
        flags.append("BAD_YIELD")

    if not bond.issuer or not str(bond.issuer).strip():
        flags.append("NO_ISSUER")

    return flags


def filter_universe(bonds: Iterable[Optional[Bond]], as_of: pd.Timestamp, min_years: float = 1.0) -> List[Bond]:
    """Drop null, zero-coupon, mispriced, unyielded and short-dated bonds. Blank issuers are kept (scored as no-trust)."""
    out = []
    for b in bonds:
        flags = qc_flags_for_bond(b, as_of, min_years)
        if set(flags) - {"NO_ISSUER"}:
            continue
        out.append(b)
    return out


def bonds_to_frame(bonds: Iterable[Bond]) -> pd.DataFrame:
    rows = [{c: getattr(b, c) for c in BOND_COLUMNS} for b in bonds]
    return pd.DataFrame(rows, columns=BOND_COLUMNS)


def bonds_from_frame(df: pd.DataFrame) -> List[Bond]:
    missing = {"isin", "issuer", "currency", "price", "coupon_pct", "maturity",
               "current_yield_pct", "total_yield_to_maturity"} - set(df.columns)
    if missing:
        raise ValueError(f"Bond table missing columns: {sorted(missing)}")

    bonds = []
    for _, r in df.iterrows():
        issuer = r["issuer"]
        bonds.append(
            Bond(
                isin=str(r["isin"]),
                issuer="" if pd.isna(issuer) else str(issuer),
                currency=str(r["currency"]).upper(),
                price=float(r["price"]),
                coupon_pct=float(r["coupon_pct"]),
                maturity=pd.Timestamp(r["maturity"]),
                current_yield_pct=float(r["current_yield_pct"]),
                total_yield_to_maturity=float(r["total_yield_to_maturity"]),
                current_yield_pct_secondary=float(r.get("current_yield_pct_secondary", np.nan)),
                total_yield_to_maturity_secondary=float(r.get("total_yield_to_maturity_secondary", np.nan)),
            )
        )
    return bonds


SAMPLE_ISSUERS = [
    ("GERMANY", "EUR"),
    ("FRANCE", "EUR"),
    ("ITALY", "EUR"),
    ("SPAIN", "EUR"),
    ("GREECE", "EUR"),
    ("ROMANIA", "EUR"),
    ("ROMANIA", "USD"),
    ("POLAND", "PLN"),
    ("HUNGARY", "HUF"),
    ("TURKEY", "USD"),
    ("UNITED KINGDOM", "GBP"),
    ("MEXICO", "MXN"),
]

SAMPLE_FX_RATES = {
    "EUR": 1.0,
    "USD": 1.08,
    "CHF": 0.95,
    "GBP": 0.85,
    "PLN": 4.30,
    "HUF": 390.0,
    "MXN": 18.5,
}


def make_sample_universe(
    n: int = 40,
    as_of: pd.Timestamp | None = None,
    seed: int = 7,
) -> List[Bond]:
    """
    Synthetic sovereign bond universe for demo/testing.

    - Issuers/currencies drawn from SAMPLE_ISSUERS
    - Maturities: 2..30 years from as_of
    - Coupons: uniform in [0.5%, 8%], prices around par
    - Prices quoted per 100 face, identical on both reporting lines

    Not market realistic; it exists to exercise the scoring pipeline.
    """
    if as_of is None:
        as_of = pd.Timestamp.today().normalize()
    as_of = pd.Timestamp(as_of)

    rng = np.random.default_rng(seed)
    picks = rng.integers(0, len(SAMPLE_ISSUERS), size=n)
    years = rng.integers(2, 31, size=n)
    coupons = rng.uniform(0.5, 8.0, size=n)
    prices = rng.uniform(85.0, 110.0, size=n)

    out: List[Bond] = []
    for i in range(n):
        issuer, ccy = SAMPLE_ISSUERS[int(picks[i])]
        maturity = as_of + pd.DateOffset(years=int(years[i]), days=30)
        bond = build_bond(
            isin=f"XS{i:010d}",
            issuer=issuer,
            currency=ccy,
            price=float(prices[i]),
            price_report=float(prices[i]),
            price_secondary=float(prices[i]),
            coupon_pct=float(coupons[i]),
            maturity=maturity,
            as_of=as_of,
        )
        if bond is not None:
            out.append(bond)
    return out
