import math

import pandas as pd
import pytest

from sovereign_bond_ranker.bonds import (
    INIT_INVESTMENT,
    Bond,
    build_bond,
    capital_weight,
    project_final_capital,
    years_to_maturity,
)
from sovereign_bond_ranker.config import load_config
from sovereign_bond_ranker.universe import (
    bonds_from_frame,
    bonds_to_frame,
    filter_universe,
    make_sample_universe,
    qc_flags_for_bond,
)

AS_OF = pd.Timestamp("2026-01-02")


@pytest.fixture(scope="module")
def fx_model():
    return load_config().fx_model


def _bond(**kw):
    base = dict(
        isin="IT0000000001",
        issuer="ITALY",
        currency="EUR",
        price=100.0,
        coupon_pct=5.0,
        maturity=pd.Timestamp("2036-01-02"),
        current_yield_pct=5.0,
        total_yield_to_maturity=5.0,
    )
    base.update(kw)
    return Bond(**base)


def test_build_bond_yields():
    bond = build_bond("IT0000000001", "ITALY", "eur", 95.0, 95.0, 95.0, 4.0, pd.Timestamp("2031-06-30"), AS_OF)

    assert bond.currency == "EUR"
    assert bond.current_yield_pct == pytest.approx(4.21)
    # 4/95*100 + (5/95)*100/5
    assert bond.total_yield_to_maturity == pytest.approx(5.26)
    assert bond.yields_for(secondary=True) == (bond.current_yield_pct_secondary, bond.total_yield_to_maturity_secondary)


def test_build_bond_rejects_short_and_zero_coupon():
    assert build_bond("A", "ITALY", "EUR", 99.0, 99.0, 99.0, 3.0, pd.Timestamp("2027-06-01"), AS_OF) is None
    assert build_bond("B", "ITALY", "EUR", 99.0, 99.0, 99.0, 0.0, pd.Timestamp("2036-06-01"), AS_OF) is None
    assert build_bond("C", "ITALY", "EUR", 99.0, 0.0, 99.0, 3.0, pd.Timestamp("2036-06-01"), AS_OF) is None


def test_secondary_yields_fall_back_to_primary():
    bond = _bond()
    assert bond.yields_for(secondary=True) == (5.0, 5.0)
    chf = _bond(current_yield_pct_secondary=5.3, total_yield_to_maturity_secondary=5.6)
    assert chf.yields_for(secondary=True) == (5.3, 5.6)


def test_years_to_maturity():
    assert years_to_maturity(_bond(), AS_OF) == pytest.approx(3652 / 365.25)
    assert years_to_maturity(_bond(maturity=pd.Timestamp("2025-06-01")), AS_OF) == 0.0


def test_capital_weight():
    assert capital_weight(4.0, 5.0) == pytest.approx(0.2)
    assert capital_weight(5.0, 4.0) == 0.0
    assert capital_weight(5.0, 0.0) == 0.0


def test_final_capital_same_currency(fx_model):
    final, say = project_final_capital(_bond(), "EUR", {"EUR": 1.0}, fx_model, 10.0)
    # 10 bonds, 10 coupons of 5, redemption 1000
    assert final == pytest.approx(1500.0)
    assert say == pytest.approx(5.0)


def test_final_capital_foreign_currency_is_haircut(fx_model):
    rates = {"EUR": 1.0, "USD": 1.08}
    usd = _bond(currency="USD")
    final, _ = project_final_capital(usd, "EUR", rates, fx_model, 10.0)

    assert final < 1500.0
    assert final > INIT_INVESTMENT * (1 - fx_model.haircut("USD", 10.0))


def test_final_capital_missing_rate_is_nan(fx_model):
    final, say = project_final_capital(_bond(currency="TRY"), "EUR", {"EUR": 1.0}, fx_model, 10.0)
    assert math.isnan(final) and math.isnan(say)


def test_qc_flags():
    assert qc_flags_for_bond(None, AS_OF) == ["MISSING"]
    assert qc_flags_for_bond(_bond(), AS_OF) == []
    assert qc_flags_for_bond(_bond(maturity=pd.Timestamp("2025-01-01")), AS_OF) == ["MATURED"]
    assert qc_flags_for_bond(_bond(maturity=pd.Timestamp("2026-06-01")), AS_OF) == ["SHORT_DATED"]
    assert qc_flags_for_bond(_bond(coupon_pct=0.0, issuer=""), AS_OF) == ["ZERO_COUPON", "NO_ISSUER"]
    assert qc_flags_for_bond(_bond(price=float("nan")), AS_OF) == ["BAD_PRICE"]


def test_filter_universe_keeps_blank_issuer():
    bonds = [_bond(), None, _bond(isin="X", issuer=""), _bond(isin="Y", coupon_pct=0.0)]
    kept = filter_universe(bonds, AS_OF)
    assert [b.isin for b in kept] == ["IT0000000001", "X"]


def test_frame_round_trip_preserves_bonds():
    bonds = make_sample_universe(n=12, as_of=AS_OF)
    back = bonds_from_frame(bonds_to_frame(bonds))
    assert back == bonds


def test_bonds_from_frame_requires_columns():
    with pytest.raises(ValueError, match="missing columns"):
        bonds_from_frame(pd.DataFrame({"isin": ["X"]}))


def test_sample_universe_is_deterministic():
    a = make_sample_universe(n=40, as_of=AS_OF, seed=3)
    b = make_sample_universe(n=40, as_of=AS_OF, seed=3)
    assert a == b
    assert len(a) == 40
    assert all(years_to_maturity(x, AS_OF) > 2 for x in a)


def test_non_finite_yields_are_flagged():
    nan = float("nan")
    assert qc_flags_for_bond(_bond(total_yield_to_maturity=nan), AS_OF) == ["BAD_YIELD"]
    assert qc_flags_for_bond(_bond(current_yield_pct=float("inf")), AS_OF) == ["BAD_YIELD"]
    # half a secondary pair is malformed, an absent pair is not
    assert qc_flags_for_bond(_bond(current_yield_pct_secondary=5.1), AS_OF) == ["BAD_YIELD"]
    assert qc_flags_for_bond(_bond(), AS_OF) == []


def test_filter_drops_bond_read_with_missing_yield():
    frame = bonds_to_frame(make_sample_universe(n=5, as_of=AS_OF))
    frame.loc[0, "total_yield_to_maturity"] = float("nan")
    kept = filter_universe(bonds_from_frame(frame), AS_OF)
    assert [b.isin for b in kept] == list(frame["isin"][1:])
