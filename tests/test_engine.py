import dataclasses

import pandas as pd
import pytest

from sovereign_bond_ranker.bonds import build_bond
from sovereign_bond_ranker.calibration import calibrate_lambda_base
from sovereign_bond_ranker.config import DEFAULTS, build_config, load_config
from sovereign_bond_ranker.credit import credit_quality
from sovereign_bond_ranker.engine import build_engine, fx_capital_penalty
from sovereign_bond_ranker.providers import StaticSpreadProvider
from sovereign_bond_ranker.universe import filter_universe, make_sample_universe

AS_OF = pd.Timestamp("2026-01-02")

SPREADS = {
    "Germany": 0,
    "France": 75,
    "Italy": 110,
    "Spain": 70,
    "Greece": 95,
    "Romania": 250,
    "Poland": 120,
    "Hungary": 190,
    "Turkey": 450,
    "United Kingdom": 50,
    "Mexico": 300,
}


@pytest.fixture(scope="module")
def config():
    return load_config()


@pytest.fixture()
def engine(config):
    return build_engine(config, [StaticSpreadProvider(SPREADS)])


@pytest.fixture(scope="module")
def universe():
    return make_sample_universe(n=40, as_of=AS_OF)


def test_worked_balanced_score(engine, config):
    q = credit_quality(160)
    score = engine.profile_score(
        config.profile("BALANCED"),
        norm_c=0.6,
        norm_t=0.7,
        cap_weight=0.5,
        quality=q,
        bond_ccy="USD",
        report_ccy="EUR",
        years=5.0,
        lambda_base=0.5,
    )
    assert score == pytest.approx(0.465, abs=1e-3)


def test_worked_penalty(config):
    penalty = fx_capital_penalty(
        "USD", "EUR", 5.0, 0.5, 0.30, 0.5, config.credit_model.fx_correlation(credit_quality(160)), config.fx_model
    )
    assert penalty == pytest.approx(0.1258, abs=1e-3)


def test_no_penalty_in_report_currency(config):
    assert fx_capital_penalty("eur", "EUR", 30.0, 1.0, 0.8, 1.3, 1.8, config.fx_model) == 0.0


def test_penalty_grows_with_horizon_and_sigma(config):
    args = dict(capital_weight=0.4, capital_sensitivity=0.3, lam=0.5, correlation=1.1, fx_model=config.fx_model)
    short = fx_capital_penalty("USD", "EUR", 2.0, **args)
    long = fx_capital_penalty("USD", "EUR", 20.0, **args)
    stressed = fx_capital_penalty("USD", "EUR", 20.0, sigma_scale=2.0, **args)
    assert 0 < short < long < stressed < 0.5 * 1.1


def test_score_never_negative(engine, config):
    score = engine.profile_score(
        config.profile("INCOME"), 0.0, 0.0, 1.0, 0.1, "TRY", "EUR", 30.0, 1.0
    )
    assert score == 0.0


def test_income_prefers_coupon_growth_prefers_capital(engine, config):
    common = dict(cap_weight=0.0, quality=0.9, bond_ccy="EUR", report_ccy="EUR", years=10.0, lambda_base=0.5)
    coupon_heavy = dict(norm_c=1.0, norm_t=0.2)
    capital_heavy = dict(norm_c=0.2, norm_t=1.0)

    income, growth = config.profile("INCOME"), config.profile("GROWTH")
    assert engine.profile_score(income, **coupon_heavy, **common) > engine.profile_score(income, **capital_heavy, **common)
    assert engine.profile_score(growth, **capital_heavy, **common) > engine.profile_score(growth, **coupon_heavy, **common)


def test_wider_spread_lowers_score(engine, universe):
    ctx = engine.market_context(universe, "EUR", AS_OF)
    bond = universe[0]
    wider = dataclasses.replace(engine, spread_shift_bp=150.0)
    base = engine.score_bond(bond, ctx)
    shocked = wider.score_bond(bond, ctx)
    assert all(shocked[k] <= base[k] for k in base)


def test_lambda_base_matches_calibration(engine, universe):
    cur = [b.current_yield_pct for b in universe]
    tot = [b.total_yield_to_maturity for b in universe]
    assert engine.lambda_base(universe, "EUR") == pytest.approx(calibrate_lambda_base(cur, tot))
    assert engine.lambda_base([], "EUR") == 0.5


def test_secondary_currency_uses_secondary_yields(engine):
    assert engine.uses_secondary("chf")
    assert not engine.uses_secondary("EUR")


def test_score_universe_shape_and_order(engine, config, universe):
    ranked = engine.score_universe(universe, "EUR", AS_OF)

    assert len(ranked) == len(universe)
    assert list(ranked.columns[:7]) == ["isin", "issuer", "currency", "maturity", "years", "spread_bps", "credit_quality"]
    for p in config.profiles:
        assert ranked[p.name].between(0.0, 1.0).all()
    assert ranked["BALANCED"].is_monotonic_decreasing


def test_parallel_matches_sequential(engine, universe):
    seq = engine.score_universe(universe, "CHF", AS_OF)
    par = engine.score_universe(universe, "CHF", AS_OF, max_workers=8)
    pd.testing.assert_frame_equal(seq, par)


def test_profiles_are_independent(engine, universe):
    only_balanced = build_config({"profiles": [DEFAULTS["profiles"][1]]})
    solo = build_engine(only_balanced, [StaticSpreadProvider(SPREADS)])

    full = engine.score_universe(universe, "EUR", AS_OF).set_index("isin")["BALANCED"]
    alone = solo.score_universe(universe, "EUR", AS_OF).set_index("isin")["BALANCED"]
    pd.testing.assert_series_equal(full.sort_index(), alone.sort_index())


def test_unknown_issuer_recorded_once_across_workers(config, universe):
    engine = build_engine(config, [StaticSpreadProvider(SPREADS)])
    gotham = [
        build_bond(f"XS99{i:08d}", "GOTHAM CITY TREASURY", "EUR", 98.0, 98.0, 98.0, 3.0, pd.Timestamp("2034-03-01"), AS_OF)
        for i in range(6)
    ]
    engine.score_universe(universe + gotham, "EUR", AS_OF, max_workers=4)
    assert engine.spreads.trust.unknown.sorted() == ["GOTHAM CITY TREASURY"]


def test_empty_universe(engine):
    ranked = engine.score_universe([], "EUR", AS_OF)
    assert ranked.empty
    assert "BALANCED" in ranked.columns


def test_penalty_grows_as_credit_weakens(config):
    model = config.credit_model
    penalties = [
        fx_capital_penalty("USD", "EUR", 10.0, 0.4, 0.3, 0.5, model.fx_correlation(q), config.fx_model)
        for q in (0.95, 0.8, 0.6, 0.4, 0.2)
    ]
    assert all(a < b for a, b in zip(penalties, penalties[1:]))


def test_one_bad_yield_does_not_zero_the_ranking(engine, universe):
    bad = dataclasses.replace(universe[0], total_yield_to_maturity=float("nan"))
    poisoned = [bad] + universe[1:]

    kept = filter_universe(poisoned, AS_OF)
    assert [b.isin for b in kept] == [b.isin for b in universe[1:]]

    # even if it reaches the scorer, only that bond is affected
    clean = engine.score_universe(universe[1:], "EUR", AS_OF)
    ranked = engine.score_universe(poisoned, "EUR", AS_OF).set_index("isin")
    assert ranked.loc[bad.isin, "BALANCED"] == 0.0
    assert ranked["BALANCED"].sum() == pytest.approx(clean["BALANCED"].sum(), rel=0.25)
    assert engine.lambda_base(poisoned, "EUR") > 0.0


def test_lambda_base_uses_configured_band(universe):
    narrow = build_config({"normalization": {"lower_pct": 0.25, "upper_pct": 0.75}})
    engine = build_engine(narrow, [StaticSpreadProvider(SPREADS)])
    cur = [b.current_yield_pct for b in universe]
    tot = [b.total_yield_to_maturity for b in universe]

    expected = calibrate_lambda_base(cur, tot, lower=0.25, upper=0.75)
    assert engine.lambda_base(universe, "EUR") == pytest.approx(expected)
    assert engine.market_context(universe, "EUR", AS_OF).lambda_base == pytest.approx(expected)


def test_ranked_rows_carry_rating(engine, universe):
    ranked = engine.score_universe(universe, "EUR", AS_OF)
    expected = {"ITALY": "BBB", "GERMANY": "AAA", "FRANCE": "AA", "TURKEY": "B+", "GREECE": "BB+"}
    for issuer, rating in zip(ranked["issuer"], ranked["rating"]):
        if issuer in expected:
            assert rating == expected[issuer]
