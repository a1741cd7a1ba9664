import numpy as np
import pytest

from sovereign_bond_ranker.credit import (
    CreditModel,
    credit_quality,
    fx_credit_correlation,
    logistic_trust,
)


def test_credit_quality_decays_with_spread():
    low = credit_quality(50)
    mid = credit_quality(200)
    high = credit_quality(500)

    assert low > mid > high
    assert mid == pytest.approx(0.95 * np.exp(-200 / 600))


def test_credit_quality_strictly_decreasing_inside_band():
    spreads = np.linspace(5, 1000, 50)
    q = [credit_quality(s) for s in spreads]
    assert all(a > b for a, b in zip(q, q[1:]))


def test_credit_quality_floor_and_ceiling():
    assert credit_quality(0) == pytest.approx(0.95)
    assert credit_quality(-50) == pytest.approx(0.95)
    assert credit_quality(5000) == pytest.approx(0.10)


def test_logistic_trust_cliff():
    above = logistic_trust(0.75)
    mid = logistic_trust(0.55)
    below = logistic_trust(0.35)

    assert above > mid > below
    assert mid == pytest.approx(0.5)
    assert (mid - below) > 0.25


def test_logistic_trust_monotone():
    q = np.linspace(0.1, 0.95, 40)
    t = [logistic_trust(x) for x in q]
    assert all(a < b for a, b in zip(t, t[1:]))


def test_correlation_amplifies_weak_credit():
    assert fx_credit_correlation(0.4) > fx_credit_correlation(0.9)
    assert fx_credit_correlation(1.0) == pytest.approx(1.0)


def test_worked_credit_chain_at_160bps():
    q = credit_quality(160)
    assert q == pytest.approx(0.728, abs=1e-3)
    assert logistic_trust(q) == pytest.approx(0.855, abs=1e-3)
    assert fx_credit_correlation(q) == pytest.approx(1.218, abs=1e-3)


def test_risk_aversion_orders_profiles():
    model = CreditModel()
    q = 0.5
    assert model.adjusted_quality(q, 0.1) > model.adjusted_quality(q, 1.0)


def test_custom_model_parameters():
    model = CreditModel(decay_bps=300.0)
    assert model.quality(160) < credit_quality(160)
