from datetime import datetime

import pandas as pd
import pytest

from sovereign_bond_ranker.bonds import build_bond
from sovereign_bond_ranker.cli import main
from sovereign_bond_ranker.config import load_config
from sovereign_bond_ranker.pipeline import default_providers, run_batch, write_unknown_issuer_alerts
from sovereign_bond_ranker.providers import (
    CsvSpreadProvider,
    SpreadOggiSpreadProvider,
    StaticSpreadProvider,
    TradingEconomicsSpreadProvider,
)
from sovereign_bond_ranker.universe import SAMPLE_FX_RATES, bonds_to_frame, make_sample_universe

AS_OF = pd.Timestamp("2026-01-02")

SPREADS = {"Germany": 0, "France": 75, "Italy": 110, "Spain": 70, "Greece": 95, "Romania": 250,
           "Poland": 120, "Hungary": 190, "Turkey": 450, "United Kingdom": 50, "Mexico": 300}


@pytest.fixture(scope="module")
def config():
    return load_config()


@pytest.fixture(scope="module")
def bonds():
    universe = make_sample_universe(n=25, as_of=AS_OF)
    gotham = build_bond("XS9999999999", "GOTHAM CITY TREASURY", "EUR", 98.0, 98.0, 98.0, 3.0,
                        pd.Timestamp("2034-03-01"), AS_OF)
    return universe + [gotham, None]


def test_run_batch(config, bonds):
    result = run_batch(bonds, config, providers=[StaticSpreadProvider(SPREADS)], fx_rates=SAMPLE_FX_RATES, as_of=AS_OF)

    assert set(result.rankings) == {"EUR", "CHF"}
    eur = result.rankings["EUR"]
    assert len(eur) == 26
    assert {"final_capital", "simple_annual_yield"} <= set(eur.columns)
    assert eur["final_capital"].notna().all()
    assert result.unknown_issuers == ["GOTHAM CITY TREASURY"]
    assert 0.0 <= result.lambda_base["EUR"] <= 1.0


def test_run_batch_without_fx_or_providers(config, bonds):
    result = run_batch(bonds, config, as_of=AS_OF, report_currencies=["eur"])

    assert list(result.rankings) == ["EUR"]
    assert "final_capital" not in result.rankings["EUR"].columns
    # rule-table fallback still prices every known sovereign
    italy = result.rankings["EUR"].query("issuer == 'ITALY'")
    assert (italy["spread_bps"] == 110.0).all()


def test_default_providers(config, tmp_path):
    snap = tmp_path / "spreads.csv"
    live = default_providers(config, snapshot=snap)
    assert [type(p) for p in live] == [SpreadOggiSpreadProvider, TradingEconomicsSpreadProvider, CsvSpreadProvider]
    assert default_providers(config, offline=True) == []


def test_alert_file_written_and_removed(tmp_path):
    path = tmp_path / "docs" / "alerts.txt"

    assert write_unknown_issuer_alerts(path, ["ZETA", "ALPHA", "ZETA"], now=datetime(2026, 10, 19, 8, 30))
    assert path.read_text(encoding="utf-8").splitlines() == [
        "--- UNKNOWN ISSUERS REPORT ---",
        "Generated on: 2026-10-19T08:30:00",
        "",
        "ALPHA",
        "ZETA",
    ]

    assert write_unknown_issuer_alerts(path, []) is False
    assert not path.exists()


def test_cli_offline_run(tmp_path):
    universe = make_sample_universe(n=15, as_of=AS_OF)
    bonds_csv = tmp_path / "bonds.csv"
    bonds_to_frame(universe).to_csv(bonds_csv, index=False)

    snap = tmp_path / "spreads.csv"
    pd.DataFrame({"country": list(SPREADS), "spread_bps": list(SPREADS.values())}).to_csv(snap, index=False)

    fx_csv = tmp_path / "fx.csv"
    pd.DataFrame({"currency": list(SAMPLE_FX_RATES), "rate": list(SAMPLE_FX_RATES.values())}).to_csv(fx_csv, index=False)

    out_dir = tmp_path / "out"
    alerts = tmp_path / "alerts.txt"
    code = main([
        "--bonds", str(bonds_csv),
        "--out-dir", str(out_dir),
        "--offline",
        "--spread-snapshot", str(snap),
        "--fx-rates", str(fx_csv),
        "--as-of", "2026-01-02",
        "--alerts", str(alerts),
        "--workers", "4",
    ])

    assert code == 0
    eur = pd.read_csv(out_dir / "ranking_eur.csv")
    assert len(eur) == len(universe)
    assert "BALANCED" in eur.columns and "final_capital" in eur.columns
    assert (out_dir / "ranking_chf.csv").exists()
    assert not alerts.exists()


def test_cli_bad_config(tmp_path):
    bonds_csv = tmp_path / "bonds.csv"
    bonds_to_frame(make_sample_universe(n=3, as_of=AS_OF)).to_csv(bonds_csv, index=False)
    assert main(["--bonds", str(bonds_csv), "--offline", "--config", str(tmp_path / "missing.yaml")]) == 2


def test_cli_rejects_unknown_config_key(tmp_path):
    bonds_csv = tmp_path / "bonds.csv"
    bonds_to_frame(make_sample_universe(n=3, as_of=AS_OF)).to_csv(bonds_csv, index=False)
    cfg = tmp_path / "ranker.yaml"
    cfg.write_text("sovereign_bond_ranker:\n  credit:\n    decay: 300\n", encoding="utf-8")
    assert main(["--bonds", str(bonds_csv), "--offline", "--config", str(cfg)]) == 2
