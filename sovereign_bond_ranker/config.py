from __future__ import annotations

import copy
import hashlib
from dataclasses import dataclass, fields
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml

from .credit import CreditModel
from .fx import CurrencyRiskProfile, FxRiskModel, parse_pair
from .issuers import IssuerTrustResolver, TrustRule, make_rule
from .ratings import RATING_SCALE, RatingBook
from .spreads import SyntheticSpreadCurve

CONFIG_BLOCK = "sovereign_bond_ranker"


class ConfigError(ValueError):
    pass


# Calibrated constants and reference tables. Override any part from YAML.
DEFAULTS: Dict[str, Any] = {
    "reporting": {
        "reference_currency": "EUR",
        "secondary_currency": "CHF",
        "report_currencies": ["EUR", "CHF"],
        "ranking_profile": "BALANCED",
    },
    "universe": {
        "min_years": 1.0,
    },
    "normalization": {
        "lower_pct": 0.05,
        "upper_pct": 0.95,
    },
    "calibration": {
        "coupon_weight": 0.55,
        "percentile": 0.60,
        "empty_default": 0.5,
    },
    "credit": {
        "scale": 0.95,
        "decay_bps": 600.0,
        "floor": 0.10,
        "ceiling": 0.95,
        "steepness": 10.0,
        "midpoint": 0.55,
        "correlation_slope": 0.8,
    },
    "spreads": {
        "default_bps": 180.0,
        "synthetic": {"base": 25.0, "scale": 600.0, "floor": 20.0, "cap": 600.0},
    },
    "providers": {
        "timeout_s": 15.0,
    },
    "profiles": [
        {"name": "INCOME", "alpha": 0.80, "lambda_factor": 1.30, "capital_sensitivity": 0.10, "risk_aversion": 1.00},
        {"name": "BALANCED", "alpha": 0.55, "lambda_factor": 1.00, "capital_sensitivity": 0.30, "risk_aversion": 0.70},
        {"name": "GROWTH", "alpha": 0.30, "lambda_factor": 0.70, "capital_sensitivity": 0.55, "risk_aversion": 0.40},
        {"name": "OPPORTUNISTIC", "alpha": 0.15, "lambda_factor": 0.40, "capital_sensitivity": 0.80, "risk_aversion": 0.10},
    ],
    "fx": {
        "z_score": 1.645,
        "default_pair_sigma": 0.12,
        "pair_sigma": {
            "USD/EUR": 0.09,
            "GBP/EUR": 0.07,
            "CHF/EUR": 0.06,
            "JPY/EUR": 0.11,
            "SEK/EUR": 0.07,
            "NOK/EUR": 0.09,
            "DKK/EUR": 0.01,
            "PLN/EUR": 0.08,
            "HUF/EUR": 0.10,
            "CZK/EUR": 0.05,
            "RON/EUR": 0.04,
            "USD/CHF": 0.10,
            "GBP/CHF": 0.09,
        },
        "default_profile": {"annual_vol": 0.15, "kappa": 0.10, "hard_cap": 0.50, "group": "UNKNOWN"},
        "currencies": {
            "EUR": {"annual_vol": 0.06, "kappa": 0.35, "hard_cap": 0.15, "group": "G10"},
            "USD": {"annual_vol": 0.08, "kappa": 0.25, "hard_cap": 0.25, "group": "G10"},
            "GBP": {"annual_vol": 0.07, "kappa": 0.30, "hard_cap": 0.20, "group": "G10"},
            "CHF": {"annual_vol": 0.06, "kappa": 0.35, "hard_cap": 0.15, "group": "SAFE_HAVEN"},
            "JPY": {"annual_vol": 0.10, "kappa": 0.20, "hard_cap": 0.25, "group": "SAFE_HAVEN"},
            "CAD": {"annual_vol": 0.07, "kappa": 0.25, "hard_cap": 0.20, "group": "COMMODITY"},
            "AUD": {"annual_vol": 0.10, "kappa": 0.20, "hard_cap": 0.25, "group": "COMMODITY"},
            "NZD": {"annual_vol": 0.11, "kappa": 0.20, "hard_cap": 0.25, "group": "COMMODITY"},
            "SEK": {"annual_vol": 0.07, "kappa": 0.30, "hard_cap": 0.20, "group": "SCANDI"},
            "NOK": {"annual_vol": 0.09, "kappa": 0.25, "hard_cap": 0.25, "group": "SCANDI"},
            "DKK": {"annual_vol": 0.01, "kappa": 1.00, "hard_cap": 0.03, "group": "PEGGED"},
            "PLN": {"annual_vol": 0.08, "kappa": 0.20, "hard_cap": 0.30, "group": "CEE"},
            "HUF": {"annual_vol": 0.10, "kappa": 0.15, "hard_cap": 0.35, "group": "CEE"},
            "CZK": {"annual_vol": 0.05, "kappa": 0.30, "hard_cap": 0.20, "group": "CEE"},
            "RON": {"annual_vol": 0.04, "kappa": 0.20, "hard_cap": 0.25, "group": "CEE"},
            "MXN": {"annual_vol": 0.13, "kappa": 0.10, "hard_cap": 0.50, "group": "EM"},
            "BRL": {"annual_vol": 0.16, "kappa": 0.05, "hard_cap": 0.60, "group": "EM_DRIFT"},
            "ZAR": {"annual_vol": 0.16, "kappa": 0.05, "hard_cap": 0.60, "group": "EM_DRIFT"},
            "TRY": {"annual_vol": 0.20, "kappa": 0.02, "hard_cap": 0.80, "group": "EM_DRIFT"},
        },
    },
    "ratings": {
        "default": "BBB",
        # keyed by canonical country, see spreads.normalize_country
        "countries": {
            "GERMANIA": "AAA", "OLANDA": "AAA", "SVIZZERA": "AAA", "NORVEGIA": "AAA",
            "DANIMARCA": "AAA", "LUSSEMBURGO": "AAA",
            "USA": "AA+", "AUSTRALIA": "AA+", "CANADA": "AA+", "AUSTRIA": "AA+",
            "SVEZIA": "AA+", "FINLANDIA": "AA+",
            "FRANCIA": "AA", "REGNO UNITO": "AA", "BELGIO": "AA", "REPUBBLICA CECA": "AA",
            "ESTONIA": "AA-",
            "GIAPPONE": "A+", "IRLANDA": "A+", "SLOVENIA": "A+",
            "SPAGNA": "A", "POLONIA": "A", "SLOVACCHIA": "A", "CILE": "A", "LITUANIA": "A",
            "CIPRO": "A-", "PORTOGALLO": "A-", "LETTONIA": "A-",
            "ITALIA": "BBB", "UNGHERIA": "BBB", "ROMANIA": "BBB", "BULGARIA": "BBB", "MESSICO": "BBB",
            "INDIA": "BBB-", "CROAZIA": "BBB-",
            "GRECIA": "BB+", "SUDAFRICA": "BB", "BRASILE": "BB-",
            "TURCHIA": "B+", "RUSSIA": "B", "ARGENTINA": "CCC",
        },
    },
    "issuers": {
        "default_trust": 0.80,
        "no_trust": 0.0,
        # strongest credit first: a broad keyword must never shadow a specific one
        "rules": [
            {"keywords": ["GERMANIA", "DEUTSCHLAND", "BUND", "GERMANY"], "trust": 1.00, "spread_bps": 0},
            {"keywords": ["FINLANDIA", "FINLAND"], "trust": 1.00, "spread_bps": 30},
            {"keywords": ["OLANDA", "NETHERLANDS"], "trust": 1.00, "spread_bps": 25},
            {"keywords": ["AUSTRIA"], "trust": 1.00, "spread_bps": 35},
            {"keywords": ["SVEZIA", "SWEDEN"], "trust": 1.00, "spread_bps": 20},
            {"keywords": ["FRANCIA", "FRANCE"], "trust": 0.97, "spread_bps": 75},
            {"keywords": ["BELGIO", "BELGIUM"], "trust": 0.97, "spread_bps": 60},
            {"keywords": ["IRLANDA", "IRELAND"], "trust": 0.97, "spread_bps": 40},
            {"keywords": ["REGNO UNITO", "UK", "UNITED KINGDOM"], "trust": 0.97, "spread_bps": 50},
            {"keywords": ["SPAGNA", "SPAIN"], "trust": 0.92, "spread_bps": 70},
            {"keywords": ["PORTOGALLO", "PORTUGAL"], "trust": 0.92, "spread_bps": 60},
            {"keywords": ["SLOVENIA"], "trust": 0.92, "spread_bps": 65},
            {"keywords": ["ESTONIA"], "trust": 0.92, "spread_bps": 70},
            {"keywords": ["LETTONIA", "LATVIA"], "trust": 0.92, "spread_bps": 80},
            {"keywords": ["CROAZIA", "CROATIA"], "trust": 0.85, "spread_bps": 90},
            {"keywords": ["ITALY", "ITALIA", "REPUBBLICA ITALIANA", "BTP"], "trust": 0.85, "spread_bps": 110},
            {"keywords": ["POLONIA", "POLAND"], "trust": 0.85, "spread_bps": 120},
            {"keywords": ["UNGHERIA", "HUNGARY"], "trust": 0.82, "spread_bps": 190},
            {"keywords": ["LITUANIA", "LITHUANIA"], "trust": 0.82, "spread_bps": 95},
            {"keywords": ["ROMANIA"], "trust": 0.78, "spread_bps": 250},
            {"keywords": ["BULGARIA"], "trust": 0.78, "spread_bps": 140},
            {"keywords": ["GRECIA", "GREECE", "REPUBBLICA GRECA"], "trust": 0.72, "spread_bps": 95},
            {"keywords": ["CIPRO", "CYPRUS"], "trust": 0.70, "spread_bps": 100},
            {"keywords": ["TURCHIA", "TURKEY"], "trust": 0.65, "spread_bps": 450},
        ],
    },
}


@dataclass(frozen=True)
class InvestorProfile:
    name: str
    alpha: float
    lambda_factor: float
    capital_sensitivity: float
    risk_aversion: float


@dataclass(frozen=True)
class ScoringConfig:
    raw: Mapping[str, Any]
    profiles: Tuple[InvestorProfile, ...]
    fx_model: FxRiskModel
    credit_model: CreditModel
    trust_rules: Tuple[TrustRule, ...]
    synthetic_spreads: SyntheticSpreadCurve
    rating_book: RatingBook

    @property
    def reference_currency(self) -> str:
        return str(self.raw["reporting"]["reference_currency"]).upper()

    @property
    def secondary_currency(self) -> str:
        return str(self.raw["reporting"]["secondary_currency"]).upper()

    @property
    def report_currencies(self) -> List[str]:
        return [str(c).upper() for c in self.raw["reporting"]["report_currencies"]]

    @property
    def ranking_profile(self) -> str:
        return str(self.raw["reporting"]["ranking_profile"]).upper()

    @property
    def min_years(self) -> float:
        return float(self.raw["universe"]["min_years"])

    @property
    def normalization(self) -> Tuple[float, float]:
        block = self.raw["normalization"]
        return float(block["lower_pct"]), float(block["upper_pct"])

    @property
    def calibration(self) -> Dict[str, float]:
        block = self.raw["calibration"]
        return {
            "coupon_weight": float(block["coupon_weight"]),
            "percentile": float(block["percentile"]),
            "empty_default": float(block["empty_default"]),
        }

    @property
    def default_spread_bps(self) -> float:
        return float(self.raw["spreads"]["default_bps"])

    @property
    def provider_timeout(self) -> float:
        return float(self.raw["providers"]["timeout_s"])

    def profile(self, name: str) -> InvestorProfile:
        for p in self.profiles:
            if p.name == name.upper():
                return p
        raise KeyError(name)

    def trust_resolver(self) -> IssuerTrustResolver:
        block = self.raw["issuers"]
        return IssuerTrustResolver(
            self.trust_rules,
            default_trust=float(block["default_trust"]),
            no_trust=float(block["no_trust"]),
        )


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = _deep_merge(out[key], value)
        else:
            out[key] = value
    return out


def _freeze(value: Any) -> Any:
    if isinstance(value, dict):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, list):
        return tuple(_freeze(v) for v in value)
    return value


def _unfreeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _unfreeze(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [_unfreeze(v) for v in value]
    return value


def _build_profiles(rows: List[Dict[str, Any]]) -> Tuple[InvestorProfile, ...]:
    profiles = []
    seen = set()
    for row in rows:
        name = str(row["name"]).strip().upper()
        if name in seen:
            raise ConfigError(f"Duplicate profile: {name}")
        seen.add(name)

        p = InvestorProfile(
            name=name,
            alpha=float(row["alpha"]),
            lambda_factor=float(row["lambda_factor"]),
            capital_sensitivity=float(row["capital_sensitivity"]),
            risk_aversion=float(row["risk_aversion"]),
        )
        if not (0.0 <= p.alpha <= 1.0):
            raise ConfigError(f"{name}: alpha must be in [0,1], got {p.alpha}")
        if p.lambda_factor < 0 or p.capital_sensitivity < 0 or p.risk_aversion < 0:
            raise ConfigError(f"{name}: lambda_factor, capital_sensitivity and risk_aversion must be >= 0")
        profiles.append(p)

    if not profiles:
        raise ConfigError("At least one investor profile is required.")
    return tuple(profiles)


def _build_currency_profile(code: str, row: Dict[str, Any]) -> CurrencyRiskProfile:
    prof = CurrencyRiskProfile(
        annual_vol=float(row["annual_vol"]),
        kappa=float(row["kappa"]),
        hard_cap=float(row["hard_cap"]),
        group=str(row.get("group", "UNKNOWN")),
    )
    if prof.annual_vol <= 0 or prof.hard_cap <= 0 or prof.kappa < 0:
        raise ConfigError(f"{code}: annual_vol and hard_cap must be > 0, kappa >= 0")
    return prof


def _build_fx_model(block: Dict[str, Any]) -> FxRiskModel:
    currencies = {str(k).upper(): _build_currency_profile(k, v) for k, v in block["currencies"].items()}
    default_profile = _build_currency_profile("default", block["default_profile"])

    pair_sigmas = {}
    for pair, sigma in block["pair_sigma"].items():
        try:
            key = parse_pair(pair)
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc
        pair_sigmas[key] = float(sigma)

    return FxRiskModel(
        currencies=currencies,
        default_profile=default_profile,
        pair_sigmas=pair_sigmas,
        default_pair_sigma=float(block["default_pair_sigma"]),
        z_score=float(block["z_score"]),
    )


def _build_ratings(block: Dict[str, Any]) -> RatingBook:
    table = {str(k): str(v).strip().upper() for k, v in block["countries"].items()}
    default = str(block["default"]).strip().upper()
    for country, rating in list(table.items()) + [("default", default)]:
        if rating not in RATING_SCALE:
            raise ConfigError(f"{country}: unknown rating {rating!r}")
    return RatingBook(table, default_rating=default)


def _build_dataclass(cls, block: Dict[str, Any], section: str):
    allowed = {f.name for f in fields(cls)}
    unknown = set(block) - allowed
    if unknown:
        raise ConfigError(f"{section}: unknown keys {sorted(unknown)}, expected a subset of {sorted(allowed)}")
    try:
        return cls(**{k: float(v) for k, v in block.items()})
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{section}: {exc}") from exc


def _build_rules(rows: List[Dict[str, Any]]) -> Tuple[TrustRule, ...]:
    rules = []
    for row in rows:
        rule = make_rule(row["keywords"], row["trust"], row["spread_bps"])
        if not rule.keywords:
            raise ConfigError("Trust rule without keywords.")
        if not (0.0 <= rule.trust_score <= 1.0):
            raise ConfigError(f"Trust score out of [0,1] for {rule.keywords}")
        rules.append(rule)
    return tuple(rules)


def build_config(doc: Optional[Dict[str, Any]] = None) -> ScoringConfig:
    merged = _deep_merge(copy.deepcopy(DEFAULTS), doc or {})

    cfg = ScoringConfig(
        raw=_freeze(merged),
        profiles=_build_profiles(merged["profiles"]),
        fx_model=_build_fx_model(merged["fx"]),
        credit_model=_build_dataclass(CreditModel, merged["credit"], "credit"),
        trust_rules=_build_rules(merged["issuers"]["rules"]),
        synthetic_spreads=_build_dataclass(SyntheticSpreadCurve, merged["spreads"]["synthetic"], "spreads.synthetic"),
        rating_book=_build_ratings(merged["ratings"]),
    )

    if cfg.ranking_profile not in {p.name for p in cfg.profiles}:
        raise ConfigError(f"Ranking profile {cfg.ranking_profile} is not a configured profile.")
    return cfg


def load_config(config_path: Optional[str | Path] = None) -> ScoringConfig:
    """Defaults, deep-merged with the `sovereign_bond_ranker` block of an optional YAML file."""
    doc: Dict[str, Any] = {}
    if config_path:
        path = Path(config_path)
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
        if isinstance(loaded, dict):
            block = loaded.get(CONFIG_BLOCK)
            if isinstance(block, dict):
                doc = block
    return build_config(doc)


def config_hash(cfg: ScoringConfig) -> str:
    payload = repr(_unfreeze(cfg.raw)).encode("utf-8")
    return hashlib.sha256(payload).hexdigest()
