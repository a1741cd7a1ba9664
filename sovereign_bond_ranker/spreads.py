from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Sequence

from .issuers import IssuerTrustResolver
from .utils import clamp

logger = logging.getLogger(__name__)

DEFAULT_FALLBACK_SPREAD = 180.0

# Product words that show up in issuer strings but are not part of the country.
_STRIP_WORDS = [
    ("GREEN", ""),
    ("BOND", ""),
    ("BTPI", "ITALIA"),
    ("BTP", "ITALIA"),
    ("FUTURA", ""),
    (" PIU'", ""),
    ("VALORE", ""),
]

_ALIASES = {
    "ITALIA": ["ITALY", "ITALIA", "REPUBLIC OF ITALY", "REPUBBLICA ITALIANA", "ITALYI", "ITALY ITALIA", "ITALIA ITALIA"],
    "SVIZZERA": ["SWITZERLAND"],
    "LUSSEMBURGO": ["LUXEMBOURG"],
    "GERMANIA": ["GERMANY", "DEUTSCHLAND", "BUNDESREPUBLIK DEUTSCHLAND", "GERMANIA"],
    "FRANCIA": ["FRANCE", "FRANCIA"],
    "SPAGNA": ["SPAIN", "ESPANA", "SPAGNA"],
    "PORTOGALLO": ["PORTUGAL", "PORTOGALLO"],
    "GRECIA": ["GREECE", "ELLAS", "GRECIA", "REPUBBLICA GRECA"],
    "REPUBBLICA CECA": ["CZECH REPUBLIC"],
    "SLOVACCHIA": ["SLOVAKIA"],
    "IRLANDA": ["IRELAND", "IRLANDA"],
    "OLANDA": ["NETHERLANDS", "HOLLAND", "PAESI BASSI", "OLANDA"],
    "BELGIO": ["BELGIUM", "BELGIO"],
    "AUSTRIA": ["AUSTRIA"],
    "FINLANDIA": ["FINLAND", "FINLANDIA"],
    "DANIMARCA": ["DENMARK"],
    "SVEZIA": ["SWEDEN", "SVEZIA"],
    "NORVEGIA": ["NORWAY", "NORVEGIA"],
    "REGNO UNITO": ["UNITED KINGDOM", "UK", "GREAT BRITAIN", "REGNO UNITO", "GRAN BRETAGNA"],
    "ROMANIA": ["ROMANIA", "RUMANIA"],
    "POLONIA": ["POLAND", "POLONIA"],
    "UNGHERIA": ["HUNGARY", "UNGHERIA"],
    "BULGARIA": ["BULGARIA"],
    "CROAZIA": ["CROATIA", "CROAZIA"],
    "SLOVENIA": ["SLOVENIA"],
    "ESTONIA": ["ESTONIA"],
    "LETTONIA": ["LATVIA", "LETTONIA"],
    "LITUANIA": ["LITHUANIA", "LITUANIA"],
    "CILE": ["CHILE", "CILE"],
    "MESSICO": ["MEXICO", "MEXICAN STATES"],
    "CIPRO": ["CYPRUS", "CIPRO"],
    "TURCHIA": ["TURKEY", "TURCHIA", "TÜRKIYE"],
    "BRASILE": ["BRAZIL"],
    "USA": ["UNITED STATES"],
    "GIAPPONE": ["JAPAN"],
    "SUDAFRICA": ["SOUTH AFRICA"],
}

COUNTRY_ALIASES: Mapping[str, str] = MappingProxyType(
    {alias: canonical for canonical, aliases in _ALIASES.items() for alias in aliases}
)


def normalize_country(name: Optional[str]) -> str:
    """Map an issuer or country label to the canonical country key."""
    if name is None:
        return ""
    upper = str(name).upper()
    for old, new in _STRIP_WORDS:
        upper = upper.replace(old, new)
    upper = " ".join(upper.split())
    return COUNTRY_ALIASES.get(upper, upper)


@dataclass(frozen=True)
class SyntheticSpreadCurve:
    """Convex inverse of trust: spread = clamp(base + scale*(1-trust)^2, floor, cap)."""
    base: float = 25.0
    scale: float = 600.0
    floor: float = 20.0
    cap: float = 600.0

    def spread(self, trust: float) -> float:
        x = 1.0 - float(trust)
        return clamp(self.base + self.scale * x * x, self.floor, self.cap)


def merge_spread_sources(providers: Sequence, trust: IssuerTrustResolver) -> Dict[str, float]:
    """
    Merge provider maps in priority order. Later providers only fill keys
    the earlier ones left missing. If every provider fails or returns
    nothing, fall back to the trust-rule keyword table.
    """
    spreads: Dict[str, float] = {}

    for i, provider in enumerate(providers):
        name = getattr(provider, "name", type(provider).__name__)
        try:
            fetched = provider.fetch_spreads()
        except Exception as exc:
            logger.warning("Spread provider %s failed: %s", name, exc, extra={"provider": name})
            continue

        if not fetched:
            logger.warning("Spread provider %s returned empty", name, extra={"provider": name})
            continue

        filled = 0
        for key, value in fetched.items():
            if key in spreads:
                continue
            try:
                v = float(value)
            except (TypeError, ValueError):
                continue
            if not math.isfinite(v):
                continue
            spreads[key] = v
            filled += 1

        if i == 0:
            logger.info("Loaded %d spreads from %s", filled, name, extra={"provider": name})
        else:
            logger.info("Filled %d spreads from %s", filled, name, extra={"provider": name})

    if not spreads:
        logger.info("Using issuer trust-rule fallback spreads")
        return trust.fallback_spreads()

    return spreads


class SovereignSpreadResolver:
    """Read-only spread book for one run, with per-issuer fallback chain."""

    def __init__(
        self,
        spreads: Mapping[str, float],
        trust: IssuerTrustResolver,
        synthetic: SyntheticSpreadCurve = SyntheticSpreadCurve(),
        default_spread_bps: float = DEFAULT_FALLBACK_SPREAD,
    ):
        self.spreads: Mapping[str, float] = MappingProxyType(dict(spreads))
        self.trust = trust
        self.synthetic = synthetic
        self.default_spread_bps = float(default_spread_bps)

    @classmethod
    def from_providers(
        cls,
        providers: Sequence,
        trust: IssuerTrustResolver,
        synthetic: SyntheticSpreadCurve = SyntheticSpreadCurve(),
        default_spread_bps: float = DEFAULT_FALLBACK_SPREAD,
    ) -> "SovereignSpreadResolver":
        return cls(merge_spread_sources(providers, trust), trust, synthetic, default_spread_bps)

    def spread_for_issuer(self, issuer_name: Optional[str]) -> float:
        if issuer_name is None or not str(issuer_name).strip():
            return self.default_spread_bps

        key = normalize_country(str(issuer_name).strip())
        direct = self.spreads.get(key)
        if direct is not None and math.isfinite(direct):
            return float(direct)

        trust = self.trust.trust_score(issuer_name)
        if math.isfinite(trust) and trust > 0:
            return self.synthetic.spread(trust)

        logger.warning("Missing sovereign spread mapping for issuer: %s", issuer_name)
        return self.default_spread_bps
