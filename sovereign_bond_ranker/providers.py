from __future__ import annotations

import logging
import math
import xml.etree.ElementTree as ET
from io import StringIO
from pathlib import Path
from typing import Dict, Mapping, Optional

import pandas as pd
import requests

from .spreads import normalize_country

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64)"
ECB_DAILY_URL = "https://www.ecb.europa.eu/stats/eurofxref/eurofxref-daily.xml"
TRADING_ECONOMICS_URL = "https://tradingeconomics.com/bonds"
SPREADOGGI_URL = "https://spreadoggi.it/"


class ProviderError(RuntimeError):
    pass


class SpreadProvider:
    """Source of country -> sovereign spread (bps vs the reference issuer)."""
    name = "base"

    def fetch_spreads(self) -> Dict[str, float]:
        raise NotImplementedError


class StaticSpreadProvider(SpreadProvider):
    def __init__(self, spreads: Mapping[str, float], name: str = "static") -> None:
        self.name = name
        self._spreads = {normalize_country(k): float(v) for k, v in spreads.items()}

    def fetch_spreads(self) -> Dict[str, float]:
        return dict(self._spreads)


class CsvSpreadProvider(SpreadProvider):
    """Local snapshot file with `country` and `spread_bps` columns."""
    name = "csv"

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self.name = f"csv:{self.path.name}"

    def fetch_spreads(self) -> Dict[str, float]:
        if not self.path.exists():
            raise ProviderError(f"Spread snapshot not found: {self.path}")
        df = pd.read_csv(self.path)
        missing = {"country", "spread_bps"} - set(df.columns)
        if missing:
            raise ProviderError(f"{self.path.name} missing columns: {sorted(missing)}")

        df["spread_bps"] = pd.to_numeric(df["spread_bps"], errors="coerce")
        df = df.dropna(subset=["country", "spread_bps"])

        out: Dict[str, float] = {}
        for country, spread in zip(df["country"], df["spread_bps"]):
            key = normalize_country(str(country))
            if key:
                out[key] = float(spread)
        return out


def _parse_number(text, positive: bool = True) -> Optional[float]:
    if text is None:
        return None
    if isinstance(text, (int, float)):
        v = float(text)
    else:
        cleaned = "".join(ch for ch in str(text) if ch.isdigit() or ch in ".,-").replace(",", ".")
        try:
            v = float(cleaned)
        except ValueError:
            return None
    if not math.isfinite(v) or (positive and v <= 0):
        return None
    return v


class SpreadOggiSpreadProvider(SpreadProvider):
    """
    Italian spread board: the `GridView1` table lists each country in the
    first column and its spread vs the Bund (bps, comma decimal) in the third.
    """
    name = "SpreadOggi"

    def __init__(
        self,
        url: str = SPREADOGGI_URL,
        session: requests.Session | None = None,
        timeout: float = 15,
    ) -> None:
        self.url = url
        self.session = session or requests.Session()
        self.timeout = timeout

    def fetch_spreads(self) -> Dict[str, float]:
        response = self.session.get(self.url, timeout=self.timeout, headers={"User-Agent": USER_AGENT})
        if response.status_code != 200:
            raise ProviderError(f"{self.name} HTTP {response.status_code}")
        return self.parse(response.text)

    @staticmethod
    def parse(html: str) -> Dict[str, float]:
        try:
            tables = pd.read_html(StringIO(html), attrs={"id": "GridView1"}, thousands=None)
        except ValueError:
            return {}
        if not tables or tables[0].shape[1] < 3:
            return {}

        table = tables[0]
        out: Dict[str, float] = {}
        for country, raw in zip(table.iloc[:, 0], table.iloc[:, 2]):
            spread = _parse_number(raw, positive=False)
            if spread is None or not isinstance(country, str):
                continue
            key = normalize_country(country.strip())
            if key:
                out[key] = spread
        return out


class TradingEconomicsSpreadProvider(SpreadProvider):
    """
    European 10Y government yields table; spread vs Germany in bps:
      spread = max(0, yield - yield_DE) * 100
    """
    name = "TradingEconomics"

    def __init__(
        self,
        url: str = TRADING_ECONOMICS_URL,
        session: requests.Session | None = None,
        timeout: float = 15,
    ) -> None:
        self.url = url
        self.session = session or requests.Session()
        self.timeout = timeout

    def fetch_spreads(self) -> Dict[str, float]:
        response = self.session.get(self.url, timeout=self.timeout, headers={"User-Agent": USER_AGENT})
        if response.status_code != 200:
            raise ProviderError(f"{self.name} HTTP {response.status_code}")
        return self.parse(response.text)

    @staticmethod
    def parse(html: str) -> Dict[str, float]:
        try:
            tables = pd.read_html(StringIO(html), match="Europe")
        except ValueError:
            return {}
        if not tables:
            return {}

        table = tables[0]
        country_col = table.columns[0]
        yield_col = "Yield" if "Yield" in table.columns else table.columns[1]

        yields: Dict[str, float] = {}
        for country, raw in zip(table[country_col], table[yield_col]):
            y = _parse_number(raw)
            if y is None or not isinstance(country, str):
                continue
            yields[country.strip()] = y

        germany = next((v for k, v in yields.items() if k.upper() == "GERMANY"), None)
        if germany is None:
            return {}

        out: Dict[str, float] = {}
        for country, y in yields.items():
            key = normalize_country(country)
            if key:
                out[key] = max(0.0, y - germany) * 100.0
        return out


class EcbFxProvider:
    """ECB daily reference rates (units of currency per 1 EUR)."""
    name = "ECB"

    def __init__(self, url: str = ECB_DAILY_URL, session: requests.Session | None = None, timeout: float = 15) -> None:
        self.url = url
        self.session = session or requests.Session()
        self.timeout = timeout

    def fetch_rates(self) -> Dict[str, float]:
        response = self.session.get(self.url, timeout=self.timeout)
        if response.status_code != 200:
            raise ProviderError(f"ECB HTTP {response.status_code}")
        return self.parse(response.text)

    @staticmethod
    def parse(xml_text: str) -> Dict[str, float]:
        try:
            root = ET.fromstring(xml_text)
        except ET.ParseError as exc:
            raise ProviderError(f"ECB returned unparseable XML: {exc}") from exc

        rates: Dict[str, float] = {"EUR": 1.0}
        for node in root.iter():
            if not node.tag.endswith("Cube"):
                continue
            ccy = node.attrib.get("currency")
            rate = node.attrib.get("rate")
            if ccy and rate:
                rates[ccy.upper()] = float(rate)

        if len(rates) == 1:
            raise ProviderError("ECB response contained no rates")
        return rates
