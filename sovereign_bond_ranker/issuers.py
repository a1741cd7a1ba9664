from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

DEFAULT_TRUST = 0.80
NO_TRUST = 0.0


@dataclass(frozen=True)
class TrustRule:
    keywords: Tuple[str, ...]
    trust_score: float
    spread_bps: float

    def matches(self, normalized_name: str) -> bool:
        return any(k in normalized_name for k in self.keywords)


def make_rule(keywords: Iterable[str], trust_score: float, spread_bps: float) -> TrustRule:
    kws = tuple(str(k).strip().upper() for k in keywords if str(k).strip())
    return TrustRule(kws, float(trust_score), float(spread_bps))


class UnknownIssuerSet:
    """Append-only, lock-protected set of issuer names no rule matched."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._names: set[str] = set()

    def add(self, name: str) -> bool:
        with self._lock:
            if name in self._names:
                return False
            self._names.add(name)
            return True

    def snapshot(self) -> FrozenSet[str]:
        with self._lock:
            return frozenset(self._names)

    def sorted(self) -> List[str]:
        return sorted(self.snapshot())

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._names

    def __len__(self) -> int:
        with self._lock:
            return len(self._names)

    def __iter__(self) -> Iterator[str]:
        return iter(self.sorted())


class IssuerTrustResolver:
    """
    Ordered keyword rules, strongest credit first; first match wins.
    Unmatched issuers get the default trust and are recorded for alerting.
    """

    def __init__(
        self,
        rules: Sequence[TrustRule],
        default_trust: float = DEFAULT_TRUST,
        no_trust: float = NO_TRUST,
        unknown: Optional[UnknownIssuerSet] = None,
    ):
        self.rules: Tuple[TrustRule, ...] = tuple(rules)
        self.default_trust = float(default_trust)
        self.no_trust = float(no_trust)
        self.unknown = unknown if unknown is not None else UnknownIssuerSet()

    def match(self, issuer_name: Optional[str]) -> Optional[TrustRule]:
        if issuer_name is None or not str(issuer_name).strip():
            return None
        normalized = str(issuer_name).upper()
        for rule in self.rules:
            if rule.matches(normalized):
                return rule
        return None

    def trust_score(self, issuer_name: Optional[str]) -> float:
        if issuer_name is None or not str(issuer_name).strip():
            return self.no_trust

        rule = self.match(issuer_name)
        if rule is not None:
            return rule.trust_score

        if self.unknown.add(issuer_name):
            logger.debug("Unknown issuer: %s", issuer_name)
        return self.default_trust

    def fallback_spreads(self) -> Dict[str, float]:
        """Every rule keyword exploded into keyword -> spread_bps; first rule wins on duplicates."""
        out: Dict[str, float] = {}
        for rule in self.rules:
            for k in rule.keywords:
                out.setdefault(k.upper(), rule.spread_bps)
        return out
