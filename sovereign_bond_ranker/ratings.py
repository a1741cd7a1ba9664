from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Mapping, Optional

from .spreads import normalize_country

logger = logging.getLogger(__name__)

DEFAULT_RATING = "BBB"

# Higher is better; BBB- is the last investment-grade notch.
RATING_SCALE: Mapping[str, int] = MappingProxyType({
    "AAA": 10,
    "AA+": 9,
    "AA": 8,
    "AA-": 7,
    "A+": 6,
    "A": 5,
    "A-": 4,
    "BBB+": 3,
    "BBB": 2,
    "BBB-": 1,
    "BB+": 0,
    "BB": -1,
    "BB-": -2,
    "B+": -3,
    "B": -4,
    "B-": -5,
    "CCC": -6,
    "CC": -7,
    "C": -8,
    "D": -9,
})


def rating_rank(rating: Optional[str]) -> int:
    """Numeric notch of a rating; blank or unrecognized ratings rank as BBB."""
    if rating is None:
        return RATING_SCALE[DEFAULT_RATING]
    return RATING_SCALE.get(str(rating).strip().upper(), RATING_SCALE[DEFAULT_RATING])


def compare_ratings(a: Optional[str], b: Optional[str]) -> int:
    """> 0 when `a` is the better credit, 0 when equal, < 0 when worse."""
    return rating_rank(a) - rating_rank(b)


def meets_rating_requirement(actual: Optional[str], minimum: Optional[str]) -> bool:
    return compare_ratings(actual, minimum) >= 0


class RatingBook:
    """Sovereign rating per canonical country key. The rating follows the issuer, not the currency."""

    def __init__(self, ratings: Mapping[str, str], default_rating: str = DEFAULT_RATING):
        self.ratings: Mapping[str, str] = MappingProxyType(
            {normalize_country(k): str(v).strip().upper() for k, v in ratings.items()}
        )
        self.default_rating = str(default_rating).strip().upper()

    def rating_for_issuer(self, issuer_name: Optional[str]) -> str:
        if issuer_name is None or not str(issuer_name).strip():
            return self.default_rating

        key = normalize_country(issuer_name)
        rating = self.ratings.get(key)
        if rating is None:
            logger.debug("No rating for %s, using %s", key, self.default_rating)
            return self.default_rating
        return rating
