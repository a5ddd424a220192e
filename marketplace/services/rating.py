from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, Mapping, Optional
import math

ONE_DECIMAL = Decimal("0.1")


def _coerce_rating(value: Any) -> Optional[float]:
    """Return a usable numeric rating, or None for a malformed one."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        rating = float(value)
    elif isinstance(value, str):
        try:
            rating = float(value.strip())
        except ValueError:
            return None
    else:
        return None

    if not math.isfinite(rating):
        return None
    return rating


def round_rating(value: float) -> float:
    """Round half-up to one decimal place (6.25 -> 6.3)."""
    return float(Decimal(repr(value)).quantize(ONE_DECIMAL, rounding=ROUND_HALF_UP))


def aggregate(reviews: Optional[Iterable[Any]]) -> float:
    """
    Average rating of an embedded review list, rounded to one decimal.

    Entries that are not mappings, have no rating, or whose rating is not
    numeric are skipped. Numeric strings such as "7" are accepted. Returns 0
    when no valid entry remains.
    """
    total = 0.0
    count = 0

    for review in reviews or []:
        if not isinstance(review, Mapping):
            continue
        rating = _coerce_rating(review.get("rating"))
        if rating is None:
            continue
        total += rating
        count += 1

    if count == 0:
        return 0.0

    return round_rating(total / count)
