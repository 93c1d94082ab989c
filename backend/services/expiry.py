"""
Expiry classification for blood units.

Days until expiry are ``ceil((expiration - now) / 1 day)``. Each unit falls in
exactly one tier:

    days <= 0        expired
    1 <= days <= 3   critical
    4 <= days <= 7   warning
    8 <= days <= 14  caution
    days > 14        outside the tracked window
"""
import math
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Iterable, Optional

from models import ExpiryTier, BLOOD_TYPES, parse_iso

CRITICAL_DAYS = 3
WARNING_DAYS = 7
CAUTION_DAYS = 14

VERY_CLOSE_WINDOW = timedelta(hours=48)
SOON_WINDOW = timedelta(days=7)

TIERS = [ExpiryTier.EXPIRED, ExpiryTier.CRITICAL, ExpiryTier.WARNING, ExpiryTier.CAUTION]
NORMAL = "normal"

_SECONDS_PER_DAY = 24 * 60 * 60


def days_until_expiry(expiration, now: datetime) -> int:
    delta = parse_iso(expiration) - parse_iso(now)
    return math.ceil(delta.total_seconds() / _SECONDS_PER_DAY)


def classify_days(days: int) -> Optional[ExpiryTier]:
    if days <= 0:
        return ExpiryTier.EXPIRED
    if days <= CRITICAL_DAYS:
        return ExpiryTier.CRITICAL
    if days <= WARNING_DAYS:
        return ExpiryTier.WARNING
    if days <= CAUTION_DAYS:
        return ExpiryTier.CAUTION
    return None


def classify_expiry(expiration, now: datetime) -> Optional[ExpiryTier]:
    return classify_days(days_until_expiry(expiration, now))


def expiry_label(days: int) -> str:
    """Display status for list and detail views."""
    tier = classify_days(days)
    return tier.value.title() if tier else NORMAL.title()


def remaining_shelf_life_percent(unit: dict, now: datetime) -> Optional[int]:
    collection = parse_iso(unit.get("collection_date"))
    expiration = parse_iso(unit.get("expiration_date"))
    if collection is None or expiration is None:
        return None
    total_days = math.ceil((expiration - collection).total_seconds() / _SECONDS_PER_DAY)
    if total_days <= 0:
        return 0
    remaining = days_until_expiry(expiration, now)
    return max(0, min(100, round(remaining / total_days * 100)))


def annotate(unit: dict, now: datetime) -> dict:
    days = days_until_expiry(unit["expiration_date"], now)
    return {
        **unit,
        "days_remaining": days,
        "expiry_status": expiry_label(days),
        "remaining_percentage": remaining_shelf_life_percent(unit, now),
    }


def _empty_buckets() -> "OrderedDict[str, list]":
    buckets = OrderedDict((tier.value, []) for tier in TIERS)
    buckets[NORMAL] = []
    return buckets


def bucket_units(units: Iterable[dict], now: datetime, group_by_blood_type: bool = False) -> dict:
    """
    Partition units into expiry tiers.

    Returns ``{"counts": {...}, "groups": {...}}`` where every unit appears in
    exactly one group; units beyond the tracked window go to ``normal``. With
    ``group_by_blood_type`` a ``by_blood_type`` mapping of per-type counts is
    added.
    """
    groups = _empty_buckets()
    by_blood_type = OrderedDict((bt, {key: 0 for key in groups}) for bt in BLOOD_TYPES)

    for unit in units:
        annotated = annotate(unit, now)
        tier = classify_days(annotated["days_remaining"])
        key = tier.value if tier else NORMAL
        groups[key].append(annotated)
        if unit.get("blood_type") in by_blood_type:
            by_blood_type[unit["blood_type"]][key] += 1

    result = {
        "counts": {key: len(items) for key, items in groups.items()},
        "groups": groups,
    }
    if group_by_blood_type:
        result["by_blood_type"] = by_blood_type
    return result
