"""
Expiry classifier tests.

Usage:
    python -m pytest backend/tests/test_expiry.py -v
"""
from datetime import datetime, timedelta, timezone

from models import ExpiryTier, to_iso
from services import expiry

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def unit(days: float, blood_type: str = "A+") -> dict:
    return {
        "unit_id": f"U{days}",
        "blood_type": blood_type,
        "collection_date": to_iso(NOW - timedelta(days=42 - days)),
        "expiration_date": to_iso(NOW + timedelta(days=days)),
    }


# =============================================================================
# Days until expiry
# =============================================================================

def test_days_until_expiry_rounds_up_partial_days():
    assert expiry.days_until_expiry(NOW + timedelta(days=2, hours=1), NOW) == 3
    assert expiry.days_until_expiry(NOW + timedelta(hours=1), NOW) == 1


def test_days_until_expiry_accepts_iso_strings():
    assert expiry.days_until_expiry(to_iso(NOW + timedelta(days=5)), NOW) == 5


def test_days_until_expiry_is_negative_after_expiry():
    assert expiry.days_until_expiry(NOW - timedelta(days=1), NOW) == -1


# =============================================================================
# Tier classification
# =============================================================================

def test_classify_examples():
    assert expiry.classify_expiry(NOW + timedelta(days=2), NOW) == ExpiryTier.CRITICAL
    assert expiry.classify_expiry(NOW + timedelta(days=5), NOW) == ExpiryTier.WARNING
    assert expiry.classify_expiry(NOW + timedelta(days=10), NOW) == ExpiryTier.CAUTION
    assert expiry.classify_expiry(NOW - timedelta(days=1), NOW) == ExpiryTier.EXPIRED


def test_classify_boundaries_go_to_more_urgent_tier():
    assert expiry.classify_days(0) == ExpiryTier.EXPIRED
    assert expiry.classify_days(1) == ExpiryTier.CRITICAL
    assert expiry.classify_days(3) == ExpiryTier.CRITICAL
    assert expiry.classify_days(4) == ExpiryTier.WARNING
    assert expiry.classify_days(7) == ExpiryTier.WARNING
    assert expiry.classify_days(8) == ExpiryTier.CAUTION
    assert expiry.classify_days(14) == ExpiryTier.CAUTION


def test_classify_outside_window_is_none():
    assert expiry.classify_days(15) is None
    assert expiry.expiry_label(15) == "Normal"
    assert expiry.expiry_label(2) == "Critical"


# =============================================================================
# Bucketing
# =============================================================================

def test_bucket_units_places_each_unit_once():
    units = [unit(-1), unit(2), unit(5), unit(10), unit(20), unit(3, "O-")]
    result = expiry.bucket_units(units, NOW)

    assert result["counts"] == {"expired": 1, "critical": 2, "warning": 1, "caution": 1, "normal": 1}
    assert sum(result["counts"].values()) == len(units)
    assert "by_blood_type" not in result


def test_bucket_units_by_blood_type():
    units = [unit(2, "O-"), unit(3, "O-"), unit(10, "AB+")]
    result = expiry.bucket_units(units, NOW, group_by_blood_type=True)

    assert result["by_blood_type"]["O-"]["critical"] == 2
    assert result["by_blood_type"]["AB+"]["caution"] == 1
    assert sum(result["by_blood_type"]["B+"].values()) == 0


def test_annotate_adds_display_fields():
    annotated = expiry.annotate(unit(21), NOW)
    assert annotated["days_remaining"] == 21
    assert annotated["expiry_status"] == "Normal"
    assert annotated["remaining_percentage"] == 50
