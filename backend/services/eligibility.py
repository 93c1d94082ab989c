"""
Donor eligibility.

A donor may give blood when their status is Active and at least
``DONATION_INTERVAL_DAYS`` have passed since their last donation. The next
eligible date is the last donation date plus the interval.
"""
from datetime import datetime, timedelta
from typing import Optional

from models import DonorStatus, parse_iso, to_iso

DONATION_INTERVAL_DAYS = 56


def days_since(last_donation, now: datetime) -> Optional[int]:
    last = parse_iso(last_donation)
    if last is None:
        return None
    return (parse_iso(now) - last).days


def donation_eligibility(donor: dict, now: datetime) -> dict:
    last = parse_iso(donor.get("last_donation_date"))
    elapsed = days_since(last, now)

    is_eligible = True
    reason = None
    next_eligible = None

    if donor.get("status") != DonorStatus.ACTIVE.value:
        is_eligible = False
        reason = f"Donor status: {donor.get('status')}"
    elif last is not None and parse_iso(now) < last + timedelta(days=DONATION_INTERVAL_DAYS):
        is_eligible = False
        reason = "Minimum interval between donations not met"
        next_eligible = to_iso(last + timedelta(days=DONATION_INTERVAL_DAYS))

    return {
        "donor_id": donor.get("donor_id"),
        "status": donor.get("status"),
        "is_eligible": is_eligible,
        "reason": reason,
        "next_eligible_date": next_eligible,
        "days_since_last_donation": elapsed,
        "donation_count": donor.get("donation_count", 0),
        "interval_compliance": elapsed is None or elapsed >= DONATION_INTERVAL_DAYS,
    }
