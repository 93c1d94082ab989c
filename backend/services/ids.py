"""
Sequential human-readable identifiers.

Counters live in the ``counters`` collection as ``{_id: name, seq: n}`` and are
advanced with a single ``$inc`` so concurrent writers never observe the same
value.
"""
from pymongo import ReturnDocument


async def next_sequence(db, name: str) -> int:
    counter = await db.counters.find_one_and_update(
        {"_id": name},
        {"$inc": {"seq": 1}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    return counter["seq"]


async def generate_unit_id(db) -> str:
    return f"BU-{await next_sequence(db, 'blood_unit'):06d}"


async def generate_donor_id(db) -> str:
    return f"DNR-{await next_sequence(db, 'donor'):06d}"


async def generate_report_id(db, report_type: str) -> str:
    prefix = report_type.replace("-", "")[:3].upper()
    return f"RPT-{prefix}-{await next_sequence(db, 'report'):06d}"
