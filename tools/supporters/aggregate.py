"""Merge repeat donors into one supporter per identity key."""

from __future__ import annotations

from collections.abc import Callable, Iterable

from .models import DonationRecord, Supporter


def by_slug(record: DonationRecord) -> str:
    return record.slug


def aggregate_by_key(
    records: Iterable[DonationRecord],
    key: Callable[[DonationRecord], str] = by_slug,
) -> list[Supporter]:
    """Fold orders into supporters, keeping first-seen order.

    The first order seen for a key supplies the supporter's identity fields;
    later orders only add to its total.
    """
    seen: dict[str, Supporter] = {}
    supporters: list[Supporter] = []
    for record in records:
        k = key(record)
        existing = seen.get(k)
        if existing is not None:
            existing.total_donations += record.total_donations
            continue
        supporter = Supporter.from_record(record)
        seen[k] = supporter
        supporters.append(supporter)
    return supporters
