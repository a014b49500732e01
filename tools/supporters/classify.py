"""Split supporters into sponsors and backers."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace

from .models import ANONYMOUS_NAME, Supporter, SupporterDataset


def rank(supporters: Iterable[Supporter], blocklist: frozenset[str] | set[str]) -> list[Supporter]:
    """Drop blocklisted slugs and order by descending total (stable)."""
    kept = [s for s in supporters if s.slug not in blocklist]
    return sorted(kept, key=lambda s: s.total_donations, reverse=True)


def classify(supporters: Iterable[Supporter], blocklist: frozenset[str] | set[str] = frozenset()) -> SupporterDataset:
    """Partition ranked supporters into buckets.

    Individuals become backers using their small avatar, except those named
    "anonymous", who are left out. Everyone else is a sponsor with the
    medium avatar. Returned supporters are copies.
    """
    dataset = SupporterDataset()
    for supporter in rank(supporters, blocklist):
        if supporter.is_individual:
            if supporter.name != ANONYMOUS_NAME:
                dataset.backers.append(replace(supporter, avatar=supporter.img_url_small))
        else:
            dataset.sponsors.append(replace(supporter, avatar=supporter.img_url_med))
    return dataset
