"""Typed records passed between the pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

INDIVIDUAL = "INDIVIDUAL"
ANONYMOUS_NAME = "anonymous"


@dataclass(frozen=True, slots=True)
class DonationRecord:
    """One order as returned by the ledger, totals already in cents."""

    id: str
    name: str
    slug: str
    website: str | None
    img_url_med: str | None
    img_url_small: str | None
    type: str
    total_donations: int
    first_donation: str | None


@dataclass(slots=True)
class Supporter:
    id: str
    name: str
    slug: str
    website: str | None
    img_url_med: str | None
    img_url_small: str | None
    type: str
    total_donations: int
    first_donation: str | None
    avatar: str | None = None
    width: int | None = None
    height: int | None = None

    @classmethod
    def from_record(cls, record: DonationRecord) -> Supporter:
        return cls(
            id=record.id,
            name=record.name,
            slug=record.slug,
            website=record.website,
            img_url_med=record.img_url_med,
            img_url_small=record.img_url_small,
            type=record.type,
            total_donations=record.total_donations,
            first_donation=record.first_donation,
        )

    @property
    def is_individual(self) -> bool:
        return self.type == INDIVIDUAL

    def to_dict(self) -> dict[str, Any]:
        """Render the camelCase shape the documentation templates read."""
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "website": self.website,
            "imgUrlMed": self.img_url_med,
            "imgUrlSmall": self.img_url_small,
            "firstDonation": self.first_donation,
            "totalDonations": self.total_donations,
            "type": self.type,
            "avatar": self.avatar,
        }
        if self.width is not None and self.height is not None:
            data["dimensions"] = {"width": self.width, "height": self.height}
        return data


@dataclass(slots=True)
class SupporterDataset:
    """Sponsors and backers, each ordered by descending total."""

    sponsors: list[Supporter] = field(default_factory=list)
    backers: list[Supporter] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.sponsors) + len(self.backers)

    def buckets(self) -> dict[str, list[Supporter]]:
        return {"sponsors": self.sponsors, "backers": self.backers}

    def to_dict(self) -> dict[str, list[dict[str, Any]]]:
        return {name: [s.to_dict() for s in bucket] for name, bucket in self.buckets().items()}
