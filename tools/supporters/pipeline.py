"""Core sync logic – orchestrates API → aggregate → classify → avatars."""

from __future__ import annotations

import asyncio
import logging

import httpx

from .aggregate import aggregate_by_key
from .api import OpenCollectiveAPI
from .assets import AssetSync
from .classify import classify
from .config import SupportersConfig
from .models import SupporterDataset

logger = logging.getLogger("supporters.pipeline")


class SupporterPipeline:
    """Builds the sponsors/backers dataset for the documentation site."""

    def __init__(
        self,
        cfg: SupportersConfig | None = None,
        *,
        blocklist: frozenset[str] | None = None,
        ledger_transport: httpx.BaseTransport | None = None,
        asset_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.cfg = cfg or SupportersConfig()
        self.blocklist = blocklist if blocklist is not None else self.cfg.load_blocklist()
        self.api = OpenCollectiveAPI(self.cfg.ledger, transport=ledger_transport)
        self.assets = AssetSync(self.cfg.assets, transport=asset_transport)
        # Stats
        self.stats = {"orders": 0, "supporters": 0, "blocked": 0, "sponsors": 0, "backers": 0}

    def collect(self, slug: str | None = None) -> SupporterDataset:
        """Fetch, merge and classify supporters without touching the disk."""
        orders = self.api.get_all_orders(slug)
        supporters = aggregate_by_key(orders)
        dataset = classify(supporters, self.blocklist)

        self.stats["orders"] = len(orders)
        self.stats["supporters"] = len(supporters)
        self.stats["blocked"] = sum(1 for s in supporters if s.slug in self.blocklist)
        self.stats["sponsors"] = len(dataset.sponsors)
        self.stats["backers"] = len(dataset.backers)
        return dataset

    async def run_async(self, slug: str | None = None) -> SupporterDataset:
        # Pagination uses the blocking client, keep it off the event loop.
        dataset = await asyncio.to_thread(self.collect, slug)
        await self.assets.sync(dataset)
        self.stats.update(self.assets.stats)
        logger.info(
            "found %d valid backers and %d valid sponsors (%d total)",
            len(dataset.backers),
            len(dataset.sponsors),
            dataset.total,
        )
        return dataset

    def run(self, slug: str | None = None) -> SupporterDataset:
        """Run the whole pipeline and return the dataset.

        Avatars are on disk when this returns; any failure propagates and
        nothing is returned.
        """
        return asyncio.run(self.run_async(slug))

    # ── lifecycle ────────────────────────────────────────────────

    def close(self) -> None:
        self.api.close()

    def __enter__(self) -> SupporterPipeline:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


def collect_supporters(cfg: SupportersConfig | None = None, slug: str | None = None) -> SupporterDataset:
    with SupporterPipeline(cfg) as pipeline:
        return pipeline.run(slug)
